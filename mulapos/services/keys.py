# Claves lógicas del almacenamiento compartido (valores JSON)
SESSIONS = "sessions"
CURRENT_SESSION = "current-session"
CASH_MOVEMENTS = "cash-movements"
COMPLETED_SALES = "completed-sales"

SESSION_HASH_PREFIX = "session-hash-"
SESSION_DETAILS_PREFIX = "session-details-"
SNAPSHOT_PREFIX = "session-"


def session_hash_key(session_id: str) -> str:
    return f"{SESSION_HASH_PREFIX}{session_id}"


def session_details_key(hash_: str) -> str:
    return f"{SESSION_DETAILS_PREFIX}{hash_}"


def snapshot_key(hash_: str) -> str:
    return f"{SNAPSHOT_PREFIX}{hash_}"
