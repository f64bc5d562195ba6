from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from mulapos.deps import get_terminal
from mulapos.services.terminal import PosTerminal

router = APIRouter(tags=["health"])


@router.get("/health")
def health(terminal: PosTerminal = Depends(get_terminal)):
    # Estado mínimo para el monitor: versión, sesión abierta y último mensaje del canal
    active = terminal.sessions.active()
    return {
        "status": "ok",
        "service": terminal.settings.app_name,
        "version": terminal.settings.app_version,
        "session_open": active is not None,
        "channel_seq": terminal.channel.last_seq,
        "time": datetime.now(timezone.utc).isoformat(),
    }
