from typing import Optional

from fastapi import APIRouter, Depends, Query

from mulapos.deps import get_terminal
from mulapos.services.display import live_sessions, read_display
from mulapos.services.terminal import PosTerminal

router = APIRouter(prefix="/display", tags=["customer-display"])


@router.get("/sessions")
def list_live_sessions(terminal: PosTerminal = Depends(get_terminal)):
    return {"sessions": [s.model_dump() for s in live_sessions(terminal.storage)]}


@router.get("/{hash}")
def display_state(hash: str, last_update: Optional[int] = None, terminal: PosTerminal = Depends(get_terminal)):
    seq = terminal.channel.last_seq
    data = read_display(terminal.storage, hash, last_update).model_dump(mode="json")
    data["seq"] = seq
    return data


@router.get("/{hash}/changes")
def display_changes(
    hash: str,
    after: int = 0,
    timeout: float = Query(default=25.0, ge=0),
    last_update: Optional[int] = None,
    terminal: PosTerminal = Depends(get_terminal),
):
    """Long-poll: espera mensajes del canal para este hash y devuelve la vista ya releída."""
    timeout = min(timeout, terminal.settings.long_poll_seconds)
    messages = terminal.channel.wait(after, hash, timeout=timeout)
    seq = messages[-1].seq if messages else min(after, terminal.channel.last_seq)
    view = read_display(terminal.storage, hash, last_update)
    return {
        "seq": seq,
        "messages": [m.model_dump() for m in messages],
        "view": view.model_dump(mode="json"),
    }
