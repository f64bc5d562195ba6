from typing import Optional

from fastapi import APIRouter, Depends

from mulapos.deps import get_terminal
from mulapos.schemas.pos import CashMovementIn, CloseSessionIn, OpenSessionIn
from mulapos.services.terminal import PosTerminal

# Rutas reales: /pos/session/*
router = APIRouter(prefix="/pos/session", tags=["pos-session"])


def _balance(terminal: PosTerminal) -> Optional[str]:
    if terminal.sessions.active() is None:
        return None
    return str(terminal.sessions.current_cash_balance())


# ---------- OPEN ----------
@router.post("/open")
def open_session(payload: Optional[OpenSessionIn] = None, terminal: PosTerminal = Depends(get_terminal)):
    payload = payload or OpenSessionIn()
    s = terminal.start_session(payload.opening_balance)
    return {"session": s.wire(), "hash": terminal.publisher.current_hash()}


# ---------- CLOSE ----------
@router.post("/close")
def close_session(payload: Optional[CloseSessionIn] = None, terminal: PosTerminal = Depends(get_terminal)):
    payload = payload or CloseSessionIn()
    s = terminal.close_session(payload.closing_balance)
    return {"session": s.wire()}


@router.get("/current")
def current_session(terminal: PosTerminal = Depends(get_terminal)):
    s = terminal.sessions.active()
    return {
        "session": s.wire() if s else None,
        "hash": terminal.publisher.current_hash() if s else None,
        "cash_balance": _balance(terminal),
    }


@router.get("/history")
def session_history(terminal: PosTerminal = Depends(get_terminal)):
    return {"sessions": [s.wire() for s in terminal.sessions.history()]}


@router.get("/summary")
def today_summary(terminal: PosTerminal = Depends(get_terminal)):
    summary = terminal.sessions.daily_summary()
    summary["total_sales"] = str(summary["total_sales"])
    return summary


@router.get("/balance")
def cash_balance(terminal: PosTerminal = Depends(get_terminal)):
    s = terminal.sessions.require_active()
    return {"session_id": s.id, "cash_balance": str(terminal.sessions.current_cash_balance())}


# ---------- CASH IN / OUT ----------
@router.post("/cash-movements")
def add_cash_movement(payload: CashMovementIn, terminal: PosTerminal = Depends(get_terminal)):
    mv = terminal.sessions.record_cash_movement(payload.type, payload.amount, payload.reason)
    return {"movement": mv.wire(), "cash_balance": _balance(terminal)}


@router.get("/cash-movements")
def list_cash_movements(session_id: Optional[str] = None, terminal: PosTerminal = Depends(get_terminal)):
    if session_id is None:
        active = terminal.sessions.active()
        session_id = active.id if active else None
    return {"movements": [m.wire() for m in terminal.sessions.movements(session_id)]}
