from fastapi import APIRouter, Depends

from mulapos.deps import get_terminal
from mulapos.services.terminal import PosTerminal

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/context", summary="Contexto de tienda")
def get_context(terminal: PosTerminal = Depends(get_terminal)):
    s = terminal.settings
    return {
        "company": s.company_name,
        "currency": s.currency,
        "currency_symbol": s.currency_symbol,
        "payment_methods": s.payment_methods,
        "display_poll_seconds": s.display_poll_seconds,
        "receipt_delay_seconds": s.receipt_delay_seconds,
        "device": s.device_name,
    }
