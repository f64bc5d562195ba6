from fastapi import APIRouter, Depends

from mulapos.deps import get_terminal
from mulapos.schemas.pos import PayIn
from mulapos.services.terminal import PosTerminal

router = APIRouter(tags=["pos-checkout"])


@router.post("/pos/pay")
def pay(payload: PayIn, terminal: PosTerminal = Depends(get_terminal)):
    """
    Cobra el carrito completo con un solo método (cash | card).
    Idempotente con el header Idempotency-Key (ver middleware).
    """
    r = terminal.checkout.process_payment(payload.method, payload.customer)
    return {
        "sale_id": r.sale.id,
        "sale": r.sale.wire(),
        "session": r.session.wire(),
        "total": str(r.total),
        "method": r.method,
        "receipt_ready_at": r.receipt_ready_at,
    }


# Lectura del ledger para el módulo de Ventas
@router.get("/sales/completed")
def completed_sales(terminal: PosTerminal = Depends(get_terminal)):
    sales = terminal.checkout.ledger()
    return {"sales": [s.wire() for s in sales], "count": len(sales)}
