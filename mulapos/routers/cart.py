from fastapi import APIRouter, Depends, HTTPException

from mulapos.deps import get_terminal
from mulapos.schemas.pos import AddItemIn, SetQuantityIn
from mulapos.services.terminal import PosTerminal

router = APIRouter(prefix="/pos", tags=["pos-cart"])


def _serialize_cart(terminal: PosTerminal):
    items = terminal.cart.items()
    return {
        "items": [i.wire() for i in items],
        "total": str(terminal.cart.total()),
        "count": sum(i.quantity for i in items),
        "hash": terminal.publisher.current_hash(),
    }


@router.get("/products")
def list_products(terminal: PosTerminal = Depends(get_terminal)):
    return {"products": [p.wire() for p in terminal.catalog.all()]}


@router.get("/cart")
def get_cart(terminal: PosTerminal = Depends(get_terminal)):
    return _serialize_cart(terminal)


@router.post("/cart/items")
def add_item(payload: AddItemIn, terminal: PosTerminal = Depends(get_terminal)):
    if payload.product_id:
        product = terminal.catalog.get(payload.product_id)
    elif payload.barcode:
        product = terminal.catalog.by_barcode(payload.barcode)
    else:
        raise HTTPException(status_code=422, detail="product_id or barcode required")
    terminal.cart.add_product(product)
    return _serialize_cart(terminal)


@router.put("/cart/items/{product_id}")
def set_quantity(product_id: str, payload: SetQuantityIn, terminal: PosTerminal = Depends(get_terminal)):
    terminal.cart.set_quantity(product_id, payload.quantity)
    return _serialize_cart(terminal)


@router.delete("/cart")
def clear_cart(terminal: PosTerminal = Depends(get_terminal)):
    terminal.cart.clear()
    return _serialize_cart(terminal)
