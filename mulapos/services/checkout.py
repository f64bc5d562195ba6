from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
import logging
from typing import Optional

from pydantic import BaseModel

from mulapos.core.config import Settings
from mulapos.core.errors import CartEmpty, InvalidPaymentMethod
from mulapos.schemas.pos import CompletedSale, PosSession, SaleLine
from mulapos.services import keys
from mulapos.services.cart import Cart
from mulapos.services.publisher import DisplayPublisher
from mulapos.services.sessions import SessionManager, new_id
from mulapos.services.storage import SharedStorage

logger = logging.getLogger(__name__)


class Receipt(BaseModel):
    sale: CompletedSale
    session: PosSession
    total: Decimal
    method: str
    receipt_ready_at: str


class CheckoutFinalizer:
    def __init__(
        self,
        storage: SharedStorage,
        sessions: SessionManager,
        cart: Cart,
        publisher: DisplayPublisher,
        settings: Settings,
    ):
        self.storage = storage
        self.sessions = sessions
        self.cart = cart
        self.publisher = publisher
        self.settings = settings

    def process_payment(self, method: str, customer: Optional[str] = None) -> Receipt:
        """
        Cobra el carrito en una sola transacción:
          agregados de sesión + venta en el ledger + snapshot vacío al display.
        Si algo falla no queda nada a medias. El carrito en memoria se vacía tras el commit.
        """
        method = (method or "").strip().lower()
        if method not in self.settings.payment_methods:
            raise InvalidPaymentMethod(f"Método {method!r} no habilitado")

        with self.sessions.lock, self.cart.lock:
            return self._finalize(method, customer)

    def _finalize(self, method: str, customer: Optional[str]) -> Receipt:
        self.sessions.require_active()
        if self.cart.is_empty():
            raise CartEmpty()

        lines = self.cart.items()
        total = self.cart.total()
        now = self.sessions.clock()

        with self.storage.transaction() as tx:
            session = self.sessions.record_sale_payment(total, method)
            sale = CompletedSale(
                id=new_id("SALE"),
                customer=customer or self.settings.default_customer,
                amount=total,
                status="completed",
                date=now.date(),
                payment_method=method,
                items=[
                    SaleLine(id=line.id, name=line.name, price=line.price, quantity=line.quantity)
                    for line in lines
                ],
                notes=f"POS Sale from session {session.id}",
            )
            ledger = tx.get_json(keys.COMPLETED_SALES, [])
            ledger.append(sale.wire())
            tx.set_json(keys.COMPLETED_SALES, ledger)
            tx.notify("ledger", None, {"sale_id": sale.id})
            self.publisher.publish_cleared()

        self.cart.reset(notify=False)
        logger.info("sale %s paid by %s: %s (session %s)", sale.id, method, total, session.id)

        ready = now + timedelta(seconds=self.settings.receipt_delay_seconds)
        return Receipt(
            sale=sale, session=session, total=total, method=method,
            receipt_ready_at=ready.isoformat(),
        )

    def ledger(self):
        return [CompletedSale.model_validate(r) for r in self.storage.get_json(keys.COMPLETED_SALES, [])]
