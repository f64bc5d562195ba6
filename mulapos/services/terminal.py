from __future__ import annotations

import logging
from typing import List, Optional

from mulapos.core.config import Settings
from mulapos.db import build_engine, build_session_factory, init_db
from mulapos.schemas.pos import CartItem, PosSession
from mulapos.services.cart import Cart
from mulapos.services.catalog import Catalog
from mulapos.services.channel import BroadcastChannel
from mulapos.services.checkout import CheckoutFinalizer
from mulapos.services.display import CustomerDisplay
from mulapos.services.publisher import DisplayPublisher
from mulapos.services.sessions import SessionManager, utcnow
from mulapos.services.storage import SharedStorage

logger = logging.getLogger(__name__)


class PosTerminal:
    """Una instancia por aplicación: arma y posee todos los servicios del POS."""

    def __init__(self, settings: Settings, catalog: Optional[Catalog] = None, clock=utcnow):
        self.settings = settings
        self.engine = build_engine(settings.database_url)
        init_db(self.engine)

        self.channel = BroadcastChannel(history=settings.channel_history)
        self.storage = SharedStorage(build_session_factory(self.engine), self.channel)
        self.catalog = catalog or Catalog()
        self.sessions = SessionManager(self.storage, settings, clock=clock)
        self.cart = Cart(self.sessions.require_active, lock=self.sessions.lock)
        self.publisher = DisplayPublisher(self.storage)
        self.checkout = CheckoutFinalizer(
            self.storage, self.sessions, self.cart, self.publisher, settings
        )
        self.cart.on_change(self._publish_cart)
        self.publisher.restore(self.sessions.active())

    def _publish_cart(self, items: List[CartItem]) -> None:
        self.publisher.publish(items)

    def start_session(self, opening_balance) -> PosSession:
        with self.sessions.lock, self.storage.transaction():
            session = self.sessions.start_session(opening_balance)
            self.publisher.announce(session)
        self.cart.reset(notify=False)
        return session

    def close_session(self, closing_balance) -> PosSession:
        with self.sessions.lock, self.storage.transaction():
            session = self.sessions.close_session(closing_balance)
            self.publisher.retract(session)
        self.cart.reset(notify=False)
        return session

    def open_display(self, hash_: Optional[str] = None) -> CustomerDisplay:
        return CustomerDisplay(
            self.storage, self.channel, hash_, poll_seconds=self.settings.display_poll_seconds
        )

    def dispose(self) -> None:
        self.engine.dispose()
