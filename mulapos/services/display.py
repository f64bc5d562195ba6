"""
Display del cliente: lector de los snapshots publicados por el POS.

Estados de la vista:
  select     sin hash: lista de sesiones vivas para elegir
  live       carrito + total + última actualización
  not_found  el hash no corresponde a ninguna sesión activa
  ended      el hash estuvo vivo y su snapshot desapareció (sesión cerrada)
  corrupted  el snapshot no se puede interpretar

Ningún fallo de lectura se propaga como excepción: todo termina en un estado.
"""
from __future__ import annotations

from decimal import Decimal
import logging
import time
from typing import Callable, List, Literal, Optional

from pydantic import BaseModel, Field

from mulapos.core.money import ZERO, money_sum
from mulapos.schemas.pos import CartItem, ChannelMessage, SessionDetails, SessionSnapshot
from mulapos.services import keys
from mulapos.services.channel import BroadcastChannel
from mulapos.services.storage import SharedStorage

logger = logging.getLogger(__name__)

DisplayState = Literal["select", "live", "not_found", "ended", "corrupted"]

MESSAGES = {
    "select": "Select a POS session to display",
    "not_found": "No active session for this hash",
    "ended": "Session ended. Please select another session",
    "corrupted": "Session data corrupted",
}


class LiveSession(BaseModel):
    hash: str
    id: str
    name: str


class DisplayView(BaseModel):
    state: DisplayState
    hash: Optional[str] = None
    cart: List[CartItem] = Field(default_factory=list)
    total: Decimal = ZERO
    item_count: int = 0
    last_update: Optional[int] = None
    connected: bool = False
    message: Optional[str] = None
    sessions: List[LiveSession] = Field(default_factory=list)


class CorruptedSnapshot(ValueError):
    pass


def parse_snapshot(raw: str, hash_: str) -> SessionSnapshot:
    try:
        snap = SessionSnapshot.model_validate_json(raw)
    except ValueError as e:
        raise CorruptedSnapshot(str(e)) from e
    if snap.hash != hash_:
        raise CorruptedSnapshot(f"hash mismatch: {snap.hash} != {hash_}")
    return snap


def live_sessions(storage: SharedStorage) -> List[LiveSession]:
    out: List[LiveSession] = []
    with storage.transaction() as tx:
        for key in tx.keys(keys.SESSION_DETAILS_PREFIX):
            hash_ = key[len(keys.SESSION_DETAILS_PREFIX):]
            try:
                details = SessionDetails.model_validate(tx.get_json(key))
            except ValueError:
                logger.warning("skipping unreadable %s", key)
                continue
            out.append(LiveSession(hash=hash_, id=details.id, name=details.name))
    return out


def read_display(
    storage: SharedStorage, hash_: Optional[str], last_update: Optional[int] = None
) -> DisplayView:
    """
    Lectura sin estado. `last_update` es lo último que el lector vio en vivo:
    si lo tiene y el snapshot ya no existe, la sesión terminó.
    """
    if not hash_:
        return DisplayView(state="select", message=MESSAGES["select"], sessions=live_sessions(storage))

    raw = storage.get_raw(keys.snapshot_key(hash_))
    if raw is None:
        state = "ended" if last_update is not None else "not_found"
        return DisplayView(state=state, hash=hash_, last_update=last_update, message=MESSAGES[state])

    try:
        snap = parse_snapshot(raw, hash_)
    except CorruptedSnapshot as e:
        logger.warning("display %s: corrupted snapshot (%s)", hash_, e)
        return DisplayView(state="corrupted", hash=hash_, message=MESSAGES["corrupted"])

    return DisplayView(
        state="live",
        hash=hash_,
        cart=snap.cart,
        total=money_sum(line.line_total for line in snap.cart),
        item_count=sum(line.quantity for line in snap.cart),
        last_update=snap.timestamp,
        connected=True,
    )


class CustomerDisplay:
    """
    Suscriptor con estado (una pantalla de cliente).

    Se refresca con cada mensaje del canal que le concierne y, como respaldo,
    `reconcile()` vuelve a leer si pasó el intervalo de polling.
    """

    def __init__(
        self,
        storage: SharedStorage,
        channel: BroadcastChannel,
        hash_: Optional[str] = None,
        poll_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.storage = storage
        self.channel = channel
        self.poll_seconds = poll_seconds
        self.clock = clock
        self.hash: Optional[str] = None
        self.view = DisplayView(state="select")
        self._last_update: Optional[int] = None
        self._last_poll: Optional[float] = None
        self._unsubscribe = None
        self.select(hash_)

    def _on_message(self, msg: ChannelMessage) -> None:
        self.refresh()

    def select(self, hash_: Optional[str]) -> DisplayView:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self.hash = hash_ or None
        self._last_update = None
        self._unsubscribe = self.channel.subscribe(self._on_message, self.hash)
        return self.refresh()

    def refresh(self) -> DisplayView:
        view = read_display(self.storage, self.hash, self._last_update)
        if view.state == "live":
            self._last_update = view.last_update
        self._last_poll = self.clock()
        self.view = view
        return view

    def poll_due(self) -> bool:
        return self._last_poll is None or self.clock() - self._last_poll >= self.poll_seconds

    def reconcile(self) -> DisplayView:
        if self.poll_due():
            return self.refresh()
        return self.view

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
