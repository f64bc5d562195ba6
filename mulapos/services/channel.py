"""
Canal de difusión entre la ventana del POS y el display del cliente.

Mensajes: {seq, type, hash, payload}. La entrega a suscriptores es síncrona;
además se guarda un historial acotado para long-poll (`wait`). No hay garantía
de orden ni de exactamente-una-vez para el lector: el display reconcilia por
polling cada pocos segundos.
"""
from __future__ import annotations

from collections import deque
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from mulapos.schemas.pos import ChannelMessage
from mulapos.services.keys import snapshot_key

logger = logging.getLogger(__name__)

Callback = Callable[[ChannelMessage], None]


def concerns(msg: ChannelMessage, hash_: Optional[str]) -> bool:
    """¿El mensaje le interesa a un lector del hash dado? (None = todos)"""
    if hash_ is None:
        return True
    if msg.hash == hash_:
        return True
    if msg.type == "storage":
        key = msg.payload.get("key")
        return key is None or key == snapshot_key(hash_)
    return False


class BroadcastChannel:
    def __init__(self, name: str = "pos-display", history: int = 256):
        self.name = name
        self._cond = threading.Condition()
        self._seq = 0
        self._history: deque[ChannelMessage] = deque(maxlen=history)
        self._subs: List[tuple] = []

    @property
    def last_seq(self) -> int:
        with self._cond:
            return self._seq

    def subscribe(self, callback: Callback, hash_: Optional[str] = None) -> Callable[[], None]:
        entry = (hash_, callback)
        with self._cond:
            self._subs.append(entry)

        def _unsubscribe():
            with self._cond:
                if entry in self._subs:
                    self._subs.remove(entry)

        return _unsubscribe

    def publish(
        self, type_: str, hash_: Optional[str] = None, payload: Optional[Dict[str, Any]] = None
    ) -> ChannelMessage:
        with self._cond:
            self._seq += 1
            msg = ChannelMessage(seq=self._seq, type=type_, hash=hash_, payload=payload or {})
            self._history.append(msg)
            subs = list(self._subs)
            self._cond.notify_all()

        for sub_hash, cb in subs:
            if not concerns(msg, sub_hash):
                continue
            try:
                cb(msg)
            except Exception:
                # Un suscriptor roto no corta la difusión al resto
                logger.exception("channel %s: subscriber failed on %s", self.name, msg.type)
        return msg

    def since(self, after_seq: int, hash_: Optional[str] = None) -> List[ChannelMessage]:
        with self._cond:
            return [m for m in self._history if m.seq > after_seq and concerns(m, hash_)]

    def wait(
        self, after_seq: int, hash_: Optional[str] = None, timeout: float = 25.0
    ) -> List[ChannelMessage]:
        """Long-poll: bloquea hasta que haya mensajes nuevos para `hash_` o venza el timeout."""
        deadline = time.monotonic() + max(0.0, timeout)
        with self._cond:
            while True:
                found = [m for m in self._history if m.seq > after_seq and concerns(m, hash_)]
                if found:
                    return found
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return []
                self._cond.wait(remaining)
