"""
Publicador del carrito hacia el display del cliente.

Por cada sesión abierta escribe:
  session-hash-<id>       -> hash
  session-details-<hash>  -> {id, name}
  session-<hash>          -> {hash, cart, timestamp}

El hash es un token aleatorio de 128 bits (`secrets`), único dentro del
proceso: se lleva registro de los emitidos y se regenera ante colisión.
El snapshot es una proyección desechable del carrito, nunca fuente de verdad.
"""
from __future__ import annotations

import logging
import secrets
import threading
import time
from typing import List, Optional, Set

from mulapos.schemas.pos import CartItem, PosSession, SessionDetails, SessionSnapshot
from mulapos.services import keys
from mulapos.services.storage import SharedStorage

logger = logging.getLogger(__name__)

TOKEN_BYTES = 16


def now_ms() -> int:
    return int(time.time() * 1000)


class DisplayPublisher:
    def __init__(self, storage: SharedStorage, clock_ms=now_ms):
        self.storage = storage
        self.clock_ms = clock_ms
        self._issued: Set[str] = set()
        self._hash: Optional[str] = None
        self._lock = threading.Lock()

    def current_hash(self) -> Optional[str]:
        return self._hash

    def known(self, hash_: str) -> bool:
        return hash_ in self._issued

    def _new_token(self, tx) -> str:
        with self._lock:
            while True:
                token = secrets.token_hex(TOKEN_BYTES).upper()
                if token in self._issued or tx.get_raw(keys.snapshot_key(token)) is not None:
                    continue
                self._issued.add(token)
                return token

    def _write(self, tx, hash_: str, cart: List[CartItem], kind: str) -> SessionSnapshot:
        snap = SessionSnapshot(hash=hash_, cart=cart, timestamp=self.clock_ms())
        wire = snap.wire()
        tx.set_json(keys.snapshot_key(hash_), wire)
        tx.notify(kind, hash_, wire)
        return snap

    def announce(self, session: PosSession) -> str:
        with self.storage.transaction() as tx:
            token = self._new_token(tx)
            self._hash = token
            tx.set_json(keys.session_hash_key(session.id), token)
            tx.set_json(
                keys.session_details_key(token),
                SessionDetails(id=session.id, name=session.name).wire(),
            )
            self._write(tx, token, [], "snapshot")
        logger.info("session %s published for display", session.id)
        return token

    def _live(self, tx) -> Optional[str]:
        # Hash vigente sólo si sus claves siguen publicadas (no escribir tras un retract)
        hash_ = self._hash
        if not hash_ or tx.get_raw(keys.session_details_key(hash_)) is None:
            return None
        return hash_

    def publish(self, cart: List[CartItem]) -> Optional[SessionSnapshot]:
        with self.storage.transaction() as tx:
            hash_ = self._live(tx)
            if hash_ is None:
                return None
            return self._write(tx, hash_, cart, "snapshot")

    def publish_cleared(self) -> Optional[SessionSnapshot]:
        """Snapshot vacío explícito tras un cobro: el display no debe quedarse con el carrito anterior."""
        with self.storage.transaction() as tx:
            hash_ = self._live(tx)
            if hash_ is None:
                return None
            return self._write(tx, hash_, [], "cleared")

    def retract(self, session: PosSession) -> None:
        with self.storage.transaction() as tx:
            hash_ = tx.get_json(keys.session_hash_key(session.id)) or self._hash
            if hash_:
                tx.remove(keys.session_details_key(hash_))
                tx.remove(keys.snapshot_key(hash_))
                tx.notify("ended", hash_, {"session_id": session.id})
            tx.remove(keys.session_hash_key(session.id))
        self._hash = None
        logger.info("session %s retracted from display", session.id)

    def restore(self, session: Optional[PosSession]) -> Optional[str]:
        """
        Al arrancar: recupera el hash de la sesión abierta, o la anuncia de nuevo.
        El carrito en memoria arranca vacío, así que el snapshot se reescribe vacío.
        """
        if session is None:
            return None
        with self.storage.transaction() as tx:
            hash_ = tx.get_json(keys.session_hash_key(session.id))
            if not hash_ or tx.get_raw(keys.session_details_key(hash_)) is None:
                return self.announce(session)
            self._issued.add(hash_)
            self._hash = hash_
            self._write(tx, hash_, [], "snapshot")
        logger.info("session %s restored for display", session.id)
        return hash_
