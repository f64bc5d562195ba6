"""
Almacenamiento compartido clave/valor (JSON) sobre SQLAlchemy.

Hace las veces del "local storage" que comparten la ventana del POS y la del
display. Toda escritura va dentro de `transaction()`: se confirma completa o
nada, y las notificaciones al canal salen sólo después del commit.
"""
from __future__ import annotations

from contextlib import contextmanager
import json
import logging
import threading
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session as OrmSession

from mulapos.models.storage import StorageEntry
from mulapos.services.channel import BroadcastChannel

logger = logging.getLogger(__name__)


def dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class StorageTxn:
    def __init__(self, db: OrmSession):
        self.db = db
        self.changed: List[str] = []
        self.messages: List[Tuple[str, Optional[str], Dict[str, Any]]] = []

    def get_raw(self, key: str) -> Optional[str]:
        row = self.db.get(StorageEntry, key)
        return row.value if row is not None else None

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_raw(key)
        if raw is None:
            return default
        return json.loads(raw)

    def set_raw(self, key: str, text: str) -> None:
        row = self.db.get(StorageEntry, key)
        if row is None:
            self.db.add(StorageEntry(key=key, value=text))
        else:
            row.value = text
        self.db.flush()
        self.changed.append(key)

    def set_json(self, key: str, value: Any) -> None:
        self.set_raw(key, dumps(value))

    def remove(self, key: str) -> bool:
        row = self.db.get(StorageEntry, key)
        if row is None:
            return False
        self.db.delete(row)
        self.db.flush()
        self.changed.append(key)
        return True

    def keys(self, prefix: str = "") -> List[str]:
        stmt = select(StorageEntry.key).order_by(StorageEntry.key)
        if prefix:
            stmt = stmt.where(StorageEntry.key.startswith(prefix, autoescape=True))
        return list(self.db.execute(stmt).scalars())

    def notify(self, type_: str, hash_: Optional[str] = None, payload: Optional[Dict[str, Any]] = None):
        """Encola un mensaje tipado; se difunde tras el commit."""
        self.messages.append((type_, hash_, payload or {}))


class SharedStorage:
    def __init__(self, session_factory, channel: BroadcastChannel):
        self._factory = session_factory
        self.channel = channel
        self._local = threading.local()

    @contextmanager
    def transaction(self) -> Iterator[StorageTxn]:
        current = getattr(self._local, "txn", None)
        if current is not None:
            # Reentrante: la transacción interna se une a la externa
            yield current
            return

        db = self._factory()
        txn = StorageTxn(db)
        self._local.txn = txn
        try:
            yield txn
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            self._local.txn = None
            db.close()
        self._broadcast(txn)

    def _broadcast(self, txn: StorageTxn) -> None:
        for key in dict.fromkeys(txn.changed):
            self.channel.publish("storage", None, {"key": key})
        for type_, hash_, payload in txn.messages:
            self.channel.publish(type_, hash_, payload)

    def get_raw(self, key: str) -> Optional[str]:
        with self.transaction() as tx:
            return tx.get_raw(key)

    def get_json(self, key: str, default: Any = None) -> Any:
        with self.transaction() as tx:
            return tx.get_json(key, default)

    def set_json(self, key: str, value: Any) -> None:
        with self.transaction() as tx:
            tx.set_json(key, value)

    def set_raw(self, key: str, text: str) -> None:
        with self.transaction() as tx:
            tx.set_raw(key, text)

    def remove(self, key: str) -> bool:
        with self.transaction() as tx:
            return tx.remove(key)

    def keys(self, prefix: str = "") -> List[str]:
        with self.transaction() as tx:
            return tx.keys(prefix)
