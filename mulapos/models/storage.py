from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from ..db import Base


def _utcnow():
    return datetime.now(timezone.utc)


class StorageEntry(Base):
    """Entrada clave/valor compartida entre el POS y el display (valor en JSON)."""

    __tablename__ = "storage_entry"

    key = Column(String(160), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
