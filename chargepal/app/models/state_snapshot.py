"""
State snapshot database model.

The whole local ledger is persisted as one JSON blob per key.
"""

from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from chargepal.app.db.session import Base


class StateSnapshot(Base):
    """
    Serialized ``AppState``.

    The payload format is owned by ``AppState``; this table only round-trips it.
    """
    __tablename__ = "state_snapshots"

    key = Column(String(100), primary_key=True)
    payload = Column(Text, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<StateSnapshot(key='{self.key}', size={len(self.payload or '')})>"
