"""
Local state persistence service.

Loads, saves and clears the ``AppState`` blob. The store is deliberately
opaque: it round-trips the state shape and nothing else.
"""

import logging
import time

from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from chargepal.app.core.config import settings
from chargepal.app.models.state_snapshot import StateSnapshot
from chargepal.app.schemas.ledger import AppState

logger = logging.getLogger("chargepal.storage")


class StateStore:
    """
    Blob store for the local ledger.

    Args:
        db: Database session (the store commits its own writes)
        key: Snapshot key, one per local state instance
    """

    def __init__(self, db: AsyncSession, key: str = None):
        self.db = db
        self.key = key or settings.state_key

    async def load(self) -> AppState:
        """
        Load the saved state.

        Returns:
            The stored state, or an empty state if nothing is stored or the
            blob cannot be read. An unreadable blob is moved to a backup key
            first so later saves do not overwrite it.
        """
        snapshot = await self.db.get(StateSnapshot, self.key)
        if snapshot is None:
            return AppState()

        try:
            return AppState.model_validate_json(snapshot.payload)
        except ValidationError:
            backup_key = f"{self.key}:corrupt:{int(time.time() * 1000)}"
            logger.error(
                "Failed to load state, starting empty",
                extra={"state_key": self.key, "backup_key": backup_key},
                exc_info=True,
            )
            snapshot.key = backup_key
            await self.db.commit()
            return AppState()

    async def save(self, state: AppState) -> None:
        payload = state.model_dump_json()
        snapshot = await self.db.get(StateSnapshot, self.key)
        if snapshot is None:
            self.db.add(StateSnapshot(key=self.key, payload=payload))
        else:
            snapshot.payload = payload
        await self.db.commit()

    async def clear(self) -> None:
        await self.db.execute(delete(StateSnapshot).where(StateSnapshot.key == self.key))
        await self.db.commit()
