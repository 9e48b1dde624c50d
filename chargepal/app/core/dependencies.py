"""
Shared dependencies for FastAPI.

Wires persistence, the ledger lock and the remote store into endpoints.
Tests override these through ``app.dependency_overrides``.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from chargepal.app.core.config import settings
from chargepal.app.core.reliability import supabase_circuit_breaker
from chargepal.app.core.redis_client import get_redis
from chargepal.app.db.session import get_db
from chargepal.app.schemas.sync import SyncConfig
from chargepal.app.services.state_store import StateStore
from chargepal.app.services.supabase_store import SupabaseStore
from chargepal.app.services.sync_lock import SyncLock


async def get_state_store(db: AsyncSession = Depends(get_db)) -> StateStore:
    return StateStore(db)


async def get_sync_lock(redis=Depends(get_redis)) -> SyncLock:
    return SyncLock(redis)


async def get_sync_config() -> SyncConfig:
    return settings.sync_config()


async def get_remote_store(config: SyncConfig = Depends(get_sync_config)):
    """
    Remote store for one request.

    Yields a client for the configured project and closes it afterwards.
    An unconfigured project is reported by the sync preconditions, not here.
    """
    async with SupabaseStore.from_config(config, breaker=supabase_circuit_breaker) as store:
        yield store
