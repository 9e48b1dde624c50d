"""
Sync service.

Owns the state swap around a sync: take the lock, load the current state,
run the coordinator, apply the outcome and persist it. On any failure the
stored state (including the deletion queues) is left exactly as it was.
"""

import asyncio
import logging
from typing import Tuple

from chargepal.app.core.config import settings
from chargepal.app.core.reliability import supabase_circuit_breaker
from chargepal.app.core.exceptions import SyncError, SyncInProgressError
from chargepal.app.db.session import SessionLocal
from chargepal.app.domain.ledger.service import apply_sync_outcome
from chargepal.app.domain.sync.coordinator import SyncMergeCoordinator
from chargepal.app.schemas.ledger import AppState
from chargepal.app.schemas.sync import SyncConfig, SyncOutcome
from chargepal.app.services.remote_store import RemoteStore
from chargepal.app.services.state_store import StateStore
from chargepal.app.services.supabase_store import SupabaseStore
from chargepal.app.services.sync_lock import SyncLock

logger = logging.getLogger("chargepal.sync")


async def run_sync(
    state_store: StateStore,
    lock: SyncLock,
    remote: RemoteStore,
    config: SyncConfig,
) -> Tuple[AppState, SyncOutcome]:
    """
    Run one sync and persist the merged state.

    Args:
        state_store: Local persistence
        lock: Ledger lock (held for the whole load → sync → save sequence)
        remote: Remote store
        config: Remote connection details

    Returns:
        (new state, outcome)

    Raises:
        SyncInProgressError: lock held elsewhere
        SyncError: precondition or remote failure; nothing was saved
    """
    async with lock.hold():
        state = await state_store.load()
        coordinator = SyncMergeCoordinator(remote, delete_batch_size=settings.delete_batch_size)
        outcome = await coordinator.sync(config, state)

        new_state = apply_sync_outcome(state, outcome)
        await state_store.save(new_state)
        return new_state, outcome


async def run_periodic_sync(redis, interval_seconds: int) -> None:
    """
    Background auto-sync: sync immediately, then every ``interval_seconds``.

    A tick is skipped when the lock is held; failures are logged and retried
    on the next tick.
    """
    config = settings.sync_config()
    while True:
        try:
            remote = SupabaseStore.from_config(config, breaker=supabase_circuit_breaker)
            async with SessionLocal() as db, remote:
                await run_sync(StateStore(db), SyncLock(redis), remote, config)
        except SyncInProgressError:
            logger.info("Auto sync skipped, lock is held")
        except SyncError as exc:
            logger.warning("Auto sync failed", extra={"error_code": exc.error_code, "error": exc.message})
        except Exception:
            logger.exception("Auto sync crashed, retrying next tick")

        await asyncio.sleep(interval_seconds)
