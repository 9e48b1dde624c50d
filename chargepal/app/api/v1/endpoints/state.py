"""
State API Endpoints.

Raw access to the persisted ledger state.
"""

from fastapi import APIRouter, Depends, status

from chargepal.app.core.dependencies import get_state_store, get_sync_lock
from chargepal.app.schemas.ledger import AppState
from chargepal.app.services.state_store import StateStore
from chargepal.app.services.sync_lock import SyncLock

router = APIRouter(prefix="/state", tags=["State"])


@router.get("", response_model=AppState)
async def get_state(store: StateStore = Depends(get_state_store)):
    """Full local state, including pending deletion queues."""
    return await store.load()


@router.delete("", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
async def reset_state(
    store: StateStore = Depends(get_state_store),
    lock: SyncLock = Depends(get_sync_lock)
):
    """Wipe the local ledger. The remote copy is not touched."""
    async with lock.hold():
        await store.clear()
