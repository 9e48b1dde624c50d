"""
Sync API Endpoints.

Manual trigger for the bidirectional sync with the remote store.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from chargepal.app.core.dependencies import get_remote_store, get_state_store, get_sync_config, get_sync_lock
from chargepal.app.schemas.remote import SETUP_SQL
from chargepal.app.schemas.sync import SyncConfig, SyncResponse
from chargepal.app.services.remote_store import RemoteStore
from chargepal.app.services.state_store import StateStore
from chargepal.app.services.sync_lock import SyncLock
from chargepal.app.services.sync_service import run_sync

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post("", response_model=SyncResponse)
async def trigger_sync(
    store: StateStore = Depends(get_state_store),
    lock: SyncLock = Depends(get_sync_lock),
    remote: RemoteStore = Depends(get_remote_store),
    config: SyncConfig = Depends(get_sync_config)
):
    """
    Push local changes, pull the remote mirror and merge.

    Answers 409 while another sync or ledger write holds the lock. On failure
    nothing is saved, so the deletion queue survives for the retry.
    """
    state, outcome = await run_sync(store, lock, remote, config)

    return SyncResponse(
        message="Sync completed (two-way merge)",
        synced_at=state.last_sync,
        vehicles_count=len(state.vehicles),
        records_count=len(state.records),
        pushed_vehicles=outcome.pushed_vehicles,
        pushed_records=outcome.pushed_records,
        deleted_records=outcome.deleted_records,
    )


@router.get("/setup-sql", response_class=PlainTextResponse)
async def get_setup_sql():
    """SQL that creates the remote tables expected by the sync."""
    return SETUP_SQL
