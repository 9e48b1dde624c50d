"""
Charging Record API Endpoints.

Every write reconciles the ledger, so inserting a record in the past fixes
the distance and consumption of the records after it.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import List, Optional

from chargepal.app.core.dependencies import get_state_store, get_sync_lock
from chargepal.app.core.exceptions import ResourceNotFoundError
from chargepal.app.domain.ledger.reconciliation import epoch_ms
from chargepal.app.domain.ledger.service import build_record, delete_record, save_record
from chargepal.app.schemas.ledger import ChargingRecord, ChargingRecordCreate
from chargepal.app.services.state_store import StateStore
from chargepal.app.services.sync_lock import SyncLock

router = APIRouter(prefix="/records", tags=["Charging Records"])


@router.get("", response_model=List[ChargingRecord])
async def list_records(
    vehicle_id: Optional[str] = Query(None, description="Only records of this vehicle"),
    store: StateStore = Depends(get_state_store)
):
    """List records, newest first."""
    state = await store.load()
    records = [r for r in state.records if vehicle_id is None or r.vehicle_id == vehicle_id]
    return sorted(records, key=lambda r: epoch_ms(r.start_time), reverse=True)


@router.get("/{record_id}", response_model=ChargingRecord)
async def get_record(
    record_id: str = Path(..., description="Record ID"),
    store: StateStore = Depends(get_state_store)
):
    state = await store.load()
    record = state.record_by_id(record_id)
    if record is None:
        raise ResourceNotFoundError("Charging record", record_id)
    return record


@router.post("", response_model=ChargingRecord, status_code=status.HTTP_201_CREATED)
async def create_record(
    record_data: ChargingRecordCreate,
    store: StateStore = Depends(get_state_store),
    lock: SyncLock = Depends(get_sync_lock)
):
    """
    Add a charging record.

    Total cost is derived from energy and price when omitted. The response
    carries the recomputed analytics fields.
    """
    async with lock.hold():
        state = await store.load()
        record = build_record(record_data)
        new_state = save_record(state, record)
        await store.save(new_state)
    return new_state.record_by_id(record.id)


@router.put("/{record_id}", response_model=ChargingRecord)
async def update_record(
    record_data: ChargingRecordCreate,
    record_id: str = Path(..., description="Record ID"),
    store: StateStore = Depends(get_state_store),
    lock: SyncLock = Depends(get_sync_lock)
):
    """Edit a charging record in place (new ``updated_at``)."""
    async with lock.hold():
        state = await store.load()
        existing = state.record_by_id(record_id)
        if existing is None:
            raise ResourceNotFoundError("Charging record", record_id)

        new_state = save_record(state, build_record(record_data, existing=existing))
        await store.save(new_state)
    return new_state.record_by_id(record_id)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
async def remove_record(
    record_id: str = Path(..., description="Record ID"),
    store: StateStore = Depends(get_state_store),
    lock: SyncLock = Depends(get_sync_lock)
):
    """Delete a record; the id is queued for remote deletion on the next sync."""
    async with lock.hold():
        state = await store.load()
        await store.save(delete_record(state, record_id))
