"""
Vehicle API Endpoints.

Register, edit and remove vehicles in the local ledger.
"""

from fastapi import APIRouter, Depends, status, Path
from typing import List

from chargepal.app.core.dependencies import get_state_store, get_sync_lock
from chargepal.app.core.exceptions import ResourceNotFoundError
from chargepal.app.domain.ledger.service import build_vehicle, remove_vehicle, upsert_vehicle
from chargepal.app.schemas.ledger import Vehicle, VehicleCreate
from chargepal.app.services.state_store import StateStore
from chargepal.app.services.sync_lock import SyncLock

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


@router.get("", response_model=List[Vehicle])
async def list_vehicles(store: StateStore = Depends(get_state_store)):
    """List active vehicles."""
    state = await store.load()
    return state.vehicles


@router.post("", response_model=Vehicle, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    vehicle_data: VehicleCreate,
    store: StateStore = Depends(get_state_store),
    lock: SyncLock = Depends(get_sync_lock)
):
    """
    Register a new vehicle.

    A license plate is optional locally but required before syncing, and must
    be unique among the user's vehicles.
    """
    async with lock.hold():
        state = await store.load()
        vehicle = build_vehicle(vehicle_data)
        await store.save(upsert_vehicle(state, vehicle))
    return vehicle


@router.put("/{vehicle_id}", response_model=Vehicle)
async def update_vehicle(
    vehicle_data: VehicleCreate,
    vehicle_id: str = Path(..., description="Vehicle ID"),
    store: StateStore = Depends(get_state_store),
    lock: SyncLock = Depends(get_sync_lock)
):
    """
    Edit a vehicle.

    Changing the capacity recomputes theoretical energy, efficiency loss and
    consumption of all its records.
    """
    async with lock.hold():
        state = await store.load()
        existing = state.vehicle_by_id(vehicle_id)
        if existing is None:
            raise ResourceNotFoundError("Vehicle", vehicle_id)

        vehicle = build_vehicle(vehicle_data, existing=existing)
        await store.save(upsert_vehicle(state, vehicle))
    return vehicle


@router.delete("/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
async def delete_vehicle(
    vehicle_id: str = Path(..., description="Vehicle ID"),
    store: StateStore = Depends(get_state_store),
    lock: SyncLock = Depends(get_sync_lock)
):
    """
    Remove a vehicle from the active list.

    Its charging records are kept; the id is queued for the next sync.
    """
    async with lock.hold():
        state = await store.load()
        await store.save(remove_vehicle(state, vehicle_id))
