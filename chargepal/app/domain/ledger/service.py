"""
Ledger Service (Domain Logic).

State operations on the local ledger. Every function takes an ``AppState``
and returns a new one; nothing here performs I/O. Record-changing operations
run reconciliation so derived fields stay consistent along each timeline.
"""

import time
import uuid
from typing import Optional

from chargepal.app.core.exceptions import DuplicateLicensePlateError, ResourceNotFoundError
from chargepal.app.domain.ledger.reconciliation import reconcile
from chargepal.app.schemas.ledger import (
    AppState, ChargingRecord, ChargingRecordCreate, Vehicle, VehicleCreate,
)
from chargepal.app.schemas.sync import SyncOutcome


def generate_id() -> str:
    """Opaque, globally unique identifier for vehicles and records."""
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


def build_vehicle(payload: VehicleCreate, existing: Optional[Vehicle] = None, now: Optional[int] = None) -> Vehicle:
    """
    Turn a validated payload into a stored vehicle.

    Editing keeps the existing id; ``updated_at`` is always bumped.
    """
    return Vehicle(
        id=existing.id if existing else generate_id(),
        name=payload.name,
        battery_capacity=payload.battery_capacity,
        license_plate=payload.license_plate,
        initial_odometer=payload.initial_odometer,
        updated_at=now or now_ms(),
    )


def build_record(
    payload: ChargingRecordCreate,
    existing: Optional[ChargingRecord] = None,
    now: Optional[int] = None,
) -> ChargingRecord:
    """
    Turn a validated payload into a stored record.

    ``created_at`` is set once; ``updated_at`` changes on every edit. A missing
    total cost is left at 0 so reconciliation derives it from energy and price.
    """
    now = now or now_ms()
    return ChargingRecord(
        id=existing.id if existing else generate_id(),
        vehicle_id=payload.vehicle_id,
        odometer=payload.odometer,
        start_time=payload.start_time,
        end_time=payload.end_time,
        start_soc=payload.start_soc,
        end_soc=payload.end_soc,
        price_per_kwh=payload.price_per_kwh,
        energy_charged=payload.energy_charged,
        total_cost=payload.total_cost or 0.0,
        type=payload.type,
        location=payload.location,
        temperature=payload.temperature,
        created_at=existing.created_at if existing else now,
        updated_at=now,
    )


def save_record(state: AppState, record: ChargingRecord) -> AppState:
    """
    Insert or replace a record (matched by id) and reconcile the ledger.

    Raises:
        ResourceNotFoundError: record references an unknown vehicle
    """
    if state.vehicle_by_id(record.vehicle_id) is None:
        raise ResourceNotFoundError("Vehicle", record.vehicle_id)

    records = [r for r in state.records if r.id != record.id]
    records.append(record)
    return state.model_copy(update={"records": reconcile(records, state.vehicles)})


def delete_record(state: AppState, record_id: str) -> AppState:
    """
    Remove a record, reconcile the remaining timeline and queue the id for
    remote deletion.
    """
    if state.record_by_id(record_id) is None:
        raise ResourceNotFoundError("Charging record", record_id)

    records = [r for r in state.records if r.id != record_id]
    return state.model_copy(update={
        "records": reconcile(records, state.vehicles),
        "deleted_record_ids": [*state.deleted_record_ids, record_id],
    })


def upsert_vehicle(state: AppState, vehicle: Vehicle) -> AppState:
    """
    Insert or replace a vehicle (matched by id).

    Capacity feeds theoretical energy and consumption, so records are
    reconciled against the new vehicle list.

    Raises:
        DuplicateLicensePlateError: another vehicle already uses the plate
    """
    if vehicle.has_plate:
        for other in state.vehicles:
            if other.id != vehicle.id and other.license_plate == vehicle.license_plate:
                raise DuplicateLicensePlateError(vehicle.license_plate)

    replaced = False
    vehicles = []
    for v in state.vehicles:
        if v.id == vehicle.id:
            vehicles.append(vehicle)
            replaced = True
        else:
            vehicles.append(v)
    if not replaced:
        vehicles.append(vehicle)

    return state.model_copy(update={
        "vehicles": vehicles,
        "records": reconcile(state.records, vehicles),
    })


def remove_vehicle(state: AppState, vehicle_id: str) -> AppState:
    """
    Drop a vehicle from the active set and queue its id for remote deletion.

    Its records are kept untouched.
    """
    if state.vehicle_by_id(vehicle_id) is None:
        raise ResourceNotFoundError("Vehicle", vehicle_id)

    return state.model_copy(update={
        "vehicles": [v for v in state.vehicles if v.id != vehicle_id],
        "deleted_vehicle_ids": [*state.deleted_vehicle_ids, vehicle_id],
    })


def apply_sync_outcome(state: AppState, outcome: SyncOutcome, now: Optional[int] = None) -> AppState:
    """Shallow-merge a sync fragment into the state and stamp ``last_sync``."""
    return state.model_copy(update={
        "vehicles": outcome.vehicles,
        "records": outcome.records,
        "deleted_record_ids": outcome.deleted_record_ids,
        "deleted_vehicle_ids": outcome.deleted_vehicle_ids,
        "last_sync": now or now_ms(),
    })
