"""
Sync Merge Coordinator (Domain Logic).

Reconciles the local ledger with the remote store:
push (deletions, newer vehicles, newer records) → pull (full mirror) →
merge (remap identity keys, recompute derived fields).

Last write wins on ``updated_at`` (epoch millis). Clock skew between devices
is not compensated.
"""

import enum
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from chargepal.app.core.exceptions import (
    ConfigMissingError,
    MissingIdentityKeyError,
    RemoteOperationFailedError,
)
from chargepal.app.domain.ledger.reconciliation import reconcile
from chargepal.app.domain.ledger.service import generate_id
from chargepal.app.schemas.ledger import AppState, ChargingRecord, Vehicle
from chargepal.app.schemas.remote import (
    ChargingRecordRow,
    RecordVersionRow,
    RemoteTable,
    TABLE_CONFLICT_KEYS,
    VehicleRow,
    VehicleVersionRow,
)
from chargepal.app.schemas.sync import SyncConfig, SyncOutcome
from chargepal.app.services.remote_store import RemoteStore, RemoteStoreError

logger = logging.getLogger("chargepal.sync")


class SyncStep(str, enum.Enum):
    """Remote steps, in execution order. Values read as 'failed to <step>'."""
    DELETE_RECORDS = "delete records"
    CHECK_VEHICLE_VERSIONS = "check vehicle versions"
    PUSH_VEHICLES = "push vehicles"
    CHECK_RECORD_VERSIONS = "check record versions"
    PUSH_RECORDS = "push records"
    PULL_VEHICLES = "pull vehicles"
    PULL_RECORDS = "pull records"


def check_preconditions(config: SyncConfig, state: AppState) -> None:
    """
    Validate a sync can start. Performs no I/O.

    Raises:
        ConfigMissingError: project URL or API key missing
        MissingIdentityKeyError: some vehicles have no license plate
    """
    if not config.is_configured:
        raise ConfigMissingError()

    unplated = [v.name for v in state.vehicles if not v.has_plate]
    if unplated:
        raise MissingIdentityKeyError(unplated)


def is_newer(local_updated_at: int, remote_updated_at: Optional[int]) -> bool:
    """Push when the remote row is missing/unversioned or strictly older."""
    if not remote_updated_at:
        return True
    return local_updated_at > remote_updated_at


def merge_vehicles(
    rows: Sequence[VehicleRow],
    local_vehicles: Sequence[Vehicle],
    id_factory: Callable[[], str] = generate_id,
) -> Tuple[List[Vehicle], Dict[str, str]]:
    """
    Build the merged vehicle list from remote rows.

    Remote attributes win; the local id is kept when a local vehicle has the
    same plate, otherwise a new id is minted.

    Returns:
        (merged vehicles, plate → local id)
    """
    local_by_plate = {v.license_plate: v for v in local_vehicles if v.has_plate}
    merged: List[Vehicle] = []
    plate_to_id: Dict[str, str] = {}

    for row in rows:
        match = local_by_plate.get(row.license_plate)
        vehicle_id = match.id if match else id_factory()
        plate_to_id[row.license_plate] = vehicle_id
        merged.append(Vehicle(
            id=vehicle_id,
            name=row.name or "",
            battery_capacity=row.battery_capacity or 0.0,
            license_plate=row.license_plate,
            initial_odometer=row.initial_odometer or 0.0,
            updated_at=row.updated_at or 0,
        ))

    return merged, plate_to_id


def merge_records(rows: Sequence[ChargingRecordRow], plate_to_id: Dict[str, str]) -> List[ChargingRecord]:
    """
    Convert remote rows to local records.

    Derived columns are dropped for recomputation. Rows whose plate has no
    merged vehicle are skipped. A missing start time falls back to the row's
    creation time; rows with neither are skipped.
    """
    merged: List[ChargingRecord] = []
    for row in rows:
        vehicle_id = plate_to_id.get(row.license_plate)
        if vehicle_id is None:
            continue
        start_time = row.start_time
        if start_time is None and row.created_at:
            start_time = datetime.fromtimestamp(row.created_at / 1000, tz=timezone.utc)
        if start_time is None:
            logger.warning("Skipping remote record without start time", extra={"record_id": row.id})
            continue
        merged.append(ChargingRecord(
            id=row.id,
            vehicle_id=vehicle_id,
            odometer=row.odometer or 0.0,
            start_time=start_time,
            end_time=row.end_time,
            start_soc=row.start_soc or 0.0,
            end_soc=row.end_soc or 0.0,
            price_per_kwh=row.price_per_kwh or 0.0,
            type=row.type,
            energy_charged=row.energy_charged or 0.0,
            total_cost=row.total_cost or 0.0,
            location=row.location,
            temperature=row.temperature,
            created_at=row.created_at or 0,
            updated_at=row.updated_at or 0,
        ))
    return merged


def vehicle_to_row(vehicle: Vehicle, now: int) -> VehicleRow:
    return VehicleRow(
        license_plate=vehicle.license_plate,
        name=vehicle.name,
        battery_capacity=vehicle.battery_capacity,
        initial_odometer=vehicle.initial_odometer,
        updated_at=vehicle.updated_at or now,
    )


def record_to_row(record: ChargingRecord, license_plate: str) -> ChargingRecordRow:
    return ChargingRecordRow(
        id=record.id,
        license_plate=license_plate,
        odometer=record.odometer,
        start_time=record.start_time,
        end_time=record.end_time,
        start_soc=record.start_soc,
        end_soc=record.end_soc,
        price_per_kwh=record.price_per_kwh,
        type=record.type,
        energy_charged=record.energy_charged,
        total_cost=record.total_cost,
        location=record.location,
        temperature=record.temperature,
        duration_minutes=record.duration_minutes,
        theoretical_energy=record.theoretical_energy,
        efficiency_loss_pct=record.efficiency_loss_pct,
        distance_driven=record.distance_driven,
        energy_consumption=record.energy_consumption,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class SyncMergeCoordinator:
    """
    Runs one bidirectional sync against a remote store.

    The coordinator never mutates the state it is given: it returns a
    ``SyncOutcome`` only when every step succeeded. Callers must not run two
    syncs for the same state concurrently.
    """

    def __init__(
        self,
        store: RemoteStore,
        delete_batch_size: int = 100,
        id_factory: Callable[[], str] = generate_id,
        clock: Callable[[], int] = lambda: int(time.time() * 1000),
    ):
        self.store = store
        self.delete_batch_size = max(1, delete_batch_size)
        self.id_factory = id_factory
        self.clock = clock

    async def sync(self, config: SyncConfig, state: AppState) -> SyncOutcome:
        """
        Push local changes, pull the remote mirror and merge.

        Raises:
            ConfigMissingError, MissingIdentityKeyError: before any remote call
            RemoteOperationFailedError: a remote step failed; nothing applied
        """
        check_preconditions(config, state)
        started = time.monotonic()
        logger.info(
            "Sync started",
            extra={
                "vehicles": len(state.vehicles),
                "records": len(state.records),
                "pending_deletions": len(state.deleted_record_ids),
            },
        )

        deleted = await self._push_deletions(state.deleted_record_ids)
        pushed_vehicles = await self._push_vehicles(state.vehicles)
        pushed_records = await self._push_records(state.records, state.vehicles)

        vehicle_rows = await self._remote(SyncStep.PULL_VEHICLES, self.store.select_all, RemoteTable.VEHICLES)
        record_rows = await self._remote(SyncStep.PULL_RECORDS, self.store.select_all, RemoteTable.CHARGING_RECORDS)

        vehicles, plate_to_id = merge_vehicles(vehicle_rows, state.vehicles, self.id_factory)
        records = reconcile(merge_records(record_rows, plate_to_id), vehicles)

        logger.info(
            "Sync completed",
            extra={
                "deleted_records": deleted,
                "pushed_vehicles": pushed_vehicles,
                "pushed_records": pushed_records,
                "vehicles": len(vehicles),
                "records": len(records),
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )

        return SyncOutcome(
            vehicles=vehicles,
            records=records,
            deleted_record_ids=[],
            deleted_vehicle_ids=[],
            pushed_vehicles=pushed_vehicles,
            pushed_records=pushed_records,
            deleted_records=deleted,
        )

    async def _push_deletions(self, record_ids: Sequence[str]) -> int:
        ids = list(dict.fromkeys(record_ids))
        for start in range(0, len(ids), self.delete_batch_size):
            batch = ids[start:start + self.delete_batch_size]
            await self._remote(SyncStep.DELETE_RECORDS, self.store.delete, RemoteTable.CHARGING_RECORDS, batch)
        return len(ids)

    async def _push_vehicles(self, vehicles: Sequence[Vehicle]) -> int:
        versions = await self._remote(
            SyncStep.CHECK_VEHICLE_VERSIONS, self.store.select_columns, RemoteTable.VEHICLES, VehicleVersionRow
        )
        remote_updated = {row.license_plate: row.updated_at for row in versions}

        now = self.clock()
        rows = [
            vehicle_to_row(v, now)
            for v in vehicles
            if v.has_plate and is_newer(v.updated_at, remote_updated.get(v.license_plate))
        ]
        if rows:
            await self._remote(
                SyncStep.PUSH_VEHICLES,
                self.store.upsert,
                RemoteTable.VEHICLES,
                rows,
                TABLE_CONFLICT_KEYS[RemoteTable.VEHICLES],
            )
        return len(rows)

    async def _push_records(self, records: Sequence[ChargingRecord], vehicles: Sequence[Vehicle]) -> int:
        versions = await self._remote(
            SyncStep.CHECK_RECORD_VERSIONS, self.store.select_columns, RemoteTable.CHARGING_RECORDS, RecordVersionRow
        )
        remote_updated = {row.id: row.updated_at for row in versions}
        plates = {v.id: v.license_plate for v in vehicles if v.has_plate}

        rows = []
        for record in records:
            if not is_newer(record.updated_at, remote_updated.get(record.id)):
                continue
            plate = plates.get(record.vehicle_id)
            if plate is None:
                logger.debug("Skipping record %s: owning vehicle has no license plate", record.id)
                continue
            rows.append(record_to_row(record, plate))

        if rows:
            await self._remote(
                SyncStep.PUSH_RECORDS,
                self.store.upsert,
                RemoteTable.CHARGING_RECORDS,
                rows,
                TABLE_CONFLICT_KEYS[RemoteTable.CHARGING_RECORDS],
            )
        return len(rows)

    async def _remote(self, step: SyncStep, call, *args):
        try:
            return await call(*args)
        except RemoteStoreError as exc:
            logger.warning("Sync step failed", extra={"step": step.value, "error": str(exc)})
            raise RemoteOperationFailedError(step.value, str(exc)) from exc


async def sync(store: RemoteStore, config: SyncConfig, state: AppState, **options) -> SyncOutcome:
    """Run a single sync with a fresh coordinator."""
    return await SyncMergeCoordinator(store, **options).sync(config, state)
