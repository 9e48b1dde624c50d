"""
Record Reconciliation (Domain Logic).

Recomputes every derived field of the charging ledger from raw inputs so the
per-vehicle odometer / state-of-charge timeline stays consistent after an
insert, edit, delete or sync merge.

Pure and deterministic. Never raises: malformed history degrades to zeroed or
untouched derived fields instead of an error.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Dict, List, Optional, Sequence

from chargepal.app.schemas.ledger import ChargingRecord, Vehicle

_CENTS = Decimal("0.01")


def round2(value: float) -> float:
    """Round half-up to 2 decimals on the decimal representation."""
    if not _is_finite(value):
        return 0.0
    try:
        return float(Decimal(repr(value)).quantize(_CENTS, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return 0.0


def _is_finite(value: Optional[float]) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def _num(value: Optional[float]) -> float:
    return float(value) if _is_finite(value) else 0.0


def epoch_ms(moment: datetime) -> float:
    # Naive datetimes are taken as UTC so mixed inputs still compare.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp() * 1000


def duration_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, clamped to zero."""
    minutes = (epoch_ms(end) - epoch_ms(start)) / 60000
    return max(0, math.floor(minutes + 0.5))


def theoretical_energy(capacity: float, start_soc: float, end_soc: float) -> float:
    """Energy the battery gained with zero loss: capacity * ΔSoC / 100."""
    return round2(capacity * (end_soc - start_soc) / 100)


def consumption_per_100km(energy_kwh: float, distance_km: float) -> float:
    if distance_km <= 0:
        return 0.0
    return round2(energy_kwh / distance_km * 100)


def _repair_cost(record: ChargingRecord) -> float:
    cost = record.total_cost
    energy = _num(record.energy_charged)
    price = _num(record.price_per_kwh)
    if not (_is_finite(cost) and cost > 0) and energy > 0 and price > 0:
        return round2(energy * price)
    return round2(cost)


def _reconcile_timeline(timeline: List[ChargingRecord], capacity: float) -> List[ChargingRecord]:
    result = []
    prev: Optional[ChargingRecord] = None

    for current in timeline:
        start_soc = _num(current.start_soc)
        end_soc = _num(current.end_soc)
        energy = _num(current.energy_charged)

        update = {"total_cost": _repair_cost(current)}

        if current.end_time is not None:
            update["duration_minutes"] = duration_minutes(current.start_time, current.end_time)

        if capacity > 0 and end_soc >= start_soc:
            theoretical = theoretical_energy(capacity, start_soc, end_soc)
            update["theoretical_energy"] = theoretical
            update["efficiency_loss_pct"] = (
                round2((energy - theoretical) / energy * 100) if energy > 0 else 0.0
            )

        distance = 0.0
        consumption = 0.0
        if prev is not None:
            distance = max(0.0, _num(current.odometer) - _num(prev.odometer))
            soc_used = _num(prev.end_soc) - start_soc
            if distance > 0 and soc_used > 0 and capacity > 0:
                consumption = consumption_per_100km(capacity * soc_used / 100, distance)
        update["distance_driven"] = distance
        update["energy_consumption"] = consumption

        result.append(current.model_copy(update=update))
        prev = current

    return result


def reconcile(records: Sequence[ChargingRecord], vehicles: Sequence[Vehicle]) -> List[ChargingRecord]:
    """
    Recompute derived fields for every record.

    Records are grouped by ``vehicle_id`` and ordered by ``start_time``
    (stable). Records referencing an unknown vehicle are kept and processed
    with a capacity of 0, which disables theoretical energy and consumption.

    Args:
        records: Charging records in any order
        vehicles: Known vehicles

    Returns:
        The same records (count and ids preserved) with corrected derived
        fields, concatenated per vehicle in order of first appearance.
    """
    capacities: Dict[str, float] = {v.id: _num(v.battery_capacity) for v in vehicles}

    groups: Dict[str, List[ChargingRecord]] = {}
    for record in records:
        groups.setdefault(record.vehicle_id, []).append(record)

    result: List[ChargingRecord] = []
    for vehicle_id, group in groups.items():
        timeline = sorted(group, key=lambda r: epoch_ms(r.start_time))
        result.extend(_reconcile_timeline(timeline, capacities.get(vehicle_id, 0.0)))

    return result
