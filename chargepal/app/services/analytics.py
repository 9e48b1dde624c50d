"""
Analytics Service for the charging dashboard.

Aggregates reconciled records into dashboard figures.
Focused on READ-ONLY operations over an in-memory ledger.
"""

from typing import List, Optional, Sequence

from chargepal.app.domain.ledger.reconciliation import epoch_ms, round2
from chargepal.app.models.ledger_enums import ChargingType
from chargepal.app.schemas.analytics import LedgerOverviewStats, MonthlyTrendPoint, TypeBreakdown
from chargepal.app.schemas.ledger import ChargingRecord, Vehicle

DEFAULT_LOSS_PCT = 5.0


class AnalyticsService:

    @staticmethod
    def get_overview(records: Sequence[ChargingRecord], vehicles: Sequence[Vehicle]) -> LedgerOverviewStats:
        """Get headline stats. Expects records that went through reconciliation."""

        # Displayed distance = baseline mileage + everything driven since
        total_initial = sum(v.initial_odometer or 0 for v in vehicles)
        total_driven = sum(r.distance_driven or 0 for r in records)

        total_energy = sum(r.energy_charged or 0 for r in records)
        total_cost = sum(r.total_cost or 0 for r in records)

        with_distance = [r for r in records if (r.distance_driven or 0) > 0]
        avg_consumption = (
            sum(r.energy_consumption or 0 for r in with_distance) / len(with_distance)
            if with_distance else 0.0
        )

        cost_per_km = total_cost / total_driven if total_driven > 0 else 0.0

        # Share of each payment attributed to charging losses
        total_loss_cost = sum(
            (r.total_cost or 0) * max(0.0, r.efficiency_loss_pct or 0) / 100
            for r in records
        )

        return LedgerOverviewStats(
            total_distance_km=round2(total_initial + total_driven),
            total_energy_kwh=round2(total_energy),
            total_cost=round2(total_cost),
            avg_consumption=round2(avg_consumption),
            cost_per_km=round2(cost_per_km),
            charging_count=len(records),
            total_loss_cost=round2(total_loss_cost),
        )

    @staticmethod
    def get_type_breakdown(records: Sequence[ChargingRecord]) -> List[TypeBreakdown]:
        """Session count per charging type (types with no sessions omitted)."""
        counts = {t: 0 for t in ChargingType}
        for r in records:
            counts[r.type] += 1
        return [TypeBreakdown(type=t.value, count=n) for t, n in counts.items() if n > 0]

    @staticmethod
    def get_monthly_trend(records: Sequence[ChargingRecord], year: int) -> List[MonthlyTrendPoint]:
        """Energy and cost for each month of ``year`` (12 points, zero-filled)."""
        energy = [0.0] * 12
        cost = [0.0] * 12
        for r in records:
            if r.start_time.year != year:
                continue
            energy[r.start_time.month - 1] += r.energy_charged or 0
            cost[r.start_time.month - 1] += r.total_cost or 0

        return [
            MonthlyTrendPoint(month=m + 1, energy_kwh=round2(energy[m]), cost=round2(cost[m]))
            for m in range(12)
        ]

    @staticmethod
    def get_average_loss(records: Sequence[ChargingRecord], vehicle_id: str) -> float:
        """Mean efficiency loss of a vehicle; 5 % when it has no history."""
        losses = [
            r.efficiency_loss_pct for r in records
            if r.vehicle_id == vehicle_id and r.efficiency_loss_pct is not None
        ]
        if not losses:
            return DEFAULT_LOSS_PCT
        return sum(losses) / len(losses)

    @staticmethod
    def get_last_record(records: Sequence[ChargingRecord], vehicle_id: str) -> Optional[ChargingRecord]:
        """Most recent record of a vehicle by start time."""
        own = [r for r in records if r.vehicle_id == vehicle_id]
        if not own:
            return None
        return max(own, key=lambda r: epoch_ms(r.start_time))

    @staticmethod
    def estimate_energy(theoretical: float, average_loss_pct: float = DEFAULT_LOSS_PCT) -> float:
        """Pre-fill for metered energy: theoretical energy plus the usual loss."""
        return round2(theoretical * (1 + average_loss_pct / 100))
