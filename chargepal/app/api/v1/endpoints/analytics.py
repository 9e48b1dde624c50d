"""
Analytics API Endpoints.

Read-only dashboard data computed from the reconciled ledger.
"""

from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from chargepal.app.core.dependencies import get_state_store
from chargepal.app.core.exceptions import ResourceNotFoundError
from chargepal.app.domain.ledger.reconciliation import theoretical_energy
from chargepal.app.services.analytics import AnalyticsService
from chargepal.app.services.state_store import StateStore
from chargepal.app.schemas.analytics import DashboardResponse, EnergyEstimate, MonthlyTrendPoint

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/overview", response_model=DashboardResponse)
async def get_overview(store: StateStore = Depends(get_state_store)):
    """Get headline totals and the charging type split."""
    state = await store.load()
    return DashboardResponse(
        overview=AnalyticsService.get_overview(state.records, state.vehicles),
        by_type=AnalyticsService.get_type_breakdown(state.records),
    )


@router.get("/monthly", response_model=List[MonthlyTrendPoint])
async def get_monthly_trend(
    year: Optional[int] = Query(None, ge=1970, le=9999, description="Defaults to the current year"),
    store: StateStore = Depends(get_state_store)
):
    """Get energy and cost per month."""
    state = await store.load()
    year = year or datetime.now(timezone.utc).year
    return AnalyticsService.get_monthly_trend(state.records, year)


@router.get("/estimate", response_model=EnergyEstimate)
async def estimate_energy(
    vehicle_id: str = Query(..., description="Vehicle ID"),
    start_soc: float = Query(..., ge=0, le=100),
    end_soc: float = Query(..., ge=0, le=100),
    store: StateStore = Depends(get_state_store)
):
    """
    Suggest the metered energy of a new session.

    Uses the vehicle's average efficiency loss, or 5 % without history, and
    returns the last odometer and end SoC for pre-filling the form.
    """
    state = await store.load()
    vehicle = state.vehicle_by_id(vehicle_id)
    if vehicle is None:
        raise ResourceNotFoundError("Vehicle", vehicle_id)

    theoretical = theoretical_energy(vehicle.battery_capacity, start_soc, end_soc)
    average_loss = AnalyticsService.get_average_loss(state.records, vehicle_id)
    last = AnalyticsService.get_last_record(state.records, vehicle_id)

    return EnergyEstimate(
        vehicle_id=vehicle_id,
        theoretical_energy=theoretical,
        average_loss_pct=average_loss,
        estimated_energy=AnalyticsService.estimate_energy(theoretical, average_loss),
        last_odometer=last.odometer if last else None,
        last_end_soc=last.end_soc if last else None,
    )
