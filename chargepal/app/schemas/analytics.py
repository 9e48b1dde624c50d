"""
Analytics Schemas for the charging dashboard.
"""

from pydantic import BaseModel
from typing import List, Optional


class LedgerOverviewStats(BaseModel):
    """Headline totals across all vehicles."""
    total_distance_km: float
    total_energy_kwh: float
    total_cost: float
    avg_consumption: float  # kWh / 100 km
    cost_per_km: float
    charging_count: int
    total_loss_cost: float


class TypeBreakdown(BaseModel):
    """Number of sessions per charging type."""
    type: str
    count: int


class MonthlyTrendPoint(BaseModel):
    """Energy and cost charged in one calendar month."""
    month: int
    energy_kwh: float
    cost: float


class DashboardResponse(BaseModel):
    overview: LedgerOverviewStats
    by_type: List[TypeBreakdown]


class EnergyEstimate(BaseModel):
    """Pre-fill values for a new charging record."""
    vehicle_id: str
    theoretical_energy: float
    average_loss_pct: float
    estimated_energy: float
    last_odometer: Optional[float] = None
    last_end_soc: Optional[float] = None
