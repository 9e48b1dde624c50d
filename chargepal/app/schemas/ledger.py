"""
Charging ledger Pydantic schemas.

Stored models (``Vehicle``, ``ChargingRecord``, ``AppState``) are frozen and
permissive: historical data is loaded as-is and repaired by reconciliation.
Create payloads enforce the ranges a new entry must respect.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime
from typing import Optional, List

from chargepal.app.models.ledger_enums import ChargingType


class Vehicle(BaseModel):
    """A vehicle as kept in local state."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    battery_capacity: float = 0.0  # kWh
    license_plate: Optional[str] = None  # cross-device identity key
    initial_odometer: float = 0.0  # km before the first record
    updated_at: int = 0  # epoch millis

    @property
    def has_plate(self) -> bool:
        return bool(self.license_plate and self.license_plate.strip())


class ChargingRecord(BaseModel):
    """
    One charging session.

    The last five analytics fields are derived and recomputed by
    ``reconcile``; they may be missing or stale on input.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    vehicle_id: str
    odometer: float = 0.0
    start_time: datetime
    end_time: Optional[datetime] = None
    start_soc: float = 0.0
    end_soc: float = 0.0
    price_per_kwh: float = 0.0
    energy_charged: float = 0.0  # kWh metered
    total_cost: float = 0.0
    type: ChargingType = ChargingType.SLOW
    location: Optional[str] = None
    temperature: Optional[float] = None

    # Derived
    duration_minutes: Optional[int] = None
    theoretical_energy: Optional[float] = None
    efficiency_loss_pct: Optional[float] = None
    distance_driven: Optional[float] = None  # since the previous record
    energy_consumption: Optional[float] = None  # kWh / 100 km

    created_at: int = 0
    updated_at: int = 0


class AppState(BaseModel):
    """
    Immutable snapshot of the local ledger.

    Every state operation returns a new value; the owning layer swaps and
    persists it.
    """
    model_config = ConfigDict(frozen=True)

    vehicles: List[Vehicle] = Field(default_factory=list)
    records: List[ChargingRecord] = Field(default_factory=list)
    deleted_record_ids: List[str] = Field(default_factory=list)
    deleted_vehicle_ids: List[str] = Field(default_factory=list)
    last_sync: Optional[int] = None

    def vehicle_by_id(self, vehicle_id: str) -> Optional[Vehicle]:
        return next((v for v in self.vehicles if v.id == vehicle_id), None)

    def record_by_id(self, record_id: str) -> Optional[ChargingRecord]:
        return next((r for r in self.records if r.id == record_id), None)


class VehicleCreate(BaseModel):
    """Schema for registering or editing a vehicle."""
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    battery_capacity: float = Field(..., gt=0, description="Usable battery capacity in kWh")
    license_plate: Optional[str] = Field(None, max_length=20, description="Required for sync")
    initial_odometer: float = Field(default=0, ge=0, description="Mileage before the first record (km)")

    @field_validator("license_plate")
    @classmethod
    def _blank_plate_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


class ChargingRecordCreate(BaseModel):
    """Schema for creating or editing a charging record."""
    vehicle_id: str = Field(..., min_length=1)
    odometer: float = Field(..., ge=0, description="Dashboard reading in km")
    start_time: datetime
    end_time: Optional[datetime] = None
    start_soc: float = Field(..., ge=0, le=100)
    end_soc: float = Field(..., ge=0, le=100)
    price_per_kwh: float = Field(..., ge=0)
    energy_charged: float = Field(default=0, ge=0, description="Metered energy in kWh")
    total_cost: Optional[float] = Field(None, ge=0, description="Derived from energy and price when omitted")
    type: ChargingType = ChargingType.SLOW
    location: Optional[str] = Field(None, max_length=200)
    temperature: Optional[float] = Field(None, ge=-50, le=60, description="Ambient temperature in °C")

    @model_validator(mode="after")
    def _check_session(self) -> "ChargingRecordCreate":
        if self.end_soc <= self.start_soc:
            raise ValueError("end_soc must be greater than start_soc")
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self
