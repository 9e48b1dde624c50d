"""
Typed rows for the remote store tables.

Column names on the wire are camelCase; each row model lists its columns
explicitly so no free-form dictionaries cross the store boundary.
"""

import enum
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from chargepal.app.models.ledger_enums import ChargingType


class RemoteTable(str, enum.Enum):
    """Remote table names."""
    VEHICLES = "vehicles"
    CHARGING_RECORDS = "charging_records"


class RemoteRow(BaseModel):
    """Base for all remote rows."""
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class VehicleRow(RemoteRow):
    """``vehicles`` row, keyed by ``licensePlate``."""
    license_plate: str
    name: Optional[str] = None
    battery_capacity: Optional[float] = None
    initial_odometer: Optional[float] = None
    updated_at: Optional[int] = None


class ChargingRecordRow(RemoteRow):
    """
    ``charging_records`` row, keyed by ``id``.

    Derived analytics columns are uploaded for server-side reporting and
    ignored on pull.
    """
    id: str
    license_plate: str
    odometer: Optional[float] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    start_soc: Optional[float] = Field(None, alias="startSoC")
    end_soc: Optional[float] = Field(None, alias="endSoC")
    price_per_kwh: Optional[float] = None
    type: ChargingType = ChargingType.SLOW
    energy_charged: Optional[float] = None
    total_cost: Optional[float] = None
    location: Optional[str] = None
    temperature: Optional[float] = None

    duration_minutes: Optional[float] = None
    theoretical_energy: Optional[float] = None
    efficiency_loss_pct: Optional[float] = None
    distance_driven: Optional[float] = None
    energy_consumption: Optional[float] = None

    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @field_validator("start_time", "end_time", "location", mode="before")
    @classmethod
    def _empty_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _missing_type_is_slow(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return ChargingType.SLOW
        return value


class VehicleVersionRow(RemoteRow):
    """Partial ``vehicles`` select used for last-write-wins checks."""
    license_plate: str
    updated_at: Optional[int] = None


class RecordVersionRow(RemoteRow):
    """Partial ``charging_records`` select used for last-write-wins checks."""
    id: str
    updated_at: Optional[int] = None


TABLE_ROW_TYPES: Dict[RemoteTable, Type[RemoteRow]] = {
    RemoteTable.VEHICLES: VehicleRow,
    RemoteTable.CHARGING_RECORDS: ChargingRecordRow,
}

TABLE_CONFLICT_KEYS: Dict[RemoteTable, str] = {
    RemoteTable.VEHICLES: "licensePlate",
    RemoteTable.CHARGING_RECORDS: "id",
}


def row_columns(row_type: Type[RemoteRow]) -> List[str]:
    """Wire column names of a row model, in declaration order."""
    return [field.alias or name for name, field in row_type.model_fields.items()]


SETUP_SQL = """-- Vehicles: licensePlate is the cross-device identity key
create table if not exists vehicles (
  "licensePlate" text primary key,
  name text,
  "batteryCapacity" numeric,
  "initialOdometer" numeric,
  "updatedAt" bigint
);

-- Charging records, attached to a vehicle by licensePlate
create table if not exists charging_records (
  id text primary key,
  "licensePlate" text references vehicles("licensePlate"),
  odometer numeric,
  "startTime" text,
  "endTime" text,
  "startSoC" numeric,
  "endSoC" numeric,
  "pricePerKwh" numeric,
  type text,
  "energyCharged" numeric,
  "totalCost" numeric,
  location text,
  temperature numeric,

  -- derived analytics, recomputed locally after every pull
  "durationMinutes" numeric,
  "theoreticalEnergy" numeric,
  "efficiencyLossPct" numeric,
  "distanceDriven" numeric,
  "energyConsumption" numeric,

  "createdAt" bigint,
  "updatedAt" bigint
);
"""
