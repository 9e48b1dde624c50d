"""
Sync Pydantic schemas.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List

from chargepal.app.schemas.ledger import Vehicle, ChargingRecord


class SyncConfig(BaseModel):
    """Connection details for the remote store."""
    project_url: str = ""
    api_key: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.project_url.strip() and self.api_key.strip())


class SyncOutcome(BaseModel):
    """
    Replacement state fragment produced by a successful sync.

    The deletion queues are always empty: the remote side now reflects them.
    """
    model_config = ConfigDict(frozen=True)

    vehicles: List[Vehicle]
    records: List[ChargingRecord]
    deleted_record_ids: List[str] = Field(default_factory=list)
    deleted_vehicle_ids: List[str] = Field(default_factory=list)

    # Counters for logging and the API response
    pushed_vehicles: int = 0
    pushed_records: int = 0
    deleted_records: int = 0


class SyncResponse(BaseModel):
    """Schema for the sync endpoint response."""
    message: str
    synced_at: int
    vehicles_count: int
    records_count: int
    pushed_vehicles: int
    pushed_records: int
    deleted_records: int
