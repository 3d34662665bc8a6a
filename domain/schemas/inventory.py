# domain/schemas/inventory.py
from datetime import datetime
from typing import Optional, List, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from domain.entities.media import Media
from domain.entities.vehicle import Vehicle


class InventorySnapshot(BaseModel):
    """Full vehicle snapshot returned by one upstream feed fetch."""
    vehicles: List[Vehicle] = Field(default_factory=list, description="Every vehicle currently in the feed")

    @model_validator(mode="before")
    def accept_bare_list(cls, value: Any):
        """Feeds may return a bare list of vehicles instead of an object."""
        if isinstance(value, list):
            return {"vehicles": value}
        return value


class VehicleView(Vehicle):
    """Vehicle as shown to end users: stock imagery filtered out, manual media merged in."""
    manual_media: List[Media] = Field(default_factory=list, description="Unattached media offered with the vehicle")


class ShowroomData(BaseModel):
    """Tagged showroom result: the data plus where it came from and what went wrong, if anything."""
    vehicles: List[VehicleView] = Field(default_factory=list)
    custom_media: List[Media] = Field(default_factory=list)
    from_cache: bool = Field(True, description="False only when the data was freshly fetched upstream")
    error: Optional[str] = Field(None, description="Non-fatal error encountered while assembling the data")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SnapshotMetadata(BaseModel):
    """Bookkeeping record written last by every successful sync that changed the cache."""
    fingerprint: str
    synced_at: datetime
    vehicle_count: int = 0

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RefreshResult(BaseModel):
    changed: bool
    vehicle_count: int
    synced_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SyncStatus(BaseModel):
    """Inventory freshness as seen by this process."""
    vehicle_count: int = 0
    fingerprint: Optional[str] = None
    synced_at: Optional[datetime] = None
    checked_at: Optional[datetime] = None
    stale: bool = True
    last_error: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
