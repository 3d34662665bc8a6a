# domain/entities/media.py
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class MediaType(str, Enum):
    """Kind of a media item."""
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"


class Media(BaseModel):
    """Entity representing an image or video shown in the showroom.

    A media item without ``vehicle_id`` is "manual" (unattached): it was uploaded by an
    operator and is offered alongside every vehicle until it gets paired with one.
    """
    id: str = Field(..., description="Unique identifier of the media item")
    url: str = Field(..., description="Public URL of the media item")
    type: MediaType = Field(MediaType.IMAGE, description="Media type (IMAGE/VIDEO)")
    vehicle_id: Optional[str] = Field(None, description="Owning vehicle ID, None for manual media")
    order: int = Field(0, description="Display order within the owning vehicle or the manual pool")
    storage_key: Optional[str] = Field(None, description="Blob store key of the backing object, if we own it")
    created_at: Optional[datetime] = Field(None, description="Creation time (UTC); feed media may omit it")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=False)

    @field_validator("id", "url")
    def validate_non_empty(cls, value):
        """Ensure identifier and URL are non-empty strings."""
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Field must be a non-empty string")
        return value.strip()

    @field_validator("vehicle_id", mode="before")
    def normalize_vehicle_id(cls, value):
        """Treat blank vehicle references as unattached."""
        if value is None:
            return None
        if not isinstance(value, str):
            value = str(value)
        return value.strip() or None

    @property
    def is_manual(self) -> bool:
        return self.vehicle_id is None
