# domain/entities/web_companion.py
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class UploadStatus(str, Enum):
    """Lifecycle state of a companion-app upload."""
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not UploadStatus.PENDING


class WebCompanionUpload(BaseModel):
    """An image captured by the companion app, tracked from registration to processing outcome."""
    id: str = Field(..., description="Upload identifier")
    stock_number: str = Field(..., description="Stock number of the photographed vehicle")
    original_url: str = Field(..., description="Public URL of the original image")
    storage_key: str = Field(..., description="Blob store key of the original image")
    status: UploadStatus = Field(UploadStatus.PENDING, description="pending, processed or failed")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Registration time (UTC)")
    processed_at: Optional[datetime] = Field(None, description="Time the last completion was observed (UTC)")
    processed_url: Optional[str] = Field(None, description="Public URL of the processed image")
    original_filename: Optional[str] = Field(None, description="Filename sent by the companion app")
    size: Optional[int] = Field(None, ge=0, description="Size of the original image in bytes")
    image_index: Optional[int] = Field(None, description="Position of the image in the capture sequence")
    error: Optional[str] = Field(None, description="Failure reason reported by the processor")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("id", "stock_number")
    def validate_non_empty(cls, value):
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Field must be a non-empty string")
        return value.strip()
