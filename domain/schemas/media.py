# domain/schemas/media.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from domain.entities.media import MediaType


class MediaCreate(BaseModel):
    url: Optional[str] = Field(None, description="Public URL of the media item")
    type: Optional[MediaType] = Field(None, description="Media type (IMAGE/VIDEO)")
    order: Optional[int] = Field(None, ge=0, description="Display order, appended last when omitted")

    @field_validator("url")
    def strip_url(cls, value):
        if value is not None:
            value = value.strip()
        return value or None


class MediaDeleteResponse(BaseModel):
    success: bool = True
    id: str
    blob_deleted: Optional[bool] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


