# domain/entities/vehicle.py
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from domain.entities.media import Media


class Vehicle(BaseModel):
    """Entity representing a vehicle in the dealership inventory, as delivered by the upstream feed."""
    id: str = Field(..., description="Unique identifier of the vehicle")
    stock_number: str = Field(..., description="Dealer stock number")
    vin: Optional[str] = Field(None, description="Vehicle identification number")
    make: str = Field(..., description="Manufacturer")
    model: str = Field(..., description="Model name")
    year: int = Field(..., ge=1886, description="Model year")
    trim: Optional[str] = Field(None, description="Trim level")
    color: Optional[str] = Field(None, description="Exterior color")
    price: float = Field(0, ge=0, description="Listed price")
    mileage: int = Field(0, ge=0, description="Odometer reading")
    status: str = Field("available", description="Status of the vehicle (available/sold)")
    description: Optional[str] = Field(None, description="Listing description")
    features: List[str] = Field(default_factory=list, description="Feature highlights")
    images: List[str] = Field(default_factory=list, description="Ordered image URLs from the feed")
    media: List[Media] = Field(default_factory=list, description="Media records attached to the vehicle")
    created_at: Optional[datetime] = Field(None, description="Creation time reported by the feed")
    updated_at: Optional[datetime] = Field(None, description="Last update time reported by the feed")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @field_validator("id", "stock_number", mode="before")
    def validate_identifiers(cls, value):
        """Identifiers arrive as strings or numbers; store them as trimmed strings."""
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Identifier must be a non-empty value")
        return str(value).strip()

    @field_validator("status", mode="before")
    def validate_status(cls, value):
        """Ensure status is valid."""
        value = (value or "available").strip().lower() if isinstance(value, str) else value
        valid_statuses = ["available", "sold"]
        if value not in valid_statuses:
            raise ValueError(f"Status must be one of {valid_statuses}, got: {value}")
        return value

    @field_validator("images")
    def validate_images(cls, value):
        """Drop blank image entries."""
        return [url.strip() for url in value if isinstance(url, str) and url.strip()]
