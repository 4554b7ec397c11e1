from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

PLACEHOLDER_IMAGE_IDS: tuple[str, ...] = ("placeholder1", "placeholder2", "placeholder3")


def is_placeholder(image_id: str) -> bool:
    """Placeholder tokens render as stock photos and are not backed by a stored object."""
    return image_id.startswith("placeholder")


class PropertyCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    images: list[str] = Field(default_factory=list)
    name: str = Field(min_length=1, max_length=300)
    location: str = Field(min_length=1)
    description: str = Field(min_length=1)
    lat: float
    lng: float
    price: float = Field(ge=0)
    beds: int = Field(default=0, ge=0)
    baths: int = Field(default=0, ge=0)
    area: float = Field(default=0, ge=0)

    created_at: datetime | None = Field(default=None, alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value: datetime | None) -> datetime | None:
        # stored without offset on sqlite; naive input is taken as UTC
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class PropertyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    images: list[str]
    name: str
    location: str
    description: str
    lat: float
    lng: float
    price: float
    beds: int = 0
    baths: int = 0
    area: float = 0
    created_at: datetime = Field(alias="createdAt")
