"""Location and Unit schemas."""

from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from homestay.schemas.base import BaseSchema, IDMixin, TimestampMixin


class LocationCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None


class LocationUpdate(BaseSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None


class LocationResponse(BaseSchema, IDMixin, TimestampMixin):
    name: str
    address: Optional[str] = None
    description: Optional[str] = None


class UnitCreate(BaseSchema):
    """Create a rentable unit."""

    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50)
    location_id: Optional[UUID] = None
    address: Optional[str] = Field(None, max_length=500)
    max_guests: Optional[int] = Field(None, ge=1, le=100)
    description: Optional[str] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.upper()


class UnitUpdate(BaseSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    location_id: Optional[UUID] = None
    address: Optional[str] = Field(None, max_length=500)
    max_guests: Optional[int] = Field(None, ge=1, le=100)
    description: Optional[str] = None
    active: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class UnitSummary(BaseSchema, IDMixin):
    name: str
    code: str


class UnitResponse(BaseSchema, IDMixin, TimestampMixin):
    name: str
    code: str
    location_id: Optional[UUID] = None
    address: Optional[str] = None
    max_guests: Optional[int] = None
    description: Optional[str] = None
    active: bool


class AvailabilityResponse(BaseSchema):
    unit_id: UUID
    available: bool
