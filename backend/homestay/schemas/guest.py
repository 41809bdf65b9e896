"""Guest schemas."""

from typing import Optional

from pydantic import EmailStr, Field

from homestay.schemas.base import BaseSchema, IDMixin, TimestampMixin


class GuestCreate(BaseSchema):
    full_name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class GuestUpdate(BaseSchema):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class GuestSummary(BaseSchema, IDMixin):
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class GuestResponse(BaseSchema, IDMixin, TimestampMixin):
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
