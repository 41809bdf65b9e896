"""User schemas."""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from homestay.models.enums import Role
from homestay.schemas.base import BaseSchema, IDMixin, TimestampMixin


class UserCreate(BaseSchema):
    """Create a staff account."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    role: Role = Role.AGENT


class UserUpdate(BaseSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class UserResponse(BaseSchema, IDMixin, TimestampMixin):
    name: str
    email: str
    role: Role
    is_active: bool
    last_login_at: Optional[datetime] = None


class UserSummary(BaseSchema, IDMixin):
    name: str
    email: str
