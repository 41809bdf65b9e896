"""Cleaning task schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from homestay.models.enums import CleaningStatus
from homestay.schemas.base import BaseSchema, IDMixin, TimestampMixin, UTCDateTime
from homestay.schemas.location import UnitSummary
from homestay.schemas.user import UserSummary


class CleaningAssignRequest(BaseSchema):
    user_id: UUID
    scheduled_date: Optional[UTCDateTime] = None
    notes: Optional[str] = Field(None, max_length=2000)


class CleaningUpdateRequest(BaseSchema):
    """Administrative edit. Status moves only through the workflow endpoints."""

    scheduled_date: Optional[UTCDateTime] = None
    notes: Optional[str] = Field(None, max_length=2000)


class CleaningCompleteRequest(BaseSchema):
    notes: Optional[str] = Field(None, max_length=2000)
    photo_urls: list[str] = Field(default_factory=list, max_length=20)


class CleaningFailRequest(BaseSchema):
    reason: str = Field(..., min_length=1, max_length=2000)


class CleaningFilters(BaseSchema):
    status: Optional[CleaningStatus] = None
    unit_id: Optional[UUID] = None
    assigned_to_id: Optional[UUID] = None
    date_from: Optional[UTCDateTime] = None
    date_to: Optional[UTCDateTime] = None


class CleaningPhotoResponse(BaseSchema, IDMixin):
    url: str
    uploaded_by_id: Optional[UUID] = None
    created_at: datetime


class CleaningTaskResponse(BaseSchema, IDMixin, TimestampMixin):
    reservation_id: Optional[UUID] = None
    unit_id: UUID
    assigned_to_id: Optional[UUID] = None
    status: CleaningStatus
    scheduled_date: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    failure_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by_id: Optional[UUID] = None

    unit: Optional[UnitSummary] = None
    assigned_to: Optional[UserSummary] = None
    photos: list[CleaningPhotoResponse] = []
