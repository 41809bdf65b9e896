"""Reservation schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, model_validator

from homestay.models.enums import DepositStatus, ReservationStatus
from homestay.schemas.base import BaseSchema, IDMixin, TimestampMixin, UTCDateTime
from homestay.schemas.deposit import DepositEventResponse
from homestay.schemas.guest import GuestSummary
from homestay.schemas.location import UnitSummary


class ReservationCreate(BaseSchema):
    """Book a unit for a guest.

    New reservations start as DRAFT; ``confirm=True`` books straight into
    CONFIRMED.
    """

    unit_id: UUID
    guest_id: UUID
    check_in: UTCDateTime
    check_out: UTCDateTime
    head_count: int = Field(default=1, ge=1, le=100)
    special_requests: Optional[str] = None

    nightly_rate_cents: Optional[int] = Field(None, ge=0)
    cleaning_fee_cents: int = Field(default=0, ge=0)
    total_amount_cents: int = Field(default=0, ge=0)

    deposit_required: bool = False
    deposit_amount_cents: int = Field(default=0, ge=0)

    confirm: bool = False

    @model_validator(mode="after")
    def validate_deposit(self):
        """A required deposit needs an amount."""
        if self.deposit_required and self.deposit_amount_cents <= 0:
            raise ValueError("deposit_amount_cents must be positive when a deposit is required")
        return self


class ReservationUpdate(BaseSchema):
    """Edit a DRAFT or CONFIRMED reservation."""

    unit_id: Optional[UUID] = None
    guest_id: Optional[UUID] = None
    check_in: Optional[UTCDateTime] = None
    check_out: Optional[UTCDateTime] = None
    head_count: Optional[int] = Field(None, ge=1, le=100)
    special_requests: Optional[str] = None
    nightly_rate_cents: Optional[int] = Field(None, ge=0)
    cleaning_fee_cents: Optional[int] = Field(None, ge=0)
    total_amount_cents: Optional[int] = Field(None, ge=0)


class ReservationCheckInRequest(BaseSchema):
    actual_check_in: Optional[UTCDateTime] = None  # Defaults to now


class ReservationCheckOutRequest(BaseSchema):
    actual_check_out: Optional[UTCDateTime] = None  # Defaults to now


class ReservationExtendRequest(BaseSchema):
    new_check_out: UTCDateTime
    reason: Optional[str] = Field(None, max_length=1000)


class ReservationCancelRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=1000)


class ReservationFilters(BaseSchema):
    search: Optional[str] = None
    status: Optional[ReservationStatus] = None
    unit_id: Optional[UUID] = None
    guest_id: Optional[UUID] = None
    check_in_from: Optional[UTCDateTime] = None
    check_in_to: Optional[UTCDateTime] = None
    check_out_from: Optional[UTCDateTime] = None
    check_out_to: Optional[UTCDateTime] = None


class ReservationResponse(BaseSchema, IDMixin, TimestampMixin):
    unit_id: UUID
    guest_id: UUID
    created_by_id: Optional[UUID] = None
    check_in: datetime
    check_out: datetime
    actual_check_in: Optional[datetime] = None
    actual_check_out: Optional[datetime] = None
    status: ReservationStatus
    head_count: int
    special_requests: Optional[str] = None

    nightly_rate_cents: Optional[int] = None
    cleaning_fee_cents: int
    total_amount_cents: int

    deposit_required: bool
    deposit_amount_cents: int
    deposit_status: DepositStatus
    deposit_method: Optional[str] = None
    deposit_txn_id: Optional[str] = None
    deposit_paid_at: Optional[datetime] = None
    deposit_evidence_urls: list[str] = []
    deposit_refund_cents: int
    deposit_refunded_at: Optional[datetime] = None
    deposit_refund_reason: Optional[str] = None
    deposit_forfeit_cents: int
    deposit_forfeit_reason: Optional[str] = None
    deposit_remaining_cents: int

    unit: Optional[UnitSummary] = None
    guest: Optional[GuestSummary] = None


class ReservationDetailResponse(ReservationResponse):
    deposit_events: list[DepositEventResponse] = []
