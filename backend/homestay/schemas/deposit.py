"""Deposit operation and ledger schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from homestay.models.enums import DepositEventType, DepositStatus
from homestay.schemas.base import BaseSchema, IDMixin, UTCDateTime


class DepositRequestIn(BaseSchema):
    amount_cents: int = Field(..., gt=0)
    reason: Optional[str] = Field(None, max_length=1000)


class DepositCollectIn(BaseSchema):
    method: str = Field(..., min_length=1, max_length=50)
    txn_id: Optional[str] = Field(None, max_length=255)
    evidence_urls: list[str] = Field(default_factory=list, max_length=20)


class DepositHoldIn(BaseSchema):
    reason: Optional[str] = Field(None, max_length=1000)


class DepositRefundIn(BaseSchema):
    amount_cents: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=1000)
    method: Optional[str] = Field(None, max_length=50)
    txn_id: Optional[str] = Field(None, max_length=255)
    evidence_urls: list[str] = Field(default_factory=list, max_length=20)


class DepositForfeitIn(BaseSchema):
    amount_cents: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=1000)
    evidence_urls: list[str] = Field(default_factory=list, max_length=20)


class DepositFailIn(BaseSchema):
    reason: Optional[str] = Field(None, max_length=1000)


class DepositEventResponse(BaseSchema, IDMixin):
    reservation_id: UUID
    type: DepositEventType
    status: DepositStatus
    amount_cents: int
    method: Optional[str] = None
    txn_id: Optional[str] = None
    reason: Optional[str] = None
    evidence_urls: list[str] = []
    acted_by_id: Optional[UUID] = None
    created_at: datetime


class DepositLedgerFilters(BaseSchema):
    """Ledger filters; the date range applies to the reservation creation time."""

    status: Optional[DepositStatus] = None
    method: Optional[str] = None
    unit_id: Optional[UUID] = None
    date_from: Optional[UTCDateTime] = None
    date_to: Optional[UTCDateTime] = None


class DepositLedgerEntry(BaseSchema):
    reservation_id: UUID
    guest_name: str
    guest_email: Optional[str] = None
    unit_code: str
    check_in: datetime
    check_out: datetime
    reservation_status: str
    deposit_status: DepositStatus
    deposit_amount_cents: int
    deposit_refund_cents: int
    deposit_forfeit_cents: int
    deposit_method: Optional[str] = None
    deposit_txn_id: Optional[str] = None
    deposit_paid_at: Optional[datetime] = None
    deposit_refunded_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_reservation(cls, reservation) -> "DepositLedgerEntry":
        """Flatten a reservation with its guest and unit loaded."""
        return cls(
            reservation_id=reservation.id,
            guest_name=reservation.guest.full_name,
            guest_email=reservation.guest.email,
            unit_code=reservation.unit.code,
            check_in=reservation.check_in,
            check_out=reservation.check_out,
            reservation_status=reservation.status.value,
            deposit_status=reservation.deposit_status,
            deposit_amount_cents=reservation.deposit_amount_cents,
            deposit_refund_cents=reservation.deposit_refund_cents,
            deposit_forfeit_cents=reservation.deposit_forfeit_cents,
            deposit_method=reservation.deposit_method,
            deposit_txn_id=reservation.deposit_txn_id,
            deposit_paid_at=reservation.deposit_paid_at,
            deposit_refunded_at=reservation.deposit_refunded_at,
            created_at=reservation.created_at,
        )


class DepositLedgerSummary(BaseSchema):
    total_deposits_cents: int = 0
    total_refunded_cents: int = 0
    total_forfeited_cents: int = 0
    total_count: int = 0
