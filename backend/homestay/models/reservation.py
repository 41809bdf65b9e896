"""Reservation model.

A stay of one guest in one unit over ``[check_in, check_out)``. Carries the
deposit fields driven by ``homestay.services.deposits``.

On PostgreSQL the migration adds an exclusion constraint so that no two
CONFIRMED/CHECKED_IN reservations of the same unit overlap.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homestay.core.database import Base
from homestay.models.enums import DepositStatus, ReservationStatus

if TYPE_CHECKING:
    from homestay.models.cleaning import CleaningTask
    from homestay.models.deposit import DepositEvent
    from homestay.models.guest import Guest
    from homestay.models.location import Unit
    from homestay.models.user import User


JSONList = JSON().with_variant(JSONB(), "postgresql")


class Reservation(Base):
    """A booked stay."""

    __tablename__ = "reservations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    unit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("units.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    guest_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("guests.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Stay window, half-open [check_in, check_out)
    check_in: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    check_out: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Actual times (set on check-in/check-out)
    actual_check_in: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    actual_check_out: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    status: Mapped[ReservationStatus] = mapped_column(
        SQLEnum(ReservationStatus),
        default=ReservationStatus.DRAFT,
        nullable=False,
        index=True,
    )

    head_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    special_requests: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Money (cents)
    nightly_rate_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cleaning_fee_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_amount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Deposit
    deposit_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deposit_amount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    deposit_status: Mapped[DepositStatus] = mapped_column(
        SQLEnum(DepositStatus),
        default=DepositStatus.NOT_REQUIRED,
        nullable=False,
        index=True,
    )
    deposit_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    deposit_txn_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    deposit_paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deposit_evidence_urls: Mapped[list[Any]] = mapped_column(JSONList, default=list, nullable=False)
    deposit_refund_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    deposit_refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deposit_refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    deposit_forfeit_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    deposit_forfeit_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    unit: Mapped["Unit"] = relationship("Unit", back_populates="reservations")
    guest: Mapped["Guest"] = relationship("Guest", back_populates="reservations")
    created_by: Mapped[Optional["User"]] = relationship("User")
    deposit_events: Mapped[list["DepositEvent"]] = relationship(
        "DepositEvent",
        back_populates="reservation",
        order_by="DepositEvent.created_at.desc()",
        passive_deletes=True,
    )
    cleaning_tasks: Mapped[list["CleaningTask"]] = relationship(
        "CleaningTask", back_populates="reservation", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("check_in < check_out", name="ck_reservation_interval"),
        CheckConstraint(
            "deposit_refund_cents + deposit_forfeit_cents <= deposit_amount_cents",
            name="ck_reservation_deposit_settlement",
        ),
        Index("ix_reservations_unit_window", "unit_id", "check_in", "check_out"),
    )

    @property
    def deposit_remaining_cents(self) -> int:
        """Deposit not yet refunded or forfeited."""
        return self.deposit_amount_cents - self.deposit_refund_cents - self.deposit_forfeit_cents
