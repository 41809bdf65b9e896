"""Cleaning task models."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, Enum as SQLEnum, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homestay.core.database import Base
from homestay.models.enums import CleaningStatus

if TYPE_CHECKING:
    from homestay.models.location import Unit
    from homestay.models.reservation import Reservation
    from homestay.models.user import User


class CleaningTask(Base):
    """Cleaning of a unit after a guest checks out.

    Created PENDING by check-out, assigned to a cleaner, worked through
    IN_PROGRESS to DONE. Finance approves DONE tasks for payout.
    """

    __tablename__ = "cleaning_tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    reservation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("reservations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    unit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("units.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Assignment
    assigned_to_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    status: Mapped[CleaningStatus] = mapped_column(
        SQLEnum(CleaningStatus),
        default=CleaningStatus.PENDING,
        nullable=False,
        index=True,
    )
    scheduled_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Finance approval
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    approved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    unit: Mapped["Unit"] = relationship("Unit", back_populates="cleaning_tasks")
    reservation: Mapped[Optional["Reservation"]] = relationship(
        "Reservation", back_populates="cleaning_tasks"
    )
    assigned_to: Mapped[Optional["User"]] = relationship(
        "User", back_populates="cleaning_tasks", foreign_keys=[assigned_to_id]
    )
    approved_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[approved_by_id])
    photos: Mapped[list["CleaningPhoto"]] = relationship(
        "CleaningPhoto",
        back_populates="cleaning_task",
        cascade="all, delete-orphan",
        order_by="CleaningPhoto.created_at",
    )


class CleaningPhoto(Base):
    """A photo submitted when a cleaning task is completed."""

    __tablename__ = "cleaning_photos"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    cleaning_task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("cleaning_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    uploaded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    cleaning_task: Mapped["CleaningTask"] = relationship("CleaningTask", back_populates="photos")
