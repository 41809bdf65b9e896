"""Location and Unit models."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, Text, Integer, Boolean, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homestay.core.database import Base

if TYPE_CHECKING:
    from homestay.models.reservation import Reservation
    from homestay.models.cleaning import CleaningTask


class Location(Base):
    """A site (building, compound, street address) grouping rentable units."""

    __tablename__ = "locations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    units: Mapped[list["Unit"]] = relationship("Unit", back_populates="location")


class Unit(Base):
    """A rentable property or room. Soft-deleted via ``active``."""

    __tablename__ = "units"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("locations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    max_guests: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    location: Mapped[Optional["Location"]] = relationship("Location", back_populates="units")
    reservations: Mapped[list["Reservation"]] = relationship("Reservation", back_populates="unit")
    cleaning_tasks: Mapped[list["CleaningTask"]] = relationship("CleaningTask", back_populates="unit")
