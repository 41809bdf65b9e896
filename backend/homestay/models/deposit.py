"""Deposit ledger model.

Every deposit transition appends one ``DepositEvent``. Rows are insert-only:
the flush listener below refuses any UPDATE or DELETE issued through the ORM.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, DateTime, Enum as SQLEnum, ForeignKey, Integer, String, Text, Uuid, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from homestay.core.database import Base
from homestay.models.enums import DepositEventType, DepositStatus

if TYPE_CHECKING:
    from homestay.models.reservation import Reservation
    from homestay.models.user import User


class DepositEvent(Base):
    """An immutable entry in a reservation's deposit audit trail."""

    __tablename__ = "deposit_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    reservation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type: Mapped[DepositEventType] = mapped_column(
        SQLEnum(DepositEventType, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    # Deposit status after this event
    status: Mapped[DepositStatus] = mapped_column(SQLEnum(DepositStatus), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    txn_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evidence_urls: Mapped[list[Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), default=list, nullable=False
    )

    acted_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    reservation: Mapped["Reservation"] = relationship("Reservation", back_populates="deposit_events")
    acted_by: Mapped[Optional["User"]] = relationship("User")


class ImmutableRecordError(Exception):
    """Raised when code tries to modify or remove a ledger row."""


@event.listens_for(Session, "before_flush")
def _refuse_ledger_changes(session, flush_context, instances):
    """Refuse ledger UPDATE or DELETE before the unit of work starts."""
    for target in session.deleted:
        if isinstance(target, DepositEvent):
            raise ImmutableRecordError(f"DepositEvent {target.id} cannot be deleted")
    for target in session.dirty:
        if isinstance(target, DepositEvent) and session.is_modified(target):
            raise ImmutableRecordError(f"DepositEvent {target.id} is immutable")
