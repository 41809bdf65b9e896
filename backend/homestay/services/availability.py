"""Reservation availability checks.

Stays are half-open intervals ``[check_in, check_out)``: a guest leaving on a
day and the next guest arriving that same day do not overlap. Only CONFIRMED
and CHECKED_IN reservations occupy a unit; DRAFT and CANCELED never block.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.errors import ConflictError, NotFoundError, ValidationError
from homestay.models.enums import ACTIVE_RESERVATION_STATUSES
from homestay.models.location import Unit
from homestay.models.reservation import Reservation

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Unit is not available for the selected dates"

# PostgreSQL exclusion constraint backing the overlap check (001_initial)
NO_OVERLAP_CONSTRAINT = "ex_reservations_no_overlap"


def intervals_overlap(a: datetime, b: datetime, c: datetime, d: datetime) -> bool:
    """Whether ``[a, b)`` and ``[c, d)`` share any instant."""
    return a < d and c < b


def validate_interval(check_in: datetime, check_out: datetime) -> None:
    if check_in >= check_out:
        raise ValidationError("Check-out date must be after check-in date")


async def find_conflicts(
    db: AsyncSession,
    unit_id: UUID,
    check_in: datetime,
    check_out: datetime,
    exclude_reservation_id: Optional[UUID] = None,
) -> list[Reservation]:
    """Active reservations of the unit that overlap ``[check_in, check_out)``."""
    query = select(Reservation).where(
        Reservation.unit_id == unit_id,
        Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
        Reservation.check_in < check_out,
        Reservation.check_out > check_in,
    )
    if exclude_reservation_id is not None:
        query = query.where(Reservation.id != exclude_reservation_id)

    result = await db.execute(query.order_by(Reservation.check_in))
    return list(result.scalars().all())


async def is_available(
    db: AsyncSession,
    unit_id: UUID,
    check_in: datetime,
    check_out: datetime,
    exclude_reservation_id: Optional[UUID] = None,
) -> bool:
    validate_interval(check_in, check_out)
    conflicts = await find_conflicts(db, unit_id, check_in, check_out, exclude_reservation_id)
    return not conflicts


async def ensure_available(
    db: AsyncSession,
    unit_id: UUID,
    check_in: datetime,
    check_out: datetime,
    exclude_reservation_id: Optional[UUID] = None,
    message: str = UNAVAILABLE_MESSAGE,
) -> None:
    """Raise ``ConflictError`` if the interval collides with an active reservation."""
    if not await is_available(db, unit_id, check_in, check_out, exclude_reservation_id):
        logger.warning(
            f"[RESERVATION] Overlap rejected for unit {unit_id}: {check_in.isoformat()} - {check_out.isoformat()}"
        )
        raise ConflictError(message)


async def lock_unit(db: AsyncSession, unit_id: UUID) -> Unit:
    """Load the unit row ``FOR UPDATE``.

    Serialises check-then-write for one unit within the caller's transaction.
    The lock is released on commit or rollback.
    """
    result = await db.execute(select(Unit).where(Unit.id == unit_id).with_for_update())
    unit = result.scalar_one_or_none()
    if not unit:
        raise NotFoundError("Unit not found")
    return unit
