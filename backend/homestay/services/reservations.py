"""Reservation lifecycle.

DRAFT -> CONFIRMED -> CHECKED_IN -> CHECKED_OUT, or CANCELED from any state
short of CHECKED_OUT. Writes that can change a unit's calendar lock the unit
row, re-check availability and commit in one transaction.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from homestay.core.config import Settings, get_settings
from homestay.core.database import commit_or_conflict
from homestay.core.errors import ConflictError, NotFoundError, ValidationError
from homestay.core.permissions import Capability
from homestay.core.security import AuthenticatedUser
from homestay.models.deposit import DepositEvent
from homestay.models.enums import (
    ACTIVE_RESERVATION_STATUSES,
    DELETABLE_RESERVATION_STATUSES,
    SECURED_DEPOSIT_STATUSES,
    DepositStatus,
    ReservationStatus,
)
from homestay.models.guest import Guest
from homestay.models.location import Unit
from homestay.models.reservation import Reservation
from homestay.schemas.base import PageParams
from homestay.schemas.reservation import ReservationCreate, ReservationFilters, ReservationUpdate
from homestay.services.availability import (
    NO_OVERLAP_CONSTRAINT,
    UNAVAILABLE_MESSAGE,
    ensure_available,
    lock_unit,
    validate_interval,
)
from homestay.services.cleanings import CleaningService

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (ReservationStatus.DRAFT, ReservationStatus.CONFIRMED)

# NOT NULL columns an update may change but never clear
REQUIRED_UPDATE_FIELDS = (
    "unit_id",
    "guest_id",
    "check_in",
    "check_out",
    "head_count",
    "cleaning_fee_cents",
    "total_amount_cents",
)


def _append_note(existing: Optional[str], label: str, text: Optional[str]) -> Optional[str]:
    if not text:
        return existing
    note = f"{label}: {text}"
    return f"{existing}\n{note}" if existing else note


class ReservationService:
    """Reservation operations. Each public mutator commits its own transaction."""

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def _query(self):
        return select(Reservation).options(
            selectinload(Reservation.unit),
            selectinload(Reservation.guest),
        )

    async def get(self, reservation_id: UUID, with_events: bool = False) -> Reservation:
        query = self._query().where(Reservation.id == reservation_id)
        if with_events:
            query = query.options(selectinload(Reservation.deposit_events))
        result = await self.db.execute(query.execution_options(populate_existing=True))
        reservation = result.scalar_one_or_none()
        if not reservation:
            raise NotFoundError("Reservation not found")
        return reservation

    async def _get_for_update(self, reservation_id: UUID) -> Reservation:
        result = await self.db.execute(
            select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        )
        reservation = result.scalar_one_or_none()
        if not reservation:
            raise NotFoundError("Reservation not found")
        return reservation

    async def _bookable_unit(self, unit_id: UUID) -> Unit:
        unit = await lock_unit(self.db, unit_id)
        if not unit.active:
            raise ValidationError("Unit is not active")
        return unit

    async def _existing_guest(self, guest_id: UUID) -> Guest:
        guest = await self.db.get(Guest, guest_id)
        if not guest:
            raise NotFoundError("Guest not found")
        return guest

    async def list_reservations(
        self, filters: ReservationFilters, page: PageParams
    ) -> tuple[list[Reservation], int]:
        query = self._query().join(Reservation.guest).join(Reservation.unit)

        if filters.search:
            term = f"%{filters.search}%"
            query = query.where(
                or_(
                    Guest.full_name.ilike(term),
                    Guest.email.ilike(term),
                    Unit.name.ilike(term),
                    Unit.code.ilike(term),
                )
            )
        if filters.status:
            query = query.where(Reservation.status == filters.status)
        if filters.unit_id:
            query = query.where(Reservation.unit_id == filters.unit_id)
        if filters.guest_id:
            query = query.where(Reservation.guest_id == filters.guest_id)
        if filters.check_in_from:
            query = query.where(Reservation.check_in >= filters.check_in_from)
        if filters.check_in_to:
            query = query.where(Reservation.check_in <= filters.check_in_to)
        if filters.check_out_from:
            query = query.where(Reservation.check_out >= filters.check_out_from)
        if filters.check_out_to:
            query = query.where(Reservation.check_out <= filters.check_out_to)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        result = await self.db.execute(
            query.order_by(Reservation.check_in.desc()).offset(page.offset).limit(page.limit)
        )
        return list(result.scalars().all()), total or 0

    async def create(self, data: ReservationCreate, actor: Optional[AuthenticatedUser] = None) -> Reservation:
        """Book a stay.

        The overlap check runs whatever the requested status, so a DRAFT can
        never be created over an existing CONFIRMED/CHECKED_IN stay.
        """
        validate_interval(data.check_in, data.check_out)
        await self._bookable_unit(data.unit_id)
        await self._existing_guest(data.guest_id)
        await ensure_available(self.db, data.unit_id, data.check_in, data.check_out)

        reservation = Reservation(
            unit_id=data.unit_id,
            guest_id=data.guest_id,
            created_by_id=actor.id if actor else None,
            check_in=data.check_in,
            check_out=data.check_out,
            status=ReservationStatus.CONFIRMED if data.confirm else ReservationStatus.DRAFT,
            head_count=data.head_count,
            special_requests=data.special_requests,
            nightly_rate_cents=data.nightly_rate_cents,
            cleaning_fee_cents=data.cleaning_fee_cents,
            total_amount_cents=data.total_amount_cents,
            deposit_required=data.deposit_required,
            deposit_amount_cents=data.deposit_amount_cents if data.deposit_required else 0,
            deposit_status=DepositStatus.PENDING if data.deposit_required else DepositStatus.NOT_REQUIRED,
        )
        self.db.add(reservation)
        await commit_or_conflict(self.db, UNAVAILABLE_MESSAGE, NO_OVERLAP_CONSTRAINT)

        logger.info(
            f"[RESERVATION] Created {reservation.id} unit={reservation.unit_id} "
            f"status={reservation.status.value}"
        )
        return await self.get(reservation.id)

    async def update(self, reservation_id: UUID, data: ReservationUpdate) -> Reservation:
        reservation = await self._get_for_update(reservation_id)
        if reservation.status not in EDITABLE_STATUSES:
            raise ConflictError("Only draft or confirmed reservations can be edited")

        changes = data.model_dump(exclude_unset=True)
        for field in REQUIRED_UPDATE_FIELDS:
            if field in changes and changes[field] is None:
                raise ValidationError(f"{field} cannot be cleared")

        unit_id = changes.get("unit_id", reservation.unit_id)
        check_in = changes.get("check_in", reservation.check_in)
        check_out = changes.get("check_out", reservation.check_out)

        if "guest_id" in changes:
            await self._existing_guest(changes["guest_id"])

        calendar_changed = (
            unit_id != reservation.unit_id
            or check_in != reservation.check_in
            or check_out != reservation.check_out
        )
        if calendar_changed:
            validate_interval(check_in, check_out)
            await self._bookable_unit(unit_id)
            await ensure_available(
                self.db, unit_id, check_in, check_out, exclude_reservation_id=reservation.id
            )

        for field, value in changes.items():
            setattr(reservation, field, value)

        await commit_or_conflict(self.db, UNAVAILABLE_MESSAGE, NO_OVERLAP_CONSTRAINT)
        logger.info(f"[RESERVATION] Updated {reservation.id}: {', '.join(sorted(changes))}")
        return await self.get(reservation.id)

    async def confirm(self, reservation_id: UUID) -> Reservation:
        reservation = await self._get_for_update(reservation_id)
        if reservation.status != ReservationStatus.DRAFT:
            raise ConflictError("Only draft reservations can be confirmed")

        await self._bookable_unit(reservation.unit_id)
        await ensure_available(
            self.db,
            reservation.unit_id,
            reservation.check_in,
            reservation.check_out,
            exclude_reservation_id=reservation.id,
        )
        reservation.status = ReservationStatus.CONFIRMED

        await commit_or_conflict(self.db, UNAVAILABLE_MESSAGE, NO_OVERLAP_CONSTRAINT)
        logger.info(f"[RESERVATION] Confirmed {reservation.id}")
        return await self.get(reservation.id)

    async def check_in(
        self,
        reservation_id: UUID,
        actor: AuthenticatedUser,
        actual_check_in: Optional[datetime] = None,
    ) -> Reservation:
        """Check a guest in.

        A reservation that requires a deposit only checks in once the deposit
        is HELD or PAID, unless the operator flag
        ``allow_checkin_with_pending_deposit`` is set or the actor may override.
        """
        reservation = await self._get_for_update(reservation_id)
        if reservation.status != ReservationStatus.CONFIRMED:
            raise ConflictError("Only confirmed reservations can be checked in")

        if reservation.deposit_required and reservation.deposit_status not in SECURED_DEPOSIT_STATUSES:
            overridden = (
                self.settings.allow_checkin_with_pending_deposit
                or actor.can(Capability.CHECKIN_OVERRIDE)
            )
            if not overridden:
                logger.warning(
                    f"[RESERVATION] Check-in of {reservation.id} blocked: "
                    f"deposit {reservation.deposit_status.value}"
                )
                raise ConflictError("Deposit must be held or paid before check-in")
            logger.info(
                f"[RESERVATION] Check-in of {reservation.id} with deposit "
                f"{reservation.deposit_status.value} allowed for {actor.email}"
            )

        reservation.status = ReservationStatus.CHECKED_IN
        reservation.actual_check_in = actual_check_in or datetime.utcnow()

        await self.db.commit()
        logger.info(f"[RESERVATION] Checked in {reservation.id}")
        return await self.get(reservation.id)

    async def check_out(
        self,
        reservation_id: UUID,
        actor: AuthenticatedUser,
        actual_check_out: Optional[datetime] = None,
    ) -> Reservation:
        """Check a guest out and queue exactly one PENDING cleaning task."""
        reservation = await self._get_for_update(reservation_id)
        if reservation.status != ReservationStatus.CHECKED_IN:
            raise ConflictError("Only checked-in reservations can be checked out")

        reservation.status = ReservationStatus.CHECKED_OUT
        reservation.actual_check_out = actual_check_out or datetime.utcnow()
        task = CleaningService(self.db).create_for_checkout(reservation)

        await self.db.commit()
        logger.info(
            f"[RESERVATION] Checked out {reservation.id} by {actor.email}; cleaning task {task.id} queued"
        )
        return await self.get(reservation.id)

    async def extend(
        self,
        reservation_id: UUID,
        new_check_out: datetime,
        reason: Optional[str] = None,
    ) -> Reservation:
        reservation = await self._get_for_update(reservation_id)
        if reservation.status not in ACTIVE_RESERVATION_STATUSES:
            raise ConflictError("Only confirmed or checked-in reservations can be extended")
        if new_check_out <= reservation.check_out:
            raise ValidationError("New check-out date must be after current check-out date")

        await lock_unit(self.db, reservation.unit_id)
        await ensure_available(
            self.db,
            reservation.unit_id,
            reservation.check_in,
            new_check_out,
            exclude_reservation_id=reservation.id,
            message="Unit is not available for the extended dates",
        )

        previous = reservation.check_out
        reservation.check_out = new_check_out
        reservation.special_requests = _append_note(
            reservation.special_requests, "Extension reason", reason
        )

        await commit_or_conflict(
            self.db, "Unit is not available for the extended dates", NO_OVERLAP_CONSTRAINT
        )
        logger.info(
            f"[RESERVATION] Extended {reservation.id}: {previous.isoformat()} -> {new_check_out.isoformat()}"
        )
        return await self.get(reservation.id)

    async def cancel(self, reservation_id: UUID, reason: Optional[str] = None) -> Reservation:
        reservation = await self._get_for_update(reservation_id)
        if reservation.status == ReservationStatus.CANCELED:
            raise ConflictError("Reservation is already canceled")
        if reservation.status == ReservationStatus.CHECKED_OUT:
            raise ConflictError("Cannot cancel completed reservations")

        reservation.status = ReservationStatus.CANCELED
        reservation.special_requests = _append_note(
            reservation.special_requests, "Cancellation reason", reason
        )

        await self.db.commit()
        logger.info(f"[RESERVATION] Canceled {reservation.id}")
        return await self.get(reservation.id)

    async def delete(self, reservation_id: UUID) -> None:
        """Hard-delete a DRAFT or CANCELED reservation without deposit history."""
        reservation = await self._get_for_update(reservation_id)
        if reservation.status not in DELETABLE_RESERVATION_STATUSES:
            raise ConflictError("Cannot delete confirmed or active reservations")

        event_count = await self.db.scalar(
            select(func.count()).select_from(DepositEvent).where(
                DepositEvent.reservation_id == reservation.id
            )
        )
        if event_count:
            raise ConflictError("Cannot delete a reservation with deposit history")

        await self.db.delete(reservation)
        await self.db.commit()
        logger.info(f"[RESERVATION] Deleted {reservation_id}")
