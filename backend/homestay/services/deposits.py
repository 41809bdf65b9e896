"""Deposit lifecycle and ledger.

Every operation loads the reservation, checks the transition against
``TRANSITIONS``, updates the reservation's deposit fields and appends one
``DepositEvent``. Both writes share a single commit.
"""

import csv
import io
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from homestay.core.errors import ConflictError, NotFoundError, UnexpectedError, ValidationError
from homestay.core.security import AuthenticatedUser
from homestay.models.deposit import DepositEvent
from homestay.models.enums import DepositEventType, DepositStatus
from homestay.models.reservation import Reservation
from homestay.schemas.base import PageParams
from homestay.schemas.deposit import (
    DepositCollectIn,
    DepositForfeitIn,
    DepositLedgerFilters,
    DepositLedgerSummary,
    DepositRefundIn,
)
from homestay.services.reservations import ReservationService

logger = logging.getLogger(__name__)

E = DepositEventType
S = DepositStatus

# Operation -> statuses it may start from
TRANSITIONS: dict[DepositEventType, frozenset[DepositStatus]] = {
    E.REQUEST: frozenset({S.NOT_REQUIRED}),
    E.COLLECT: frozenset({S.PENDING, S.HELD, S.FAILED}),
    E.HOLD: frozenset({S.PENDING}),
    E.REFUND: frozenset({S.HELD, S.PAID, S.PARTIALLY_REFUNDED}),
    E.FORFEIT: frozenset({S.HELD, S.PAID}),
    E.FAIL: frozenset({S.PENDING}),
}

REJECTION_MESSAGES: dict[DepositEventType, str] = {
    E.REQUEST: "Deposit is already required for this reservation",
    E.COLLECT: "Deposit cannot be collected in its current status",
    E.HOLD: "Only pending deposits can be held",
    E.REFUND: "Only held or paid deposits can be refunded",
    E.FORFEIT: "Only held or paid deposits can be forfeited",
    E.FAIL: "Only pending deposits can be marked as failed",
}

LEDGER_CSV_HEADER = [
    "Reservation ID",
    "Guest Name",
    "Guest Email",
    "Unit",
    "Check In",
    "Check Out",
    "Deposit Amount",
    "Deposit Status",
    "Deposit Method",
    "Transaction ID",
    "Collected At",
    "Refunded At",
    "Refund Amount",
    "Forfeit Amount",
    "Created At",
]


def can_transition(current: DepositStatus, operation: DepositEventType) -> bool:
    return current in TRANSITIONS[operation]


def cents_to_amount(cents: int) -> str:
    return f"{cents / 100:.2f}"


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


class DepositService:
    """Deposit transitions for one request's session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load(self, reservation_id: UUID) -> Reservation:
        result = await self.db.execute(
            select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        )
        reservation = result.scalar_one_or_none()
        if not reservation:
            raise NotFoundError("Reservation not found")
        return reservation

    async def _reload(self, reservation_id: UUID) -> Reservation:
        return await ReservationService(self.db).get(reservation_id, with_events=True)

    def _check(self, reservation: Reservation, operation: DepositEventType) -> None:
        if not can_transition(reservation.deposit_status, operation):
            logger.warning(
                f"[DEPOSIT] {operation.value} rejected for {reservation.id}: "
                f"status {reservation.deposit_status.value}"
            )
            raise ConflictError(REJECTION_MESSAGES[operation])

    async def _record(
        self,
        reservation: Reservation,
        operation: DepositEventType,
        amount_cents: int,
        actor: Optional[AuthenticatedUser],
        method: Optional[str] = None,
        txn_id: Optional[str] = None,
        reason: Optional[str] = None,
        evidence_urls: Optional[list[str]] = None,
    ) -> DepositEvent:
        """Append the event and commit it together with the reservation changes."""
        event = DepositEvent(
            reservation_id=reservation.id,
            type=operation,
            status=reservation.deposit_status,
            amount_cents=amount_cents,
            method=method,
            txn_id=txn_id,
            reason=reason,
            evidence_urls=list(evidence_urls or []),
            acted_by_id=actor.id if actor else None,
        )
        self.db.add(event)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"[DEPOSIT] Failed to record {operation.value} for {reservation.id}")
            raise UnexpectedError("Failed to record deposit transition") from e

        logger.info(
            f"[DEPOSIT] {operation.value} on {reservation.id}: "
            f"{cents_to_amount(amount_cents)} -> {reservation.deposit_status.value}"
        )
        return event

    async def request(
        self,
        reservation_id: UUID,
        amount_cents: int,
        reason: Optional[str] = None,
        actor: Optional[AuthenticatedUser] = None,
    ) -> Reservation:
        if amount_cents <= 0:
            raise ValidationError("Deposit amount must be positive")
        reservation = await self._load(reservation_id)
        if reservation.deposit_required:
            raise ConflictError(REJECTION_MESSAGES[E.REQUEST])
        self._check(reservation, E.REQUEST)

        reservation.deposit_required = True
        reservation.deposit_amount_cents = amount_cents
        reservation.deposit_status = S.PENDING

        await self._record(reservation, E.REQUEST, amount_cents, actor, reason=reason)
        return await self._reload(reservation.id)

    async def collect(
        self,
        reservation_id: UUID,
        data: DepositCollectIn,
        actor: Optional[AuthenticatedUser] = None,
    ) -> Reservation:
        reservation = await self._load(reservation_id)
        if not reservation.deposit_required:
            raise ValidationError("No deposit required for this reservation")
        if reservation.deposit_status == S.PAID:
            raise ConflictError("Deposit already collected")
        self._check(reservation, E.COLLECT)

        reservation.deposit_status = S.PAID
        reservation.deposit_method = data.method
        reservation.deposit_txn_id = data.txn_id
        reservation.deposit_paid_at = datetime.utcnow()
        reservation.deposit_evidence_urls = list(data.evidence_urls)

        await self._record(
            reservation,
            E.COLLECT,
            reservation.deposit_amount_cents,
            actor,
            method=data.method,
            txn_id=data.txn_id,
            evidence_urls=data.evidence_urls,
        )
        return await self._reload(reservation.id)

    async def hold(
        self,
        reservation_id: UUID,
        reason: Optional[str] = None,
        actor: Optional[AuthenticatedUser] = None,
    ) -> Reservation:
        """Mark a pending deposit as secured without taking payment."""
        reservation = await self._load(reservation_id)
        self._check(reservation, E.HOLD)

        reservation.deposit_status = S.HELD

        await self._record(reservation, E.HOLD, reservation.deposit_amount_cents, actor, reason=reason)
        return await self._reload(reservation.id)

    async def refund(
        self,
        reservation_id: UUID,
        data: DepositRefundIn,
        actor: Optional[AuthenticatedUser] = None,
    ) -> Reservation:
        if data.amount_cents <= 0:
            raise ValidationError("Refund amount must be positive")
        reservation = await self._load(reservation_id)
        self._check(reservation, E.REFUND)

        if data.amount_cents > reservation.deposit_remaining_cents:
            raise ValidationError("Refund amount cannot exceed remaining deposit amount")

        new_total = reservation.deposit_refund_cents + data.amount_cents
        reservation.deposit_refund_cents = new_total
        reservation.deposit_refunded_at = datetime.utcnow()
        reservation.deposit_refund_reason = data.reason
        reservation.deposit_status = (
            S.REFUNDED if new_total >= reservation.deposit_amount_cents else S.PARTIALLY_REFUNDED
        )

        await self._record(
            reservation,
            E.REFUND,
            data.amount_cents,
            actor,
            method=data.method,
            txn_id=data.txn_id,
            reason=data.reason,
            evidence_urls=data.evidence_urls,
        )
        return await self._reload(reservation.id)

    async def forfeit(
        self,
        reservation_id: UUID,
        data: DepositForfeitIn,
        actor: Optional[AuthenticatedUser] = None,
    ) -> Reservation:
        if data.amount_cents <= 0:
            raise ValidationError("Forfeit amount must be positive")
        reservation = await self._load(reservation_id)
        self._check(reservation, E.FORFEIT)

        if data.amount_cents > reservation.deposit_remaining_cents:
            raise ValidationError("Forfeit amount cannot exceed deposit amount")

        reservation.deposit_forfeit_cents = reservation.deposit_forfeit_cents + data.amount_cents
        reservation.deposit_forfeit_reason = data.reason
        reservation.deposit_status = S.FORFEITED

        await self._record(
            reservation,
            E.FORFEIT,
            data.amount_cents,
            actor,
            reason=data.reason,
            evidence_urls=data.evidence_urls,
        )
        return await self._reload(reservation.id)

    async def fail(
        self,
        reservation_id: UUID,
        reason: Optional[str] = None,
        actor: Optional[AuthenticatedUser] = None,
    ) -> Reservation:
        reservation = await self._load(reservation_id)
        self._check(reservation, E.FAIL)

        reservation.deposit_status = S.FAILED

        await self._record(reservation, E.FAIL, 0, actor, reason=reason)
        return await self._reload(reservation.id)

    async def events(self, reservation_id: UUID) -> list[DepositEvent]:
        """Audit trail of a reservation's deposit, newest first."""
        exists = await self.db.scalar(select(Reservation.id).where(Reservation.id == reservation_id))
        if not exists:
            raise NotFoundError("Reservation not found")
        result = await self.db.execute(
            select(DepositEvent)
            .where(DepositEvent.reservation_id == reservation_id)
            .order_by(DepositEvent.created_at.desc())
        )
        return list(result.scalars().all())

    def _ledger_query(self, filters: DepositLedgerFilters):
        query = select(Reservation).where(Reservation.deposit_required.is_(True))
        if filters.status:
            query = query.where(Reservation.deposit_status == filters.status)
        if filters.method:
            query = query.where(Reservation.deposit_method == filters.method)
        if filters.unit_id:
            query = query.where(Reservation.unit_id == filters.unit_id)
        if filters.date_from:
            query = query.where(Reservation.created_at >= filters.date_from)
        if filters.date_to:
            query = query.where(Reservation.created_at <= filters.date_to)
        return query

    async def ledger_summary(self, filters: DepositLedgerFilters) -> DepositLedgerSummary:
        subq = self._ledger_query(filters).subquery()
        row = (
            await self.db.execute(
                select(
                    func.coalesce(func.sum(subq.c.deposit_amount_cents), 0),
                    func.coalesce(func.sum(subq.c.deposit_refund_cents), 0),
                    func.coalesce(func.sum(subq.c.deposit_forfeit_cents), 0),
                    func.count(),
                )
            )
        ).one()
        return DepositLedgerSummary(
            total_deposits_cents=row[0],
            total_refunded_cents=row[1],
            total_forfeited_cents=row[2],
            total_count=row[3],
        )

    async def ledger(
        self, filters: DepositLedgerFilters, page: Optional[PageParams] = None
    ) -> tuple[list[Reservation], int, DepositLedgerSummary]:
        """Reservations carrying a deposit, newest first, with totals over all matches."""
        query = self._ledger_query(filters).options(
            selectinload(Reservation.guest),
            selectinload(Reservation.unit),
        ).order_by(Reservation.created_at.desc())
        if page:
            query = query.offset(page.offset).limit(page.limit)

        result = await self.db.execute(query)
        summary = await self.ledger_summary(filters)
        return list(result.scalars().all()), summary.total_count, summary

    async def export_csv(self, filters: DepositLedgerFilters) -> str:
        reservations, _, _ = await self.ledger(filters)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(LEDGER_CSV_HEADER)
        for r in reservations:
            writer.writerow([
                r.id,
                r.guest.full_name,
                r.guest.email or "",
                r.unit.code,
                _iso(r.check_in),
                _iso(r.check_out),
                cents_to_amount(r.deposit_amount_cents),
                r.deposit_status.value,
                r.deposit_method or "",
                r.deposit_txn_id or "",
                _iso(r.deposit_paid_at),
                _iso(r.deposit_refunded_at),
                cents_to_amount(r.deposit_refund_cents),
                cents_to_amount(r.deposit_forfeit_cents),
                _iso(r.created_at),
            ])
        return buffer.getvalue()
