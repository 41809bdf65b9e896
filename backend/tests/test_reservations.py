"""
Tests for the reservation lifecycle service.
"""
import unittest

from sqlalchemy import select

from tests._support import DatabaseTestCase, actor_for, day

from homestay.core.config import get_settings
from homestay.core.database import INTEGRITY_MESSAGE, commit_or_conflict
from homestay.core.errors import ConflictError, NotFoundError, ValidationError
from homestay.models import (
    CleaningStatus,
    CleaningTask,
    DepositEvent,
    DepositEventType,
    DepositStatus,
    Guest,
    ReservationStatus,
    Role,
)
from homestay.schemas.reservation import ReservationCreate, ReservationUpdate
from homestay.services.availability import NO_OVERLAP_CONSTRAINT, UNAVAILABLE_MESSAGE
from homestay.services.reservations import ReservationService


class ReservationServiceTests(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.agent = actor_for(await self.make_user(Role.AGENT))
        self.admin = actor_for(await self.make_user(Role.ADMIN))
        self.unit = await self.make_unit()
        self.guest = await self.make_guest()
        self.service = ReservationService(self.db)

    def booking(self, check_in, check_out, **fields) -> ReservationCreate:
        return ReservationCreate(
            unit_id=self.unit.id, guest_id=self.guest.id, check_in=check_in, check_out=check_out, **fields
        )

    async def test_create_defaults_to_draft(self):
        reservation = await self.service.create(self.booking(day(1), day(3)), self.agent)
        self.assertEqual(reservation.status, ReservationStatus.DRAFT)
        self.assertEqual(reservation.deposit_status, DepositStatus.NOT_REQUIRED)
        self.assertEqual(reservation.created_by_id, self.agent.id)
        self.assertEqual(reservation.unit.code, "UNIT-001")

    async def test_create_with_deposit_starts_pending_without_events(self):
        reservation = await self.service.create(
            self.booking(day(1), day(3), deposit_required=True, deposit_amount_cents=20000), self.agent
        )
        self.assertEqual(reservation.deposit_status, DepositStatus.PENDING)
        self.assertEqual(reservation.deposit_amount_cents, 20000)
        events = (await self.db.execute(select(DepositEvent))).scalars().all()
        self.assertEqual(events, [])

    async def test_create_rejects_overlap_with_confirmed(self):
        await self.service.create(self.booking(day(1), day(4), confirm=True), self.agent)
        with self.assertRaises(ConflictError) as ctx:
            await self.service.create(self.booking(day(3), day(6), confirm=True), self.agent)
        self.assertEqual(ctx.exception.message, "Unit is not available for the selected dates")
        # Draft over an occupied window is rejected too
        with self.assertRaises(ConflictError):
            await self.service.create(self.booking(day(2), day(3)), self.agent)

    async def test_create_allows_back_to_back(self):
        await self.service.create(self.booking(day(1), day(3), confirm=True), self.agent)
        second = await self.service.create(self.booking(day(3), day(5), confirm=True), self.agent)
        self.assertEqual(second.status, ReservationStatus.CONFIRMED)

    async def test_create_rejects_inactive_unit_and_missing_guest(self):
        inactive = await self.make_unit("UNIT-OFF", active=False)
        with self.assertRaises(ValidationError):
            await self.service.create(
                ReservationCreate(unit_id=inactive.id, guest_id=self.guest.id, check_in=day(1), check_out=day(2))
            )
        with self.assertRaises(NotFoundError):
            await self.service.create(
                ReservationCreate(unit_id=self.unit.id, guest_id=inactive.id, check_in=day(1), check_out=day(2))
            )

    async def test_confirm_rechecks_availability(self):
        draft = await self.service.create(self.booking(day(1), day(4)), self.agent)
        await self.service.create(self.booking(day(2), day(5), confirm=True), self.agent)
        with self.assertRaises(ConflictError):
            await self.service.confirm(draft.id)

    async def test_confirm_only_from_draft(self):
        reservation = await self.service.create(self.booking(day(1), day(4), confirm=True), self.agent)
        with self.assertRaises(ConflictError):
            await self.service.confirm(reservation.id)

    async def test_update_moves_dates_with_availability_check(self):
        first = await self.service.create(self.booking(day(1), day(3), confirm=True), self.agent)
        await self.service.create(self.booking(day(5), day(7), confirm=True), self.agent)

        moved = await self.service.update(first.id, ReservationUpdate(check_out=day(5)))
        self.assertEqual(moved.check_out, day(5))
        with self.assertRaises(ConflictError):
            await self.service.update(first.id, ReservationUpdate(check_out=day(6)))

    async def test_update_rejects_clearing_required_fields(self):
        reservation = await self.service.create(
            self.booking(day(1), day(3), cleaning_fee_cents=3000, total_amount_cents=40000), self.agent
        )
        for field in ("head_count", "cleaning_fee_cents", "total_amount_cents"):
            with self.subTest(field=field):
                with self.assertRaises(ValidationError) as ctx:
                    await self.service.update(reservation.id, ReservationUpdate(**{field: None}))
                self.assertEqual(ctx.exception.message, f"{field} cannot be cleared")

        unchanged = await self.service.get(reservation.id)
        self.assertEqual(unchanged.head_count, 1)
        self.assertEqual(unchanged.cleaning_fee_cents, 3000)
        self.assertEqual(unchanged.total_amount_cents, 40000)

    async def test_integrity_error_outside_overlap_constraint_keeps_generic_message(self):
        self.db.add(Guest(full_name=None))
        with self.assertRaises(ConflictError) as ctx:
            await commit_or_conflict(self.db, UNAVAILABLE_MESSAGE, NO_OVERLAP_CONSTRAINT)
        self.assertEqual(ctx.exception.message, INTEGRITY_MESSAGE)

    async def test_update_rejected_once_checked_in(self):
        reservation = await self.make_reservation(self.unit, self.guest, day(1), day(3), ReservationStatus.CHECKED_IN)
        with self.assertRaises(ConflictError):
            await self.service.update(reservation.id, ReservationUpdate(head_count=3))

    async def test_extend_rechecks_availability(self):
        first = await self.service.create(self.booking(day(1), day(3), confirm=True), self.agent)
        await self.service.create(self.booking(day(5), day(7), confirm=True), self.agent)

        with self.assertRaises(ConflictError):
            await self.service.extend(first.id, day(6))

        extended = await self.service.extend(first.id, day(5), "Guest asked for two more nights")
        self.assertEqual(extended.check_out, day(5))
        self.assertIn("Extension reason: Guest asked for two more nights", extended.special_requests)

    async def test_extend_must_move_check_out_later(self):
        reservation = await self.service.create(self.booking(day(1), day(3), confirm=True), self.agent)
        with self.assertRaises(ValidationError):
            await self.service.extend(reservation.id, day(3))
        with self.assertRaises(ValidationError):
            await self.service.extend(reservation.id, day(2))

    async def test_extend_rejects_draft(self):
        draft = await self.service.create(self.booking(day(1), day(3)), self.agent)
        with self.assertRaises(ConflictError):
            await self.service.extend(draft.id, day(4))

    async def test_check_out_creates_one_pending_cleaning_task(self):
        reservation = await self.service.create(self.booking(day(1), day(3), confirm=True), self.agent)
        await self.service.check_in(reservation.id, self.agent)
        checked_out = await self.service.check_out(reservation.id, self.agent, actual_check_out=day(3, hour=10))

        self.assertEqual(checked_out.status, ReservationStatus.CHECKED_OUT)
        self.assertEqual(checked_out.actual_check_out, day(3, hour=10))
        tasks = (await self.db.execute(select(CleaningTask))).scalars().all()
        self.assertEqual(len(tasks), 1)
        self.assertEqual(tasks[0].status, CleaningStatus.PENDING)
        self.assertEqual(tasks[0].unit_id, self.unit.id)
        self.assertEqual(tasks[0].reservation_id, reservation.id)
        self.assertEqual(tasks[0].scheduled_date, day(3, hour=10))

        with self.assertRaises(ConflictError):
            await self.service.check_out(reservation.id, self.agent)
        tasks = (await self.db.execute(select(CleaningTask))).scalars().all()
        self.assertEqual(len(tasks), 1)

    async def test_check_in_requires_confirmed(self):
        draft = await self.service.create(self.booking(day(1), day(3)), self.agent)
        with self.assertRaises(ConflictError):
            await self.service.check_in(draft.id, self.agent)

    async def test_check_in_blocked_by_pending_deposit_for_agent(self):
        reservation = await self.service.create(
            self.booking(day(1), day(3), confirm=True, deposit_required=True, deposit_amount_cents=10000),
            self.agent,
        )
        with self.assertRaises(ConflictError) as ctx:
            await self.service.check_in(reservation.id, self.agent)
        self.assertEqual(ctx.exception.message, "Deposit must be held or paid before check-in")

    async def test_check_in_with_pending_deposit_allowed_for_admin(self):
        reservation = await self.service.create(
            self.booking(day(1), day(3), confirm=True, deposit_required=True, deposit_amount_cents=10000),
            self.agent,
        )
        checked_in = await self.service.check_in(reservation.id, self.admin)
        self.assertEqual(checked_in.status, ReservationStatus.CHECKED_IN)
        self.assertIsNotNone(checked_in.actual_check_in)

    async def test_check_in_with_pending_deposit_allowed_by_operator_flag(self):
        settings = get_settings().model_copy(update={"allow_checkin_with_pending_deposit": True})
        service = ReservationService(self.db, settings=settings)
        reservation = await service.create(
            self.booking(day(1), day(3), confirm=True, deposit_required=True, deposit_amount_cents=10000),
            self.agent,
        )
        checked_in = await service.check_in(reservation.id, self.agent)
        self.assertEqual(checked_in.status, ReservationStatus.CHECKED_IN)

    async def test_check_in_with_paid_deposit(self):
        reservation = await self.make_reservation(
            self.unit, self.guest, day(1), day(3),
            deposit_required=True, deposit_amount_cents=10000, deposit_status=DepositStatus.PAID,
        )
        checked_in = await self.service.check_in(reservation.id, self.agent)
        self.assertEqual(checked_in.status, ReservationStatus.CHECKED_IN)

    async def test_cancel_rules(self):
        reservation = await self.service.create(self.booking(day(1), day(3), confirm=True), self.agent)
        canceled = await self.service.cancel(reservation.id, "Flight canceled")
        self.assertEqual(canceled.status, ReservationStatus.CANCELED)
        self.assertIn("Cancellation reason: Flight canceled", canceled.special_requests)
        with self.assertRaises(ConflictError):
            await self.service.cancel(reservation.id)

        done = await self.make_reservation(self.unit, self.guest, day(5), day(6), ReservationStatus.CHECKED_OUT)
        with self.assertRaises(ConflictError):
            await self.service.cancel(done.id)

    async def test_cancel_frees_the_calendar(self):
        reservation = await self.service.create(self.booking(day(1), day(3), confirm=True), self.agent)
        await self.service.cancel(reservation.id)
        again = await self.service.create(self.booking(day(1), day(3), confirm=True), self.agent)
        self.assertEqual(again.status, ReservationStatus.CONFIRMED)

    async def test_delete_restrictions(self):
        confirmed = await self.service.create(self.booking(day(1), day(3), confirm=True), self.agent)
        with self.assertRaises(ConflictError):
            await self.service.delete(confirmed.id)

        with_history = await self.make_reservation(
            self.unit, self.guest, day(10), day(12), ReservationStatus.CANCELED,
            deposit_required=True, deposit_amount_cents=5000,
        )
        self.db.add(DepositEvent(
            reservation_id=with_history.id,
            type=DepositEventType.FAIL,
            status=DepositStatus.FAILED,
            amount_cents=0,
        ))
        await self.db.commit()
        with self.assertRaises(ConflictError):
            await self.service.delete(with_history.id)

        draft = await self.service.create(self.booking(day(5), day(6)), self.agent)
        await self.service.delete(draft.id)
        with self.assertRaises(NotFoundError):
            await self.service.get(draft.id)


if __name__ == "__main__":
    unittest.main()
