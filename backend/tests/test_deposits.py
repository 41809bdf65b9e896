"""
Tests for deposit transitions, bounds and the append-only event trail.
"""
import csv
import io
import unittest

from sqlalchemy import select

from tests._support import DatabaseTestCase, actor_for, day

from homestay.core.errors import ConflictError, NotFoundError, ValidationError
from homestay.models import DepositEvent, DepositEventType, DepositStatus, ImmutableRecordError, Role
from homestay.schemas.base import PageParams
from homestay.schemas.deposit import (
    DepositCollectIn,
    DepositForfeitIn,
    DepositLedgerFilters,
    DepositRefundIn,
)
from homestay.services.deposits import (
    LEDGER_CSV_HEADER,
    DepositService,
    can_transition,
    cents_to_amount,
)

E = DepositEventType
S = DepositStatus


class TransitionTableTests(unittest.TestCase):
    def test_collect_never_from_paid(self):
        self.assertFalse(can_transition(S.PAID, E.COLLECT))
        for status in (S.PENDING, S.HELD, S.FAILED):
            self.assertTrue(can_transition(status, E.COLLECT))

    def test_collect_never_after_settlement(self):
        for status in (S.NOT_REQUIRED, S.PARTIALLY_REFUNDED, S.REFUNDED, S.FORFEITED):
            self.assertFalse(can_transition(status, E.COLLECT))

    def test_refund_allowed_after_partial_refund(self):
        self.assertTrue(can_transition(S.PARTIALLY_REFUNDED, E.REFUND))
        self.assertFalse(can_transition(S.REFUNDED, E.REFUND))
        self.assertFalse(can_transition(S.PENDING, E.REFUND))

    def test_fail_only_from_pending(self):
        self.assertTrue(can_transition(S.PENDING, E.FAIL))
        for status in (S.PAID, S.HELD, S.REFUNDED, S.FORFEITED):
            self.assertFalse(can_transition(status, E.FAIL))

    def test_cents_to_amount(self):
        self.assertEqual(cents_to_amount(12345), "123.45")
        self.assertEqual(cents_to_amount(0), "0.00")


class DepositServiceTests(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.user = await self.make_user(Role.FINANCE)
        self.actor = actor_for(self.user)
        self.unit = await self.make_unit()
        self.guest = await self.make_guest(email="alice@homestay.com")
        self.service = DepositService(self.db)

    async def deposit_reservation(self, amount=20000, status=S.PENDING, **fields):
        return await self.make_reservation(
            self.unit, self.guest, day(1), day(3),
            deposit_required=True, deposit_amount_cents=amount, deposit_status=status, **fields,
        )

    async def events_for(self, reservation_id):
        result = await self.db.execute(
            select(DepositEvent).where(DepositEvent.reservation_id == reservation_id)
        )
        return result.scalars().all()

    async def test_request_on_reservation_without_deposit(self):
        reservation = await self.make_reservation(self.unit, self.guest, day(1), day(3))
        updated = await self.service.request(reservation.id, 15000, "Damage cover", self.actor)

        self.assertTrue(updated.deposit_required)
        self.assertEqual(updated.deposit_amount_cents, 15000)
        self.assertEqual(updated.deposit_status, S.PENDING)
        self.assertEqual(len(updated.deposit_events), 1)
        event = updated.deposit_events[0]
        self.assertEqual(event.type, E.REQUEST)
        self.assertEqual(event.status, S.PENDING)
        self.assertEqual(event.amount_cents, 15000)
        self.assertEqual(event.acted_by_id, self.user.id)

    async def test_request_twice_rejected(self):
        reservation = await self.deposit_reservation()
        with self.assertRaises(ConflictError):
            await self.service.request(reservation.id, 100)

    async def test_collect_records_payment(self):
        reservation = await self.deposit_reservation()
        updated = await self.service.collect(
            reservation.id,
            DepositCollectIn(method="card", txn_id="txn-001", evidence_urls=["/api/v1/uploads/deposit-evidence/a.jpg"]),
            self.actor,
        )
        self.assertEqual(updated.deposit_status, S.PAID)
        self.assertEqual(updated.deposit_method, "card")
        self.assertEqual(updated.deposit_txn_id, "txn-001")
        self.assertIsNotNone(updated.deposit_paid_at)
        self.assertEqual(updated.deposit_evidence_urls, ["/api/v1/uploads/deposit-evidence/a.jpg"])
        self.assertEqual([e.type for e in updated.deposit_events], [E.COLLECT])

    async def test_collect_rejected_when_already_paid_or_not_required(self):
        paid = await self.deposit_reservation(status=S.PAID)
        with self.assertRaises(ConflictError):
            await self.service.collect(paid.id, DepositCollectIn(method="cash"))

        plain = await self.make_reservation(self.unit, self.guest, day(5), day(6))
        with self.assertRaises(ValidationError):
            await self.service.collect(plain.id, DepositCollectIn(method="cash"))

    async def test_collect_after_failure(self):
        reservation = await self.deposit_reservation()
        await self.service.fail(reservation.id, "Card declined", self.actor)
        updated = await self.service.collect(reservation.id, DepositCollectIn(method="cash"), self.actor)
        self.assertEqual(updated.deposit_status, S.PAID)
        # Newest first
        self.assertEqual([e.type for e in updated.deposit_events], [E.COLLECT, E.FAIL])

    async def test_hold_from_pending_only(self):
        reservation = await self.deposit_reservation()
        held = await self.service.hold(reservation.id, "Pre-authorised", self.actor)
        self.assertEqual(held.deposit_status, S.HELD)
        with self.assertRaises(ConflictError):
            await self.service.hold(reservation.id)

    async def test_partial_then_full_refund(self):
        reservation = await self.deposit_reservation(amount=20000, status=S.PAID)

        partial = await self.service.refund(
            reservation.id, DepositRefundIn(amount_cents=5000, reason="Minor damage deducted"), self.actor
        )
        self.assertEqual(partial.deposit_status, S.PARTIALLY_REFUNDED)
        self.assertEqual(partial.deposit_refund_cents, 5000)
        self.assertEqual(partial.deposit_remaining_cents, 15000)

        full = await self.service.refund(
            reservation.id, DepositRefundIn(amount_cents=15000, reason="Balance returned"), self.actor
        )
        self.assertEqual(full.deposit_status, S.REFUNDED)
        self.assertEqual(full.deposit_refund_cents, 20000)
        self.assertEqual(full.deposit_refund_reason, "Balance returned")
        self.assertEqual(len(full.deposit_events), 2)

        with self.assertRaises(ConflictError):
            await self.service.refund(reservation.id, DepositRefundIn(amount_cents=1, reason="Again"))
        with self.assertRaises(ConflictError):
            await self.service.collect(reservation.id, DepositCollectIn(method="card"))

    async def test_cumulative_refund_bound(self):
        reservation = await self.deposit_reservation(amount=10000, status=S.PAID)
        await self.service.refund(reservation.id, DepositRefundIn(amount_cents=6000, reason="First"))
        with self.assertRaises(ValidationError):
            await self.service.refund(reservation.id, DepositRefundIn(amount_cents=5000, reason="Too much"))

        events = await self.events_for(reservation.id)
        self.assertEqual(len(events), 1)

    async def test_refund_rejected_before_payment(self):
        reservation = await self.deposit_reservation()
        with self.assertRaises(ConflictError):
            await self.service.refund(reservation.id, DepositRefundIn(amount_cents=100, reason="Nope"))

    async def test_forfeit_bounded_by_deposit(self):
        reservation = await self.deposit_reservation(amount=10000, status=S.HELD)
        with self.assertRaises(ValidationError):
            await self.service.forfeit(reservation.id, DepositForfeitIn(amount_cents=10001, reason="Damage"))

        forfeited = await self.service.forfeit(
            reservation.id,
            DepositForfeitIn(amount_cents=10000, reason="Broken window", evidence_urls=["/x.jpg"]),
            self.actor,
        )
        self.assertEqual(forfeited.deposit_status, S.FORFEITED)
        self.assertEqual(forfeited.deposit_forfeit_cents, 10000)
        self.assertEqual(forfeited.deposit_forfeit_reason, "Broken window")
        self.assertEqual(forfeited.deposit_events[0].evidence_urls, ["/x.jpg"])

    async def test_fail_on_paid_rejected(self):
        reservation = await self.deposit_reservation(status=S.PAID)
        with self.assertRaises(ConflictError):
            await self.service.fail(reservation.id, "Too late")
        self.assertEqual(await self.events_for(reservation.id), [])

    async def test_unknown_reservation(self):
        reservation = await self.deposit_reservation()
        with self.assertRaises(NotFoundError):
            await self.service.fail(self.unit.id)
        with self.assertRaises(NotFoundError):
            await self.service.events(self.unit.id)
        self.assertEqual(await self.service.events(reservation.id), [])

    async def test_events_are_immutable(self):
        reservation = await self.deposit_reservation()
        await self.service.fail(reservation.id, "Card declined", self.actor)
        event = (await self.events_for(reservation.id))[0]

        event.reason = "Rewritten"
        with self.assertRaises(ImmutableRecordError):
            await self.db.commit()
        await self.db.rollback()

        event = (await self.events_for(reservation.id))[0]
        await self.db.delete(event)
        with self.assertRaises(ImmutableRecordError):
            await self.db.commit()
        await self.db.rollback()

        events = await self.events_for(reservation.id)
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].reason, "Card declined")

    async def test_ledger_lists_deposit_reservations_with_summary(self):
        await self.deposit_reservation(amount=20000, status=S.PAID)
        refunded = await self.make_reservation(
            self.unit, self.guest, day(10), day(12),
            deposit_required=True, deposit_amount_cents=10000, deposit_status=S.PARTIALLY_REFUNDED,
            deposit_refund_cents=4000,
        )
        await self.make_reservation(self.unit, self.guest, day(20), day(22))

        rows, total, summary = await self.service.ledger(DepositLedgerFilters(), PageParams(page=1, limit=10))
        self.assertEqual(total, 2)
        self.assertEqual(len(rows), 2)
        self.assertEqual(summary.total_deposits_cents, 30000)
        self.assertEqual(summary.total_refunded_cents, 4000)
        self.assertEqual(summary.total_forfeited_cents, 0)

        rows, total, _ = await self.service.ledger(DepositLedgerFilters(status=S.PARTIALLY_REFUNDED))
        self.assertEqual([r.id for r in rows], [refunded.id])
        self.assertEqual(total, 1)

    async def test_export_csv(self):
        reservation = await self.deposit_reservation(amount=12345, status=S.PAID, deposit_method="card")
        content = await self.service.export_csv(DepositLedgerFilters())
        rows = list(csv.reader(io.StringIO(content)))
        self.assertEqual(rows[0], LEDGER_CSV_HEADER)
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][0], str(reservation.id))
        self.assertEqual(rows[1][1], "Alice Johnson")
        self.assertEqual(rows[1][3], "UNIT-001")
        self.assertEqual(rows[1][6], "123.45")
        self.assertEqual(rows[1][7], "PAID")


if __name__ == "__main__":
    unittest.main()
