"""Finance dashboard, cleaning payout consolidation and reports."""

import csv
import io
import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from homestay.core.errors import ValidationError
from homestay.core.security import AuthenticatedUser
from homestay.models.cleaning import CleaningTask
from homestay.models.deposit import DepositEvent
from homestay.models.enums import (
    ACTIVE_RESERVATION_STATUSES,
    OPEN_CLEANING_STATUSES,
    CleaningStatus,
    DepositEventType,
    ReservationStatus,
)
from homestay.models.location import Unit
from homestay.models.reservation import Reservation
from homestay.schemas.base import PageParams
from homestay.schemas.deposit import DepositLedgerFilters
from homestay.schemas.finance import (
    CleaningConsolidationFilters,
    CleaningConsolidationRow,
    DashboardMonth,
    DashboardResponse,
    DashboardToday,
    MonthlyReport,
    MonthlyReservationRow,
    MonthlyUnitRevenue,
    StatsBucket,
    StatsPoint,
)
from homestay.services.deposits import DepositService, cents_to_amount

logger = logging.getLogger(__name__)

CLEANING_CSV_HEADER = [
    "Task ID",
    "Unit",
    "Guest",
    "Cleaner",
    "Scheduled Date",
    "Started At",
    "Completed At",
    "Notes",
    "Photos Count",
    "Cleaning Fee",
    "Approved At",
]

DEPOSITS_CSV_HEADER = [
    "Reservation ID",
    "Guest",
    "Unit",
    "Deposit Amount",
    "Status",
    "Method",
    "Collected At",
    "Refunded At",
    "Refund Amount",
    "Forfeit Amount",
]


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """``[first instant of month, first instant of next month)``."""
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def bucket_start(moment: datetime, bucket: StatsBucket) -> date:
    day = moment.date()
    if bucket == StatsBucket.WEEK:
        return day - timedelta(days=day.weekday())
    if bucket == StatsBucket.MONTH:
        return day.replace(day=1)
    return day


def _next_bucket(current: date, bucket: StatsBucket) -> date:
    if bucket == StatsBucket.DAY:
        return current + timedelta(days=1)
    if bucket == StatsBucket.WEEK:
        return current + timedelta(days=7)
    if current.month == 12:
        return current.replace(year=current.year + 1, month=1)
    return current.replace(month=current.month + 1)


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


class FinanceService:
    """Read-mostly aggregates over reservations, deposits and cleanings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def dashboard(self, now: Optional[datetime] = None) -> DashboardResponse:
        now = now or datetime.utcnow()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        day_end = day_start + timedelta(days=1)
        month_start, month_end = month_bounds(now.year, now.month)

        today_row = (
            await self.db.execute(
                select(
                    func.sum(case((and_(
                        Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
                        Reservation.check_in >= day_start,
                        Reservation.check_in < day_end,
                    ), 1), else_=0)).label("arrivals"),
                    func.sum(case((and_(
                        Reservation.status.in_((ReservationStatus.CHECKED_IN, ReservationStatus.CHECKED_OUT)),
                        Reservation.check_out >= day_start,
                        Reservation.check_out < day_end,
                    ), 1), else_=0)).label("departures"),
                    func.sum(case((and_(
                        Reservation.status == ReservationStatus.CHECKED_IN,
                        Reservation.check_in < day_end,
                        Reservation.check_out > day_start,
                    ), 1), else_=0)).label("occupied"),
                )
            )
        ).one()

        total_units = await self.db.scalar(
            select(func.count(Unit.id)).where(Unit.active.is_(True))
        ) or 0
        occupied = today_row.occupied or 0
        occupancy_rate = round(occupied / total_units * 100, 2) if total_units else 0.0

        cleaning_row = (
            await self.db.execute(
                select(
                    func.count(CleaningTask.id).label("open_tasks"),
                    func.sum(case((CleaningTask.scheduled_date < now, 1), else_=0)).label("overdue"),
                ).where(CleaningTask.status.in_(OPEN_CLEANING_STATUSES))
            )
        ).one()

        month_row = (
            await self.db.execute(
                select(
                    func.coalesce(func.sum(Reservation.total_amount_cents), 0).label("revenue"),
                    func.coalesce(func.sum(Reservation.cleaning_fee_cents), 0).label("cleaning_fees"),
                    func.count(Reservation.id).label("reservations"),
                ).where(
                    Reservation.status == ReservationStatus.CHECKED_OUT,
                    Reservation.check_out >= month_start,
                    Reservation.check_out < month_end,
                )
            )
        ).one()

        deposits = await self._deposit_event_totals(month_start, month_end)

        return DashboardResponse(
            today=DashboardToday(
                arrivals=today_row.arrivals or 0,
                departures=today_row.departures or 0,
                occupancy_rate=occupancy_rate,
                total_units=total_units,
                occupied_units=occupied,
            ),
            month=DashboardMonth(
                revenue_cents=month_row.revenue,
                cleaning_fees_cents=month_row.cleaning_fees,
                reservations=month_row.reservations,
                deposits_collected_cents=deposits[DepositEventType.COLLECT],
                deposits_refunded_cents=deposits[DepositEventType.REFUND],
                deposits_forfeited_cents=deposits[DepositEventType.FORFEIT],
            ),
            pending_cleanings=cleaning_row.open_tasks or 0,
            overdue_cleanings=cleaning_row.overdue or 0,
        )

    async def _deposit_event_totals(
        self, start: datetime, end: datetime
    ) -> dict[DepositEventType, int]:
        result = await self.db.execute(
            select(DepositEvent.type, func.coalesce(func.sum(DepositEvent.amount_cents), 0))
            .where(DepositEvent.created_at >= start, DepositEvent.created_at < end)
            .group_by(DepositEvent.type)
        )
        totals = {event_type: 0 for event_type in DepositEventType}
        for event_type, amount in result.all():
            totals[event_type] = amount
        return totals

    async def period_stats(
        self, start: datetime, end: datetime, bucket: StatsBucket = StatsBucket.DAY
    ) -> list[StatsPoint]:
        """Reservation counts and revenue bucketed by check-in date over ``[start, end)``."""
        if end <= start:
            raise ValidationError("end must be after start")

        result = await self.db.execute(
            select(Reservation.check_in, Reservation.status, Reservation.total_amount_cents).where(
                Reservation.check_in >= start,
                Reservation.check_in < end,
            )
        )

        points: "OrderedDict[date, dict[str, int]]" = OrderedDict()
        cursor = bucket_start(start, bucket)
        while datetime.combine(cursor, time.min) < end:
            points[cursor] = {"reservations": 0, "checked_out": 0, "canceled": 0, "revenue_cents": 0}
            cursor = _next_bucket(cursor, bucket)

        for check_in, status, total_amount in result.all():
            point = points.setdefault(
                bucket_start(check_in, bucket),
                {"reservations": 0, "checked_out": 0, "canceled": 0, "revenue_cents": 0},
            )
            point["reservations"] += 1
            if status == ReservationStatus.CANCELED:
                point["canceled"] += 1
            elif status == ReservationStatus.CHECKED_OUT:
                point["checked_out"] += 1
                point["revenue_cents"] += total_amount

        return [StatsPoint(period_start=key, **values) for key, values in points.items()]

    def _consolidation_conditions(self, filters: CleaningConsolidationFilters) -> list:
        conditions = [CleaningTask.status == CleaningStatus.DONE]
        if filters.date_from:
            conditions.append(CleaningTask.completed_at >= filters.date_from)
        if filters.date_to:
            conditions.append(CleaningTask.completed_at <= filters.date_to)
        if filters.unit_id:
            conditions.append(CleaningTask.unit_id == filters.unit_id)
        if filters.approved is True:
            conditions.append(CleaningTask.approved_at.is_not(None))
        elif filters.approved is False:
            conditions.append(CleaningTask.approved_at.is_(None))
        return conditions

    async def cleaning_consolidation(
        self, filters: CleaningConsolidationFilters, page: Optional[PageParams] = None
    ) -> tuple[list[CleaningConsolidationRow], int, dict]:
        """DONE tasks by completion date, with the cleaning fee of the stay they followed."""
        conditions = self._consolidation_conditions(filters)
        query = select(CleaningTask).where(*conditions).options(
            selectinload(CleaningTask.unit),
            selectinload(CleaningTask.assigned_to),
            selectinload(CleaningTask.photos),
            selectinload(CleaningTask.reservation).selectinload(Reservation.guest),
        ).order_by(CleaningTask.completed_at.desc())

        total = await self.db.scalar(
            select(func.count(CleaningTask.id)).where(*conditions)
        ) or 0
        if page:
            query = query.offset(page.offset).limit(page.limit)

        tasks = (await self.db.execute(query)).scalars().all()
        rows = [
            CleaningConsolidationRow(
                task_id=task.id,
                unit_code=task.unit.code,
                unit_name=task.unit.name,
                guest_name=task.reservation.guest.full_name if task.reservation else None,
                cleaner_name=task.assigned_to.name if task.assigned_to else None,
                cleaner_email=task.assigned_to.email if task.assigned_to else None,
                scheduled_date=task.scheduled_date,
                started_at=task.started_at,
                completed_at=task.completed_at,
                notes=task.notes,
                cleaning_fee_cents=task.reservation.cleaning_fee_cents if task.reservation else 0,
                approved_at=task.approved_at,
                photo_count=len(task.photos),
            )
            for task in tasks
        ]

        fees_subq = (
            select(
                CleaningTask.approved_at,
                func.coalesce(Reservation.cleaning_fee_cents, 0).label("fee"),
            )
            .select_from(CleaningTask)
            .outerjoin(Reservation, CleaningTask.reservation_id == Reservation.id)
            .where(*conditions)
            .subquery()
        )
        summary_row = (
            await self.db.execute(
                select(
                    func.coalesce(func.sum(fees_subq.c.fee), 0),
                    func.sum(case((fees_subq.c.approved_at.is_not(None), 1), else_=0)),
                )
            )
        ).one()
        summary = {
            "total_tasks": total,
            "total_cleaning_fees_cents": summary_row[0],
            "approved_tasks": summary_row[1] or 0,
        }
        return rows, total, summary

    async def export_cleaning_consolidation(self, filters: CleaningConsolidationFilters) -> str:
        rows, _, _ = await self.cleaning_consolidation(filters)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CLEANING_CSV_HEADER)
        for row in rows:
            writer.writerow([
                row.task_id,
                f"{row.unit_name} ({row.unit_code})",
                row.guest_name or "",
                row.cleaner_name or "",
                _iso(row.scheduled_date),
                _iso(row.started_at),
                _iso(row.completed_at),
                row.notes or "",
                row.photo_count,
                cents_to_amount(row.cleaning_fee_cents),
                _iso(row.approved_at),
            ])
        return buffer.getvalue()

    async def approve_cleanings(
        self, task_ids: list[UUID], notes: Optional[str], actor: AuthenticatedUser
    ) -> int:
        """Stamp DONE tasks as approved for payout. All or nothing."""
        wanted = set(task_ids)
        result = await self.db.execute(
            select(CleaningTask)
            .where(CleaningTask.id.in_(wanted), CleaningTask.status == CleaningStatus.DONE)
            .with_for_update()
        )
        tasks = result.scalars().all()
        if len(tasks) != len(wanted):
            raise ValidationError("Some cleaning tasks not found or not completed")

        now = datetime.utcnow()
        for task in tasks:
            task.approved_at = now
            task.approved_by_id = actor.id
            if notes:
                task.notes = f"{task.notes}\nApproved: {notes}" if task.notes else f"Approved: {notes}"

        await self.db.commit()
        logger.info(f"[FINANCE] {len(tasks)} cleaning tasks approved by {actor.email}")
        return len(tasks)

    async def deposits_summary(
        self, filters: DepositLedgerFilters, page: Optional[PageParams] = None
    ):
        return await DepositService(self.db).ledger(filters, page)

    async def export_deposits_summary(self, filters: DepositLedgerFilters) -> str:
        reservations, _, _ = await DepositService(self.db).ledger(filters)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(DEPOSITS_CSV_HEADER)
        for r in reservations:
            writer.writerow([
                r.id,
                r.guest.full_name,
                f"{r.unit.name} ({r.unit.code})",
                cents_to_amount(r.deposit_amount_cents),
                r.deposit_status.value,
                r.deposit_method or "",
                _iso(r.deposit_paid_at),
                _iso(r.deposit_refunded_at),
                cents_to_amount(r.deposit_refund_cents),
                cents_to_amount(r.deposit_forfeit_cents),
            ])
        return buffer.getvalue()

    async def monthly_report(self, year: int, month: int) -> MonthlyReport:
        start, end = month_bounds(year, month)

        result = await self.db.execute(
            select(Reservation)
            .options(selectinload(Reservation.unit), selectinload(Reservation.guest))
            .where(
                Reservation.status == ReservationStatus.CHECKED_OUT,
                Reservation.check_out >= start,
                Reservation.check_out < end,
            )
            .order_by(Reservation.check_out)
        )
        reservations = result.scalars().all()

        by_unit: dict[UUID, MonthlyUnitRevenue] = {}
        for r in reservations:
            entry = by_unit.get(r.unit_id)
            if entry is None:
                entry = by_unit[r.unit_id] = MonthlyUnitRevenue(
                    unit_id=r.unit_id,
                    unit_code=r.unit.code,
                    unit_name=r.unit.name,
                    reservations=0,
                    revenue_cents=0,
                    cleaning_fees_cents=0,
                )
            entry.reservations += 1
            entry.revenue_cents += r.total_amount_cents
            entry.cleaning_fees_cents += r.cleaning_fee_cents

        total_revenue = sum(r.total_amount_cents for r in reservations)
        total_cleaning = sum(r.cleaning_fee_cents for r in reservations)

        summary = await DepositService(self.db).ledger_summary(
            DepositLedgerFilters(date_from=start, date_to=end - timedelta(microseconds=1))
        )

        return MonthlyReport(
            year=year,
            month=month,
            period_start=start,
            period_end=end,
            total_revenue_cents=total_revenue,
            total_cleaning_fees_cents=total_cleaning,
            net_revenue_cents=total_revenue - total_cleaning,
            reservation_count=len(reservations),
            by_unit=sorted(by_unit.values(), key=lambda u: u.unit_code),
            deposits={
                "total": summary.total_deposits_cents,
                "refunded": summary.total_refunded_cents,
                "forfeited": summary.total_forfeited_cents,
                "net": summary.total_deposits_cents - summary.total_refunded_cents,
            },
            reservations=[
                MonthlyReservationRow(
                    reservation_id=r.id,
                    unit=f"{r.unit.name} ({r.unit.code})",
                    guest=r.guest.full_name,
                    check_in=r.check_in.date(),
                    check_out=r.check_out.date(),
                    total_amount_cents=r.total_amount_cents,
                    cleaning_fee_cents=r.cleaning_fee_cents,
                )
                for r in reservations
            ],
        )
