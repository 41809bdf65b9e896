"""Finance and dashboard schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import Field, model_validator

from homestay.schemas.base import BaseSchema, UTCDateTime


class StatsBucket(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class DashboardToday(BaseSchema):
    arrivals: int
    departures: int
    occupancy_rate: float
    total_units: int
    occupied_units: int


class DashboardMonth(BaseSchema):
    revenue_cents: int
    cleaning_fees_cents: int
    reservations: int
    deposits_collected_cents: int
    deposits_refunded_cents: int
    deposits_forfeited_cents: int


class DashboardResponse(BaseSchema):
    today: DashboardToday
    month: DashboardMonth
    pending_cleanings: int
    overdue_cleanings: int


class StatsPoint(BaseSchema):
    period_start: date
    reservations: int
    checked_out: int
    canceled: int
    revenue_cents: int


class PeriodQuery(BaseSchema):
    start: UTCDateTime
    end: UTCDateTime
    bucket: StatsBucket = StatsBucket.DAY

    @model_validator(mode="after")
    def validate_range(self):
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class CleaningConsolidationFilters(BaseSchema):
    """Filters over DONE tasks; the date range applies to completion time."""

    date_from: Optional[UTCDateTime] = None
    date_to: Optional[UTCDateTime] = None
    unit_id: Optional[UUID] = None
    approved: Optional[bool] = None


class CleaningConsolidationRow(BaseSchema):
    task_id: UUID
    unit_code: str
    unit_name: str
    guest_name: Optional[str] = None
    cleaner_name: Optional[str] = None
    cleaner_email: Optional[str] = None
    scheduled_date: datetime
    started_at: Optional[datetime] = None
    completed_at: datetime
    notes: Optional[str] = None
    cleaning_fee_cents: int
    approved_at: Optional[datetime] = None
    photo_count: int


class CleaningApproveRequest(BaseSchema):
    task_ids: list[UUID] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=2000)


class MonthlyUnitRevenue(BaseSchema):
    unit_id: UUID
    unit_code: str
    unit_name: str
    reservations: int
    revenue_cents: int
    cleaning_fees_cents: int


class MonthlyReservationRow(BaseSchema):
    reservation_id: UUID
    unit: str
    guest: str
    check_in: date
    check_out: date
    total_amount_cents: int
    cleaning_fee_cents: int


class MonthlyReport(BaseSchema):
    year: int
    month: int
    period_start: datetime
    period_end: datetime
    total_revenue_cents: int
    total_cleaning_fees_cents: int
    net_revenue_cents: int
    reservation_count: int
    by_unit: list[MonthlyUnitRevenue]
    deposits: dict[str, int]
    reservations: list[MonthlyReservationRow] = []
