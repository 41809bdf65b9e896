"""Finance router - dashboard, payouts, deposits and monthly reports."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.database import get_db
from homestay.core.permissions import Capability
from homestay.core.security import AuthenticatedUser, require_capability
from homestay.routers.deposits import ledger_filters
from homestay.routers.deps import csv_response, page_params
from homestay.schemas.base import ApiResponse, PageParams, Pagination
from homestay.schemas.deposit import DepositLedgerEntry, DepositLedgerFilters
from homestay.schemas.finance import (
    CleaningApproveRequest,
    CleaningConsolidationFilters,
    CleaningConsolidationRow,
    DashboardResponse,
    MonthlyReport,
    PeriodQuery,
    StatsBucket,
    StatsPoint,
)
from homestay.services.finance import FinanceService

router = APIRouter(prefix="/finance", tags=["finance"])

can_read = require_capability(Capability.FINANCE_READ)


def consolidation_filters(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    unit_id: Optional[UUID] = None,
    approved: Optional[bool] = None,
) -> CleaningConsolidationFilters:
    return CleaningConsolidationFilters(
        date_from=date_from, date_to=date_to, unit_id=unit_id, approved=approved
    )


@router.get("/dashboard", response_model=ApiResponse[DashboardResponse])
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_read),
):
    return ApiResponse(data=await FinanceService(db).dashboard())


@router.get("/stats", response_model=ApiResponse[list[StatsPoint]])
async def get_stats(
    start: datetime,
    end: datetime,
    bucket: StatsBucket = StatsBucket.DAY,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_read),
):
    query = PeriodQuery(start=start, end=end, bucket=bucket)
    points = await FinanceService(db).period_stats(query.start, query.end, query.bucket)
    return ApiResponse(data=points)


@router.get("/cleanings", response_model=ApiResponse[list[CleaningConsolidationRow]])
async def get_cleaning_consolidation(
    filters: CleaningConsolidationFilters = Depends(consolidation_filters),
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_read),
):
    """Completed cleanings for payout, with fee totals over all matches."""
    rows, total, summary = await FinanceService(db).cleaning_consolidation(filters, page)
    return ApiResponse(data=rows, pagination=Pagination.build(page, total), summary=summary)


@router.get("/cleanings/export")
async def export_cleaning_consolidation(
    filters: CleaningConsolidationFilters = Depends(consolidation_filters),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_read),
):
    content = await FinanceService(db).export_cleaning_consolidation(filters)
    return csv_response(content, f"cleanings-{datetime.utcnow():%Y-%m-%d}.csv")


@router.post("/cleanings/approve", response_model=ApiResponse[dict])
async def approve_cleanings(
    data: CleaningApproveRequest,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.FINANCE_APPROVE)),
):
    approved = await FinanceService(db).approve_cleanings(data.task_ids, data.notes, current_user)
    return ApiResponse(data={"approved": approved}, message=f"{approved} cleaning tasks approved")


@router.get("/deposits", response_model=ApiResponse[list[DepositLedgerEntry]])
async def get_deposits_summary(
    filters: DepositLedgerFilters = Depends(ledger_filters),
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_read),
):
    reservations, total, summary = await FinanceService(db).deposits_summary(filters, page)
    return ApiResponse(
        data=[DepositLedgerEntry.from_reservation(r) for r in reservations],
        pagination=Pagination.build(page, total),
        summary=summary.model_dump(),
    )


@router.get("/deposits/export")
async def export_deposits_summary(
    filters: DepositLedgerFilters = Depends(ledger_filters),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_read),
):
    content = await FinanceService(db).export_deposits_summary(filters)
    return csv_response(content, f"deposits-{datetime.utcnow():%Y-%m-%d}.csv")


@router.get("/reports/monthly", response_model=ApiResponse[MonthlyReport])
async def get_monthly_report(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_read),
):
    return ApiResponse(data=await FinanceService(db).monthly_report(year, month))
