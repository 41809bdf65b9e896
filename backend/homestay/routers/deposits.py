"""Deposits router - security deposit workflow and ledger."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.database import get_db
from homestay.core.permissions import Capability
from homestay.core.security import AuthenticatedUser, require_capability
from homestay.models.enums import DepositStatus
from homestay.routers.deps import csv_response, page_params
from homestay.schemas.base import ApiResponse, PageParams, Pagination
from homestay.schemas.deposit import (
    DepositCollectIn,
    DepositEventResponse,
    DepositFailIn,
    DepositForfeitIn,
    DepositHoldIn,
    DepositLedgerEntry,
    DepositLedgerFilters,
    DepositRefundIn,
    DepositRequestIn,
)
from homestay.schemas.reservation import ReservationDetailResponse
from homestay.services.deposits import DepositService

router = APIRouter(prefix="/deposits", tags=["deposits"])

can_manage = require_capability(Capability.DEPOSITS_MANAGE)
can_view_ledger = require_capability(Capability.DEPOSITS_LEDGER)


def ledger_filters(
    status: Optional[DepositStatus] = None,
    method: Optional[str] = None,
    unit_id: Optional[UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> DepositLedgerFilters:
    return DepositLedgerFilters(
        status=status, method=method, unit_id=unit_id, date_from=date_from, date_to=date_to
    )


@router.get("/ledger", response_model=ApiResponse[list[DepositLedgerEntry]])
async def get_ledger(
    filters: DepositLedgerFilters = Depends(ledger_filters),
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_view_ledger),
):
    reservations, total, summary = await DepositService(db).ledger(filters, page)
    return ApiResponse(
        data=[DepositLedgerEntry.from_reservation(r) for r in reservations],
        pagination=Pagination.build(page, total),
        summary=summary.model_dump(),
    )


@router.get("/ledger/export")
async def export_ledger(
    filters: DepositLedgerFilters = Depends(ledger_filters),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_view_ledger),
):
    content = await DepositService(db).export_csv(filters)
    return csv_response(content, f"deposit-ledger-{datetime.utcnow():%Y-%m-%d}.csv")


@router.get("/reservations/{reservation_id}/events", response_model=ApiResponse[list[DepositEventResponse]])
async def list_events(
    reservation_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_manage),
):
    events = await DepositService(db).events(reservation_id)
    return ApiResponse(data=[DepositEventResponse.model_validate(e) for e in events])


@router.post("/reservations/{reservation_id}/request", response_model=ApiResponse[ReservationDetailResponse])
async def request_deposit(
    reservation_id: UUID,
    data: DepositRequestIn,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_manage),
):
    reservation = await DepositService(db).request(
        reservation_id, data.amount_cents, data.reason, current_user
    )
    return ApiResponse(data=ReservationDetailResponse.model_validate(reservation), message="Deposit requested")


@router.post("/reservations/{reservation_id}/collect", response_model=ApiResponse[ReservationDetailResponse])
async def collect_deposit(
    reservation_id: UUID,
    data: DepositCollectIn,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_manage),
):
    reservation = await DepositService(db).collect(reservation_id, data, current_user)
    return ApiResponse(data=ReservationDetailResponse.model_validate(reservation), message="Deposit collected")


@router.post("/reservations/{reservation_id}/hold", response_model=ApiResponse[ReservationDetailResponse])
async def hold_deposit(
    reservation_id: UUID,
    data: Optional[DepositHoldIn] = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(
        require_capability(Capability.DEPOSITS_MANAGE, Capability.DEPOSITS_OVERRIDE)
    ),
):
    reason = data.reason if data else None
    reservation = await DepositService(db).hold(reservation_id, reason, current_user)
    return ApiResponse(data=ReservationDetailResponse.model_validate(reservation), message="Deposit held")


@router.post("/reservations/{reservation_id}/refund", response_model=ApiResponse[ReservationDetailResponse])
async def refund_deposit(
    reservation_id: UUID,
    data: DepositRefundIn,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_manage),
):
    reservation = await DepositService(db).refund(reservation_id, data, current_user)
    return ApiResponse(data=ReservationDetailResponse.model_validate(reservation), message="Deposit refunded")


@router.post("/reservations/{reservation_id}/forfeit", response_model=ApiResponse[ReservationDetailResponse])
async def forfeit_deposit(
    reservation_id: UUID,
    data: DepositForfeitIn,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_manage),
):
    reservation = await DepositService(db).forfeit(reservation_id, data, current_user)
    return ApiResponse(data=ReservationDetailResponse.model_validate(reservation), message="Deposit forfeited")


@router.post("/reservations/{reservation_id}/fail", response_model=ApiResponse[ReservationDetailResponse])
async def fail_deposit(
    reservation_id: UUID,
    data: Optional[DepositFailIn] = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_manage),
):
    reason = data.reason if data else None
    reservation = await DepositService(db).fail(reservation_id, reason, current_user)
    return ApiResponse(
        data=ReservationDetailResponse.model_validate(reservation), message="Deposit marked as failed"
    )
