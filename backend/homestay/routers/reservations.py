"""Reservations router - bookings and the stay lifecycle."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.database import get_db
from homestay.core.permissions import Capability
from homestay.core.security import AuthenticatedUser, require_capability
from homestay.models.enums import ReservationStatus
from homestay.routers.deps import page_params
from homestay.schemas.base import ApiResponse, PageParams, Pagination
from homestay.schemas.reservation import (
    ReservationCancelRequest,
    ReservationCheckInRequest,
    ReservationCheckOutRequest,
    ReservationCreate,
    ReservationDetailResponse,
    ReservationExtendRequest,
    ReservationFilters,
    ReservationResponse,
    ReservationUpdate,
)
from homestay.services.reservations import ReservationService

router = APIRouter(prefix="/reservations", tags=["reservations"])

can_read = require_capability(Capability.RESERVATIONS_READ)
can_write = require_capability(Capability.RESERVATIONS_WRITE)


@router.get("", response_model=ApiResponse[list[ReservationResponse]])
async def list_reservations(
    search: Optional[str] = None,
    status: Optional[ReservationStatus] = None,
    unit_id: Optional[UUID] = None,
    guest_id: Optional[UUID] = None,
    check_in_from: Optional[datetime] = None,
    check_in_to: Optional[datetime] = None,
    check_out_from: Optional[datetime] = None,
    check_out_to: Optional[datetime] = None,
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_read),
):
    filters = ReservationFilters(
        search=search,
        status=status,
        unit_id=unit_id,
        guest_id=guest_id,
        check_in_from=check_in_from,
        check_in_to=check_in_to,
        check_out_from=check_out_from,
        check_out_to=check_out_to,
    )
    reservations, total = await ReservationService(db).list_reservations(filters, page)
    return ApiResponse(
        data=[ReservationResponse.model_validate(r) for r in reservations],
        pagination=Pagination.build(page, total),
    )


@router.post("", response_model=ApiResponse[ReservationResponse], status_code=201)
async def create_reservation(
    data: ReservationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_write),
):
    reservation = await ReservationService(db).create(data, current_user)
    return ApiResponse(
        data=ReservationResponse.model_validate(reservation),
        message="Reservation created successfully",
    )


@router.get("/{reservation_id}", response_model=ApiResponse[ReservationDetailResponse])
async def get_reservation(
    reservation_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_read),
):
    reservation = await ReservationService(db).get(reservation_id, with_events=True)
    return ApiResponse(data=ReservationDetailResponse.model_validate(reservation))


@router.put("/{reservation_id}", response_model=ApiResponse[ReservationResponse])
async def update_reservation(
    reservation_id: UUID,
    data: ReservationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_write),
):
    reservation = await ReservationService(db).update(reservation_id, data)
    return ApiResponse(
        data=ReservationResponse.model_validate(reservation),
        message="Reservation updated successfully",
    )


@router.post("/{reservation_id}/confirm", response_model=ApiResponse[ReservationResponse])
async def confirm_reservation(
    reservation_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_write),
):
    reservation = await ReservationService(db).confirm(reservation_id)
    return ApiResponse(data=ReservationResponse.model_validate(reservation), message="Reservation confirmed")


@router.post("/{reservation_id}/check-in", response_model=ApiResponse[ReservationResponse])
async def check_in_reservation(
    reservation_id: UUID,
    data: Optional[ReservationCheckInRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_write),
):
    actual = data.actual_check_in if data else None
    reservation = await ReservationService(db).check_in(reservation_id, current_user, actual)
    return ApiResponse(data=ReservationResponse.model_validate(reservation), message="Guest checked in")


@router.post("/{reservation_id}/check-out", response_model=ApiResponse[ReservationResponse])
async def check_out_reservation(
    reservation_id: UUID,
    data: Optional[ReservationCheckOutRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_write),
):
    """Check the guest out. A PENDING cleaning task is queued for the unit."""
    actual = data.actual_check_out if data else None
    reservation = await ReservationService(db).check_out(reservation_id, current_user, actual)
    return ApiResponse(data=ReservationResponse.model_validate(reservation), message="Guest checked out")


@router.post("/{reservation_id}/extend", response_model=ApiResponse[ReservationResponse])
async def extend_reservation(
    reservation_id: UUID,
    data: ReservationExtendRequest,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_write),
):
    reservation = await ReservationService(db).extend(reservation_id, data.new_check_out, data.reason)
    return ApiResponse(data=ReservationResponse.model_validate(reservation), message="Reservation extended")


@router.post("/{reservation_id}/cancel", response_model=ApiResponse[ReservationResponse])
async def cancel_reservation(
    reservation_id: UUID,
    data: Optional[ReservationCancelRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_write),
):
    reason = data.reason if data else None
    reservation = await ReservationService(db).cancel(reservation_id, reason)
    return ApiResponse(data=ReservationResponse.model_validate(reservation), message="Reservation canceled")


@router.delete("/{reservation_id}", response_model=ApiResponse[None])
async def delete_reservation(
    reservation_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.RESERVATIONS_DELETE)),
):
    await ReservationService(db).delete(reservation_id)
    return ApiResponse(message="Reservation deleted successfully")
