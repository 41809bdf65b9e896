"""Units router - rentable inventory and availability."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.database import commit_or_conflict, get_db
from homestay.core.errors import ConflictError, NotFoundError
from homestay.core.permissions import Capability
from homestay.core.security import AuthenticatedUser, require_capability
from homestay.models.enums import ACTIVE_RESERVATION_STATUSES
from homestay.models.location import Location, Unit
from homestay.models.reservation import Reservation
from homestay.routers.deps import page_params
from homestay.schemas.base import ApiResponse, PageParams, Pagination, to_naive_utc
from homestay.schemas.location import AvailabilityResponse, UnitCreate, UnitResponse, UnitUpdate
from homestay.services.availability import is_available

router = APIRouter(prefix="/units", tags=["units"])

DUPLICATE_CODE = "Unit code already exists"


async def _get_unit(db: AsyncSession, unit_id: UUID) -> Unit:
    unit = await db.get(Unit, unit_id)
    if not unit:
        raise NotFoundError("Unit not found")
    return unit


async def _ensure_location(db: AsyncSession, location_id: Optional[UUID]) -> None:
    if location_id and not await db.get(Location, location_id):
        raise NotFoundError("Location not found")


@router.get("", response_model=ApiResponse[list[UnitResponse]])
async def list_units(
    search: Optional[str] = None,
    location_id: Optional[UUID] = None,
    active: Optional[bool] = Query(None),
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.UNITS_READ)),
):
    query = select(Unit)
    if search:
        term = f"%{search}%"
        query = query.where(or_(Unit.name.ilike(term), Unit.code.ilike(term), Unit.address.ilike(term)))
    if location_id:
        query = query.where(Unit.location_id == location_id)
    if active is not None:
        query = query.where(Unit.active.is_(active))

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0
    result = await db.execute(query.order_by(Unit.code).offset(page.offset).limit(page.limit))
    return ApiResponse(
        data=[UnitResponse.model_validate(u) for u in result.scalars().all()],
        pagination=Pagination.build(page, total),
    )


@router.post("", response_model=ApiResponse[UnitResponse], status_code=status.HTTP_201_CREATED)
async def create_unit(
    data: UnitCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.UNITS_MANAGE)),
):
    if await db.scalar(select(Unit.id).where(Unit.code == data.code)):
        raise ConflictError(DUPLICATE_CODE)
    await _ensure_location(db, data.location_id)

    unit = Unit(**data.model_dump())
    db.add(unit)
    await commit_or_conflict(db, DUPLICATE_CODE)
    return ApiResponse(data=UnitResponse.model_validate(unit), message="Unit created successfully")


@router.get("/{unit_id}", response_model=ApiResponse[UnitResponse])
async def get_unit(
    unit_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.UNITS_READ)),
):
    unit = await _get_unit(db, unit_id)
    return ApiResponse(data=UnitResponse.model_validate(unit))


@router.get("/{unit_id}/availability", response_model=ApiResponse[AvailabilityResponse])
async def get_unit_availability(
    unit_id: UUID,
    check_in: datetime,
    check_out: datetime,
    exclude_reservation_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.RESERVATIONS_READ)),
):
    """Whether ``[check_in, check_out)`` is free of CONFIRMED/CHECKED_IN stays."""
    await _get_unit(db, unit_id)
    available = await is_available(
        db, unit_id, to_naive_utc(check_in), to_naive_utc(check_out), exclude_reservation_id
    )
    return ApiResponse(data=AvailabilityResponse(unit_id=unit_id, available=available))


@router.put("/{unit_id}", response_model=ApiResponse[UnitResponse])
async def update_unit(
    unit_id: UUID,
    data: UnitUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.UNITS_MANAGE)),
):
    unit = await _get_unit(db, unit_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("code") and changes["code"] != unit.code:
        if await db.scalar(select(Unit.id).where(Unit.code == changes["code"])):
            raise ConflictError(DUPLICATE_CODE)
    if "location_id" in changes:
        await _ensure_location(db, changes["location_id"])

    for field, value in changes.items():
        if field in ("name", "code", "active") and value is None:
            continue
        setattr(unit, field, value)

    await commit_or_conflict(db, DUPLICATE_CODE)
    return ApiResponse(data=UnitResponse.model_validate(unit), message="Unit updated successfully")


@router.delete("/{unit_id}", response_model=ApiResponse[UnitResponse])
async def delete_unit(
    unit_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.UNITS_MANAGE)),
):
    """Soft delete: the unit is deactivated and stops taking bookings."""
    unit = await _get_unit(db, unit_id)
    active_count = await db.scalar(
        select(func.count(Reservation.id)).where(
            Reservation.unit_id == unit_id,
            Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
        )
    )
    if active_count:
        raise ConflictError("Cannot delete unit with active reservations")

    unit.active = False
    await db.commit()
    return ApiResponse(data=UnitResponse.model_validate(unit), message="Unit deleted successfully")
