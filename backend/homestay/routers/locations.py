"""Locations router - sites grouping units."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.database import commit_or_conflict, get_db
from homestay.core.errors import ConflictError, NotFoundError
from homestay.core.permissions import Capability
from homestay.core.security import AuthenticatedUser, require_capability
from homestay.models.location import Location, Unit
from homestay.schemas.base import ApiResponse
from homestay.schemas.location import LocationCreate, LocationResponse, LocationUpdate

router = APIRouter(prefix="/locations", tags=["locations"])


async def _get_location(db: AsyncSession, location_id: UUID) -> Location:
    location = await db.get(Location, location_id)
    if not location:
        raise NotFoundError("Location not found")
    return location


@router.get("", response_model=ApiResponse[list[LocationResponse]])
async def list_locations(
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.UNITS_READ)),
):
    result = await db.execute(select(Location).order_by(Location.name))
    return ApiResponse(data=[LocationResponse.model_validate(loc) for loc in result.scalars().all()])


@router.post("", response_model=ApiResponse[LocationResponse], status_code=status.HTTP_201_CREATED)
async def create_location(
    data: LocationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.UNITS_MANAGE)),
):
    location = Location(**data.model_dump())
    db.add(location)
    await commit_or_conflict(db, "Location name already exists")
    return ApiResponse(data=LocationResponse.model_validate(location), message="Location created successfully")


@router.get("/{location_id}", response_model=ApiResponse[LocationResponse])
async def get_location(
    location_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.UNITS_READ)),
):
    location = await _get_location(db, location_id)
    return ApiResponse(data=LocationResponse.model_validate(location))


@router.put("/{location_id}", response_model=ApiResponse[LocationResponse])
async def update_location(
    location_id: UUID,
    data: LocationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.UNITS_MANAGE)),
):
    location = await _get_location(db, location_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(location, field, value)
    await commit_or_conflict(db, "Location name already exists")
    return ApiResponse(data=LocationResponse.model_validate(location), message="Location updated successfully")


@router.delete("/{location_id}", response_model=ApiResponse[None])
async def delete_location(
    location_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.UNITS_MANAGE)),
):
    location = await _get_location(db, location_id)
    unit_count = await db.scalar(select(func.count(Unit.id)).where(Unit.location_id == location_id))
    if unit_count:
        raise ConflictError("Cannot delete location with units")
    await db.delete(location)
    await db.commit()
    return ApiResponse(message="Location deleted successfully")
