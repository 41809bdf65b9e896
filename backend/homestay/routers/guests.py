"""Guests router - customer profiles."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.database import commit_or_conflict, get_db
from homestay.core.errors import ConflictError, NotFoundError
from homestay.core.permissions import Capability
from homestay.core.security import AuthenticatedUser, require_capability
from homestay.models.guest import Guest
from homestay.models.reservation import Reservation
from homestay.routers.deps import page_params
from homestay.schemas.base import ApiResponse, PageParams, Pagination
from homestay.schemas.guest import GuestCreate, GuestResponse, GuestUpdate

router = APIRouter(prefix="/guests", tags=["guests"])

DUPLICATE_EMAIL = "Guest with this email already exists"


async def _get_guest(db: AsyncSession, guest_id: UUID) -> Guest:
    guest = await db.get(Guest, guest_id)
    if not guest:
        raise NotFoundError("Guest not found")
    return guest


async def _ensure_email_free(db: AsyncSession, email: Optional[str], guest_id: Optional[UUID] = None) -> None:
    if not email:
        return
    existing = await db.scalar(select(Guest.id).where(func.lower(Guest.email) == email.lower()))
    if existing and existing != guest_id:
        raise ConflictError(DUPLICATE_EMAIL)


@router.get("", response_model=ApiResponse[list[GuestResponse]])
async def list_guests(
    search: Optional[str] = None,
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.GUESTS_READ)),
):
    query = select(Guest)
    if search:
        term = f"%{search}%"
        query = query.where(
            or_(Guest.full_name.ilike(term), Guest.email.ilike(term), Guest.phone.ilike(term))
        )

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0
    result = await db.execute(query.order_by(Guest.full_name).offset(page.offset).limit(page.limit))
    return ApiResponse(
        data=[GuestResponse.model_validate(g) for g in result.scalars().all()],
        pagination=Pagination.build(page, total),
    )


@router.post("", response_model=ApiResponse[GuestResponse], status_code=status.HTTP_201_CREATED)
async def create_guest(
    data: GuestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.GUESTS_WRITE)),
):
    await _ensure_email_free(db, data.email)
    guest = Guest(**data.model_dump())
    db.add(guest)
    await commit_or_conflict(db, DUPLICATE_EMAIL)
    return ApiResponse(data=GuestResponse.model_validate(guest), message="Guest created successfully")


@router.get("/{guest_id}", response_model=ApiResponse[GuestResponse])
async def get_guest(
    guest_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.GUESTS_READ)),
):
    guest = await _get_guest(db, guest_id)
    return ApiResponse(data=GuestResponse.model_validate(guest))


@router.put("/{guest_id}", response_model=ApiResponse[GuestResponse])
async def update_guest(
    guest_id: UUID,
    data: GuestUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.GUESTS_WRITE)),
):
    guest = await _get_guest(db, guest_id)
    changes = data.model_dump(exclude_unset=True)
    if "email" in changes:
        await _ensure_email_free(db, changes["email"], guest.id)

    for field, value in changes.items():
        if field == "full_name" and value is None:
            continue
        setattr(guest, field, value)

    await commit_or_conflict(db, DUPLICATE_EMAIL)
    return ApiResponse(data=GuestResponse.model_validate(guest), message="Guest updated successfully")


@router.delete("/{guest_id}", response_model=ApiResponse[None])
async def delete_guest(
    guest_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.GUESTS_DELETE)),
):
    guest = await _get_guest(db, guest_id)
    reservation_count = await db.scalar(
        select(func.count(Reservation.id)).where(Reservation.guest_id == guest_id)
    )
    if reservation_count:
        raise ConflictError("Cannot delete guest with existing reservations")

    await db.delete(guest)
    await db.commit()
    return ApiResponse(message="Guest deleted successfully")
