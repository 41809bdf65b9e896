"""Users router - staff account management (admin only)."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.database import get_db
from homestay.core.permissions import Capability
from homestay.core.security import AuthenticatedUser, require_capability
from homestay.models.enums import Role
from homestay.routers.deps import page_params
from homestay.schemas.base import ApiResponse, PageParams, Pagination
from homestay.schemas.user import UserCreate, UserResponse, UserUpdate
from homestay.services.users import UserService

router = APIRouter(prefix="/users", tags=["users"])

require_admin = require_capability(Capability.USERS_MANAGE)


@router.get("", response_model=ApiResponse[list[UserResponse]])
async def list_users(
    search: Optional[str] = None,
    role: Optional[Role] = None,
    is_active: Optional[bool] = Query(None),
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_admin),
):
    users, total = await UserService(db).list_users(page, search=search, role=role, is_active=is_active)
    return ApiResponse(
        data=[UserResponse.model_validate(u) for u in users],
        pagination=Pagination.build(page, total),
    )


@router.post("", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_admin),
):
    user = await UserService(db).create(data)
    return ApiResponse(data=UserResponse.model_validate(user), message="User created successfully")


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_admin),
):
    user = await UserService(db).get(user_id)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.put("/{user_id}", response_model=ApiResponse[UserResponse])
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_admin),
):
    user = await UserService(db).update(user_id, data)
    return ApiResponse(data=UserResponse.model_validate(user), message="User updated successfully")


@router.delete("/{user_id}", response_model=ApiResponse[UserResponse])
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_admin),
):
    """Soft delete: the account is deactivated, never removed."""
    user = await UserService(db).deactivate(user_id, current_user.id)
    return ApiResponse(data=UserResponse.model_validate(user), message="User deactivated successfully")
