"""Cleanings router - turnover tasks for cleaners."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from homestay.core.database import get_db
from homestay.core.permissions import Capability
from homestay.core.security import AuthenticatedUser, require_capability
from homestay.models.enums import CleaningStatus
from homestay.routers.deps import page_params
from homestay.schemas.base import ApiResponse, PageParams, Pagination
from homestay.schemas.cleaning import (
    CleaningAssignRequest,
    CleaningCompleteRequest,
    CleaningFailRequest,
    CleaningFilters,
    CleaningTaskResponse,
    CleaningUpdateRequest,
)
from homestay.services.cleanings import CleaningService

router = APIRouter(prefix="/cleanings", tags=["cleanings"])

can_manage = require_capability(Capability.CLEANINGS_MANAGE)
can_work = require_capability(Capability.CLEANINGS_WORK)


@router.get("", response_model=ApiResponse[list[CleaningTaskResponse]])
async def list_cleanings(
    status: Optional[CleaningStatus] = None,
    unit_id: Optional[UUID] = None,
    assigned_to_id: Optional[UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.CLEANINGS_READ)),
):
    filters = CleaningFilters(
        status=status,
        unit_id=unit_id,
        assigned_to_id=assigned_to_id,
        date_from=date_from,
        date_to=date_to,
    )
    tasks, total = await CleaningService(db).list_tasks(filters, page)
    return ApiResponse(
        data=[CleaningTaskResponse.model_validate(t) for t in tasks],
        pagination=Pagination.build(page, total),
    )


@router.get("/my-tasks", response_model=ApiResponse[list[CleaningTaskResponse]])
async def my_tasks(
    status: Optional[CleaningStatus] = None,
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_work),
):
    """Tasks assigned to the calling cleaner."""
    tasks, total = await CleaningService(db).my_tasks(current_user, page, status)
    return ApiResponse(
        data=[CleaningTaskResponse.model_validate(t) for t in tasks],
        pagination=Pagination.build(page, total),
    )


@router.get("/{task_id}", response_model=ApiResponse[CleaningTaskResponse])
async def get_cleaning(
    task_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_capability(Capability.CLEANINGS_READ)),
):
    task = await CleaningService(db).get(task_id)
    return ApiResponse(data=CleaningTaskResponse.model_validate(task))


@router.post("/{task_id}/assign", response_model=ApiResponse[CleaningTaskResponse])
async def assign_cleaning(
    task_id: UUID,
    data: CleaningAssignRequest,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_manage),
):
    task = await CleaningService(db).assign(task_id, data)
    return ApiResponse(data=CleaningTaskResponse.model_validate(task), message="Cleaning task assigned")


@router.put("/{task_id}", response_model=ApiResponse[CleaningTaskResponse])
async def update_cleaning(
    task_id: UUID,
    data: CleaningUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_manage),
):
    task = await CleaningService(db).update(task_id, data)
    return ApiResponse(data=CleaningTaskResponse.model_validate(task), message="Cleaning task updated")


@router.post("/{task_id}/fail", response_model=ApiResponse[CleaningTaskResponse])
async def fail_cleaning(
    task_id: UUID,
    data: CleaningFailRequest,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_manage),
):
    task = await CleaningService(db).mark_failed(task_id, data.reason)
    return ApiResponse(data=CleaningTaskResponse.model_validate(task), message="Cleaning task marked as failed")


@router.post("/{task_id}/start", response_model=ApiResponse[CleaningTaskResponse])
async def start_cleaning(
    task_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_work),
):
    task = await CleaningService(db).start(task_id, current_user)
    return ApiResponse(data=CleaningTaskResponse.model_validate(task), message="Cleaning started")


@router.post("/{task_id}/complete", response_model=ApiResponse[CleaningTaskResponse])
async def complete_cleaning(
    task_id: UUID,
    data: Optional[CleaningCompleteRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(can_work),
):
    task = await CleaningService(db).complete(task_id, current_user, data or CleaningCompleteRequest())
    return ApiResponse(data=CleaningTaskResponse.model_validate(task), message="Cleaning completed")
