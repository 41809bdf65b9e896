"""Cleaning task workflow.

PENDING -> ASSIGNED -> IN_PROGRESS -> DONE. FAILED is an administrative
override from any state short of DONE.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from homestay.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from homestay.core.security import AuthenticatedUser
from homestay.models.cleaning import CleaningPhoto, CleaningTask
from homestay.models.enums import CleaningStatus, Role
from homestay.models.reservation import Reservation
from homestay.models.user import User
from homestay.schemas.base import PageParams
from homestay.schemas.cleaning import (
    CleaningAssignRequest,
    CleaningCompleteRequest,
    CleaningFilters,
    CleaningUpdateRequest,
)

logger = logging.getLogger(__name__)

ASSIGNABLE_STATUSES = (CleaningStatus.PENDING, CleaningStatus.ASSIGNED)


class CleaningService:
    """Cleaning task operations. Each public mutator commits its own transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _query(self):
        return select(CleaningTask).options(
            selectinload(CleaningTask.unit),
            selectinload(CleaningTask.assigned_to),
            selectinload(CleaningTask.photos),
        )

    async def get(self, task_id: UUID) -> CleaningTask:
        result = await self.db.execute(
            self._query()
            .where(CleaningTask.id == task_id)
            .execution_options(populate_existing=True)
        )
        task = result.scalar_one_or_none()
        if not task:
            raise NotFoundError("Cleaning task not found")
        return task

    async def _get_for_update(self, task_id: UUID) -> CleaningTask:
        result = await self.db.execute(
            select(CleaningTask).where(CleaningTask.id == task_id).with_for_update()
        )
        task = result.scalar_one_or_none()
        if not task:
            raise NotFoundError("Cleaning task not found")
        return task

    async def list_tasks(
        self, filters: CleaningFilters, page: PageParams
    ) -> tuple[list[CleaningTask], int]:
        query = self._query()
        if filters.status:
            query = query.where(CleaningTask.status == filters.status)
        if filters.unit_id:
            query = query.where(CleaningTask.unit_id == filters.unit_id)
        if filters.assigned_to_id:
            query = query.where(CleaningTask.assigned_to_id == filters.assigned_to_id)
        if filters.date_from:
            query = query.where(CleaningTask.scheduled_date >= filters.date_from)
        if filters.date_to:
            query = query.where(CleaningTask.scheduled_date <= filters.date_to)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        result = await self.db.execute(
            query.order_by(CleaningTask.scheduled_date.desc()).offset(page.offset).limit(page.limit)
        )
        return list(result.scalars().all()), total or 0

    async def my_tasks(
        self,
        actor: AuthenticatedUser,
        page: PageParams,
        status: Optional[CleaningStatus] = None,
    ) -> tuple[list[CleaningTask], int]:
        filters = CleaningFilters(status=status, assigned_to_id=actor.id)
        return await self.list_tasks(filters, page)

    def create_for_checkout(self, reservation: Reservation) -> CleaningTask:
        """Queue a PENDING task for the unit; the caller commits."""
        task = CleaningTask(
            reservation_id=reservation.id,
            unit_id=reservation.unit_id,
            status=CleaningStatus.PENDING,
            scheduled_date=reservation.actual_check_out or datetime.utcnow(),
        )
        self.db.add(task)
        return task

    async def assign(self, task_id: UUID, data: CleaningAssignRequest) -> CleaningTask:
        task = await self._get_for_update(task_id)

        user = await self.db.get(User, data.user_id)
        if not user or not user.is_active:
            raise NotFoundError("Assigned user not found or inactive")
        if user.role != Role.CLEANER:
            raise ValidationError("Assigned user must be a cleaner")

        if task.status not in ASSIGNABLE_STATUSES:
            raise ConflictError(f"Cannot assign a task in status {task.status.value}")

        task.assigned_to_id = user.id
        task.status = CleaningStatus.ASSIGNED
        if data.scheduled_date:
            task.scheduled_date = data.scheduled_date
        if data.notes is not None:
            task.notes = data.notes

        await self.db.commit()
        logger.info(f"[CLEANING] Task {task.id} assigned to {user.email}")
        return await self.get(task.id)

    async def start(self, task_id: UUID, actor: AuthenticatedUser) -> CleaningTask:
        task = await self._get_for_update(task_id)

        if task.assigned_to_id != actor.id:
            raise AuthorizationError("You can only start tasks assigned to you")
        if task.status != CleaningStatus.ASSIGNED:
            raise ConflictError("Only assigned tasks can be started")

        task.status = CleaningStatus.IN_PROGRESS
        task.started_at = datetime.utcnow()

        await self.db.commit()
        logger.info(f"[CLEANING] Task {task.id} started by {actor.email}")
        return await self.get(task.id)

    async def complete(
        self, task_id: UUID, actor: AuthenticatedUser, data: CleaningCompleteRequest
    ) -> CleaningTask:
        task = await self._get_for_update(task_id)

        if task.assigned_to_id != actor.id:
            raise AuthorizationError("You can only complete tasks assigned to you")
        if task.status != CleaningStatus.IN_PROGRESS:
            raise ConflictError("Only in-progress tasks can be completed")

        task.status = CleaningStatus.DONE
        task.completed_at = datetime.utcnow()
        if data.notes is not None:
            task.notes = data.notes

        for url in data.photo_urls:
            self.db.add(CleaningPhoto(cleaning_task_id=task.id, url=url, uploaded_by_id=actor.id))

        await self.db.commit()
        logger.info(f"[CLEANING] Task {task.id} completed by {actor.email} ({len(data.photo_urls)} photos)")
        return await self.get(task.id)

    async def mark_failed(self, task_id: UUID, reason: str) -> CleaningTask:
        task = await self._get_for_update(task_id)

        if task.status in (CleaningStatus.DONE, CleaningStatus.FAILED):
            raise ConflictError(f"Cannot fail a task in status {task.status.value}")

        task.status = CleaningStatus.FAILED
        task.failure_reason = reason

        await self.db.commit()
        logger.warning(f"[CLEANING] Task {task.id} marked failed: {reason}")
        return await self.get(task.id)

    async def update(self, task_id: UUID, data: CleaningUpdateRequest) -> CleaningTask:
        task = await self._get_for_update(task_id)

        changes = data.model_dump(exclude_unset=True)
        if changes.get("scheduled_date", task.scheduled_date) is None:
            raise ValidationError("scheduled_date cannot be cleared")
        for field, value in changes.items():
            setattr(task, field, value)

        await self.db.commit()
        return await self.get(task.id)
