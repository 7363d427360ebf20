"""Task CRUD with list ownership checks."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from lumo.errors import ValidationError
from lumo.models.task import Task
from lumo.models.task_list import TaskList
from lumo.services.resource_service import ResourceService

logger = structlog.get_logger(__name__)

FOREIGN_LIST_DETAIL = "List not found or does not belong to user."


class TaskService:
    """Owner-scoped task operations.

    A task always sits in a list owned by the same account. The check runs
    when the task is created and again whenever an update moves it to a
    different list. Missing and foreign tasks are both reported as 404.
    """

    def __init__(self, tasks: ResourceService[Task], lists: ResourceService[TaskList]) -> None:
        self._tasks = tasks
        self._lists = lists

    async def create_task(
        self,
        db_session: AsyncSession,
        owner_id: UUID,
        payload: Mapping[str, Any] | None,
    ) -> Task:
        """Create a task in one of the owner's lists."""
        values = self._tasks.validate(payload)
        await self._require_owned_list(db_session, owner_id, values["list_id"])

        task = await self._tasks.create(db_session, payload, user_id=owner_id)
        logger.info("task_created", user_id=str(owner_id), task_id=str(task.id))
        return task

    async def get_task(self, db_session: AsyncSession, owner_id: UUID, task_id: UUID) -> Task:
        return await self._tasks.read_one(db_session, task_id, owner_id=owner_id)

    async def list_tasks(
        self,
        db_session: AsyncSession,
        owner_id: UUID,
        list_id: UUID | None = None,
    ) -> list[Task]:
        """Return the owner's tasks, optionally only those in one of their lists."""
        if list_id is None:
            return await self._tasks.list_all(db_session, owner_id=owner_id)
        await self._lists.read_one(db_session, list_id, owner_id=owner_id)
        return await self._tasks.list_all(db_session, owner_id=owner_id, list_id=list_id)

    async def update_task(
        self,
        db_session: AsyncSession,
        owner_id: UUID,
        task_id: UUID,
        payload: Mapping[str, Any] | None,
    ) -> Task:
        """Apply a partial update to one of the owner's tasks."""
        values = self._tasks.validate(payload, partial=True)
        if "list_id" in values:
            await self._require_owned_list(db_session, owner_id, values["list_id"])

        task = await self._tasks.update(db_session, task_id, payload, owner_id=owner_id)
        logger.info("task_updated", user_id=str(owner_id), task_id=str(task_id))
        return task

    async def delete_task(self, db_session: AsyncSession, owner_id: UUID, task_id: UUID) -> None:
        await self._tasks.delete(db_session, task_id, owner_id=owner_id)
        logger.info("task_deleted", user_id=str(owner_id), task_id=str(task_id))

    async def _require_owned_list(
        self,
        db_session: AsyncSession,
        owner_id: UUID,
        list_id: UUID,
    ) -> None:
        task_list = await self._lists.find_one(db_session, id=list_id, user_id=owner_id)
        if task_list is None:
            raise ValidationError(
                FOREIGN_LIST_DETAIL,
                errors=[{"field": "list", "message": FOREIGN_LIST_DETAIL}],
            )
