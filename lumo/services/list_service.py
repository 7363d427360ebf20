"""Task list creation and lookup, scoped to the owning account."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from lumo.errors import ConflictError
from lumo.models.task_list import TaskList
from lumo.services.resource_service import ResourceService

logger = structlog.get_logger(__name__)

DUPLICATE_LIST_DETAIL = "A list with this title already exists."


class ListService:
    """Owner-scoped operations on task lists."""

    def __init__(self, lists: ResourceService[TaskList]) -> None:
        self._lists = lists

    async def create_list(
        self,
        db_session: AsyncSession,
        owner_id: UUID,
        payload: Mapping[str, Any] | None,
    ) -> TaskList:
        """Create a list for the owner; titles are unique per owner."""
        values = self._lists.validate(payload)
        existing = await self._lists.find_one(db_session, user_id=owner_id, title=values["title"])
        if existing is not None:
            raise ConflictError(DUPLICATE_LIST_DETAIL)

        task_list = await self._lists.create(db_session, payload, user_id=owner_id)
        logger.info("list_created", user_id=str(owner_id), list_id=str(task_list.id))
        return task_list

    async def list_lists(self, db_session: AsyncSession, owner_id: UUID) -> list[TaskList]:
        """Return the owner's lists, oldest first."""
        return await self._lists.list_all(db_session, owner_id=owner_id)

    async def get_list(self, db_session: AsyncSession, owner_id: UUID, list_id: UUID) -> TaskList:
        """Return one of the owner's lists or raise NotFoundError."""
        return await self._lists.read_one(db_session, list_id, owner_id=owner_id)
