"""Task list schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from lumo.models.task_list import TaskList
from lumo.schemas.common import CamelModel, Title


class TaskListCreate(CamelModel):
    """List creation payload."""

    title: Title


class TaskListResponse(CamelModel):
    """List representation returned to clients."""

    id: UUID
    title: str
    user_id: UUID = Field(alias="user")
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, task_list: TaskList) -> TaskListResponse:
        """Build the response view of a list row."""
        return cls(
            id=task_list.id,
            title=task_list.title,
            user_id=task_list.user_id,
            created_at=task_list.created_at,
            updated_at=task_list.updated_at,
        )
