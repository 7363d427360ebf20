"""Task schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from pydantic import AfterValidator, Field, StringConstraints, model_validator

from lumo.models.task import Task, TaskStatus
from lumo.schemas.common import CamelModel, Title, as_utc

Description = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]
DueDate = Annotated[datetime, AfterValidator(as_utc)]

_NON_NULLABLE_UPDATE_FIELDS = ("title", "status", "list")


class TaskCreate(CamelModel):
    """Task creation payload."""

    title: Title
    description: Description | None = None
    status: TaskStatus = TaskStatus.UNASSIGNED
    due_date: DueDate | None = None
    list_id: UUID = Field(alias="list")


class TaskUpdate(CamelModel):
    """Partial task update; only supplied fields change."""

    title: Title | None = None
    description: Description | None = None
    status: TaskStatus | None = None
    due_date: DueDate | None = None
    list_id: UUID | None = Field(default=None, alias="list")

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data: Any) -> Any:
        """Title, status and list can be changed but never cleared."""
        if isinstance(data, dict):
            for key in _NON_NULLABLE_UPDATE_FIELDS:
                if key in data and data[key] is None:
                    raise ValueError(f"{key} cannot be null")
        return data


class TaskResponse(CamelModel):
    """Task representation returned to clients."""

    id: UUID
    title: str
    description: str | None
    status: TaskStatus
    due_date: datetime | None
    user_id: UUID = Field(alias="user")
    list_id: UUID = Field(alias="list")
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, task: Task) -> TaskResponse:
        """Build the response view of a task row."""
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            due_date=task.due_date,
            user_id=task.user_id,
            list_id=task.list_id,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )
