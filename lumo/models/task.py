"""Task ORM model."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from lumo.db.base import Base, TimestampMixin


class TaskStatus(str, Enum):
    """Progress states a task moves through."""

    UNASSIGNED = "Unassigned"
    ON_GOING = "On-going"
    DONE = "Done"


def _status_values(enum_cls: type[TaskStatus]) -> list[str]:
    """Store enum values instead of enum member names."""
    return [member.value for member in enum_cls]


class Task(Base, TimestampMixin):
    """Unit of work filed under one of its owner's lists."""

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_user_id_list_id", "user_id", "list_id"),
    )

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[TaskStatus] = mapped_column(
        SAEnum(
            TaskStatus,
            name="task_status",
            values_callable=_status_values,
            validate_strings=True,
        ),
        nullable=False,
        default=TaskStatus.UNASSIGNED,
    )
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    user_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    list_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("lists.id", ondelete="CASCADE"), nullable=False
    )
