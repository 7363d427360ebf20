"""Task list ORM model."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from lumo.db.base import Base, TimestampMixin


class TaskList(Base, TimestampMixin):
    """Named list of tasks owned by one user."""

    __tablename__ = "lists"
    __table_args__ = (
        UniqueConstraint("user_id", "title", name="uq_lists_user_id_title"),
        Index("ix_lists_user_id_created_at", "user_id", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    user_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
