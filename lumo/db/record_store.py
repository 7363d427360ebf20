"""Generic CRUD persistence over one mapped entity type."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import ColumnElement, Select, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lumo.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class RecordStoreError(Exception):
    """Raised when the database fails an operation."""


class ConstraintViolationError(RecordStoreError):
    """Raised when a write breaks a unique, foreign-key or check constraint."""


class RecordStore(Generic[ModelT]):
    """Create, read, update, delete and find rows of a single model.

    Writes are flushed but never committed; the calling service owns the
    transaction. Every method takes the request-scoped session explicitly.
    """

    def __init__(self, model: type[ModelT]) -> None:
        self._model = model

    @property
    def model(self) -> type[ModelT]:
        """Mapped class this store persists."""
        return self._model

    async def create(self, db_session: AsyncSession, values: Mapping[str, Any]) -> ModelT:
        """Insert one row and flush so generated columns are populated."""
        record = self._model(**values)
        db_session.add(record)
        await self._flush(db_session)
        return record

    async def read(
        self,
        db_session: AsyncSession,
        record_id: UUID,
        for_update: bool = False,
    ) -> ModelT | None:
        """Fetch one row by primary key."""
        return await self.find_one(db_session, for_update=for_update, id=record_id)

    async def find_one(
        self,
        db_session: AsyncSession,
        for_update: bool = False,
        **filters: Any,
    ) -> ModelT | None:
        """Fetch the first row whose columns equal the given values.

        A locking read also refreshes an instance already in the session, so
        callers see the committed row rather than a value loaded earlier.
        """
        statement = select(self._model).filter_by(**filters)
        if for_update:
            statement = statement.with_for_update().execution_options(populate_existing=True)
        rows = await self._scalars(db_session, statement.limit(1))
        return rows[0] if rows else None

    async def find_all(
        self,
        db_session: AsyncSession,
        *criteria: ColumnElement[bool],
        **filters: Any,
    ) -> list[ModelT]:
        """Fetch every matching row, oldest first."""
        statement = (
            select(self._model)
            .where(*criteria)
            .filter_by(**filters)
            .order_by(self._model.created_at, self._model.id)
        )
        return await self._scalars(db_session, statement)

    async def update(
        self,
        db_session: AsyncSession,
        record_id: UUID,
        values: Mapping[str, Any],
        **scope: Any,
    ) -> ModelT | None:
        """Lock one row, apply the given column values and flush."""
        record = await self.find_one(db_session, for_update=True, id=record_id, **scope)
        if record is None:
            return None
        for key, value in values.items():
            setattr(record, key, value)
        await self._flush(db_session)
        return record

    async def delete(
        self,
        db_session: AsyncSession,
        record_id: UUID,
        **scope: Any,
    ) -> ModelT | None:
        """Delete one row and return it, or None when nothing matched."""
        record = await self.find_one(db_session, for_update=True, id=record_id, **scope)
        if record is None:
            return None
        await db_session.delete(record)
        await self._flush(db_session)
        return record

    @staticmethod
    async def commit(db_session: AsyncSession) -> None:
        """Commit the session's transaction."""
        try:
            await db_session.commit()
        except IntegrityError as exc:
            raise ConstraintViolationError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise RecordStoreError(str(exc)) from exc

    @staticmethod
    async def rollback(db_session: AsyncSession) -> None:
        """Roll back the session's transaction."""
        try:
            await db_session.rollback()
        except SQLAlchemyError as exc:
            raise RecordStoreError(str(exc)) from exc

    async def _scalars(self, db_session: AsyncSession, statement: Select[Any]) -> list[ModelT]:
        try:
            result = await db_session.execute(statement)
        except SQLAlchemyError as exc:
            raise RecordStoreError(str(exc)) from exc
        return list(result.scalars().all())

    @staticmethod
    async def _flush(db_session: AsyncSession) -> None:
        try:
            await db_session.flush()
        except IntegrityError as exc:
            raise ConstraintViolationError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise RecordStoreError(str(exc)) from exc
