"""Store-backed CRUD shared by every resource service."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import ColumnElement
from sqlalchemy.ext.asyncio import AsyncSession

from lumo.db.base import Base
from lumo.db.record_store import ConstraintViolationError, RecordStore, RecordStoreError
from lumo.errors import (
    ConflictError,
    FieldViolation,
    InternalError,
    NotFoundError,
    ValidationError,
)

ModelT = TypeVar("ModelT", bound=Base)
SchemaT = TypeVar("SchemaT", bound=BaseModel)

INTERNAL_ERROR_DETAIL = "Internal server error, try again later."


def field_violations(exc: PydanticValidationError) -> list[FieldViolation]:
    """Flatten pydantic errors into field/message pairs without echoing input."""
    violations: list[FieldViolation] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        violations.append({"field": location or "body", "message": str(error.get("msg", ""))})
    return violations


def validate_payload(schema: type[SchemaT], payload: Mapping[str, Any] | None) -> SchemaT:
    """Validate a raw request payload against a schema or raise ValidationError."""
    try:
        return schema.model_validate(dict(payload or {}))
    except PydanticValidationError as exc:
        raise ValidationError("Invalid request payload.", errors=field_violations(exc)) from exc


class ResourceService(Generic[ModelT]):
    """CRUD over one record store with validation, owner scoping and error mapping.

    Concrete services compose one instance per entity type and call the
    pieces they need. Owner-scoped lookups report "not yours" exactly like
    "does not exist".
    """

    def __init__(
        self,
        store: RecordStore[ModelT],
        label: str,
        create_schema: type[BaseModel] | None = None,
        update_schema: type[BaseModel] | None = None,
        owner_field: str | None = "user_id",
        conflict_detail: str | None = None,
    ) -> None:
        self._store = store
        self._label = label
        self._create_schema = create_schema
        self._update_schema = update_schema
        self._owner_field = owner_field
        self._conflict_detail = conflict_detail or f"{label} already exists."

    @property
    def label(self) -> str:
        """Human-readable resource name used in error messages."""
        return self._label

    def validate(self, payload: Mapping[str, Any] | None, partial: bool = False) -> dict[str, Any]:
        """Validate a payload and return the column values it sets."""
        if partial:
            if self._update_schema is None:
                raise ValidationError(f"{self._label} cannot be updated.")
            model = validate_payload(self._update_schema, payload)
            return model.model_dump(exclude_unset=True)
        if self._create_schema is None:
            raise ValidationError(f"{self._label} cannot be created.")
        return validate_payload(self._create_schema, payload).model_dump()

    async def find_one(
        self,
        db_session: AsyncSession,
        for_update: bool = False,
        **filters: Any,
    ) -> ModelT | None:
        """Return the first record matching the filters, or None."""
        with self._store_errors():
            return await self._store.find_one(db_session, for_update=for_update, **filters)

    async def find_all(
        self,
        db_session: AsyncSession,
        *criteria: ColumnElement[bool],
        **filters: Any,
    ) -> list[ModelT]:
        """Return every record matching the criteria and filters."""
        with self._store_errors():
            return await self._store.find_all(db_session, *criteria, **filters)

    async def read_one(
        self,
        db_session: AsyncSession,
        record_id: UUID,
        owner_id: UUID | None = None,
        for_update: bool = False,
    ) -> ModelT:
        """Return one record or raise NotFoundError."""
        record = await self.find_one(
            db_session,
            for_update=for_update,
            id=record_id,
            **self._scope(owner_id),
        )
        if record is None:
            raise NotFoundError(f"{self._label} not found.")
        return record

    async def list_all(
        self,
        db_session: AsyncSession,
        owner_id: UUID | None = None,
        **filters: Any,
    ) -> list[ModelT]:
        """Return the records visible to an owner, optionally filtered further."""
        return await self.find_all(db_session, **self._scope(owner_id), **filters)

    async def insert(self, db_session: AsyncSession, values: Mapping[str, Any]) -> ModelT:
        """Insert already-validated values without committing."""
        with self._store_errors():
            return await self._store.create(db_session, values)

    async def create(
        self,
        db_session: AsyncSession,
        payload: Mapping[str, Any] | None,
        **extra: Any,
    ) -> ModelT:
        """Validate, insert and commit a new record."""
        values = self.validate(payload)
        values.update(extra)
        try:
            record = await self.insert(db_session, values)
            await self.commit(db_session)
        except Exception:
            await self.rollback(db_session)
            raise
        return record

    async def apply(
        self,
        db_session: AsyncSession,
        record_id: UUID,
        values: Mapping[str, Any],
        owner_id: UUID | None = None,
    ) -> ModelT:
        """Write already-validated values to one record without committing."""
        with self._store_errors():
            record = await self._store.update(
                db_session,
                record_id,
                values,
                **self._scope(owner_id),
            )
        if record is None:
            raise NotFoundError(f"{self._label} not found.")
        return record

    async def update(
        self,
        db_session: AsyncSession,
        record_id: UUID,
        payload: Mapping[str, Any] | None,
        owner_id: UUID | None = None,
    ) -> ModelT:
        """Validate a partial payload, apply it and commit."""
        values = self.validate(payload, partial=True)
        try:
            record = await self.apply(db_session, record_id, values, owner_id=owner_id)
            await self.commit(db_session)
        except Exception:
            await self.rollback(db_session)
            raise
        return record

    async def delete(
        self,
        db_session: AsyncSession,
        record_id: UUID,
        owner_id: UUID | None = None,
    ) -> None:
        """Delete one record and commit, or raise NotFoundError."""
        try:
            with self._store_errors():
                record = await self._store.delete(db_session, record_id, **self._scope(owner_id))
            if record is None:
                raise NotFoundError(f"{self._label} not found.")
            await self.commit(db_session)
        except Exception:
            await self.rollback(db_session)
            raise

    async def commit(self, db_session: AsyncSession) -> None:
        """Commit the current transaction, mapping store failures."""
        with self._store_errors():
            await self._store.commit(db_session)

    async def rollback(self, db_session: AsyncSession) -> None:
        """Roll back the current transaction, mapping store failures."""
        with self._store_errors():
            await self._store.rollback(db_session)

    def _scope(self, owner_id: UUID | None) -> dict[str, Any]:
        if owner_id is None or self._owner_field is None:
            return {}
        return {self._owner_field: owner_id}

    @contextmanager
    def _store_errors(self) -> Iterator[None]:
        """Translate store exceptions into the service error taxonomy."""
        try:
            yield
        except ConstraintViolationError as exc:
            raise ConflictError(self._conflict_detail) from exc
        except RecordStoreError as exc:
            raise InternalError(INTERNAL_ERROR_DETAIL) from exc
