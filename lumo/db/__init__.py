"""Database package exports."""

from lumo.db.base import Base
from lumo.db.record_store import ConstraintViolationError, RecordStore, RecordStoreError
from lumo.db.session import dispose_engine, get_db_session, get_engine, get_session_factory

__all__ = [
    "Base",
    "ConstraintViolationError",
    "RecordStore",
    "RecordStoreError",
    "dispose_engine",
    "get_db_session",
    "get_engine",
    "get_session_factory",
]
