"""Async SQLAlchemy engine and request-scoped sessions."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from lumo.config import get_settings


@lru_cache
def get_engine() -> AsyncEngine:
    """Build and cache the async SQLAlchemy engine."""
    settings = get_settings()
    return create_async_engine(settings.database.url, pool_pre_ping=True)


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Build and cache the async session factory.

    Services commit explicitly, and instances stay readable after commit so
    routers can serialize them without another round trip.
    """
    return async_sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request and roll back whatever it left uncommitted.

    A request that fails after a service flushed rows, but before it
    committed, must not leave that transaction open on the pooled connection.
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            if session.in_transaction():
                await session.rollback()
            raise


async def dispose_engine() -> None:
    """Dispose the SQLAlchemy engine and close pooled connections."""
    await get_engine().dispose()
