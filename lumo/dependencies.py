"""Shared FastAPI dependency helpers."""

from __future__ import annotations

import hmac
from collections.abc import AsyncGenerator
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from lumo.db.session import get_db_session
from lumo.errors import AuthenticationError, NotFoundError
from lumo.services.registry import ServiceRegistry


async def get_database_session() -> AsyncGenerator[AsyncSession, None]:
    """Expose the request-scoped session, passing handler failures through to it."""
    sessions = get_db_session()
    session = await anext(sessions)
    try:
        yield session
    except Exception as exc:
        await sessions.athrow(exc)
        raise
    finally:
        await sessions.aclose()


def get_services(request: Request) -> ServiceRegistry:
    """Return the service registry built when the application started."""
    return request.app.state.services


def _extract_bearer_token(request: Request) -> str | None:
    """Extract bearer token from Authorization header."""
    authorization = request.headers.get("authorization", "").strip()
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if not hmac.compare_digest(scheme.lower(), "bearer"):
        return None
    stripped = token.strip()
    return stripped or None


def get_current_user_id(request: Request) -> UUID:
    """Resolve the account behind the request's bearer access token."""
    token = _extract_bearer_token(request)
    if token is None:
        raise AuthenticationError("Invalid token.", code="invalid_token")
    user_id = get_services(request).tokens.authenticate(token)
    request.state.user = {"user_id": str(user_id)}
    return user_id


def ensure_same_owner(claimed_user_id: Any, current_user_id: UUID) -> None:
    """Answer 404 when a request names an account other than the caller's."""
    if claimed_user_id is None:
        return
    try:
        claimed = UUID(str(claimed_user_id))
    except ValueError as exc:
        raise NotFoundError("User not found.") from exc
    if claimed != current_user_id:
        raise NotFoundError("User not found.")
