"""Account routes: registration, login, profile management and password reset."""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lumo.dependencies import (
    ensure_same_owner,
    get_current_user_id,
    get_database_session,
    get_services,
)
from lumo.schemas.common import MessageResponse
from lumo.schemas.user import LoginResponse, RegistrationResponse, UserResponse
from lumo.services.registry import ServiceRegistry

router = APIRouter(prefix="/users", tags=["users"])

Payload = Annotated[dict[str, Any] | None, Body()]
DatabaseSession = Annotated[AsyncSession, Depends(get_database_session)]
Services = Annotated[ServiceRegistry, Depends(get_services)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]


@router.post("", status_code=201, response_model=RegistrationResponse)
async def register(
    db_session: DatabaseSession,
    services: Services,
    payload: Payload = None,
) -> RegistrationResponse:
    """Create an account."""
    user = await services.users.register(db_session, payload)
    return RegistrationResponse(id=user.id)


@router.post("/login", response_model=LoginResponse)
async def login(
    db_session: DatabaseSession,
    services: Services,
    payload: Payload = None,
) -> LoginResponse:
    """Exchange email and password for an access token."""
    result = await services.users.login(db_session, payload)
    return LoginResponse(token=result.token, user_id=result.user.id)


@router.get("/me", response_model=UserResponse)
async def read_profile(
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
) -> UserResponse:
    """Return the caller's own account."""
    user = await services.users.get_profile(db_session, user_id)
    return UserResponse.from_record(user)


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
    payload: Payload = None,
) -> UserResponse:
    """Change the caller's name or age."""
    user = await services.users.update_profile(db_session, user_id, payload)
    return UserResponse.from_record(user)


@router.delete("/me", response_model=MessageResponse)
async def delete_account(
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
) -> MessageResponse:
    """Delete the caller's account, lists and tasks."""
    await services.users.delete_account(db_session, user_id)
    return MessageResponse(message="Account deleted.")


@router.get("/profile/{profile_id}", response_model=UserResponse)
async def read_profile_by_id(
    profile_id: str,
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
) -> UserResponse:
    """Return an account by id; only the caller's own id resolves."""
    ensure_same_owner(profile_id, user_id)
    user = await services.users.get_profile(db_session, user_id)
    return UserResponse.from_record(user)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    db_session: DatabaseSession,
    services: Services,
    payload: Payload = None,
) -> MessageResponse:
    """Email a password reset link to the account owner."""
    await services.password_resets.request_reset(db_session, payload)
    return MessageResponse(message="Password reset email sent.")


@router.post("/reset-password/{token}", response_model=MessageResponse)
async def reset_password(
    token: str,
    db_session: DatabaseSession,
    services: Services,
    payload: Payload = None,
) -> MessageResponse:
    """Consume a reset token and set a new password."""
    await services.password_resets.confirm_reset(db_session, token, payload)
    return MessageResponse(message="Password has been reset.")
