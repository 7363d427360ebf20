"""Account, login and password reset schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import Field, StringConstraints, model_validator

from lumo.models.user import User
from lumo.schemas.common import CamelModel, Email, Name, Password

_PROFILE_FIELDS = ("firstName", "first_name", "lastName", "last_name", "age")


class RegistrationRequest(CamelModel):
    """Account registration payload."""

    first_name: Name
    last_name: Name
    age: int = Field(ge=0, le=150)
    email: Email
    password: Password
    confirm_password: Password


class UserUpdate(CamelModel):
    """Partial profile update; credentials and email are not editable here."""

    first_name: Name | None = None
    last_name: Name | None = None
    age: int | None = Field(default=None, ge=0, le=150)

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for key, value in data.items():
                if value is None and key in _PROFILE_FIELDS:
                    raise ValueError(f"{key} cannot be null")
        return data


class RegistrationResponse(CamelModel):
    """Identity of the newly created account."""

    id: UUID


class LoginRequest(CamelModel):
    """Password login payload; any non-empty email is looked up as-is."""

    email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=320)]
    password: Password


class LoginResponse(CamelModel):
    """Access token issued on successful login."""

    token: str
    user_id: UUID
    token_type: Literal["bearer"] = "bearer"


class ForgotPasswordRequest(CamelModel):
    """Password reset request payload."""

    email: Email


class ResetPasswordRequest(CamelModel):
    """New credentials submitted with a reset token."""

    new_password: Password
    confirm_password: Password


class UserResponse(CamelModel):
    """Public account fields."""

    id: UUID
    first_name: str
    last_name: str
    age: int
    email: str
    created_at: datetime | None = None

    @classmethod
    def from_record(cls, user: User) -> UserResponse:
        """Build the public view of an account row."""
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            age=user.age,
            email=user.email,
            created_at=user.created_at,
        )
