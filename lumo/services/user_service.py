"""Account registration, login and profile management."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from lumo.core.passwords import PasswordHasher, password_policy_violations
from lumo.errors import AuthenticationError, ConflictError, FieldViolation, ValidationError
from lumo.models.task_list import TaskList
from lumo.models.user import User
from lumo.schemas.user import LoginRequest, RegistrationRequest
from lumo.services.resource_service import ResourceService, validate_payload
from lumo.services.token_service import TokenService

logger = structlog.get_logger(__name__)

LOGIN_FAILURE_DETAIL = "Email or password are incorrect."


def new_password_violations(
    password: str,
    confirmation: str,
    enforce_policy: bool,
    password_field: str = "password",
    confirmation_field: str = "confirmPassword",
) -> list[FieldViolation]:
    """Check a new password against its confirmation and, optionally, the strength policy."""
    violations: list[FieldViolation] = []
    if password != confirmation:
        violations.append({"field": confirmation_field, "message": "Passwords do not match."})
    if enforce_policy:
        violations.extend(
            {"field": password_field, "message": f"Password {rule}."}
            for rule in password_policy_violations(password)
        )
    return violations


@dataclass(frozen=True)
class LoginResult:
    """Successful login outcome."""

    token: str
    user: User


class UserService:
    """Service responsible for account creation and password authentication."""

    def __init__(
        self,
        accounts: ResourceService[User],
        lists: ResourceService[TaskList],
        hasher: PasswordHasher,
        tokens: TokenService,
        enforce_password_policy: bool = False,
        default_list_title: str = "",
    ) -> None:
        self._accounts = accounts
        self._lists = lists
        self._hasher = hasher
        self._tokens = tokens
        self._enforce_password_policy = enforce_password_policy
        self._default_list_title = default_list_title.strip()

    async def register(self, db_session: AsyncSession, payload: Mapping[str, Any] | None) -> User:
        """Create an account, storing only a digest of its password."""
        request = validate_payload(RegistrationRequest, payload)
        violations = new_password_violations(
            request.password,
            request.confirm_password,
            enforce_policy=self._enforce_password_policy,
        )
        if violations:
            raise ValidationError("Invalid request payload.", errors=violations)

        existing = await self._accounts.find_one(db_session, email=request.email)
        if existing is not None:
            raise ConflictError("Email already registered.")

        try:
            user = await self._accounts.insert(
                db_session,
                {
                    "first_name": request.first_name,
                    "last_name": request.last_name,
                    "age": request.age,
                    "email": request.email,
                    "password_hash": self._hasher.hash(request.password),
                },
            )
            if self._default_list_title:
                await self._lists.insert(
                    db_session,
                    {"title": self._default_list_title, "user_id": user.id},
                )
            await self._accounts.commit(db_session)
        except Exception:
            await self._accounts.rollback(db_session)
            raise

        logger.info("user_registered", user_id=str(user.id))
        return user

    async def authenticate(
        self,
        db_session: AsyncSession,
        email: str,
        password: str,
    ) -> User | None:
        """Return the account when the credentials match, otherwise None."""
        user = await self._accounts.find_one(db_session, email=email)
        if user is None:
            self._hasher.dummy_verify()
            return None
        if not self._hasher.verify(password, user.password_hash):
            return None
        return user

    async def login(
        self,
        db_session: AsyncSession,
        payload: Mapping[str, Any] | None,
    ) -> LoginResult:
        """Authenticate email/password credentials and issue an access token."""
        request = validate_payload(LoginRequest, payload)
        user = await self.authenticate(db_session, request.email, request.password)
        if user is None:
            logger.info("login_failed")
            raise AuthenticationError(LOGIN_FAILURE_DETAIL)
        return LoginResult(token=self._tokens.issue_access_token(user), user=user)

    async def get_profile(self, db_session: AsyncSession, user_id: UUID) -> User:
        """Fetch the account behind an authenticated request."""
        return await self._accounts.read_one(db_session, user_id)

    async def update_profile(
        self,
        db_session: AsyncSession,
        user_id: UUID,
        payload: Mapping[str, Any] | None,
    ) -> User:
        """Change the caller's name or age; other account fields are ignored."""
        user = await self._accounts.update(db_session, user_id, payload)
        logger.info("user_updated", user_id=str(user_id))
        return user

    async def delete_account(self, db_session: AsyncSession, user_id: UUID) -> None:
        """Delete the caller's account together with its lists and tasks."""
        await self._accounts.delete(db_session, user_id)
        logger.info("user_deleted", user_id=str(user_id))
