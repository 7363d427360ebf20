"""Password reset lifecycle: request, emailed link, verification and consumption.

An account is ``ResetPending`` while it stores the digest of a live reset
token. Requesting a reset again overwrites the stored digest, so only the
most recently issued token can ever be consumed. Confirming a reset
requires the token to verify on its own (signature, type, embedded expiry)
and to match the stored digest and stored expiry; consuming it clears both
fields.

Mail delivery happens inside the transaction that stores the token. When
delivery fails the transaction is rolled back, so the account never keeps
a token its owner did not receive. The reverse case remains: when the
commit fails after the email went out, the emailed link names a token that
was never stored and is rejected like any other invalid token.
"""

from __future__ import annotations

import hmac
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from hashlib import sha256
from typing import Any
from urllib.parse import urlencode
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from lumo.core.jwt import TokenSigner, TokenValidationError
from lumo.core.mailer import MailDeliveryError, MailSender
from lumo.core.passwords import PasswordHasher
from lumo.errors import InternalError, NotFoundError, ValidationError
from lumo.models.user import User
from lumo.schemas.user import ForgotPasswordRequest, ResetPasswordRequest
from lumo.services.resource_service import ResourceService, validate_payload
from lumo.services.user_service import new_password_violations

logger = structlog.get_logger(__name__)

INVALID_TOKEN_DETAIL = "Invalid or expired token."
INVALID_TOKEN_CODE = "invalid_reset_token"


class PasswordResetService:
    """Issue, deliver and consume single-use password reset tokens."""

    def __init__(
        self,
        accounts: ResourceService[User],
        hasher: PasswordHasher,
        signer: TokenSigner,
        mail_sender: MailSender,
        frontend_base_url: str,
        token_ttl_seconds: int = 3600,
        send_confirmation_email: bool = True,
        enforce_password_policy: bool = False,
    ) -> None:
        self._accounts = accounts
        self._hasher = hasher
        self._signer = signer
        self._mail_sender = mail_sender
        self._frontend_base_url = frontend_base_url.rstrip("/")
        self._token_ttl_seconds = token_ttl_seconds
        self._send_confirmation_email = send_confirmation_email
        self._enforce_password_policy = enforce_password_policy

    async def request_reset(
        self,
        db_session: AsyncSession,
        payload: Mapping[str, Any] | None,
    ) -> None:
        """Store a fresh reset token for the account and email its link."""
        request = validate_payload(ForgotPasswordRequest, payload)
        user = await self._accounts.find_one(db_session, email=request.email)
        if user is None:
            raise NotFoundError("No account is registered with that email.")

        user_id = user.id
        token, expires_at = self._issue_reset_token(user_id)
        try:
            await self._accounts.apply(
                db_session,
                user_id,
                {"reset_token_hash": self._hash_token(token), "reset_expires_at": expires_at},
            )
            await self._mail_sender.send(
                to_email=user.email,
                subject="Reset your Lumo password",
                body=self._reset_email_body(user, self.reset_link(token)),
            )
            await self._accounts.commit(db_session)
        except MailDeliveryError as exc:
            await self._accounts.rollback(db_session)
            logger.error("password_reset_email_failed", user_id=str(user_id), error=str(exc))
            raise InternalError(
                "Could not send the password reset email, try again later."
            ) from exc
        except Exception:
            await self._accounts.rollback(db_session)
            raise

        logger.info("password_reset_requested", user_id=str(user_id))

    async def confirm_reset(
        self,
        db_session: AsyncSession,
        token: str,
        payload: Mapping[str, Any] | None,
    ) -> User:
        """Consume a reset token and replace the account password."""
        request = validate_payload(ResetPasswordRequest, payload)
        violations = new_password_violations(
            request.new_password,
            request.confirm_password,
            enforce_policy=self._enforce_password_policy,
            password_field="newPassword",
        )
        if violations:
            raise ValidationError("Invalid request payload.", errors=violations)

        normalized_token = token.strip()
        user_id = self._verify_reset_token(normalized_token)
        try:
            user = await self._accounts.find_one(db_session, for_update=True, id=user_id)
            if not self._matches_pending_reset(user, normalized_token):
                logger.info("password_reset_rejected", reason="stale_token")
                raise self._invalid_token()

            await self._accounts.apply(
                db_session,
                user.id,
                {
                    "password_hash": self._hasher.hash(request.new_password),
                    "reset_token_hash": None,
                    "reset_expires_at": None,
                },
            )
            await self._accounts.commit(db_session)
        except Exception:
            await self._accounts.rollback(db_session)
            raise

        logger.info("password_reset_completed", user_id=str(user.id))
        if self._send_confirmation_email:
            await self._send_confirmation(user)
        return user

    async def purge_expired(self, db_session: AsyncSession, now: datetime | None = None) -> int:
        """Clear reset fields whose expiry has passed and return how many were cleared.

        Each candidate row is locked and its expiry checked again, so a reset
        requested after the scan keeps its fresh token.
        """
        cutoff = now or datetime.now(UTC)
        expired = await self._accounts.find_all(db_session, User.reset_expires_at <= cutoff)
        cleared = 0
        try:
            for candidate in expired:
                user = await self._accounts.find_one(db_session, for_update=True, id=candidate.id)
                if user is None or user.reset_expires_at is None:
                    continue
                if user.reset_expires_at > cutoff:
                    continue
                await self._accounts.apply(
                    db_session,
                    user.id,
                    {"reset_token_hash": None, "reset_expires_at": None},
                )
                cleared += 1
            await self._accounts.commit(db_session)
        except Exception:
            await self._accounts.rollback(db_session)
            raise
        return cleared

    def reset_link(self, token: str) -> str:
        """Build the frontend link that carries a reset token."""
        return f"{self._frontend_base_url}/reset-password?{urlencode({'token': token})}"

    def _issue_reset_token(self, user_id: UUID) -> tuple[str, datetime]:
        """Issue a signed reset token with the configured TTL."""
        token = self._signer.issue_token(
            subject=str(user_id),
            token_type="password_reset",
            expires_in_seconds=self._token_ttl_seconds,
        )
        expires_at = datetime.now(UTC) + timedelta(seconds=self._token_ttl_seconds)
        return token, expires_at

    def _verify_reset_token(self, token: str) -> UUID:
        """Verify signature, type and embedded expiry; return the subject."""
        if not token:
            raise self._invalid_token()
        try:
            claims = self._signer.verify_token(token, expected_type="password_reset")
            return UUID(str(claims["sub"]))
        except (TokenValidationError, ValueError) as exc:
            logger.info("password_reset_rejected", reason="unverifiable_token")
            raise self._invalid_token() from exc

    def _matches_pending_reset(self, user: User | None, token: str) -> bool:
        """Check the token is the one currently stored and still unexpired."""
        if user is None or user.reset_token_hash is None or user.reset_expires_at is None:
            return False
        if user.reset_expires_at <= datetime.now(UTC):
            return False
        return hmac.compare_digest(user.reset_token_hash, self._hash_token(token))

    async def _send_confirmation(self, user: User) -> None:
        """Tell the owner their password changed; the reset stands even if this fails."""
        try:
            await self._mail_sender.send(
                to_email=user.email,
                subject="Your Lumo password was changed",
                body=(
                    f"Hi {user.first_name},\n\n"
                    "Your Lumo password was just changed. If you did not do this, "
                    "request a new reset link right away.\n"
                ),
            )
        except MailDeliveryError as exc:
            logger.warning(
                "password_reset_confirmation_email_failed",
                user_id=str(user.id),
                error=str(exc),
            )

    def _reset_email_body(self, user: User, link: str) -> str:
        minutes = max(self._token_ttl_seconds // 60, 1)
        return (
            f"Hi {user.first_name},\n\n"
            "We received a request to reset your Lumo password. "
            f"Open this link within {minutes} minutes to choose a new one:\n\n"
            f"{link}\n\n"
            "If you did not ask for this, you can ignore this email.\n"
        )

    @staticmethod
    def _hash_token(token: str) -> str:
        """Hash reset token for database storage."""
        return sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def _invalid_token() -> ValidationError:
        return ValidationError(INVALID_TOKEN_DETAIL, code=INVALID_TOKEN_CODE)
