"""Access token issuance and verification."""

from __future__ import annotations

from uuid import UUID

from lumo.core.jwt import TokenSigner, TokenValidationError
from lumo.errors import AuthenticationError
from lumo.models.user import User


class TokenService:
    """Issue access tokens on login and resolve them back to an account id."""

    def __init__(self, signer: TokenSigner, access_token_ttl_seconds: int) -> None:
        self._signer = signer
        self._access_token_ttl_seconds = access_token_ttl_seconds

    def issue_access_token(self, user: User) -> str:
        """Issue an access token embedding the account id and email."""
        return self._signer.issue_token(
            subject=str(user.id),
            token_type="access",
            expires_in_seconds=self._access_token_ttl_seconds,
            additional_claims={"email": user.email},
        )

    def authenticate(self, token: str) -> UUID:
        """Return the account id an access token was issued to."""
        try:
            claims = self._signer.verify_token(token, expected_type="access")
            return UUID(str(claims["sub"]))
        except TokenValidationError as exc:
            raise AuthenticationError(exc.detail, code=exc.code) from exc
        except ValueError as exc:
            raise AuthenticationError("Invalid token.", code="invalid_token") from exc
