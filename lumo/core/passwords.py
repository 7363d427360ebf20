"""Password hashing and the account password strength policy."""

from __future__ import annotations

from passlib.context import CryptContext

MIN_PASSWORD_LENGTH = 8


class PasswordHasher:
    """One-way password digests backed by bcrypt."""

    def __init__(self, rounds: int = 12) -> None:
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        """Generate a bcrypt hash for the provided password."""
        return str(self._context.hash(password))

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a plaintext password against the stored bcrypt hash."""
        return bool(self._context.verify(password, password_hash))

    def dummy_verify(self) -> None:
        """Spend roughly one verification worth of time for unknown accounts."""
        self._context.dummy_verify()


def password_policy_violations(password: str) -> list[str]:
    """Return the strength rules the password breaks, empty when it passes."""
    violations: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        violations.append(f"must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not any(char.islower() for char in password):
        violations.append("must contain a lowercase letter")
    if not any(char.isupper() for char in password):
        violations.append("must contain an uppercase letter")
    if not any(char.isdigit() for char in password):
        violations.append("must contain a digit")
    if all(char.isalnum() for char in password):
        violations.append("must contain a symbol")
    return violations
