"""Service-layer error taxonomy shared by every resource."""

from __future__ import annotations

from typing import TypedDict


class FieldViolation(TypedDict):
    """One input problem reported back to the caller."""

    field: str
    message: str


class ServiceError(Exception):
    """Base class for failures that cross the service boundary."""

    status_code = 500
    default_code = "internal_error"

    def __init__(
        self,
        detail: str,
        code: str | None = None,
        errors: list[FieldViolation] | None = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code or self.default_code
        self.errors = errors or []


class ValidationError(ServiceError):
    """Malformed or missing input."""

    status_code = 400
    default_code = "validation_error"


class AuthenticationError(ServiceError):
    """Bad credentials or an unusable access token."""

    status_code = 401
    default_code = "invalid_credentials"


class NotFoundError(ServiceError):
    """Missing resource, or one the caller does not own."""

    status_code = 404
    default_code = "not_found"


class ConflictError(ServiceError):
    """Uniqueness violation."""

    status_code = 409
    default_code = "conflict"


class InternalError(ServiceError):
    """Store, mail or signing infrastructure failure."""

    status_code = 500
    default_code = "internal_error"
