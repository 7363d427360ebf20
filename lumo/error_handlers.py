"""Global exception handlers enforcing API error response contracts."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lumo.errors import FieldViolation, ServiceError

_DEFAULT_ERROR_CODE_BY_STATUS: dict[int, str] = {
    400: "validation_error",
    401: "invalid_token",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
    503: "service_unavailable",
}
_REQUEST_LOCATIONS = {"body", "path", "query", "header"}

logger = structlog.get_logger(__name__)


def _error_response(
    status_code: int,
    detail: str,
    code: str,
    errors: list[FieldViolation] | None = None,
) -> JSONResponse:
    """Build standardized JSON error payload."""
    content: dict[str, Any] = {"detail": detail, "code": code}
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content)


def _extract_detail_and_code(detail: Any) -> tuple[str, str | None]:
    """Normalize exception detail payload into message and optional code."""
    if isinstance(detail, dict):
        raw_detail = detail.get("detail", "Request failed.")
        raw_code = detail.get("code")
        return str(raw_detail), str(raw_code) if raw_code is not None else None
    if isinstance(detail, str):
        return detail, None
    return "Request failed.", None


def _sanitize_detail(detail: str, status_code: int, environment: str) -> str:
    """Hide internal failure details outside development."""
    if environment != "development" and status_code >= 500:
        return "Internal server error."
    return detail


def _request_violations(exc: RequestValidationError) -> list[FieldViolation]:
    """List framework validation failures by field, never echoing the input."""
    violations: list[FieldViolation] = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())]
        if location and location[0] in _REQUEST_LOCATIONS and len(location) > 1:
            location = location[1:]
        violations.append(
            {"field": ".".join(location) or "body", "message": str(error.get("msg", ""))}
        )
    return violations


def _extract_client_ip(request: Request) -> str:
    """Extract request client IP with forwarding-header support."""
    forwarded_for = request.headers.get("x-forwarded-for", "").strip()
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    client = request.client
    return client.host if client else "unknown"


def _extract_user_id(request: Request) -> str | None:
    """Extract best-effort user id from request state."""
    user_state = getattr(request.state, "user", None)
    if isinstance(user_state, dict) and user_state.get("user_id"):
        return str(user_state["user_id"])
    return None


def _log_auth_failure(
    request: Request,
    api_prefix: str,
    status_code: int,
    detail: str,
    code: str,
) -> None:
    """Emit a WARNING-level log for client errors on account routes."""
    if status_code < 400 or status_code >= 500:
        return
    if not request.url.path.startswith(f"{api_prefix}/users"):
        return

    correlation_id = getattr(
        request.state,
        "correlation_id",
        request.headers.get("x-correlation-id", "unknown"),
    )
    logger.warning(
        "auth_failure",
        correlation_id=correlation_id,
        event_type="auth_failure",
        user_id=_extract_user_id(request),
        ip_address=_extract_client_ip(request),
        success=False,
        status_code=status_code,
        code=code,
        detail=detail,
        method=request.method,
    )


def register_exception_handlers(app: FastAPI, environment: str, api_prefix: str = "") -> None:
    """Register global exception handlers enforcing error shape contract."""

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        """Render service-layer failures with their status and code."""
        detail = _sanitize_detail(exc.detail, exc.status_code, environment)
        if exc.status_code >= 500:
            logger.error(
                "service_error",
                path=request.url.path,
                method=request.method,
                code=exc.code,
                error=exc.detail,
                cause=repr(exc.__cause__) if exc.__cause__ else None,
            )
        _log_auth_failure(request, api_prefix, exc.status_code, detail, exc.code)
        return _error_response(exc.status_code, detail, exc.code, exc.errors)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Normalize framework HTTP exceptions to contract payload."""
        detail, raw_code = _extract_detail_and_code(exc.detail)
        code = raw_code or _DEFAULT_ERROR_CODE_BY_STATUS.get(exc.status_code, "request_failed")
        _log_auth_failure(request, api_prefix, exc.status_code, detail, code)
        return _error_response(status_code=exc.status_code, detail=detail, code=code)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Map request validation errors to the 400 validation payload."""
        detail = "Invalid request payload."
        code = "validation_error"
        _log_auth_failure(request, api_prefix, 400, detail, code)
        return _error_response(400, detail, code, _request_violations(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        """Mask internal errors and enforce contract payload."""
        correlation_id = getattr(
            request.state,
            "correlation_id",
            request.headers.get("x-correlation-id", "unknown"),
        )
        logger.error(
            "unhandled_exception",
            correlation_id=correlation_id,
            path=request.url.path,
            method=request.method,
            error=str(exc),
        )
        detail = _sanitize_detail(str(exc), 500, environment)
        return _error_response(status_code=500, detail=detail, code="internal_error")
