"""Redis-backed sliding-window rate limiting middleware."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4

import structlog
from fastapi import Request
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from lumo.config import RateLimitSettings

logger = structlog.get_logger(__name__)
_WINDOW_SECONDS = 60


class SlidingWindowRedis(Protocol):
    """Protocol for Redis operations used by the rate limiter."""

    async def zremrangebyscore(self, key: str, min: str | int, max: int) -> int:
        """Delete members with score inside an inclusive range."""

    async def zcard(self, key: str) -> int:
        """Return sorted-set cardinality."""

    async def zadd(self, key: str, mapping: dict[str, int]) -> int:
        """Add one or more scored members to sorted set."""

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Apply TTL to key."""


@dataclass(frozen=True)
class RateLimitPolicy:
    """Per-minute request budgets keyed by route family."""

    default_requests_per_minute: int
    login_requests_per_minute: int
    password_reset_requests_per_minute: int
    api_prefix: str = ""

    @classmethod
    def from_settings(cls, settings: RateLimitSettings, api_prefix: str) -> RateLimitPolicy:
        return cls(
            default_requests_per_minute=settings.default_requests_per_minute,
            login_requests_per_minute=settings.login_requests_per_minute,
            password_reset_requests_per_minute=settings.password_reset_requests_per_minute,
            api_prefix=api_prefix,
        )

    def resolve(self, path: str) -> tuple[str, int]:
        """Return the bucket name and limit for a request path.

        Reset-password paths share one bucket so the token in the path
        never reaches Redis keys.
        """
        users = f"{self.api_prefix}/users"
        if path == f"{users}/login":
            return path, self.login_requests_per_minute
        if path == f"{users}/forgot-password":
            return path, self.password_reset_requests_per_minute
        if path.startswith(f"{users}/reset-password/"):
            return f"{users}/reset-password", self.password_reset_requests_per_minute
        return path, self.default_requests_per_minute


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply per-client sliding-window request limits."""

    def __init__(self, app, redis_client: SlidingWindowRedis, policy: RateLimitPolicy) -> None:
        super().__init__(app)
        self._redis = redis_client
        self._policy = policy
        self._window_milliseconds = _WINDOW_SECONDS * 1000

    async def dispatch(self, request: Request, call_next) -> Response:
        """Reject requests exceeding the configured per-minute threshold."""
        bucket, limit = self._policy.resolve(request.url.path)
        bucket_key = f"rate_limit:{bucket}:{self._extract_client_id(request)}"
        now_ms = int(time.time() * 1000)
        window_start = now_ms - self._window_milliseconds

        try:
            await self._redis.zremrangebyscore(bucket_key, "-inf", window_start)
            current_count = await self._redis.zcard(bucket_key)
            if current_count >= limit:
                return JSONResponse(
                    status_code=429,
                    content={"detail": "Rate limit exceeded.", "code": "rate_limited"},
                )

            member = f"{now_ms}:{uuid4()}"
            await self._redis.zadd(bucket_key, {member: now_ms})
            await self._redis.expire(bucket_key, math.ceil(self._window_milliseconds / 1000) + 1)
        except RedisError:
            logger.warning(
                "rate_limit_backend_unavailable",
                bucket=bucket,
                method=request.method,
            )

        return await call_next(request)

    @staticmethod
    def _extract_client_id(request: Request) -> str:
        """Resolve caller identity for per-client bucketing."""
        forwarded_for = request.headers.get("x-forwarded-for", "").strip()
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        client = request.client
        return client.host if client else "unknown"
