"""Shared Redis client."""

from __future__ import annotations

from functools import lru_cache

from redis import asyncio as redis_async
from redis.asyncio.client import Redis

from lumo.config import get_settings


@lru_cache
def get_redis_client() -> Redis:
    """Create and cache the Redis client used for rate limiting and readiness checks."""
    settings = get_settings()
    return redis_async.from_url(settings.redis.url, decode_responses=True)
