"""Middleware package exports."""

from lumo.middleware.correlation_id import CorrelationIdMiddleware
from lumo.middleware.logging import LoggingMiddleware
from lumo.middleware.rate_limit import RateLimitMiddleware, RateLimitPolicy

__all__ = [
    "CorrelationIdMiddleware",
    "LoggingMiddleware",
    "RateLimitMiddleware",
    "RateLimitPolicy",
]
