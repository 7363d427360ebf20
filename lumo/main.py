"""FastAPI application factory.

Run with ``uvicorn lumo.main:create_app --factory``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lumo.config import Settings, configure_structlog, get_settings
from lumo.core.redis import get_redis_client
from lumo.db.session import dispose_engine
from lumo.error_handlers import register_exception_handlers
from lumo.middleware import (
    CorrelationIdMiddleware,
    LoggingMiddleware,
    RateLimitMiddleware,
    RateLimitPolicy,
)
from lumo.routers import health, lists, tasks, users
from lumo.services.registry import ServiceRegistry, build_service_registry


@asynccontextmanager
async def _lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    await dispose_engine()


def create_app(
    settings: Settings | None = None,
    services: ServiceRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_structlog(settings)

    app = FastAPI(title=settings.app.service, lifespan=_lifespan)
    app.state.settings = settings
    app.state.services = services or build_service_registry(settings)

    if settings.rate_limit.enabled:
        app.add_middleware(
            RateLimitMiddleware,
            redis_client=get_redis_client(),
            policy=RateLimitPolicy.from_settings(settings.rate_limit, settings.app.api_prefix),
        )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(app, settings.app.environment, settings.app.api_prefix)

    prefix = settings.app.api_prefix
    app.include_router(users.router, prefix=prefix)
    app.include_router(lists.router, prefix=prefix)
    app.include_router(tasks.router, prefix=prefix)
    app.include_router(health.router, prefix=prefix)
    return app
