"""Shared integration-test fixtures using Postgres and Redis testcontainers."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any

import pytest
from alembic import command
from alembic.config import Config
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from testcontainers.postgres import PostgresContainer
from testcontainers.redis import RedisContainer

from docker.errors import DockerException


def _generate_rsa_keypair() -> tuple[str, str]:
    """Generate PEM-encoded RSA private/public keypair for integration settings."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("utf-8")
    )
    return private_pem, public_pem


def _clear_dependency_caches() -> None:
    """Clear cached settings, engine and Redis client between test phases."""
    from lumo.config import get_settings
    from lumo.core.redis import get_redis_client
    from lumo.db.session import get_engine, get_session_factory

    get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()
    get_redis_client.cache_clear()


async def _dispose_async_singletons() -> None:
    """Dispose loop-bound async resources before changing event loops."""
    from lumo.core.redis import get_redis_client
    from lumo.db.session import dispose_engine, get_engine

    if get_redis_client.cache_info().currsize:
        await get_redis_client().aclose()
    if get_engine.cache_info().currsize:
        await dispose_engine()


def _redis_connection_url(redis: RedisContainer) -> str:
    """Return a redis:// URL across testcontainers versions."""
    host = redis.get_container_host_ip()
    port = redis.get_exposed_port(6379)
    return f"redis://{host}:{port}/0"


def _postgres_async_url(postgres: PostgresContainer) -> str:
    """Return a postgresql+asyncpg URL across testcontainers versions."""
    try:
        postgres_url = postgres.get_connection_url(driver=None)
    except TypeError:
        postgres_url = postgres.get_connection_url()

    if postgres_url.startswith("postgresql+"):
        postgres_url = "postgresql://" + postgres_url.split("://", 1)[1]

    return postgres_url.replace("postgresql://", "postgresql+asyncpg://", 1)


def _set_env_values(env_values: dict[str, str]) -> Callable[[], None]:
    """Apply env vars and return a restore callback."""
    original = {key: os.environ.get(key) for key in env_values}
    os.environ.update(env_values)

    def _restore() -> None:
        for key, value in original.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    return _restore


@pytest.fixture(scope="session")
def integration_env() -> Iterator[dict[str, str]]:
    """Start Postgres/Redis containers and configure app settings for integration tests."""
    try:
        postgres = PostgresContainer("postgres:16")
        redis = RedisContainer("redis:7")
        postgres.start()
        redis.start()
    except DockerException as exc:
        if os.environ.get("CI", "").lower() in {"1", "true", "yes"}:
            pytest.fail(
                f"Docker daemon unavailable in CI for testcontainers-backed integration tests: {exc}"
            )
        pytest.skip(f"Docker daemon unavailable for testcontainers-backed integration tests: {exc}")

    private_pem, public_pem = _generate_rsa_keypair()
    database_url = _postgres_async_url(postgres)
    redis_url = _redis_connection_url(redis)

    restore_env = _set_env_values(
        {
            "APP__ENVIRONMENT": "development",
            "APP__LOG_LEVEL": "INFO",
            "DATABASE__URL": database_url,
            "REDIS__URL": redis_url,
            "JWT__PRIVATE_KEY_PEM": private_pem,
            "JWT__PUBLIC_KEY_PEM": public_pem,
            "JWT__ACCESS_TOKEN_TTL_SECONDS": "900",
            "PASSWORD_RESET__FRONTEND_BASE_URL": "http://localhost:5173",
            "ACCOUNTS__BCRYPT_ROUNDS": "4",
            "RATE_LIMIT__DEFAULT_REQUESTS_PER_MINUTE": "10000",
            "RATE_LIMIT__LOGIN_REQUESTS_PER_MINUTE": "10000",
            "RATE_LIMIT__PASSWORD_RESET_REQUESTS_PER_MINUTE": "10000",
        }
    )
    _clear_dependency_caches()

    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_cfg, "head")

    try:
        yield {"database_url": database_url, "redis_url": redis_url}
    finally:
        try:
            _clear_dependency_caches()
        finally:
            restore_env()
            postgres.stop()
            redis.stop()


@pytest.fixture(scope="function", autouse=True)
async def reset_state(integration_env: dict[str, str]) -> AsyncIterator[None]:
    """Clear DB tables and flush Redis; isolate async singletons per event loop."""
    del integration_env
    from lumo.core.redis import get_redis_client
    from lumo.db.session import get_session_factory
    from lumo.models import Task, TaskList, User

    await _dispose_async_singletons()
    _clear_dependency_caches()

    session_factory = get_session_factory()
    async with session_factory() as session:
        await session.execute(delete(Task))
        await session.execute(delete(TaskList))
        await session.execute(delete(User))
        await session.commit()

    await get_redis_client().flushdb()
    try:
        yield
    finally:
        await _dispose_async_singletons()
        _clear_dependency_caches()


@pytest.fixture(scope="function")
def db_session_factory(reset_state: None) -> async_sessionmaker[AsyncSession]:
    """Expose async session factory bound to integration Postgres."""
    del reset_state
    from lumo.db.session import get_session_factory

    return get_session_factory()


class CapturingMailSender:
    """Mail sender double recording every message."""

    def __init__(self) -> None:
        self.messages: list[dict[str, str]] = []

    async def send(self, to_email: str, subject: str, body: str) -> None:
        self.messages.append({"to_email": to_email, "subject": subject, "body": body})


@pytest.fixture(scope="function")
def mail_sender() -> CapturingMailSender:
    return CapturingMailSender()


@pytest.fixture(scope="function")
async def client(reset_state: None, mail_sender: CapturingMailSender) -> AsyncIterator[AsyncClient]:
    """HTTP client over an app built from environment settings with real stores."""
    del reset_state
    from lumo.config import get_settings
    from lumo.main import create_app
    from lumo.services.registry import build_service_registry

    settings = get_settings()
    app = create_app(
        settings=settings,
        services=build_service_registry(settings, mail_sender=mail_sender),
    )
    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://testserver",
    ) as http_client:
        yield http_client


@pytest.fixture(scope="function")
def registration() -> Callable[..., dict[str, Any]]:
    def _build(email: str = "ada@example.com", password: str = "Secret#123") -> dict[str, Any]:
        return {
            "firstName": "Ada",
            "lastName": "Lovelace",
            "age": 36,
            "email": email,
            "password": password,
            "confirmPassword": password,
        }

    return _build
