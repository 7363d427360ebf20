"""Application settings and logging configuration."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any, Literal

import structlog
from pydantic import AnyHttpUrl, BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_CONTEXT: dict[str, str] = {"environment": "development", "service": "lumo-api"}


class AppSettings(BaseModel):
    """Application identity and runtime settings."""

    environment: Literal["development", "staging", "production"]
    service: str = "lumo-api"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    @field_validator("api_prefix")
    @classmethod
    def normalize_api_prefix(cls, value: str) -> str:
        """Keep the prefix rooted and without a trailing slash."""
        stripped = value.strip().rstrip("/")
        if stripped and not stripped.startswith("/"):
            stripped = f"/{stripped}"
        return stripped


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = Field(description="Async SQLAlchemy URL using asyncpg driver.")

    @field_validator("url")
    @classmethod
    def validate_asyncpg_url(cls, value: str) -> str:
        """Ensure SQLAlchemy uses the asyncpg driver."""
        if not value.startswith("postgresql+asyncpg://"):
            raise ValueError("database.url must start with 'postgresql+asyncpg://'.")
        return value


class RedisSettings(BaseModel):
    """Redis connection settings."""

    url: str = Field(description="Redis URL.")

    @field_validator("url")
    @classmethod
    def validate_redis_url(cls, value: str) -> str:
        """Ensure the Redis URL uses a supported scheme."""
        if not value.startswith(("redis://", "rediss://")):
            raise ValueError("redis.url must start with 'redis://' or 'rediss://'.")
        return value


class JWTSettings(BaseModel):
    """JWT signing keys and access token lifetime."""

    private_key_pem: SecretStr
    public_key_pem: SecretStr
    access_token_ttl_seconds: int = Field(default=3600, ge=1)


class PasswordResetSettings(BaseModel):
    """Password reset link and token settings."""

    frontend_base_url: AnyHttpUrl
    token_ttl_seconds: int = Field(default=3600, ge=1)
    send_confirmation_email: bool = True

    def link_base(self) -> str:
        """Return the frontend base URL without a trailing slash."""
        return str(self.frontend_base_url).rstrip("/")


class EmailSettings(BaseModel):
    """Outgoing SMTP settings."""

    smtp_host: str = "localhost"
    smtp_port: int = 1025
    smtp_username: str | None = None
    smtp_password: SecretStr | None = None
    use_starttls: bool = False
    email_from: str = "Lumo <no-reply@lumo.local>"
    timeout_seconds: float = Field(default=10.0, gt=0)


class AccountSettings(BaseModel):
    """Account creation rules."""

    enforce_password_policy: bool = False
    default_list_title: str = Field(default="Tasks", max_length=100)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)


class RateLimitSettings(BaseModel):
    """Rate limiting thresholds."""

    enabled: bool = True
    default_requests_per_minute: int = Field(default=120, ge=1)
    login_requests_per_minute: int = Field(default=10, ge=1)
    password_reset_requests_per_minute: int = Field(default=5, ge=1)


class Settings(BaseSettings):
    """Root application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app: AppSettings
    database: DatabaseSettings
    redis: RedisSettings
    jwt: JWTSettings
    password_reset: PasswordResetSettings
    email: EmailSettings = Field(default_factory=EmailSettings)
    accounts: AccountSettings = Field(default_factory=AccountSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)


def _standard_log_fields(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Inject required structured logging fields."""
    context_vars = structlog.contextvars.get_contextvars()
    event_dict.setdefault("correlation_id", str(context_vars.get("correlation_id", "unknown")))
    event_dict.setdefault("environment", _LOG_CONTEXT["environment"])
    event_dict.setdefault("service", _LOG_CONTEXT["service"])
    event_dict.setdefault("timestamp", datetime.now(UTC).isoformat())
    return event_dict


def configure_structlog(settings: Settings) -> None:
    """Configure structlog for JSON output with required fields."""
    _LOG_CONTEXT["environment"] = settings.app.environment
    _LOG_CONTEXT["service"] = settings.app.service

    log_level = getattr(logging, settings.app.log_level, logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            _standard_log_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Load and cache application settings from environment variables."""
    return Settings()
