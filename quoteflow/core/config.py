"""Configuration module for the QuoteFlow application."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

from quoteflow.core.exceptions import ConfigurationError

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer.") from exc


@dataclass(frozen=True)
class Config:
    """Runtime configuration with validation."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    DB_CONNECTIVITY_REQUIRED: bool
    JWT_SECRET: str
    JWT_ACCESS_TTL_MINUTES: int
    CELERY_BROKER_URL: str
    CELERY_RESULT_BACKEND: str
    CELERY_TASK_ALWAYS_EAGER: bool
    API_PREFIX: str
    LOG_LEVEL: str
    LOG_FILE: str
    NEGOTIATION_STALE_DAYS: int
    BULK_MAX_WORKERS: int
    VERSION_ALLOCATION_RETRIES: int
    NOTIFICATION_BATCH_SIZE: int
    NOTIFICATION_MAX_ATTEMPTS: int
    NOTIFICATION_SANDBOX_MODE: bool

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    debug = _as_bool(os.getenv("DEBUG"), default=(resolved_env != "production"))
    broker_url = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))

    config = Config(
        APP_NAME="QuoteFlow",
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        DEBUG=debug if resolved_env != "production" else False,
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./quoteflow.db"),
        DB_CONNECTIVITY_REQUIRED=_as_bool(
            os.getenv("DB_CONNECTIVITY_REQUIRED"), default=(resolved_env == "production")
        ),
        JWT_SECRET=os.getenv("JWT_SECRET", "change_me_jwt_secret"),
        JWT_ACCESS_TTL_MINUTES=_as_int("JWT_ACCESS_TTL_MINUTES", 15),
        CELERY_BROKER_URL=broker_url,
        CELERY_RESULT_BACKEND=os.getenv("CELERY_RESULT_BACKEND", broker_url),
        CELERY_TASK_ALWAYS_EAGER=_as_bool(os.getenv("CELERY_TASK_ALWAYS_EAGER"), default=False),
        API_PREFIX=os.getenv("API_PREFIX", "/api/v1"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        LOG_FILE=os.getenv("LOG_FILE", ""),
        NEGOTIATION_STALE_DAYS=_as_int("NEGOTIATION_STALE_DAYS", 30),
        BULK_MAX_WORKERS=_as_int("BULK_MAX_WORKERS", 4),
        VERSION_ALLOCATION_RETRIES=_as_int("VERSION_ALLOCATION_RETRIES", 3),
        NOTIFICATION_BATCH_SIZE=_as_int("NOTIFICATION_BATCH_SIZE", 50),
        NOTIFICATION_MAX_ATTEMPTS=_as_int("NOTIFICATION_MAX_ATTEMPTS", 5),
        NOTIFICATION_SANDBOX_MODE=_as_bool(os.getenv("NOTIFICATION_SANDBOX_MODE"), default=True),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in {"sqlite", "postgresql", "postgresql+psycopg2"}:
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)

    if config.JWT_ACCESS_TTL_MINUTES < 1:
        raise ConfigurationError("JWT_ACCESS_TTL_MINUTES must be >= 1.")
    if config.NEGOTIATION_STALE_DAYS < 1:
        raise ConfigurationError("NEGOTIATION_STALE_DAYS must be >= 1.")
    if config.BULK_MAX_WORKERS < 1:
        raise ConfigurationError("BULK_MAX_WORKERS must be >= 1.")
    if config.VERSION_ALLOCATION_RETRIES < 0:
        raise ConfigurationError("VERSION_ALLOCATION_RETRIES must be >= 0.")
    if config.NOTIFICATION_BATCH_SIZE < 1:
        raise ConfigurationError("NOTIFICATION_BATCH_SIZE must be >= 1.")
    if config.NOTIFICATION_MAX_ATTEMPTS < 1:
        raise ConfigurationError("NOTIFICATION_MAX_ATTEMPTS must be >= 1.")
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError("LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL.")
    if config.is_production and "change_me" in config.JWT_SECRET:
        raise ConfigurationError("Production JWT_SECRET uses placeholder value.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Get validated configuration for the requested environment."""
    return _build_config(env)
