"""Startup checks shared by the API process and the Celery workers."""

from __future__ import annotations

import logging

from quoteflow.core.config import Config, get_config
from quoteflow.core.logging_config import configure_logging
from quoteflow.database.db import get_active_database_url, verify_database_connection

logger = logging.getLogger(__name__)


def _check_database(config: Config) -> None:
    if verify_database_connection():
        return
    if config.DB_CONNECTIVITY_REQUIRED:
        raise RuntimeError("Database connectivity check failed.")
    logger.warning(
        "startup.database.unreachable",
        extra={"event": "startup.database.unreachable", "env": config.ENV},
    )


def negotiation_warnings(config: Config, database_url: str) -> list[str]:
    """Settings that run but behave poorly for negotiation traffic."""
    warnings: list[str] = []
    if database_url.startswith("sqlite"):
        if config.is_production:
            warnings.append("sqlite_in_production")
        if config.BULK_MAX_WORKERS > 1:
            # SQLite has one writer, so batch fan-out queues behind the lock.
            warnings.append("sqlite_serializes_bulk_workers")
    if config.is_production and config.NOTIFICATION_SANDBOX_MODE:
        warnings.append("notification_sandbox_in_production")
    return warnings


def validate_startup_config() -> list[str]:
    """Fail fast on an unreachable required database; return non-fatal warnings."""
    config = get_config()
    _check_database(config)
    database_url = get_active_database_url()
    warnings = negotiation_warnings(config, database_url)
    for code in warnings:
        logger.warning("startup.config.warning", extra={"event": "startup.config.warning", "code": code})

    logger.info(
        "startup.config.validated",
        extra={
            "event": "startup.config.validated",
            "env": config.ENV,
            "database_scheme": database_url.split("://", 1)[0],
            "stale_days": config.NEGOTIATION_STALE_DAYS,
            "bulk_workers": config.BULK_MAX_WORKERS,
            "notification_sandbox": config.NOTIFICATION_SANDBOX_MODE,
        },
    )
    return warnings


def bootstrap() -> None:
    configure_logging()
    validate_startup_config()
