"""Bring the negotiation ledger schema to the latest alembic revision.

Run as ``python -m quoteflow.database.init_db``. A local SQLite file whose
schema alembic cannot upgrade is moved aside as ``<name>.backup_<stamp>.db``
and rebuilt; any other backend fails with the migration error.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy import inspect

import quoteflow.database.db as db_module
from quoteflow.core.startup import bootstrap
from quoteflow.models import Base

logger = logging.getLogger(__name__)
PROJECT_ROOT = Path(__file__).resolve().parents[2]
SQLITE_PREFIX = "sqlite:///"


def _build_alembic_config(database_url: str) -> AlembicConfig:
    cfg = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def _sqlite_db_path(database_url: str) -> Path | None:
    """Filesystem path of a file-backed SQLite URL, else None."""
    if not database_url.startswith(SQLITE_PREFIX):
        return None
    raw = database_url[len(SQLITE_PREFIX) :]
    if raw in {"", ":memory:"}:
        return None
    path = Path(raw)
    return path if path.is_absolute() else (PROJECT_ROOT / path).resolve()


def _move_sqlite_aside(database_url: str) -> Path | None:
    db_path = _sqlite_db_path(database_url)
    db_module.get_engine().dispose()
    if db_path is None or not db_path.exists():
        db_module.reset_engine(database_url)
        return None
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    backup = db_path.with_name(f"{db_path.stem}.backup_{stamp}{db_path.suffix}")
    db_path.replace(backup)
    db_module.reset_engine(database_url)
    return backup


def missing_ledger_tables() -> set[str]:
    """Ledger tables declared by the models but absent from the live database."""
    present = set(inspect(db_module.get_engine()).get_table_names())
    return set(Base.metadata.tables) - present


def init_db() -> None:
    bootstrap()
    url = db_module.get_active_database_url()
    try:
        command.upgrade(_build_alembic_config(url), "head")
    except Exception as exc:
        if _sqlite_db_path(url) is None:
            raise
        backup = _move_sqlite_aside(url)
        logger.warning(
            "database.sqlite.rebuilt",
            extra={
                "event": "database.sqlite.rebuilt",
                "backup_path": str(backup) if backup else None,
                "reason": str(exc),
            },
        )
        command.upgrade(_build_alembic_config(url), "head")

    missing = missing_ledger_tables()
    if missing:
        raise RuntimeError(f"Ledger tables missing after migration: {', '.join(sorted(missing))}")
    logger.info(
        "database.schema.ready",
        extra={"event": "database.schema.ready", "tables": len(Base.metadata.tables)},
    )


if __name__ == "__main__":
    init_db()
