"""Engine and session factory for the negotiation ledger."""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from quoteflow.core.config import get_config

logger = logging.getLogger(__name__)

# Bulk workers write from several threads; SQLite waits this long for the write lock.
SQLITE_BUSY_TIMEOUT_MS = 15000

config = get_config()
DATABASE_URL = config.DATABASE_URL


def _enable_sqlite_constraints(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    finally:
        cursor.close()


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections enforce the ledger's foreign keys."""
    if database_url.startswith("sqlite"):
        sqlite_engine = create_engine(
            database_url,
            echo=config.DEBUG and not config.is_production,
            connect_args={"check_same_thread": False},
        )
        event.listen(sqlite_engine, "connect", _enable_sqlite_constraints)
        return sqlite_engine
    return create_engine(
        database_url,
        echo=config.DEBUG and not config.is_production,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_size=max(10, config.BULK_MAX_WORKERS * 2),
        max_overflow=20,
    )


def _bind(database_url: str) -> None:
    global DATABASE_URL, engine, SessionLocal
    DATABASE_URL = database_url
    engine = build_engine(database_url)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


_bind(DATABASE_URL)


def get_engine() -> Engine:
    return engine


def get_session_factory() -> sessionmaker:
    """Sessionmaker bound to the active engine; services open sessions from it."""
    return SessionLocal


def get_active_database_url() -> str:
    return DATABASE_URL


def reset_engine(database_url: str | None = None) -> None:
    """Dispose the current engine and rebind to ``database_url`` (or the same URL)."""
    engine.dispose()
    _bind(database_url or DATABASE_URL)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """One session per request or task run, always closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def verify_database_connection() -> bool:
    """Return True when the ledger database answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception(
            "database.connection_failed",
            extra={"event": "database.connection_failed", "database_scheme": DATABASE_URL.split("://", 1)[0]},
        )
        return False
    return True
