"""Shared SQLAlchemy base and common mixins for the ledger models."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from quoteflow.utils.ids import new_id


def utcnow() -> datetime:
    """Return UTC now as a naive datetime; all ledger columns are UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Declarative base class for the ledger schema."""


class IdMixin:
    """UUID4 string primary key."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)


class CreatedAtMixin:
    """Creation stamp for append-only rows."""

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class AuditMixin(CreatedAtMixin):
    """Standard audit fields for mutable rows."""

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
