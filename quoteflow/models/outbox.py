"""Notification outbox and activity log model module."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from quoteflow.models.base import AuditMixin, Base, CreatedAtMixin, IdMixin
from quoteflow.models.enums import OutboxStatus, enum_column_values


class NotificationOutbox(Base, IdMixin, AuditMixin):
    __tablename__ = "notification_outbox"
    __table_args__ = (Index("idx_notification_outbox_status_created", "status", "created_at"),)

    recipient_id: Mapped[str] = mapped_column(String(36), nullable=False)
    template: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON)
    status: Mapped[OutboxStatus] = mapped_column(
        Enum(OutboxStatus, values_callable=enum_column_values, native_enum=False, length=16),
        default=OutboxStatus.PENDING,
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime)


class ActivityLog(Base, IdMixin, CreatedAtMixin):
    __tablename__ = "activity_log"
    __table_args__ = (Index("idx_activity_log_entity", "entity_type", "entity_id"),)

    actor_id: Mapped[str | None] = mapped_column(String(36))
    actor_type: Mapped[str] = mapped_column(String(32), nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    project_id: Mapped[str | None] = mapped_column(String(36))
    meta: Mapped[dict | None] = mapped_column(JSON)
