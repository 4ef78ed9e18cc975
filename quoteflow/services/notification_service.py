"""Notification outbox: negotiation events are queued here, delivered later."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from quoteflow.core.config import get_config
from quoteflow.core.exceptions import ConfigurationError
from quoteflow.models.base import utcnow
from quoteflow.models.enums import OutboxStatus
from quoteflow.models.outbox import NotificationOutbox
from quoteflow.services.base_service import BaseService

logger = logging.getLogger(__name__)

Dispatcher = Callable[[str, str, dict[str, Any]], None]


def sandbox_dispatcher(recipient_id: str, template: str, payload: dict[str, Any]) -> None:
    """Dispatcher used when no delivery backend is wired: records the send in logs."""
    logger.info(
        "notification.sandbox.sent",
        extra={"event": "notification.sandbox.sent", "recipient_id": recipient_id, "template": template},
    )


class NotificationService(BaseService):
    """Writes outbound messages and drains them through a dispatcher."""

    def enqueue(self, recipient_id: str | None, template: str, payload: dict[str, Any]) -> str | None:
        """Queue a message in its own transaction; never raises.

        Callers invoke this after their own commit, so a failing outbox never
        rolls back a negotiation operation.
        """
        if not recipient_id:
            logger.warning(
                "notification.skipped.no_recipient",
                extra={"event": "notification.skipped.no_recipient", "template": template},
            )
            return None
        try:
            row = NotificationOutbox(recipient_id=recipient_id, template=template, payload=payload)
            self.db.add(row)
            self.commit()
            return row.id
        except SQLAlchemyError:
            logger.exception(
                "notification.enqueue.failed",
                extra={"event": "notification.enqueue.failed", "template": template},
            )
            return None

    def list_pending(self, limit: int) -> list[NotificationOutbox]:
        stmt = (
            select(NotificationOutbox)
            .where(NotificationOutbox.status == OutboxStatus.PENDING)
            .order_by(NotificationOutbox.created_at)
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def dispatch_pending(
        self,
        dispatcher: Dispatcher | None = None,
        limit: int | None = None,
        max_attempts: int | None = None,
    ) -> dict[str, int]:
        """Deliver pending messages; failures are recorded and retried up to max_attempts."""
        config = get_config()
        if dispatcher is None and not config.NOTIFICATION_SANDBOX_MODE:
            raise ConfigurationError("No notification dispatcher configured and sandbox mode is off.")
        send = dispatcher or sandbox_dispatcher
        batch_size = limit or config.NOTIFICATION_BATCH_SIZE
        attempts_allowed = max_attempts or config.NOTIFICATION_MAX_ATTEMPTS
        counts = {"sent": 0, "retrying": 0, "failed": 0}

        for row in self.list_pending(batch_size):
            row.attempts += 1
            try:
                send(row.recipient_id, row.template, dict(row.payload or {}))
            except Exception as exc:
                row.last_error = str(exc)[:2000]
                if row.attempts >= attempts_allowed:
                    row.status = OutboxStatus.FAILED
                    counts["failed"] += 1
                else:
                    counts["retrying"] += 1
                logger.warning(
                    "notification.dispatch.failed",
                    extra={
                        "event": "notification.dispatch.failed",
                        "outbox_id": row.id,
                        "attempts": row.attempts,
                    },
                )
            else:
                row.status = OutboxStatus.SENT
                row.sent_at = utcnow()
                row.last_error = None
                counts["sent"] += 1
            self.commit()
        return counts
