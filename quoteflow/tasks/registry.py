"""Maintenance jobs addressable by the key Celery beat schedules them under."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from quoteflow.database.db import get_db_session
from quoteflow.services.negotiation_session_service import NegotiationSessionService
from quoteflow.services.notification_service import NotificationService

TaskExecutor = Callable[[], dict[str, Any]]


class TaskRegistry:
    def __init__(self) -> None:
        self._executors: dict[str, TaskExecutor] = {}

    def register(self, task_key: str, executor: TaskExecutor) -> None:
        if task_key in self._executors:
            raise ValueError(f"Task key already registered: {task_key}")
        self._executors[task_key] = executor

    def job(self, task_key: str) -> Callable[[TaskExecutor], TaskExecutor]:
        def decorator(executor: TaskExecutor) -> TaskExecutor:
            self.register(task_key, executor)
            return executor

        return decorator

    def get(self, task_key: str) -> TaskExecutor:
        try:
            return self._executors[task_key]
        except KeyError:
            raise KeyError(f"Unknown task key: {task_key}") from None

    def keys(self) -> list[str]:
        return sorted(self._executors)


default_registry = TaskRegistry()


@default_registry.job("notifications.dispatch_pending")
def dispatch_pending_notifications() -> dict[str, Any]:
    with get_db_session() as db:
        return NotificationService(db=db).dispatch_pending()


@default_registry.job("negotiations.expire_stale")
def expire_stale_negotiations() -> dict[str, Any]:
    """Expire sessions idle longer than NEGOTIATION_STALE_DAYS."""
    with get_db_session() as db:
        expired = NegotiationSessionService(db=db).expire_stale_sessions()
    return {"expired": len(expired), "session_ids": expired}
