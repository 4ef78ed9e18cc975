"""Periodic negotiation maintenance tasks: outbox draining and stale expiry."""

from __future__ import annotations

import logging
import time
from typing import Any

from quoteflow.tasks.celery_app import celery_app
from quoteflow.tasks.hooks import finish_run, start_run
from quoteflow.tasks.registry import default_registry

logger = logging.getLogger(__name__)

dead_letter_queue: list[dict[str, Any]] = []


def _serialize_error(exc: Exception) -> dict[str, str]:
    return {
        "type": exc.__class__.__name__,
        "message": str(exc),
    }


def execute_registered_task(
    task_key: str,
    max_retries: int = 2,
    base_backoff_seconds: float = 0.25,
) -> dict[str, Any]:
    """Run a registered task, retrying with exponential backoff.

    An unknown key fails at once. A task still failing after ``max_retries``
    retries is appended to ``dead_letter_queue``.
    """
    context, started, start_payload = start_run(task_key)
    logger.info("task.start", extra=start_payload)

    try:
        executor = default_registry.get(task_key)
    except KeyError as exc:
        return _dead_letter(task_key, context, started, retry_count=0, error=_serialize_error(exc))

    attempt = 0
    while True:
        try:
            result = executor()
        except Exception as exc:
            if attempt >= max_retries:
                return _dead_letter(task_key, context, started, retry_count=attempt, error=_serialize_error(exc))
            logger.warning(
                "task.retry",
                extra=context.as_extra("task.retry", attempt=attempt, error=str(exc)),
            )
            delay = max(0.0, base_backoff_seconds) * (2**attempt)
            if delay > 0:
                time.sleep(delay)
            attempt += 1
            continue
        logger.info("task.finish", extra=finish_run(context, started, "succeeded", retry_count=attempt))
        return {"status": "succeeded", "retry_count": attempt, "result": result, "dead_lettered": False}


def _dead_letter(task_key, context, started, retry_count: int, error: dict[str, str]) -> dict[str, Any]:
    dead_letter_queue.append(
        {
            "task_key": task_key,
            "trace_id": context.trace_id,
            "retry_count": retry_count,
            "error_payload": error,
        }
    )
    logger.error("task.failed", extra=finish_run(context, started, "failed", retry_count=retry_count))
    return {
        "status": "failed",
        "retry_count": retry_count,
        "dead_lettered": True,
        "error_payload": error,
    }


@celery_app.task(name="notifications.dispatch_pending")
def dispatch_pending_notifications() -> dict[str, Any]:
    return execute_registered_task("notifications.dispatch_pending")


@celery_app.task(name="negotiations.expire_stale")
def expire_stale_negotiations() -> dict[str, Any]:
    return execute_registered_task("negotiations.expire_stale")
