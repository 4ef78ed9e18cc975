"""Celery worker and beat configuration for negotiation maintenance."""

from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from quoteflow.core.config import get_config

config = get_config()
MAINTENANCE_QUEUE = "negotiation-maintenance"

celery_app = Celery(
    "quoteflow",
    broker=config.CELERY_BROKER_URL,
    backend=config.CELERY_RESULT_BACKEND,
    include=["quoteflow.tasks.negotiation_tasks"],
)
celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_default_queue=MAINTENANCE_QUEUE,
    # Both tasks are idempotent, so a redelivered message after a worker crash is safe.
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_always_eager=config.CELERY_TASK_ALWAYS_EAGER,
    beat_schedule={
        # Outbox rows are drained every minute.
        "notifications-dispatch-pending": {
            "task": "notifications.dispatch_pending",
            "schedule": 60.0,
        },
        # Sessions idle past NEGOTIATION_STALE_DAYS are expired nightly.
        "negotiations-expire-stale": {
            "task": "negotiations.expire_stale",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)
