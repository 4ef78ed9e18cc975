"""Log payloads emitted around each maintenance task run."""

from __future__ import annotations

import time
from typing import Any

from quoteflow.core.logging import LogContext
from quoteflow.utils.ids import new_trace_id


def start_run(task_key: str) -> tuple[LogContext, float, dict[str, Any]]:
    """Open a run: returns its context, a monotonic start mark and the start payload."""
    context = LogContext(trace_id=new_trace_id(), task_name=task_key)
    return context, time.monotonic(), context.as_extra("task.start")


def finish_run(context: LogContext, started: float, status: str, **fields: Any) -> dict[str, Any]:
    elapsed_ms = round((time.monotonic() - started) * 1000, 1)
    return context.as_extra("task.finish", status=status, elapsed_ms=elapsed_ms, **fields)
