"""Correlation fields attached to background task log lines."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class LogContext:
    """Identifiers that tie log lines to one maintenance run."""

    trace_id: str | None = None
    task_name: str | None = None

    def as_extra(self, event: str, **fields: Any) -> dict[str, Any]:
        """Build a logging ``extra`` dict; unset identifiers are left out."""
        extra = {key: value for key, value in asdict(self).items() if value is not None}
        extra["event"] = event
        extra.update(fields)
        return extra
