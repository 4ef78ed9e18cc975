"""Append-only audit trail of negotiation actions."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from quoteflow.models.outbox import ActivityLog


def record_activity(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None,
    actor_type: str,
    project_id: str | None = None,
    meta: dict[str, Any] | None = None,
) -> ActivityLog:
    """Stage an activity row in the caller's transaction."""
    row = ActivityLog(
        actor_id=actor_id,
        actor_type=actor_type,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        project_id=project_id,
        meta=meta or {},
    )
    db.add(row)
    return row
