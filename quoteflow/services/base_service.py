"""Session handling shared by the negotiation services."""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quoteflow.core.exceptions import NotFoundError
from quoteflow.database.db import get_session_factory

ModelT = TypeVar("ModelT")


class BaseService:
    """Holds one SQLAlchemy session; callers that pass ``db`` own its lifecycle."""

    def __init__(self, db: Session | None = None) -> None:
        self.db = db or get_session_factory()()

    def commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def flush(self) -> None:
        """Flush pending writes; a constraint violation rolls the transaction back."""
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()

    def get_or_404(self, model: type[ModelT], entity_id: str, label: str | None = None) -> ModelT:
        row = self.db.get(model, entity_id)
        if row is None:
            raise NotFoundError(f"{label or model.__name__} not found: {entity_id}")
        return row

    def lock_or_404(
        self, model: type[ModelT], entity_id: str, label: str | None = None, refresh: bool = False
    ) -> ModelT:
        """Load a row FOR UPDATE; ``refresh`` overwrites stale identity-map state."""
        stmt: Any = select(model).where(model.id == entity_id).with_for_update()
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        row = self.db.scalars(stmt).first()
        if row is None:
            raise NotFoundError(f"{label or model.__name__} not found: {entity_id}")
        return row
