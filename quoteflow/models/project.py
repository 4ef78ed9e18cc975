"""Project and advisor model module."""

from __future__ import annotations

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from quoteflow.models.base import AuditMixin, Base, IdMixin


class Project(Base, IdMixin, AuditMixin):
    __tablename__ = "projects"
    __table_args__ = (Index("idx_projects_owner", "owner_id"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)


class Advisor(Base, IdMixin, AuditMixin):
    __tablename__ = "advisors"
    __table_args__ = (Index("idx_advisors_user", "user_id"),)

    company_name: Mapped[str | None] = mapped_column(String(255))
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
