"""Proposal, proposal version and line item model module."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quoteflow.models.base import AuditMixin, Base, CreatedAtMixin, IdMixin, utcnow
from quoteflow.models.enums import ProposalStatus, enum_column_values


class Proposal(Base, IdMixin, AuditMixin):
    __tablename__ = "proposals"
    __table_args__ = (
        Index("idx_proposals_project_status", "project_id", "status"),
        Index("idx_proposals_advisor", "advisor_id"),
    )

    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id", ondelete="RESTRICT"), nullable=False)
    advisor_id: Mapped[str] = mapped_column(ForeignKey("advisors.id", ondelete="RESTRICT"), nullable=False)
    supplier_name: Mapped[str | None] = mapped_column(String(255))
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    timeline_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[ProposalStatus] = mapped_column(
        Enum(ProposalStatus, values_callable=enum_column_values, native_enum=False, length=32),
        default=ProposalStatus.SUBMITTED,
        nullable=False,
    )
    # Pointer only; versions reference proposals, so no FK back to avoid a cycle.
    current_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_version_id: Mapped[str | None] = mapped_column(String(36))
    has_active_negotiation: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    negotiation_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    project = relationship("Project")
    advisor = relationship("Advisor")


class ProposalVersion(Base, IdMixin, CreatedAtMixin):
    __tablename__ = "proposal_versions"
    __table_args__ = (
        UniqueConstraint("proposal_id", "version_number", name="uq_proposal_versions_number"),
        UniqueConstraint("proposal_id", "content_hash", name="uq_proposal_versions_content_hash"),
    )

    proposal_id: Mapped[str] = mapped_column(ForeignKey("proposals.id", ondelete="RESTRICT"), nullable=False)
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    timeline_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    scope_text: Mapped[str | None] = mapped_column(Text)
    terms: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(36))
    change_reason: Mapped[str | None] = mapped_column(Text)
    source_session_id: Mapped[str | None] = mapped_column(String(36))
    content_hash: Mapped[str | None] = mapped_column(String(64))

    line_items = relationship(
        "ProposalLineItem",
        order_by="ProposalLineItem.display_order",
        back_populates="version",
    )


class ProposalLineItem(Base, IdMixin, AuditMixin):
    __tablename__ = "proposal_line_items"
    __table_args__ = (
        Index("idx_line_items_version_order", "proposal_version_id", "display_order"),
        Index("idx_line_items_proposal", "proposal_id"),
    )

    proposal_id: Mapped[str] = mapped_column(ForeignKey("proposals.id", ondelete="RESTRICT"), nullable=False)
    proposal_version_id: Mapped[str] = mapped_column(
        ForeignKey("proposal_versions.id", ondelete="RESTRICT"), nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    source_line_item_id: Mapped[str | None] = mapped_column(String(36))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(100))
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("1"), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_optional: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    version = relationship("ProposalVersion", back_populates="line_items")
