"""Bulk negotiation batch model module."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Enum, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quoteflow.models.base import Base, CreatedAtMixin, IdMixin
from quoteflow.models.enums import ReductionType, enum_column_values


class BulkNegotiationBatch(Base, IdMixin, CreatedAtMixin):
    __tablename__ = "bulk_negotiation_batches"
    __table_args__ = (Index("idx_bulk_batches_project_created", "project_id", "created_at"),)

    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id", ondelete="RESTRICT"), nullable=False)
    initiator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    reduction_type: Mapped[ReductionType] = mapped_column(
        Enum(ReductionType, values_callable=enum_column_values, native_enum=False, length=16), nullable=False
    )
    reduction_value: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    message: Mapped[str | None] = mapped_column(Text)

    members = relationship("BulkNegotiationMember", back_populates="batch")


class BulkNegotiationMember(Base, IdMixin, CreatedAtMixin):
    __tablename__ = "bulk_negotiation_members"
    __table_args__ = (
        Index("idx_bulk_members_batch", "batch_id"),
        Index("idx_bulk_members_proposal", "proposal_id"),
    )

    batch_id: Mapped[str] = mapped_column(
        ForeignKey("bulk_negotiation_batches.id", ondelete="RESTRICT"), nullable=False
    )
    proposal_id: Mapped[str] = mapped_column(ForeignKey("proposals.id", ondelete="RESTRICT"), nullable=False)
    session_id: Mapped[str | None] = mapped_column(String(36))
    error: Mapped[str | None] = mapped_column(Text)

    batch = relationship("BulkNegotiationBatch", back_populates="members")
