"""Negotiation session, line item negotiation and comment model module."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Numeric, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quoteflow.models.base import AuditMixin, Base, CreatedAtMixin, IdMixin
from quoteflow.models.enums import (
    AdjustmentType,
    AuthorType,
    CommentType,
    NegotiationStatus,
    enum_column_values,
)

ACTIVE_SESSION_PREDICATE = "status IN ('open', 'awaiting_response', 'responded')"


class NegotiationSession(Base, IdMixin, AuditMixin):
    __tablename__ = "negotiation_sessions"
    __table_args__ = (
        # At most one non-terminal session per proposal, enforced by the store.
        Index(
            "uq_negotiation_sessions_active_proposal",
            "proposal_id",
            unique=True,
            sqlite_where=text(ACTIVE_SESSION_PREDICATE),
            postgresql_where=text(ACTIVE_SESSION_PREDICATE),
        ),
        Index("idx_negotiation_sessions_project_status", "project_id", "status"),
    )

    proposal_id: Mapped[str] = mapped_column(ForeignKey("proposals.id", ondelete="RESTRICT"), nullable=False)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id", ondelete="RESTRICT"), nullable=False)
    negotiated_version_id: Mapped[str] = mapped_column(
        ForeignKey("proposal_versions.id", ondelete="RESTRICT"), nullable=False
    )
    initiator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    consultant_advisor_id: Mapped[str | None] = mapped_column(ForeignKey("advisors.id", ondelete="RESTRICT"))
    status: Mapped[NegotiationStatus] = mapped_column(
        Enum(NegotiationStatus, values_callable=enum_column_values, native_enum=False, length=32),
        default=NegotiationStatus.OPEN,
        nullable=False,
    )
    target_total: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    target_reduction_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 4))
    global_comment: Mapped[str | None] = mapped_column(Text)
    bulk_message: Mapped[str | None] = mapped_column(Text)
    initiator_message: Mapped[str | None] = mapped_column(Text)
    consultant_response_message: Mapped[str | None] = mapped_column(Text)
    result_version_id: Mapped[str | None] = mapped_column(String(36))
    cancelled_by: Mapped[str | None] = mapped_column(String(36))
    cancel_reason: Mapped[str | None] = mapped_column(Text)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime)

    proposal = relationship("Proposal")
    line_item_negotiations = relationship(
        "LineItemNegotiation",
        back_populates="session",
        order_by="LineItemNegotiation.created_at",
    )
    comments = relationship(
        "NegotiationComment",
        back_populates="session",
        order_by="NegotiationComment.created_at",
    )


class LineItemNegotiation(Base, IdMixin, AuditMixin):
    __tablename__ = "line_item_negotiations"
    __table_args__ = (
        UniqueConstraint("session_id", "line_item_id", name="uq_line_item_negotiations_session_item"),
    )

    session_id: Mapped[str] = mapped_column(
        ForeignKey("negotiation_sessions.id", ondelete="RESTRICT"), nullable=False
    )
    line_item_id: Mapped[str] = mapped_column(
        ForeignKey("proposal_line_items.id", ondelete="RESTRICT"), nullable=False
    )
    # Null initiator side only for rows the consultant added to a session-level negotiation.
    adjustment_type: Mapped[AdjustmentType | None] = mapped_column(
        Enum(AdjustmentType, values_callable=enum_column_values, native_enum=False, length=32)
    )
    original_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    adjustment_value: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))
    initiator_target_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    consultant_response_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    final_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    initiator_note: Mapped[str | None] = mapped_column(Text)
    consultant_note: Mapped[str | None] = mapped_column(Text)

    session = relationship("NegotiationSession", back_populates="line_item_negotiations")


class NegotiationComment(Base, IdMixin, CreatedAtMixin):
    __tablename__ = "negotiation_comments"
    __table_args__ = (Index("idx_negotiation_comments_session", "session_id", "created_at"),)

    session_id: Mapped[str] = mapped_column(
        ForeignKey("negotiation_sessions.id", ondelete="RESTRICT"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(String(36), nullable=False)
    author_type: Mapped[AuthorType] = mapped_column(
        Enum(AuthorType, values_callable=enum_column_values, native_enum=False, length=32), nullable=False
    )
    comment_type: Mapped[CommentType] = mapped_column(
        Enum(CommentType, values_callable=enum_column_values, native_enum=False, length=32),
        default=CommentType.GENERAL,
        nullable=False,
    )
    entity_reference: Mapped[str | None] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text, nullable=False)

    session = relationship("NegotiationSession", back_populates="comments")
