"""SQLAlchemy model package for the negotiation ledger."""

from quoteflow.models.base import Base
from quoteflow.models.bulk import BulkNegotiationBatch, BulkNegotiationMember
from quoteflow.models.enums import (
    AdjustmentType,
    AuthorType,
    CommentType,
    NegotiationStatus,
    OutboxStatus,
    ProposalStatus,
    ReductionType,
    UserRole,
)
from quoteflow.models.negotiation import LineItemNegotiation, NegotiationComment, NegotiationSession
from quoteflow.models.outbox import ActivityLog, NotificationOutbox
from quoteflow.models.project import Advisor, Project
from quoteflow.models.proposal import Proposal, ProposalLineItem, ProposalVersion

__all__ = [
    "ActivityLog",
    "AdjustmentType",
    "Advisor",
    "AuthorType",
    "Base",
    "BulkNegotiationBatch",
    "BulkNegotiationMember",
    "CommentType",
    "LineItemNegotiation",
    "NegotiationComment",
    "NegotiationSession",
    "NegotiationStatus",
    "NotificationOutbox",
    "OutboxStatus",
    "Project",
    "Proposal",
    "ProposalLineItem",
    "ProposalStatus",
    "ProposalVersion",
    "ReductionType",
    "UserRole",
]
