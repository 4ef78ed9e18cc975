"""Canonical enum values for the negotiation ledger schema."""

from __future__ import annotations

import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    INITIATOR = "initiator"
    CONSULTANT = "consultant"


class ProposalStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    RESUBMITTED = "resubmitted"
    NEGOTIATION_REQUESTED = "negotiation_requested"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class NegotiationStatus(str, enum.Enum):
    OPEN = "open"
    AWAITING_RESPONSE = "awaiting_response"
    RESPONDED = "responded"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class AdjustmentType(str, enum.Enum):
    PRICE_CHANGE = "price_change"
    FLAT_DISCOUNT = "flat_discount"
    PERCENTAGE_DISCOUNT = "percentage_discount"


class CommentType(str, enum.Enum):
    DOCUMENT = "document"
    SCOPE = "scope"
    MILESTONE = "milestone"
    PAYMENT = "payment"
    GENERAL = "general"


class AuthorType(str, enum.Enum):
    INITIATOR = "initiator"
    CONSULTANT = "consultant"


class ReductionType(str, enum.Enum):
    PERCENT = "percent"
    FIXED = "fixed"


class OutboxStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


ACTIVE_NEGOTIATION_STATUSES = frozenset(
    {NegotiationStatus.OPEN, NegotiationStatus.AWAITING_RESPONSE, NegotiationStatus.RESPONDED}
)
TERMINAL_NEGOTIATION_STATUSES = frozenset({NegotiationStatus.RESOLVED, NegotiationStatus.CANCELLED})
BATCH_ELIGIBLE_PROPOSAL_STATUSES = frozenset({ProposalStatus.SUBMITTED, ProposalStatus.RESUBMITTED})


def enum_column_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum values (not member names) so raw SQL predicates stay readable."""
    return [member.value for member in enum_cls]
