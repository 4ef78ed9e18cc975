"""Pydantic schema package for API contracts."""

from quoteflow.schemas.bulk import (
    BatchHistoryOut,
    BatchSummaryOut,
    BulkNegotiationRequest,
    BulkNegotiationResult,
    ProposalOutcomeOut,
)
from quoteflow.schemas.common import ErrorEnvelope
from quoteflow.schemas.negotiations import (
    CancelNegotiationRequest,
    CommentResponse,
    LineItemAdjustmentIn,
    LineItemNegotiationResponse,
    NegotiationCommentIn,
    NegotiationRequest,
    NegotiationRequestResult,
    NegotiationResponse,
    NegotiationResponseResult,
    NegotiationSessionDetails,
    NegotiationSessionResponse,
    UpdatedLineItemIn,
)
from quoteflow.schemas.proposals import (
    LineItemDiffOut,
    LineItemListResponse,
    LineItemResponse,
    ProposalVersionResponse,
    VersionComparisonResponse,
)

__all__ = [
    "BatchHistoryOut",
    "BatchSummaryOut",
    "BulkNegotiationRequest",
    "BulkNegotiationResult",
    "CancelNegotiationRequest",
    "CommentResponse",
    "ErrorEnvelope",
    "LineItemAdjustmentIn",
    "LineItemDiffOut",
    "LineItemListResponse",
    "LineItemNegotiationResponse",
    "LineItemResponse",
    "NegotiationCommentIn",
    "NegotiationRequest",
    "NegotiationRequestResult",
    "NegotiationResponse",
    "NegotiationResponseResult",
    "NegotiationSessionDetails",
    "NegotiationSessionResponse",
    "ProposalOutcomeOut",
    "ProposalVersionResponse",
    "UpdatedLineItemIn",
    "VersionComparisonResponse",
]
