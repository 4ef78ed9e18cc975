"""Bulk negotiation request/response schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from quoteflow.models.enums import ReductionType


class BulkNegotiationRequest(BaseModel):
    project_id: str = Field(min_length=1, max_length=36)
    reduction_type: ReductionType
    reduction_value: Decimal
    message: str | None = Field(default=None, max_length=10000)
    proposal_ids: list[str] = Field(default_factory=list)


class ProposalOutcomeOut(BaseModel):
    proposal_id: str
    session_id: str | None = None
    error: str | None = None


class BulkNegotiationResult(BaseModel):
    batch_id: str
    per_proposal: list[ProposalOutcomeOut]


class BatchSummaryOut(BaseModel):
    id: str
    reduction_type: ReductionType
    reduction_value: Decimal
    message: str | None = None
    created_at: datetime
    member_count: int


class BatchHistoryOut(BaseModel):
    batches: list[BatchSummaryOut]
    proposals_in_batches: list[str]
    new_proposals: list[str]
    last_batch: BatchSummaryOut | None = None
