"""Negotiation request/response schemas for API contracts."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from quoteflow.models.enums import AdjustmentType, AuthorType, CommentType, NegotiationStatus


class LineItemAdjustmentIn(BaseModel):
    line_item_id: str = Field(min_length=1, max_length=36)
    adjustment_type: AdjustmentType
    adjustment_value: Decimal
    initiator_note: str | None = Field(default=None, max_length=2000)


class NegotiationCommentIn(BaseModel):
    comment_type: CommentType = CommentType.GENERAL
    content: str = Field(min_length=1, max_length=10000)
    entity_reference: str | None = Field(default=None, max_length=255)


class NegotiationRequest(BaseModel):
    project_id: str = Field(min_length=1, max_length=36)
    proposal_id: str = Field(min_length=1, max_length=36)
    negotiated_version_id: str = Field(min_length=1, max_length=36)
    target_total: Decimal | None = Field(default=None, ge=0)
    target_reduction_percent: Decimal | None = Field(default=None, ge=0, le=100)
    global_comment: str | None = Field(default=None, max_length=10000)
    bulk_message: str | None = Field(default=None, max_length=10000)
    line_item_adjustments: list[LineItemAdjustmentIn] = Field(default_factory=list)
    comments: list[NegotiationCommentIn] = Field(default_factory=list)


class NegotiationRequestResult(BaseModel):
    session_id: str
    created_at: datetime


class UpdatedLineItemIn(BaseModel):
    line_item_id: str = Field(min_length=1, max_length=36)
    consultant_response_price: Decimal
    consultant_note: str | None = Field(default=None, max_length=2000)


class NegotiationResponse(BaseModel):
    session_id: str = Field(min_length=1, max_length=36)
    consultant_message: str | None = Field(default=None, max_length=10000)
    updated_line_items: list[UpdatedLineItemIn] = Field(default_factory=list)


class NegotiationResponseResult(BaseModel):
    new_version_id: str
    new_version_number: int


class CancelNegotiationRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class LineItemNegotiationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    line_item_id: str
    adjustment_type: AdjustmentType | None = None
    original_price: Decimal
    adjustment_value: Decimal | None = None
    initiator_target_price: Decimal | None = None
    consultant_response_price: Decimal | None = None
    final_price: Decimal | None = None
    initiator_note: str | None = None
    consultant_note: str | None = None


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    author_id: str
    author_type: AuthorType
    comment_type: CommentType
    entity_reference: str | None = None
    content: str
    created_at: datetime


class NegotiationSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    proposal_id: str
    project_id: str
    negotiated_version_id: str
    initiator_id: str
    consultant_advisor_id: str | None = None
    status: NegotiationStatus
    target_total: Decimal | None = None
    target_reduction_percent: Decimal | None = None
    global_comment: str | None = None
    bulk_message: str | None = None
    consultant_response_message: str | None = None
    result_version_id: str | None = None
    cancel_reason: str | None = None
    created_at: datetime
    responded_at: datetime | None = None
    resolved_at: datetime | None = None


class NegotiationSessionDetails(BaseModel):
    session: NegotiationSessionResponse
    line_items: list[LineItemNegotiationResponse] = Field(default_factory=list)
    comments: list[CommentResponse] = Field(default_factory=list)
