"""Proposal version and line item schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class LineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    proposal_version_id: str
    version_number: int
    name: str
    description: str | None = None
    category: str | None = None
    quantity: Decimal
    unit_price: Decimal
    total: Decimal
    is_optional: bool
    display_order: int


class LineItemListResponse(BaseModel):
    items: list[LineItemResponse]
    required_total: Decimal
    full_total: Decimal
    by_category: dict[str, list[str]] = Field(default_factory=dict)


class ProposalVersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    proposal_id: str
    version_number: int
    price: Decimal
    timeline_days: int
    scope_text: str | None = None
    terms: str | None = None
    created_by: str | None = None
    change_reason: str | None = None
    source_session_id: str | None = None
    created_at: datetime


class LineItemDiffOut(BaseModel):
    name: str
    status: str
    from_total: Decimal | None = None
    to_total: Decimal | None = None
    change: Decimal


class VersionComparisonResponse(BaseModel):
    from_version_number: int
    to_version_number: int
    price_change: Decimal
    price_change_percent: int
    timeline_change: int
    items: list[LineItemDiffOut]
