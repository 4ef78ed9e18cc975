"""Proposal version and line item endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Header, Query

from quoteflow.api.v1._authz import authorize_or_raise, to_http_exception
from quoteflow.core.exceptions import QuoteFlowError, ValidationError
from quoteflow.database.db import get_db_session
from quoteflow.schemas.proposals import (
    LineItemDiffOut,
    LineItemListResponse,
    LineItemResponse,
    ProposalVersionResponse,
    VersionComparisonResponse,
)
from quoteflow.services.line_item_ledger import LineItemLedger, full_total, group_by_category, required_total
from quoteflow.services.versioning_service import VersioningService

router = APIRouter(tags=["proposals"])


@router.get("/proposals/{proposal_id}/versions")
def list_proposal_versions(
    proposal_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[ProposalVersionResponse]:
    authorize_or_raise(authorization, scopes=["proposals.read"])
    with get_db_session() as db:
        try:
            versions = VersioningService(db=db).list_versions(proposal_id)
        except QuoteFlowError as exc:
            raise to_http_exception(exc) from exc
        return [ProposalVersionResponse.model_validate(version) for version in versions]


@router.get("/proposals/{proposal_id}/versions/compare")
def compare_proposal_versions(
    proposal_id: str,
    from_version_id: str = Query(alias="from"),
    to_version_id: str = Query(alias="to"),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> VersionComparisonResponse:
    authorize_or_raise(authorization, scopes=["proposals.read"])
    with get_db_session() as db:
        service = VersioningService(db=db)
        try:
            if service.get_version(from_version_id).proposal_id != proposal_id:
                raise ValidationError("Version does not belong to the proposal.")
            comparison = service.compare_versions(from_version_id, to_version_id)
        except QuoteFlowError as exc:
            raise to_http_exception(exc) from exc
    return VersionComparisonResponse(
        from_version_number=comparison.from_version_number,
        to_version_number=comparison.to_version_number,
        price_change=comparison.price_change,
        price_change_percent=comparison.price_change_percent,
        timeline_change=comparison.timeline_change,
        items=[
            LineItemDiffOut(
                name=diff.name,
                status=diff.status,
                from_total=diff.from_total,
                to_total=diff.to_total,
                change=diff.change,
            )
            for diff in comparison.items
        ],
    )


@router.get("/proposals/{proposal_id}/line-items")
def list_proposal_line_items(
    proposal_id: str,
    version_id: str | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> LineItemListResponse:
    authorize_or_raise(authorization, scopes=["proposals.read"])
    with get_db_session() as db:
        try:
            items = LineItemLedger(db=db).list_for_version(proposal_id, version_id)
        except QuoteFlowError as exc:
            raise to_http_exception(exc) from exc
        return LineItemListResponse(
            items=[LineItemResponse.model_validate(item) for item in items],
            required_total=required_total(items),
            full_total=full_total(items),
            by_category={
                category: [item.id for item in grouped] for category, grouped in group_by_category(items).items()
            },
        )
