"""Bulk negotiation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Header, HTTPException, status

from quoteflow.api.v1._authz import authorize_or_raise, to_http_exception
from quoteflow.core.exceptions import QuoteFlowError
from quoteflow.database.db import get_db_session
from quoteflow.schemas.bulk import (
    BatchHistoryOut,
    BatchSummaryOut,
    BulkNegotiationRequest,
    BulkNegotiationResult,
    ProposalOutcomeOut,
)
from quoteflow.services.bulk_batch_service import BatchSummary, BulkBatchService

router = APIRouter(tags=["bulk-negotiations"])


def _summary(batch: BatchSummary) -> BatchSummaryOut:
    return BatchSummaryOut(
        id=batch.id,
        reduction_type=batch.reduction_type,
        reduction_value=batch.reduction_value,
        message=batch.message,
        created_at=batch.created_at,
        member_count=batch.member_count,
    )


@router.post("/projects/{project_id}/bulk-negotiations", status_code=status.HTTP_201_CREATED)
def create_bulk_negotiation(
    project_id: str,
    payload: BulkNegotiationRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> BulkNegotiationResult:
    user = authorize_or_raise(authorization, scopes=["bulk.create"])
    if payload.project_id != project_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error_code": "validation_error", "detail": "project_id does not match the URL."},
        )
    with get_db_session() as db:
        try:
            result = BulkBatchService(db=db).create_batch(payload, initiator_id=user.user_id)
        except QuoteFlowError as exc:
            raise to_http_exception(exc) from exc
    return BulkNegotiationResult(
        batch_id=result.batch_id,
        per_proposal=[
            ProposalOutcomeOut(proposal_id=item.proposal_id, session_id=item.session_id, error=item.error)
            for item in result.per_proposal
        ],
    )


@router.get("/projects/{project_id}/bulk-negotiations")
def bulk_negotiation_history(
    project_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> BatchHistoryOut:
    authorize_or_raise(authorization, scopes=["bulk.read"])
    with get_db_session() as db:
        history = BulkBatchService(db=db).list_history(project_id)
    return BatchHistoryOut(
        batches=[_summary(batch) for batch in history.batches],
        proposals_in_batches=sorted(history.proposals_in_batches),
        new_proposals=history.new_proposals,
        last_batch=_summary(history.last_batch) if history.last_batch else None,
    )
