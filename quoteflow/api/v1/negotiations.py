"""Negotiation session endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Header, HTTPException, Query, status

from quoteflow.api.v1._authz import authorize_or_raise, to_http_exception
from quoteflow.core.exceptions import QuoteFlowError
from quoteflow.database.db import get_db_session
from quoteflow.models.enums import CommentType
from quoteflow.schemas.negotiations import (
    CancelNegotiationRequest,
    CommentResponse,
    LineItemNegotiationResponse,
    NegotiationCommentIn,
    NegotiationRequest,
    NegotiationRequestResult,
    NegotiationResponse,
    NegotiationResponseResult,
    NegotiationSessionDetails,
    NegotiationSessionResponse,
)
from quoteflow.services.negotiation_session_service import NegotiationSessionService

router = APIRouter(tags=["negotiations"])


def _details(service: NegotiationSessionService, session_id: str) -> NegotiationSessionDetails:
    details = service.get_session_details(session_id)
    return NegotiationSessionDetails(
        session=NegotiationSessionResponse.model_validate(details.session),
        line_items=[LineItemNegotiationResponse.model_validate(row) for row in details.line_items],
        comments=[CommentResponse.model_validate(comment) for comment in details.comments],
    )


@router.post("/negotiations", status_code=status.HTTP_201_CREATED)
def open_negotiation(
    payload: NegotiationRequest,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> NegotiationRequestResult:
    user = authorize_or_raise(authorization, scopes=["negotiations.create"])
    with get_db_session() as db:
        try:
            session = NegotiationSessionService(db=db).open_session(payload, initiator_id=user.user_id)
        except QuoteFlowError as exc:
            raise to_http_exception(exc) from exc
        return NegotiationRequestResult(session_id=session.id, created_at=session.created_at)


@router.post("/negotiations/{session_id}/respond")
def respond_to_negotiation(
    session_id: str,
    payload: NegotiationResponse,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> NegotiationResponseResult:
    user = authorize_or_raise(authorization, scopes=["negotiations.respond"])
    if payload.session_id != session_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error_code": "validation_error", "detail": "session_id does not match the URL."},
        )
    with get_db_session() as db:
        try:
            ref = NegotiationSessionService(db=db).record_response(payload, consultant_user_id=user.user_id)
        except QuoteFlowError as exc:
            raise to_http_exception(exc) from exc
        return NegotiationResponseResult(new_version_id=ref.new_version_id, new_version_number=ref.new_version_number)


@router.post("/negotiations/{session_id}/cancel")
def cancel_negotiation(
    session_id: str,
    payload: CancelNegotiationRequest | None = None,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> NegotiationSessionResponse:
    user = authorize_or_raise(authorization, scopes=["negotiations.cancel"])
    reason = payload.reason if payload is not None else None
    with get_db_session() as db:
        try:
            session = NegotiationSessionService(db=db).cancel_session(session_id, actor_id=user.user_id, reason=reason)
        except QuoteFlowError as exc:
            raise to_http_exception(exc) from exc
        return NegotiationSessionResponse.model_validate(session)


@router.get("/negotiations/{session_id}")
def get_negotiation(
    session_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> NegotiationSessionDetails:
    authorize_or_raise(authorization, scopes=["negotiations.read"])
    with get_db_session() as db:
        try:
            return _details(NegotiationSessionService(db=db), session_id)
        except QuoteFlowError as exc:
            raise to_http_exception(exc) from exc


@router.post("/negotiations/{session_id}/comments", status_code=status.HTTP_201_CREATED)
def add_negotiation_comment(
    session_id: str,
    payload: NegotiationCommentIn,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> CommentResponse:
    user = authorize_or_raise(authorization, scopes=["negotiations.comment"])
    with get_db_session() as db:
        try:
            comment = NegotiationSessionService(db=db).add_comment(
                session_id,
                author_id=user.user_id,
                content=payload.content,
                comment_type=payload.comment_type,
                entity_reference=payload.entity_reference,
            )
        except QuoteFlowError as exc:
            raise to_http_exception(exc) from exc
        return CommentResponse.model_validate(comment)


@router.get("/negotiations/{session_id}/comments")
def list_negotiation_comments(
    session_id: str,
    comment_type: CommentType | None = Query(default=None),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[CommentResponse]:
    authorize_or_raise(authorization, scopes=["negotiations.read"])
    with get_db_session() as db:
        try:
            service = NegotiationSessionService(db=db)
            service.get_session(session_id)
            comments = service.list_comments(session_id, comment_type=comment_type)
        except QuoteFlowError as exc:
            raise to_http_exception(exc) from exc
        return [CommentResponse.model_validate(comment) for comment in comments]


@router.get("/proposals/{proposal_id}/negotiation")
def get_active_negotiation(
    proposal_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> NegotiationSessionDetails | None:
    authorize_or_raise(authorization, scopes=["negotiations.read"])
    with get_db_session() as db:
        service = NegotiationSessionService(db=db)
        session = service.get_active_for_proposal(proposal_id)
        if session is None:
            return None
        return _details(service, session.id)


@router.get("/projects/{project_id}/negotiations/active")
def list_active_negotiations(
    project_id: str,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[NegotiationSessionResponse]:
    authorize_or_raise(authorization, scopes=["negotiations.read"])
    with get_db_session() as db:
        sessions = NegotiationSessionService(db=db).list_active_for_project(project_id)
        return [NegotiationSessionResponse.model_validate(session) for session in sessions]
