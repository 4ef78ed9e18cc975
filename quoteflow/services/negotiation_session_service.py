"""Negotiation session manager: owns session lifecycle and status transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quoteflow.core.config import get_config
from quoteflow.core.exceptions import (
    ActiveNegotiationExistsError,
    AuthorizationError,
    ConflictError,
    StaleVersionError,
    ValidationError,
)
from quoteflow.models.base import utcnow
from quoteflow.models.enums import (
    ACTIVE_NEGOTIATION_STATUSES,
    AuthorType,
    CommentType,
    NegotiationStatus,
    ProposalStatus,
)
from quoteflow.models.negotiation import LineItemNegotiation, NegotiationComment, NegotiationSession
from quoteflow.models.project import Advisor
from quoteflow.models.proposal import Proposal, ProposalVersion
from quoteflow.orchestration.state_machine import negotiation_state_machine
from quoteflow.schemas.negotiations import NegotiationRequest, NegotiationResponse
from quoteflow.services.activity_service import record_activity
from quoteflow.services.base_service import BaseService
from quoteflow.services.identity import IdentityOracle
from quoteflow.services.line_item_negotiation_service import LineItemNegotiationService
from quoteflow.services.notification_service import NotificationService
from quoteflow.services.versioning_service import VersioningService, content_hash
from quoteflow.utils.ids import new_id
from quoteflow.utils.validators import MESSAGE_MAX_LEN, NOTE_MAX_LEN, sanitize_optional, sanitize_text

logger = logging.getLogger(__name__)

CLOSED_PROPOSAL_STATUSES = frozenset({ProposalStatus.ACCEPTED, ProposalStatus.REJECTED, ProposalStatus.WITHDRAWN})


@dataclass(frozen=True)
class VersionRef:
    new_version_id: str
    new_version_number: int


@dataclass
class SessionDetails:
    session: NegotiationSession
    line_items: list[LineItemNegotiation] = field(default_factory=list)
    comments: list[NegotiationComment] = field(default_factory=list)


def _money_str(value) -> str | None:
    return None if value is None else str(value)


class NegotiationSessionService(BaseService):
    """Opens, answers, cancels and expires negotiation sessions."""

    def __init__(
        self,
        db: Session | None = None,
        identity: IdentityOracle | None = None,
        notifications: NotificationService | None = None,
        versioning: VersioningService | None = None,
    ) -> None:
        super().__init__(db)
        self.identity = identity or IdentityOracle(self.db)
        self.notifications = notifications or NotificationService(db=self.db)
        self.versioning = versioning or VersioningService(db=self.db)
        self.coordinator = LineItemNegotiationService(db=self.db)

    # -- queries ---------------------------------------------------------

    def get_session(self, session_id: str) -> NegotiationSession:
        return self.get_or_404(NegotiationSession, session_id, "Negotiation session")

    def _lock_session(self, session_id: str) -> NegotiationSession:
        return self.lock_or_404(NegotiationSession, session_id, "Negotiation session", refresh=True)

    def get_active_for_proposal(self, proposal_id: str) -> NegotiationSession | None:
        stmt = select(NegotiationSession).where(
            NegotiationSession.proposal_id == proposal_id,
            NegotiationSession.status.in_(ACTIVE_NEGOTIATION_STATUSES),
        )
        return self.db.scalars(stmt).first()

    def list_active_for_project(self, project_id: str) -> list[NegotiationSession]:
        stmt = (
            select(NegotiationSession)
            .where(
                NegotiationSession.project_id == project_id,
                NegotiationSession.status.in_(ACTIVE_NEGOTIATION_STATUSES),
            )
            .order_by(NegotiationSession.created_at.desc())
        )
        return list(self.db.scalars(stmt))

    def get_session_details(self, session_id: str) -> SessionDetails:
        session = self.get_session(session_id)
        return SessionDetails(
            session=session,
            line_items=self.coordinator.rows_for_session(session.id),
            comments=self.list_comments(session.id),
        )

    def list_comments(self, session_id: str, comment_type: CommentType | None = None) -> list[NegotiationComment]:
        stmt = select(NegotiationComment).where(NegotiationComment.session_id == session_id)
        if comment_type is not None:
            stmt = stmt.where(NegotiationComment.comment_type == comment_type)
        return list(self.db.scalars(stmt.order_by(NegotiationComment.created_at, NegotiationComment.id)))

    def add_comment(
        self,
        session_id: str,
        author_id: str,
        content: str,
        comment_type: CommentType = CommentType.GENERAL,
        entity_reference: str | None = None,
    ) -> NegotiationComment:
        session = self.get_session(session_id)
        if self.identity.controls_project(author_id, session.project_id):
            author_type = AuthorType.INITIATOR
        elif self.identity.is_consultant(author_id, session.consultant_advisor_id):
            author_type = AuthorType.CONSULTANT
        else:
            raise AuthorizationError("Not authorized - only negotiation participants may comment.")

        text = sanitize_text(content, MESSAGE_MAX_LEN)
        if not text:
            raise ValidationError("Comment content must not be empty.")
        comment = NegotiationComment(
            session_id=session.id,
            author_id=author_id,
            author_type=author_type,
            comment_type=CommentType(comment_type),
            entity_reference=sanitize_optional(entity_reference, 255),
            content=text,
        )
        self.db.add(comment)
        self.commit()
        return comment

    # -- transitions -----------------------------------------------------

    @staticmethod
    def _transition(session: NegotiationSession, target: NegotiationStatus) -> None:
        negotiation_state_machine.assert_transition(NegotiationStatus(session.status), target)
        session.status = target
        session.updated_at = utcnow()

    def open_session(self, request: NegotiationRequest, initiator_id: str) -> NegotiationSession:
        """Open a negotiation on the proposal's current version.

        Everything is validated before the first write. The partial unique
        index on active sessions turns a lost race into ActiveNegotiationExistsError.
        """
        self.identity.require_project_owner(initiator_id, request.project_id)
        proposal = self.get_or_404(Proposal, request.proposal_id, "Proposal")
        if proposal.project_id != request.project_id:
            raise ValidationError("Proposal does not belong to the project.")
        if proposal.status in CLOSED_PROPOSAL_STATUSES:
            raise ConflictError(f"Proposal is {ProposalStatus(proposal.status).value} and can no longer be negotiated.")
        version = self.get_or_404(ProposalVersion, request.negotiated_version_id, "Proposal version")
        if version.proposal_id != proposal.id:
            raise ValidationError("Negotiated version does not belong to the proposal.")
        if proposal.current_version_id != version.id:
            raise StaleVersionError(
                f"Version {version.version_number} is not the current version of proposal {proposal.id}."
            )

        self.coordinator.validate_request_targets(request)
        existing = self.get_active_for_proposal(proposal.id)
        if existing is not None:
            raise ActiveNegotiationExistsError(
                "An active negotiation already exists for this proposal.", existing_session_id=existing.id
            )
        resolved = self.coordinator.resolve_adjustments(
            proposal.id, version.id, request.line_item_adjustments
        )

        global_comment = sanitize_optional(request.global_comment, MESSAGE_MAX_LEN)
        session = NegotiationSession(
            id=new_id(),
            proposal_id=proposal.id,
            project_id=proposal.project_id,
            negotiated_version_id=version.id,
            initiator_id=initiator_id,
            consultant_advisor_id=proposal.advisor_id,
            status=NegotiationStatus.OPEN,
            target_total=request.target_total,
            target_reduction_percent=request.target_reduction_percent,
            global_comment=global_comment,
            bulk_message=sanitize_optional(request.bulk_message, MESSAGE_MAX_LEN),
            initiator_message=global_comment,
        )
        advisor = self.db.get(Advisor, proposal.advisor_id) if proposal.advisor_id else None
        if advisor is not None:
            self._transition(session, NegotiationStatus.AWAITING_RESPONSE)
        self.db.add(session)
        try:
            self.flush()
        except IntegrityError as exc:
            raise self._active_conflict(proposal.id) from exc

        self.coordinator.stage_targets(session, resolved)
        for comment in request.comments:
            self.db.add(
                NegotiationComment(
                    session_id=session.id,
                    author_id=initiator_id,
                    author_type=AuthorType.INITIATOR,
                    comment_type=comment.comment_type,
                    entity_reference=sanitize_optional(comment.entity_reference, 255),
                    content=sanitize_text(comment.content, MESSAGE_MAX_LEN),
                )
            )
        proposal.status = ProposalStatus.NEGOTIATION_REQUESTED
        proposal.has_active_negotiation = True
        proposal.negotiation_count = (proposal.negotiation_count or 0) + 1
        record_activity(
            self.db,
            action="negotiation_requested",
            entity_type="negotiation_session",
            entity_id=session.id,
            actor_id=initiator_id,
            actor_type=AuthorType.INITIATOR.value,
            project_id=proposal.project_id,
            meta={
                "proposal_id": proposal.id,
                "line_items": len(resolved),
                "target_total": _money_str(request.target_total),
                "bulk": request.bulk_message is not None,
            },
        )
        try:
            self.commit()
        except IntegrityError as exc:
            raise self._active_conflict(proposal.id) from exc

        logger.info(
            "negotiation.opened",
            extra={
                "event": "negotiation.opened",
                "session_id": session.id,
                "proposal_id": proposal.id,
                "project_id": proposal.project_id,
                "status": NegotiationStatus(session.status).value,
            },
        )
        self.notifications.enqueue(
            advisor.user_id if advisor is not None else None,
            "negotiation_request",
            {
                "session_id": session.id,
                "proposal_id": proposal.id,
                "project_id": proposal.project_id,
                "line_items": len(resolved),
                "target_total": _money_str(request.target_total),
                "message": global_comment,
            },
        )
        return session

    def _active_conflict(self, proposal_id: str) -> ActiveNegotiationExistsError:
        existing = self.get_active_for_proposal(proposal_id)
        return ActiveNegotiationExistsError(
            "An active negotiation already exists for this proposal.",
            existing_session_id=existing.id if existing is not None else None,
        )

    def record_response(self, response: NegotiationResponse, consultant_user_id: str) -> VersionRef:
        """Apply the consultant's counter-offer and materialize the next version.

        The response is committed as ``responded`` before the version is
        created, so a crash in between is recovered by calling this again.
        """
        session = self._lock_session(response.session_id)
        self.identity.require_consultant(consultant_user_id, session.consultant_advisor_id)
        status = NegotiationStatus(session.status)

        if status is NegotiationStatus.CANCELLED:
            raise ConflictError("Negotiation session was cancelled.")
        if status is NegotiationStatus.RESOLVED:
            return self._replay(session, response)

        if status is NegotiationStatus.RESPONDED:
            prices = self.coordinator.recorded_prices(session)
            if response.updated_line_items and self.coordinator.validate_response(
                session, response.updated_line_items
            ) != prices:
                raise ConflictError("A different response is already recorded for this negotiation.")
            logger.warning(
                "negotiation.response.recovering",
                extra={"event": "negotiation.response.recovering", "session_id": session.id},
            )
        else:
            prices = self.coordinator.validate_response(session, response.updated_line_items)
            proposal = self.get_or_404(Proposal, session.proposal_id, "Proposal")
            if proposal.current_version_id != session.negotiated_version_id:
                raise StaleVersionError("The proposal moved past the negotiated version.")
            self.coordinator.record_counter_offers(session, response.updated_line_items)
            session.consultant_response_message = sanitize_optional(response.consultant_message, MESSAGE_MAX_LEN)
            session.responded_at = utcnow()
            self._transition(session, NegotiationStatus.RESPONDED)
            self.commit()

        version = self.versioning.materialize(
            proposal_id=session.proposal_id,
            base_version_id=session.negotiated_version_id,
            resolved_prices=prices,
            change_reason=sanitize_optional(session.consultant_response_message, NOTE_MAX_LEN)
            or "negotiation response",
            created_by=consultant_user_id,
            session_id=session.id,
        )

        session = self._lock_session(session.id)
        self.coordinator.finalize(session)
        session.result_version_id = version.id
        session.resolved_at = utcnow()
        self._transition(session, NegotiationStatus.RESOLVED)
        proposal = self.get_or_404(Proposal, session.proposal_id, "Proposal")
        proposal.status = ProposalStatus.RESUBMITTED
        proposal.has_active_negotiation = False
        record_activity(
            self.db,
            action="negotiation_responded",
            entity_type="negotiation_session",
            entity_id=session.id,
            actor_id=consultant_user_id,
            actor_type=AuthorType.CONSULTANT.value,
            project_id=session.project_id,
            meta={
                "proposal_id": session.proposal_id,
                "version_id": version.id,
                "version_number": version.version_number,
                "price": _money_str(version.price),
            },
        )
        self.commit()

        logger.info(
            "negotiation.resolved",
            extra={
                "event": "negotiation.resolved",
                "session_id": session.id,
                "proposal_id": session.proposal_id,
                "version_number": version.version_number,
            },
        )
        self.notifications.enqueue(
            session.initiator_id,
            "negotiation_response",
            {
                "session_id": session.id,
                "proposal_id": session.proposal_id,
                "new_version_id": version.id,
                "new_version_number": version.version_number,
                "price": _money_str(version.price),
                "message": session.consultant_response_message,
            },
        )
        return VersionRef(new_version_id=version.id, new_version_number=version.version_number)

    def _replay(self, session: NegotiationSession, response: NegotiationResponse) -> VersionRef:
        prices = self.coordinator.validate_response(session, response.updated_line_items)
        version = self.versioning.find_by_content_hash(session.proposal_id, content_hash(session.id, prices))
        if version is None or version.id != session.result_version_id:
            raise ConflictError("Negotiation session is already resolved with a different response.")
        logger.info(
            "negotiation.response.replayed",
            extra={"event": "negotiation.response.replayed", "session_id": session.id, "version_id": version.id},
        )
        return VersionRef(new_version_id=version.id, new_version_number=version.version_number)

    def _cancel(
        self,
        session: NegotiationSession,
        actor_id: str | None,
        actor_type: str,
        action: str,
        reason: str | None,
    ) -> None:
        self._transition(session, NegotiationStatus.CANCELLED)
        session.resolved_at = utcnow()
        session.cancelled_by = actor_id
        session.cancel_reason = sanitize_optional(reason, NOTE_MAX_LEN)
        proposal = self.db.get(Proposal, session.proposal_id)
        if proposal is not None:
            proposal.has_active_negotiation = False
        record_activity(
            self.db,
            action=action,
            entity_type="negotiation_session",
            entity_id=session.id,
            actor_id=actor_id,
            actor_type=actor_type,
            project_id=session.project_id,
            meta={"proposal_id": session.proposal_id, "reason": session.cancel_reason},
        )

    def cancel_session(self, session_id: str, actor_id: str, reason: str | None = None) -> NegotiationSession:
        session = self._lock_session(session_id)
        self.identity.require_project_owner(actor_id, session.project_id)
        self._cancel(
            session,
            actor_id=actor_id,
            actor_type=AuthorType.INITIATOR.value,
            action="negotiation_cancelled",
            reason=reason,
        )
        self.commit()
        logger.info(
            "negotiation.cancelled",
            extra={"event": "negotiation.cancelled", "session_id": session.id, "proposal_id": session.proposal_id},
        )
        return session

    def expire_stale_sessions(
        self, older_than_days: int | None = None, now: datetime | None = None
    ) -> list[str]:
        """Cancel sessions left awaiting a response past the threshold; returns expired ids."""
        days = get_config().NEGOTIATION_STALE_DAYS if older_than_days is None else older_than_days
        threshold = (now or utcnow()) - timedelta(days=days)
        stmt = select(NegotiationSession.id).where(
            NegotiationSession.status == NegotiationStatus.AWAITING_RESPONSE,
            NegotiationSession.created_at < threshold,
        )
        candidates = list(self.db.scalars(stmt))

        expired: list[str] = []
        for session_id in candidates:
            try:
                session = self._lock_session(session_id)
                self._cancel(
                    session,
                    actor_id=None,
                    actor_type="system",
                    action="negotiation_session_expired",
                    reason=f"No response within {days} days.",
                )
                self.commit()
            except ConflictError:
                # Answered or cancelled since the scan.
                self.rollback()
                logger.info(
                    "negotiation.expiry.skipped",
                    extra={"event": "negotiation.expiry.skipped", "session_id": session_id},
                )
                continue
            expired.append(session.id)
            self.notifications.enqueue(
                session.initiator_id,
                "negotiation_expired",
                {"session_id": session.id, "proposal_id": session.proposal_id, "days": days},
            )

        logger.info(
            "negotiation.expiry.completed",
            extra={
                "event": "negotiation.expiry.completed",
                "scanned": len(candidates),
                "expired": len(expired),
                "older_than_days": days,
            },
        )
        return expired
