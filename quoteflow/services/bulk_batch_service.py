"""Bulk negotiation batches: one reduction fanned out over many proposals."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from quoteflow.core.config import get_config
from quoteflow.core.exceptions import NotFoundError, QuoteFlowError, ValidationError
from quoteflow.models.bulk import BulkNegotiationBatch, BulkNegotiationMember
from quoteflow.models.enums import BATCH_ELIGIBLE_PROPOSAL_STATUSES, ReductionType
from quoteflow.models.proposal import Proposal
from quoteflow.schemas.bulk import BulkNegotiationRequest
from quoteflow.schemas.negotiations import NegotiationRequest
from quoteflow.services.activity_service import record_activity
from quoteflow.services.adjustments import reduction_targets
from quoteflow.services.base_service import BaseService
from quoteflow.services.identity import IdentityOracle
from quoteflow.services.negotiation_session_service import NegotiationSessionService
from quoteflow.utils.ids import new_id
from quoteflow.utils.validators import MESSAGE_MAX_LEN, sanitize_optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProposalOutcome:
    proposal_id: str
    session_id: str | None
    error: str | None = None


@dataclass(frozen=True)
class BatchResult:
    batch_id: str
    per_proposal: list[ProposalOutcome]


@dataclass(frozen=True)
class BatchSummary:
    id: str
    reduction_type: ReductionType
    reduction_value: Decimal
    message: str | None
    created_at: datetime
    member_count: int


@dataclass(frozen=True)
class BatchHistory:
    batches: list[BatchSummary] = field(default_factory=list)
    proposals_in_batches: set[str] = field(default_factory=set)
    new_proposals: list[str] = field(default_factory=list)
    last_batch: BatchSummary | None = None


@dataclass(frozen=True)
class _BatchPlan:
    batch_id: str
    project_id: str
    initiator_id: str
    reduction_type: ReductionType
    reduction_value: Decimal
    message: str | None


class BulkBatchService(BaseService):
    """Creates batches and answers which proposals have not been batched yet."""

    def __init__(
        self,
        db: Session | None = None,
        session_factory: sessionmaker | None = None,
        max_workers: int | None = None,
    ) -> None:
        super().__init__(db)
        # Workers get their own sessions on the caller's engine.
        self.session_factory = session_factory or sessionmaker(bind=self.db.get_bind(), autoflush=False)
        self.max_workers = max_workers or get_config().BULK_MAX_WORKERS
        self.identity = IdentityOracle(self.db)

    def create_batch(self, request: BulkNegotiationRequest, initiator_id: str) -> BatchResult:
        self.identity.require_project_owner(initiator_id, request.project_id)
        proposal_ids = list(dict.fromkeys(pid.strip() for pid in request.proposal_ids if pid and pid.strip()))
        if not proposal_ids:
            raise ValidationError("proposal_ids must not be empty.")
        # Validates type and value once so a bad reduction fails the whole batch up front.
        reduction_targets(request.reduction_type, request.reduction_value, Decimal("0"))

        plan = _BatchPlan(
            batch_id=new_id(),
            project_id=request.project_id,
            initiator_id=initiator_id,
            reduction_type=ReductionType(request.reduction_type),
            reduction_value=Decimal(request.reduction_value),
            message=sanitize_optional(request.message, MESSAGE_MAX_LEN),
        )
        self.db.add(
            BulkNegotiationBatch(
                id=plan.batch_id,
                project_id=plan.project_id,
                initiator_id=plan.initiator_id,
                reduction_type=plan.reduction_type,
                reduction_value=plan.reduction_value,
                message=plan.message,
            )
        )
        self.commit()

        workers = max(1, min(self.max_workers, len(proposal_ids)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bulk-negotiation") as pool:
            outcomes = list(pool.map(lambda pid: self._open_one(plan, pid), proposal_ids))

        in_project = set(
            self.db.scalars(
                select(Proposal.id).where(Proposal.id.in_(proposal_ids), Proposal.project_id == plan.project_id)
            )
        )
        self.db.add_all(
            BulkNegotiationMember(
                batch_id=plan.batch_id,
                proposal_id=outcome.proposal_id,
                session_id=outcome.session_id,
                error=outcome.error,
            )
            for outcome in outcomes
            if outcome.proposal_id in in_project
        )
        opened = sum(1 for outcome in outcomes if outcome.session_id)
        record_activity(
            self.db,
            action="bulk_negotiation_created",
            entity_type="bulk_negotiation_batch",
            entity_id=plan.batch_id,
            actor_id=initiator_id,
            actor_type="initiator",
            project_id=plan.project_id,
            meta={
                "reduction_type": plan.reduction_type.value,
                "reduction_value": str(plan.reduction_value),
                "proposals": len(proposal_ids),
                "opened": opened,
            },
        )
        self.commit()

        logger.info(
            "bulk_negotiation.created",
            extra={
                "event": "bulk_negotiation.created",
                "batch_id": plan.batch_id,
                "project_id": plan.project_id,
                "proposals": len(proposal_ids),
                "opened": opened,
                "skipped": len(outcomes) - opened,
            },
        )
        return BatchResult(batch_id=plan.batch_id, per_proposal=outcomes)

    def _open_one(self, plan: _BatchPlan, proposal_id: str) -> ProposalOutcome:
        """Open one session in a worker-owned DB session; failures become outcomes."""
        db = self.session_factory()
        try:
            proposal = db.get(Proposal, proposal_id)
            if proposal is None:
                raise NotFoundError(f"Proposal not found: {proposal_id}")
            if proposal.current_version_id is None:
                raise ValidationError("Proposal has no version to negotiate.")
            target_total, target_percent = reduction_targets(
                plan.reduction_type, plan.reduction_value, proposal.price
            )
            request = NegotiationRequest(
                project_id=plan.project_id,
                proposal_id=proposal.id,
                negotiated_version_id=proposal.current_version_id,
                target_total=target_total,
                target_reduction_percent=target_percent,
                global_comment=plan.message,
                bulk_message=plan.message,
            )
            session = NegotiationSessionService(db=db).open_session(request, plan.initiator_id)
            return ProposalOutcome(proposal_id=proposal_id, session_id=session.id)
        except QuoteFlowError as exc:
            db.rollback()
            logger.info(
                "bulk_negotiation.proposal.skipped",
                extra={
                    "event": "bulk_negotiation.proposal.skipped",
                    "batch_id": plan.batch_id,
                    "proposal_id": proposal_id,
                    "error_code": exc.error_code,
                },
            )
            return ProposalOutcome(proposal_id=proposal_id, session_id=None, error=str(exc))
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception(
                "bulk_negotiation.proposal.failed",
                extra={"event": "bulk_negotiation.proposal.failed", "batch_id": plan.batch_id, "proposal_id": proposal_id},
            )
            return ProposalOutcome(proposal_id=proposal_id, session_id=None, error=f"database error: {exc.__class__.__name__}")
        finally:
            db.close()

    def list_history(self, project_id: str) -> BatchHistory:
        member_counts = (
            select(BulkNegotiationMember.batch_id, func.count(BulkNegotiationMember.id).label("member_count"))
            .group_by(BulkNegotiationMember.batch_id)
            .subquery()
        )
        rows = self.db.execute(
            select(BulkNegotiationBatch, func.coalesce(member_counts.c.member_count, 0))
            .outerjoin(member_counts, member_counts.c.batch_id == BulkNegotiationBatch.id)
            .where(BulkNegotiationBatch.project_id == project_id)
            .order_by(BulkNegotiationBatch.created_at.desc(), BulkNegotiationBatch.id.desc())
        ).all()
        batches = [
            BatchSummary(
                id=batch.id,
                reduction_type=ReductionType(batch.reduction_type),
                reduction_value=batch.reduction_value,
                message=batch.message,
                created_at=batch.created_at,
                member_count=int(count),
            )
            for batch, count in rows
        ]

        batched = set(
            self.db.scalars(
                select(BulkNegotiationMember.proposal_id)
                .join(BulkNegotiationBatch, BulkNegotiationBatch.id == BulkNegotiationMember.batch_id)
                .where(BulkNegotiationBatch.project_id == project_id)
            )
        )
        last_batch = batches[0] if batches else None

        stmt = (
            select(Proposal)
            .where(
                Proposal.project_id == project_id,
                Proposal.status.in_(BATCH_ELIGIBLE_PROPOSAL_STATUSES),
            )
            .order_by(Proposal.submitted_at, Proposal.id)
        )
        if last_batch is not None:
            stmt = stmt.where(Proposal.submitted_at > last_batch.created_at)
        new_proposals = [proposal.id for proposal in self.db.scalars(stmt) if proposal.id not in batched]

        return BatchHistory(
            batches=batches,
            proposals_in_batches=batched,
            new_proposals=new_proposals,
            last_batch=last_batch,
        )
