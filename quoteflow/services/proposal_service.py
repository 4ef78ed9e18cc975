"""Proposal submission service."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy.orm import Session

from quoteflow.core.exceptions import ConflictError, ValidationError
from quoteflow.models.base import utcnow
from quoteflow.models.enums import ProposalStatus
from quoteflow.models.project import Advisor, Project
from quoteflow.models.proposal import Proposal
from quoteflow.services.base_service import BaseService
from quoteflow.services.identity import IdentityOracle
from quoteflow.services.versioning_service import LineItemDraft, VersioningService, validate_drafts
from quoteflow.utils.ids import new_id
from quoteflow.utils.money import to_money

logger = logging.getLogger(__name__)


class ProposalService(BaseService):
    """Creates proposals with their first version and handles resubmission."""

    def __init__(self, db: Session | None = None, identity: IdentityOracle | None = None) -> None:
        super().__init__(db)
        self.identity = identity or IdentityOracle(self.db)
        self.versioning = VersioningService(db=self.db)

    def submit_proposal(
        self,
        project_id: str,
        advisor_id: str,
        price: Decimal,
        timeline_days: int,
        line_items: Iterable[LineItemDraft] = (),
        supplier_name: str | None = None,
        scope_text: str | None = None,
        terms: str | None = None,
        created_by: str | None = None,
    ) -> Proposal:
        self.get_or_404(Project, project_id, "Project")
        self.get_or_404(Advisor, advisor_id, "Advisor")
        if timeline_days < 0:
            raise ValidationError("timeline_days must be >= 0.")
        try:
            amount = to_money(price)
        except ValueError as exc:
            raise ValidationError("price must be a finite number.") from exc
        if amount < 0:
            raise ValidationError("price must be >= 0.")
        drafts = validate_drafts(line_items)

        proposal = Proposal(
            id=new_id(),
            project_id=project_id,
            advisor_id=advisor_id,
            supplier_name=supplier_name,
            price=amount,
            timeline_days=timeline_days,
            status=ProposalStatus.SUBMITTED,
            submitted_at=utcnow(),
        )
        self.db.add(proposal)
        self.commit()

        self.versioning.create_initial_version(
            proposal_id=proposal.id,
            price=amount,
            timeline_days=timeline_days,
            line_items=drafts,
            scope_text=scope_text,
            terms=terms,
            created_by=created_by,
        )
        logger.info(
            "proposal.submitted",
            extra={"event": "proposal.submitted", "proposal_id": proposal.id, "project_id": project_id},
        )
        return proposal

    def resubmit(self, proposal_id: str, consultant_user_id: str) -> Proposal:
        proposal = self.get_or_404(Proposal, proposal_id, "Proposal")
        self.identity.require_consultant(consultant_user_id, proposal.advisor_id)
        if proposal.has_active_negotiation:
            raise ConflictError("Proposal has an active negotiation.")
        proposal.status = ProposalStatus.RESUBMITTED
        proposal.submitted_at = utcnow()
        self.commit()
        logger.info(
            "proposal.resubmitted",
            extra={"event": "proposal.resubmitted", "proposal_id": proposal.id},
        )
        return proposal
