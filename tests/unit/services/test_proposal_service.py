from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select

from quoteflow.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from quoteflow.models import Proposal, ProposalStatus
from quoteflow.schemas.negotiations import NegotiationRequest
from quoteflow.services.negotiation_session_service import NegotiationSessionService
from quoteflow.services.proposal_service import ProposalService
from quoteflow.services.versioning_service import LineItemDraft


def test_submit_creates_first_version_with_items(db, seed_proposal):
    seeded = seed_proposal(
        line_items=[
            LineItemDraft(name="Design", unit_price=Decimal("150.00"), quantity=Decimal("4")),
            LineItemDraft(name="Launch", unit_price=Decimal("900.00")),
        ]
    )

    assert seeded.proposal.status == ProposalStatus.SUBMITTED
    assert seeded.proposal.submitted_at is not None
    assert seeded.version.version_number == 1
    assert seeded.version.change_reason == "initial submission"
    assert seeded.version.price == Decimal("1500.00")
    assert [item.total for item in seeded.items] == [Decimal("600.00"), Decimal("900.00")]
    assert [item.display_order for item in seeded.items] == [0, 1]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"price": Decimal("-1"), "timeline_days": 10},
        {"price": Decimal("100"), "timeline_days": -1},
        {"price": "NaN", "timeline_days": 10},
    ],
)
def test_submit_rejects_bad_terms(db, seed_proposal, kwargs):
    seeded = seed_proposal()
    with pytest.raises(ValidationError):
        ProposalService(db=db).submit_proposal(
            project_id=seeded.project.id, advisor_id=seeded.advisor.id, **kwargs
        )


def test_submit_rejects_items_with_fractional_cent_totals(db, seed_proposal):
    seeded = seed_proposal()
    with pytest.raises(ValidationError, match="whole number of cents"):
        ProposalService(db=db).submit_proposal(
            project_id=seeded.project.id,
            advisor_id=seeded.advisor.id,
            price=Decimal("1"),
            timeline_days=1,
            line_items=[LineItemDraft(name="Hours", unit_price=Decimal("0.33"), quantity=Decimal("1.5"))],
        )
    assert [proposal.id for proposal in db.scalars(select(Proposal))] == [seeded.proposal.id]


def test_submit_requires_known_project(db, seed_proposal):
    seeded = seed_proposal()
    with pytest.raises(NotFoundError):
        ProposalService(db=db).submit_proposal(
            project_id="missing", advisor_id=seeded.advisor.id, price=Decimal("1"), timeline_days=1
        )


def test_resubmit_is_blocked_during_negotiation(db, seed_proposal):
    seeded = seed_proposal()
    service = ProposalService(db=db)
    session = NegotiationSessionService(db=db).open_session(
        NegotiationRequest(
            project_id=seeded.project.id,
            proposal_id=seeded.proposal.id,
            negotiated_version_id=seeded.version.id,
            target_total=Decimal("9000"),
        ),
        seeded.project.owner_id,
    )

    with pytest.raises(AuthorizationError):
        service.resubmit(seeded.proposal.id, seeded.project.owner_id)
    with pytest.raises(ConflictError):
        service.resubmit(seeded.proposal.id, seeded.advisor.user_id)

    NegotiationSessionService(db=db).cancel_session(session.id, seeded.project.owner_id)
    proposal = service.resubmit(seeded.proposal.id, seeded.advisor.user_id)
    assert proposal.status == ProposalStatus.RESUBMITTED
