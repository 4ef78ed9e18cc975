from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from quoteflow.core.exceptions import (
    ActiveNegotiationExistsError,
    AuthorizationError,
    ConflictError,
    StaleVersionError,
    ValidationError,
)
from quoteflow.models import (
    ActivityLog,
    NegotiationSession,
    NegotiationStatus,
    NotificationOutbox,
    Proposal,
    ProposalStatus,
)
from quoteflow.models.base import utcnow
from quoteflow.models.enums import AuthorType, CommentType
from quoteflow.schemas.negotiations import (
    LineItemAdjustmentIn,
    NegotiationCommentIn,
    NegotiationRequest,
    NegotiationResponse,
    UpdatedLineItemIn,
)
from quoteflow.services.line_item_ledger import LineItemLedger
from quoteflow.services.negotiation_session_service import NegotiationSessionService
from quoteflow.services.versioning_service import LineItemDraft, VersioningService


def _request(seeded, **overrides) -> NegotiationRequest:
    data = {
        "project_id": seeded.project.id,
        "proposal_id": seeded.proposal.id,
        "negotiated_version_id": seeded.version.id,
        "global_comment": "Please review the build cost.",
    }
    data.update(overrides)
    return NegotiationRequest(**data)


def _discount(item, percent: str = "10") -> list[LineItemAdjustmentIn]:
    return [
        LineItemAdjustmentIn(
            line_item_id=item.id,
            adjustment_type="percentage_discount",
            adjustment_value=Decimal(percent),
        )
    ]


def _response(session_id: str, *offers: tuple[str, str], message: str = "Best we can do.") -> NegotiationResponse:
    return NegotiationResponse(
        session_id=session_id,
        consultant_message=message,
        updated_line_items=[
            UpdatedLineItemIn(line_item_id=item_id, consultant_response_price=Decimal(price)) for item_id, price in offers
        ],
    )


def _outbox(db, template: str) -> list[NotificationOutbox]:
    return list(db.scalars(select(NotificationOutbox).where(NotificationOutbox.template == template)))


def test_open_session_resolves_targets_and_flags_proposal(db, seed_proposal):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    service = NegotiationSessionService(db=db)

    session = service.open_session(
        _request(seeded, line_item_adjustments=_discount(core)), initiator_id=seeded.project.owner_id
    )

    assert session.status == NegotiationStatus.AWAITING_RESPONSE
    assert session.consultant_advisor_id == seeded.advisor.id
    assert session.initiator_message == "Please review the build cost."

    details = service.get_session_details(session.id)
    assert len(details.line_items) == 1
    row = details.line_items[0]
    assert row.original_price == Decimal("8000.00")
    assert row.initiator_target_price == Decimal("7200.00")
    assert row.consultant_response_price is None

    proposal = db.get(Proposal, seeded.proposal.id)
    assert proposal.status == ProposalStatus.NEGOTIATION_REQUESTED
    assert proposal.has_active_negotiation is True
    assert proposal.negotiation_count == 1

    [notification] = _outbox(db, "negotiation_request")
    assert notification.recipient_id == seeded.advisor.user_id
    assert notification.payload["session_id"] == session.id
    actions = [row.action for row in db.scalars(select(ActivityLog))]
    assert actions == ["negotiation_requested"]


def test_second_open_reports_existing_session(db, seed_proposal):
    seeded = seed_proposal()
    service = NegotiationSessionService(db=db)
    first = service.open_session(_request(seeded, target_total=Decimal("9000")), seeded.project.owner_id)

    with pytest.raises(ActiveNegotiationExistsError) as exc:
        service.open_session(_request(seeded, target_total=Decimal("8500")), seeded.project.owner_id)
    assert exc.value.existing_session_id == first.id
    assert exc.value.error_code == "ACTIVE_NEGOTIATION_EXISTS"


def test_unique_index_rejects_a_racing_open(db, seed_proposal, monkeypatch):
    seeded = seed_proposal()
    service = NegotiationSessionService(db=db)
    first = service.open_session(_request(seeded, target_total=Decimal("9000")), seeded.project.owner_id)

    real_lookup = service.get_active_for_proposal
    calls = {"count": 0}

    def miss_first_lookup(proposal_id):
        calls["count"] += 1
        if calls["count"] == 1:
            return None  # the pre-check lost the race
        return real_lookup(proposal_id)

    monkeypatch.setattr(service, "get_active_for_proposal", miss_first_lookup)
    with pytest.raises(ActiveNegotiationExistsError) as exc:
        service.open_session(_request(seeded, target_total=Decimal("8500")), seeded.project.owner_id)

    assert exc.value.existing_session_id == first.id
    active = db.scalars(
        select(NegotiationSession).where(NegotiationSession.proposal_id == seeded.proposal.id)
    ).all()
    assert len(active) == 1


@pytest.mark.parametrize(
    "overrides",
    [
        {},
        {"line_item_adjustments": [
            LineItemAdjustmentIn(line_item_id="unknown", adjustment_type="price_change", adjustment_value=Decimal("1"))
        ]},
    ],
)
def test_open_rejects_requests_without_valid_targets(db, seed_proposal, overrides):
    seeded = seed_proposal()
    with pytest.raises(ValidationError):
        NegotiationSessionService(db=db).open_session(_request(seeded, **overrides), seeded.project.owner_id)
    assert db.scalars(select(NegotiationSession)).first() is None


def test_open_rejects_duplicate_and_over_discounted_items(db, seed_proposal):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    service = NegotiationSessionService(db=db)

    with pytest.raises(ValidationError):
        service.open_session(
            _request(seeded, line_item_adjustments=_discount(core) + _discount(core, "5")), seeded.project.owner_id
        )
    over = [LineItemAdjustmentIn(line_item_id=core.id, adjustment_type="flat_discount", adjustment_value=Decimal("9000"))]
    with pytest.raises(ValidationError):
        service.open_session(_request(seeded, line_item_adjustments=over), seeded.project.owner_id)

    proposal = db.get(Proposal, seeded.proposal.id)
    assert proposal.has_active_negotiation is False
    assert proposal.negotiation_count == 0


def test_open_requires_project_owner(db, seed_proposal):
    seeded = seed_proposal()
    with pytest.raises(AuthorizationError):
        NegotiationSessionService(db=db).open_session(_request(seeded, target_total=Decimal("1")), "someone-else")


def test_open_rejects_closed_proposals(db, seed_proposal):
    seeded = seed_proposal()
    proposal = db.get(Proposal, seeded.proposal.id)
    proposal.status = ProposalStatus.REJECTED
    db.commit()
    with pytest.raises(ConflictError):
        NegotiationSessionService(db=db).open_session(_request(seeded, target_total=Decimal("1")), seeded.project.owner_id)


def test_end_to_end_round_creates_version_two(db, seed_proposal):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, line_item_adjustments=_discount(core)), seeded.project.owner_id)

    ref = service.record_response(_response(session.id, (core.id, "7500.00")), seeded.advisor.user_id)

    assert ref.new_version_number == 2
    new_items = {item.name: item.total for item in LineItemLedger(db=db).list_for_version(seeded.proposal.id)}
    assert new_items == {"Core build": Decimal("7500.00"), "Extended support": Decimal("2000.00")}

    resolved = service.get_session(session.id)
    assert resolved.status == NegotiationStatus.RESOLVED
    assert resolved.result_version_id == ref.new_version_id
    assert resolved.responded_at is not None
    assert resolved.resolved_at is not None
    assert resolved.consultant_response_message == "Best we can do."
    [row] = service.get_session_details(session.id).line_items
    assert row.consultant_response_price == Decimal("7500.00")
    assert row.final_price == Decimal("7500.00")

    proposal = db.get(Proposal, seeded.proposal.id)
    assert proposal.status == ProposalStatus.RESUBMITTED
    assert proposal.has_active_negotiation is False
    assert proposal.current_version == 2
    assert proposal.current_version_id == ref.new_version_id
    assert proposal.price == Decimal("9500.00")

    [notification] = _outbox(db, "negotiation_response")
    assert notification.recipient_id == seeded.project.owner_id
    assert notification.payload["new_version_number"] == 2


def test_replayed_response_returns_same_version(db, seed_proposal):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, line_item_adjustments=_discount(core)), seeded.project.owner_id)
    response = _response(session.id, (core.id, "7500.00"))

    first = service.record_response(response, seeded.advisor.user_id)
    second = service.record_response(response, seeded.advisor.user_id)

    assert first == second
    assert [v.version_number for v in VersioningService(db=db).list_versions(seeded.proposal.id)] == [2, 1]
    assert len(_outbox(db, "negotiation_response")) == 1


def test_different_response_after_resolution_conflicts(db, seed_proposal):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, line_item_adjustments=_discount(core)), seeded.project.owner_id)
    service.record_response(_response(session.id, (core.id, "7500.00")), seeded.advisor.user_id)

    with pytest.raises(ConflictError):
        service.record_response(_response(session.id, (core.id, "7400.00")), seeded.advisor.user_id)


def test_crash_between_response_and_version_is_recovered(db, seed_proposal, monkeypatch):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, line_item_adjustments=_discount(core)), seeded.project.owner_id)

    real_materialize = service.versioning.materialize
    calls = {"count": 0}

    def crash_once(**kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise RuntimeError("worker died")
        return real_materialize(**kwargs)

    monkeypatch.setattr(service.versioning, "materialize", crash_once)
    response = _response(session.id, (core.id, "7500.00"))
    with pytest.raises(RuntimeError):
        service.record_response(response, seeded.advisor.user_id)
    assert service.get_session(session.id).status == NegotiationStatus.RESPONDED

    ref = service.record_response(response, seeded.advisor.user_id)
    assert ref.new_version_number == 2
    assert service.get_session(session.id).status == NegotiationStatus.RESOLVED


def test_response_is_limited_to_negotiated_items(db, seed_proposal):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    support = seeded.item("Extended support")
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, line_item_adjustments=_discount(core)), seeded.project.owner_id)

    with pytest.raises(ValidationError):
        service.record_response(_response(session.id, (support.id, "1500")), seeded.advisor.user_id)
    with pytest.raises(ValidationError):
        service.record_response(_response(session.id, (core.id, "-1")), seeded.advisor.user_id)
    with pytest.raises(ValidationError):
        service.record_response(_response(session.id), seeded.advisor.user_id)
    assert service.get_session(session.id).status == NegotiationStatus.AWAITING_RESPONSE


def test_session_level_request_lets_consultant_pick_items(db, seed_proposal):
    seeded = seed_proposal()
    support = seeded.item("Extended support")
    service = NegotiationSessionService(db=db)
    session = service.open_session(
        _request(seeded, target_total=Decimal("9000"), target_reduction_percent=Decimal("10")),
        seeded.project.owner_id,
    )
    assert service.get_session_details(session.id).line_items == []

    ref = service.record_response(_response(session.id, (support.id, "1000.00")), seeded.advisor.user_id)
    version = VersioningService(db=db).get_version(ref.new_version_id)
    assert version.price == Decimal("9000.00")
    [row] = service.get_session_details(session.id).line_items
    assert row.adjustment_type is None
    assert row.original_price == Decimal("2000.00")
    assert row.final_price == Decimal("1000.00")


def test_response_requires_the_proposal_consultant(db, seed_proposal):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, line_item_adjustments=_discount(core)), seeded.project.owner_id)
    with pytest.raises(AuthorizationError):
        service.record_response(_response(session.id, (core.id, "7500")), "another-consultant")


def test_response_on_moved_proposal_is_stale(db, seed_proposal):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, line_item_adjustments=_discount(core)), seeded.project.owner_id)
    VersioningService(db=db).materialize(seeded.proposal.id, seeded.version.id, {core.id: Decimal("7000")})

    with pytest.raises(StaleVersionError):
        service.record_response(_response(session.id, (core.id, "7500")), seeded.advisor.user_id)


def test_open_on_superseded_version_is_stale(db, seed_proposal):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, line_item_adjustments=_discount(core)), seeded.project.owner_id)
    service.record_response(_response(session.id, (core.id, "7500")), seeded.advisor.user_id)

    with pytest.raises(StaleVersionError):
        service.open_session(_request(seeded, target_total=Decimal("9000")), seeded.project.owner_id)


def test_cancel_releases_the_proposal(db, seed_proposal):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, line_item_adjustments=_discount(core)), seeded.project.owner_id)

    cancelled = service.cancel_session(session.id, seeded.project.owner_id, reason="Budget frozen")
    assert cancelled.status == NegotiationStatus.CANCELLED
    assert cancelled.cancel_reason == "Budget frozen"
    assert cancelled.cancelled_by == seeded.project.owner_id
    assert cancelled.resolved_at is not None
    assert db.get(Proposal, seeded.proposal.id).has_active_negotiation is False

    with pytest.raises(ConflictError):
        service.cancel_session(session.id, seeded.project.owner_id)
    with pytest.raises(ConflictError):
        service.record_response(_response(session.id, (core.id, "7500")), seeded.advisor.user_id)

    reopened = service.open_session(_request(seeded, target_total=Decimal("9500")), seeded.project.owner_id)
    assert reopened.id != session.id


def test_cancel_requires_project_owner(db, seed_proposal):
    seeded = seed_proposal()
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, target_total=Decimal("9000")), seeded.project.owner_id)
    with pytest.raises(AuthorizationError):
        service.cancel_session(session.id, seeded.advisor.user_id)


def test_new_session_allowed_after_resolution(db, seed_proposal):
    seeded = seed_proposal()
    core = seeded.item("Core build")
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, line_item_adjustments=_discount(core)), seeded.project.owner_id)
    ref = service.record_response(_response(session.id, (core.id, "7500")), seeded.advisor.user_id)

    second = service.open_session(
        _request(seeded, negotiated_version_id=ref.new_version_id, target_total=Decimal("9000")),
        seeded.project.owner_id,
    )
    assert second.status == NegotiationStatus.AWAITING_RESPONSE
    assert db.get(Proposal, seeded.proposal.id).negotiation_count == 2


def test_comments_are_attributed_and_filterable(db, seed_proposal):
    seeded = seed_proposal()
    service = NegotiationSessionService(db=db)
    session = service.open_session(
        _request(
            seeded,
            target_total=Decimal("9000"),
            comments=[NegotiationCommentIn(comment_type="scope", content="Drop the second workshop?")],
        ),
        seeded.project.owner_id,
    )
    reply = service.add_comment(
        session.id, seeded.advisor.user_id, "Possible, see milestone 2.", comment_type=CommentType.MILESTONE
    )
    assert reply.author_type == AuthorType.CONSULTANT

    comments = service.list_comments(session.id)
    assert [comment.author_type for comment in comments] == [AuthorType.INITIATOR, AuthorType.CONSULTANT]
    assert [c.content for c in service.list_comments(session.id, CommentType.SCOPE)] == ["Drop the second workshop?"]

    with pytest.raises(AuthorizationError):
        service.add_comment(session.id, "outsider", "hello")
    with pytest.raises(ValidationError):
        service.add_comment(session.id, seeded.project.owner_id, "   ")


def test_list_active_for_project(db, seed_proposal):
    first = seed_proposal()
    second = seed_proposal(project=first.project, advisor=first.advisor)
    service = NegotiationSessionService(db=db)
    one = service.open_session(_request(first, target_total=Decimal("9000")), first.project.owner_id)
    service.open_session(_request(second, target_total=Decimal("9000")), first.project.owner_id)
    assert len(service.list_active_for_project(first.project.id)) == 2

    service.cancel_session(one.id, first.project.owner_id)
    active = service.list_active_for_project(first.project.id)
    assert [session.proposal_id for session in active] == [second.proposal.id]
    assert service.get_active_for_proposal(first.proposal.id) is None


def test_expire_stale_sessions_cancels_old_waiting_sessions(db, seed_proposal):
    seeded = seed_proposal()
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, target_total=Decimal("9000")), seeded.project.owner_id)

    assert service.expire_stale_sessions(older_than_days=30) == []

    expired = service.expire_stale_sessions(older_than_days=30, now=utcnow() + timedelta(days=31))
    assert expired == [session.id]
    stale = service.get_session(session.id)
    assert stale.status == NegotiationStatus.CANCELLED
    assert stale.cancelled_by is None
    assert "30 days" in stale.cancel_reason
    assert db.get(Proposal, seeded.proposal.id).has_active_negotiation is False

    [notification] = _outbox(db, "negotiation_expired")
    assert notification.recipient_id == seeded.project.owner_id
    assert service.expire_stale_sessions(older_than_days=30, now=utcnow() + timedelta(days=31)) == []


def test_counter_price_must_split_over_item_quantity(db, seed_proposal):
    seeded = seed_proposal(
        line_items=[LineItemDraft(name="Seats", unit_price=Decimal("50.00"), quantity=Decimal("3"))]
    )
    seats = seeded.item("Seats")
    service = NegotiationSessionService(db=db)
    session = service.open_session(_request(seeded, line_item_adjustments=_discount(seats)), seeded.project.owner_id)

    with pytest.raises(ValidationError):
        service.record_response(_response(session.id, (seats.id, "100")), seeded.advisor.user_id)
    assert service.get_session(session.id).status == NegotiationStatus.AWAITING_RESPONSE

    ref = service.record_response(_response(session.id, (seats.id, "135")), seeded.advisor.user_id)
    assert ref.new_version_number == 2
    [repriced] = LineItemLedger(db=db).list_for_version(seeded.proposal.id, ref.new_version_id)
    assert repriced.unit_price == Decimal("45.00")
    assert repriced.quantity * repriced.unit_price == repriced.total
