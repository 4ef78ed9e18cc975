from __future__ import annotations

from decimal import Decimal

import pytest

from quoteflow.core.exceptions import ConflictError, ValidationError
from quoteflow.models import Proposal
from quoteflow.services.line_item_ledger import LineItemLedger
from quoteflow.services.versioning_service import LineItemDraft, VersioningService, content_hash


def test_initial_submission_creates_version_one(db, seed_proposal):
    seeded = seed_proposal()
    assert seeded.version.version_number == 1
    assert seeded.version.price == Decimal("10000.00")
    assert seeded.proposal.current_version == 1
    assert [item.total for item in seeded.items] == [Decimal("8000.00"), Decimal("2000.00")]


def test_version_numbers_are_gapless(db, seed_proposal):
    seeded = seed_proposal()
    service = VersioningService(db=db)
    core = seeded.item("Core build")

    base_id = seeded.version.id
    numbers = []
    for round_no, price in enumerate(["7900", "7800", "7700"], start=1):
        items = LineItemLedger(db=db).list_for_version(seeded.proposal.id)
        target = next(item for item in items if item.name == core.name)
        version = service.materialize(
            seeded.proposal.id,
            base_id,
            {target.id: Decimal(price)},
            change_reason=f"round {round_no}",
            session_id=f"session-{round_no}",
        )
        base_id = version.id
        numbers.append(version.version_number)

    assert numbers == [2, 3, 4]
    assert [v.version_number for v in service.list_versions(seeded.proposal.id)] == [4, 3, 2, 1]
    assert db.get(Proposal, seeded.proposal.id).current_version == 4


def test_allocation_collision_is_retried(db, seed_proposal, monkeypatch):
    seeded = seed_proposal()
    service = VersioningService(db=db)
    original = service._next_version_number
    calls = {"count": 0}

    def stale_then_real(proposal_id):
        calls["count"] += 1
        if calls["count"] == 1:
            return 1  # already taken by the initial version
        return original(proposal_id)

    monkeypatch.setattr(service, "_next_version_number", stale_then_real)
    version = service.materialize(
        seeded.proposal.id, seeded.version.id, {seeded.items[0].id: Decimal("100")}, session_id="s-1"
    )
    assert version.version_number == 2
    assert calls["count"] == 2


def test_allocation_gives_up_after_bounded_retries(db, seed_proposal, monkeypatch):
    seeded = seed_proposal()
    service = VersioningService(db=db, max_retries=1)
    monkeypatch.setattr(service, "_next_version_number", lambda proposal_id: 1)
    with pytest.raises(ConflictError):
        service.materialize(seeded.proposal.id, seeded.version.id, {seeded.items[0].id: Decimal("1")}, session_id="s")


def test_carry_forward_keeps_untouched_items_identical(db, seed_proposal):
    seeded = seed_proposal(
        line_items=[
            LineItemDraft(name="Licences", unit_price=Decimal("120.00"), quantity=Decimal("10")),
            LineItemDraft(name="Training", unit_price=Decimal("1500.00"), description="Two days"),
        ]
    )
    licences = seeded.item("Licences")
    training = seeded.item("Training")

    version = VersioningService(db=db).materialize(
        seeded.proposal.id, seeded.version.id, {licences.id: Decimal("1000.00")}, session_id="s-1"
    )
    new_items = {item.name: item for item in LineItemLedger(db=db).list_for_version(seeded.proposal.id, version.id)}

    carried = new_items["Training"]
    assert carried.id != training.id
    assert carried.source_line_item_id == training.id
    assert (carried.name, carried.unit_price, carried.quantity, carried.description) == (
        training.name,
        training.unit_price,
        training.quantity,
        training.description,
    )

    repriced = new_items["Licences"]
    assert repriced.total == Decimal("1000.00")
    assert repriced.unit_price == Decimal("100.00")
    assert repriced.quantity == licences.quantity
    assert version.price == Decimal("2500.00")


def test_materialize_replay_returns_existing_version(db, seed_proposal):
    seeded = seed_proposal()
    service = VersioningService(db=db)
    prices = {seeded.items[0].id: Decimal("7500")}

    first = service.materialize(seeded.proposal.id, seeded.version.id, prices, session_id="s-1")
    second = service.materialize(seeded.proposal.id, seeded.version.id, prices, session_id="s-1")

    assert first.id == second.id
    assert first.content_hash == content_hash("s-1", prices)
    assert len(service.list_versions(seeded.proposal.id)) == 2


def test_materialize_rejects_foreign_items_and_negative_prices(db, seed_proposal):
    seeded = seed_proposal()
    service = VersioningService(db=db)
    with pytest.raises(ValidationError):
        service.materialize(seeded.proposal.id, seeded.version.id, {"not-an-item": Decimal("1")})
    with pytest.raises(ValidationError):
        service.materialize(seeded.proposal.id, seeded.version.id, {seeded.items[0].id: Decimal("-1")})


def test_version_without_items_keeps_base_price(db, seed_proposal):
    seeded = seed_proposal(line_items=[], price=Decimal("4200.00"))
    version = VersioningService(db=db).materialize(seeded.proposal.id, seeded.version.id, {}, session_id="s-1")
    assert version.version_number == 2
    assert version.price == Decimal("4200.00")


def test_compare_versions_reports_price_and_item_changes(db, seed_proposal):
    seeded = seed_proposal()
    service = VersioningService(db=db)
    core = seeded.item("Core build")
    v2 = service.materialize(seeded.proposal.id, seeded.version.id, {core.id: Decimal("7000")}, session_id="s-1")

    comparison = service.compare_versions(seeded.version.id, v2.id)
    assert comparison.from_version_number == 1
    assert comparison.to_version_number == 2
    assert comparison.price_change == Decimal("-1000.00")
    assert comparison.price_change_percent == -10
    assert comparison.timeline_change == 0

    by_name = {diff.name: diff for diff in comparison.items}
    assert by_name["Core build"].status == "changed"
    assert by_name["Core build"].change == Decimal("-1000.00")
    assert by_name["Extended support"].status == "unchanged"


def test_negotiated_price_must_split_over_quantity(db, seed_proposal):
    seeded = seed_proposal(
        line_items=[LineItemDraft(name="Seats", unit_price=Decimal("50.00"), quantity=Decimal("3"))]
    )
    seats = seeded.item("Seats")
    service = VersioningService(db=db)

    with pytest.raises(ValidationError, match="does not split"):
        service.materialize(seeded.proposal.id, seeded.version.id, {seats.id: Decimal("100")}, session_id="s-1")
    assert len(service.list_versions(seeded.proposal.id)) == 1

    version = service.materialize(seeded.proposal.id, seeded.version.id, {seats.id: Decimal("120")}, session_id="s-2")
    [repriced] = LineItemLedger(db=db).list_for_version(seeded.proposal.id, version.id)
    assert (repriced.quantity, repriced.unit_price, repriced.total) == (Decimal("3"), Decimal("40"), Decimal("120"))
    assert repriced.quantity * repriced.unit_price == repriced.total
