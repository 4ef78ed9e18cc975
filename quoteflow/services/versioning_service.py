"""Versioning engine: creates immutable, gaplessly numbered proposal versions."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quoteflow.core.config import get_config
from quoteflow.core.exceptions import ConflictError, ValidationError
from quoteflow.models.proposal import Proposal, ProposalLineItem, ProposalVersion
from quoteflow.services.base_service import BaseService
from quoteflow.services.line_item_ledger import LineItemLedger, full_total
from quoteflow.utils.ids import new_id
from quoteflow.utils.money import to_money, unit_price_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItemDraft:
    """A line item as submitted with a brand new proposal."""

    name: str
    unit_price: Decimal
    quantity: Decimal = Decimal("1")
    description: str | None = None
    category: str | None = None
    is_optional: bool = False
    display_order: int | None = None


@dataclass(frozen=True)
class LineItemDiff:
    name: str
    status: str
    from_total: Decimal | None
    to_total: Decimal | None

    @property
    def change(self) -> Decimal:
        return (self.to_total or Decimal("0")) - (self.from_total or Decimal("0"))


@dataclass(frozen=True)
class VersionComparison:
    from_version_number: int
    to_version_number: int
    price_change: Decimal
    price_change_percent: int
    timeline_change: int
    items: list[LineItemDiff] = field(default_factory=list)


def content_hash(session_id: str | None, resolved_prices: Mapping[str, Decimal]) -> str:
    """Stable digest of a negotiated item set, used to detect replays."""
    canonical = {
        "session_id": session_id,
        "items": sorted([item_id, str(to_money(price))] for item_id, price in resolved_prices.items()),
    }
    encoded = json.dumps(canonical, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def _priced(name: str, quantity: Decimal, price: Decimal) -> tuple[Decimal, Decimal]:
    """Split a negotiated line price into (unit_price, total); the total is the negotiated price."""
    quantity = Decimal(quantity)
    if quantity <= 0:
        return price, price
    try:
        return unit_price_for(price, quantity), price
    except ValueError as exc:
        raise ValidationError(f"Price {price} for line item '{name}' does not split over quantity {quantity}.") from exc


def validate_drafts(line_items: Iterable[LineItemDraft]) -> list[LineItemDraft]:
    drafts = list(line_items)
    for draft in drafts:
        if Decimal(draft.quantity) <= 0:
            raise ValidationError(f"Line item '{draft.name}' must have a positive quantity.")
        if Decimal(draft.unit_price) < 0:
            raise ValidationError(f"Line item '{draft.name}' must not have a negative unit price.")
        line_total = to_money(draft.quantity) * to_money(draft.unit_price)
        if line_total != to_money(line_total):
            raise ValidationError(f"Line item '{draft.name}' total {line_total} is not a whole number of cents.")
    return drafts


class VersioningService(BaseService):
    """Materializes negotiated rounds into new ProposalVersion snapshots."""

    def __init__(self, db: Session | None = None, max_retries: int | None = None) -> None:
        super().__init__(db)
        self.ledger = LineItemLedger(db=self.db)
        self.max_retries = get_config().VERSION_ALLOCATION_RETRIES if max_retries is None else max_retries

    def _lock_proposal(self, proposal_id: str) -> Proposal:
        # FOR UPDATE serializes allocation per proposal where the backend supports row locks.
        return self.lock_or_404(Proposal, proposal_id, "Proposal")

    def _next_version_number(self, proposal_id: str) -> int:
        current = self.db.scalar(
            select(func.max(ProposalVersion.version_number)).where(ProposalVersion.proposal_id == proposal_id)
        )
        return (current or 0) + 1

    def _point_current(self, proposal_id: str, version: ProposalVersion) -> None:
        """Move the proposal's current pointer forward; never backwards."""
        proposal = self._lock_proposal(proposal_id)
        if version.version_number > proposal.current_version:
            proposal.current_version = version.version_number
            proposal.current_version_id = version.id
            proposal.price = version.price
            proposal.timeline_days = version.timeline_days
        self.commit()

    def find_by_content_hash(self, proposal_id: str, digest: str) -> ProposalVersion | None:
        stmt = select(ProposalVersion).where(
            ProposalVersion.proposal_id == proposal_id,
            ProposalVersion.content_hash == digest,
        )
        return self.db.scalars(stmt).first()

    def _insert_with_retry(self, proposal_id: str, build) -> ProposalVersion:
        """Allocate the next number and insert; retry when a concurrent writer took it."""
        for attempt in range(self.max_retries + 1):
            self._lock_proposal(proposal_id)
            number = self._next_version_number(proposal_id)
            version, items = build(number)
            self.db.add(version)
            try:
                self.flush()
                self.ledger.upsert_batch(items)
                self.commit()
            except IntegrityError:
                self.rollback()
                logger.warning(
                    "versioning.allocation.collision",
                    extra={
                        "event": "versioning.allocation.collision",
                        "proposal_id": proposal_id,
                        "version_number": number,
                        "attempt": attempt,
                    },
                )
                continue
            return version
        raise ConflictError(f"Could not allocate a version number for proposal {proposal_id}.")

    def create_initial_version(
        self,
        proposal_id: str,
        price: Decimal,
        timeline_days: int,
        line_items: Iterable[LineItemDraft] = (),
        scope_text: str | None = None,
        terms: str | None = None,
        created_by: str | None = None,
        change_reason: str | None = "initial submission",
    ) -> ProposalVersion:
        drafts = validate_drafts(line_items)

        def build(number: int) -> tuple[ProposalVersion, list[ProposalLineItem]]:
            version_id = new_id()
            items = []
            for index, draft in enumerate(drafts):
                quantity = to_money(draft.quantity)
                unit_price = to_money(draft.unit_price)
                items.append(
                    ProposalLineItem(
                        id=new_id(),
                        proposal_id=proposal_id,
                        proposal_version_id=version_id,
                        version_number=number,
                        name=draft.name,
                        description=draft.description,
                        category=draft.category,
                        quantity=quantity,
                        unit_price=unit_price,
                        total=to_money(quantity * unit_price),
                        is_optional=draft.is_optional,
                        display_order=index if draft.display_order is None else draft.display_order,
                    )
                )
            version = ProposalVersion(
                id=version_id,
                proposal_id=proposal_id,
                version_number=number,
                price=full_total(items) if items else to_money(price),
                timeline_days=timeline_days,
                scope_text=scope_text,
                terms=terms,
                created_by=created_by,
                change_reason=change_reason,
            )
            return version, items

        version = self._insert_with_retry(proposal_id, build)
        self._point_current(proposal_id, version)
        return version

    def materialize(
        self,
        proposal_id: str,
        base_version_id: str,
        resolved_prices: Mapping[str, Decimal],
        change_reason: str | None = None,
        created_by: str | None = None,
        session_id: str | None = None,
    ) -> ProposalVersion:
        """Create version N+1 from the base version with negotiated prices applied.

        Items absent from ``resolved_prices`` are carried forward unchanged.
        Replaying the same ``(session_id, resolved_prices)`` returns the version
        created the first time instead of inserting another one.
        """
        prices = {item_id: to_money(price) for item_id, price in resolved_prices.items()}
        if any(price < 0 for price in prices.values()):
            raise ValidationError("Negotiated prices must not be negative.")
        digest = content_hash(session_id, prices)

        self._lock_proposal(proposal_id)
        existing = self.find_by_content_hash(proposal_id, digest)
        if existing is not None:
            logger.info(
                "versioning.materialize.replay",
                extra={"event": "versioning.materialize.replay", "proposal_id": proposal_id, "version_id": existing.id},
            )
            self._point_current(proposal_id, existing)
            return existing

        base = self.get_or_404(ProposalVersion, base_version_id, "Proposal version")
        if base.proposal_id != proposal_id:
            raise ValidationError("Base version does not belong to the proposal.")
        base_items = self.ledger.list_for_version(proposal_id, base.id)
        unknown = set(prices) - {item.id for item in base_items}
        if unknown:
            raise ValidationError(f"Line items not in base version: {', '.join(sorted(unknown))}")
        for item in base_items:
            if item.id in prices:
                _priced(item.name, item.quantity, prices[item.id])

        def build(number: int) -> tuple[ProposalVersion, list[ProposalLineItem]]:
            version_id = new_id()
            items = [self._carry_forward(item, version_id, number, prices.get(item.id)) for item in base_items]
            version = ProposalVersion(
                id=version_id,
                proposal_id=proposal_id,
                version_number=number,
                price=full_total(items) if items else base.price,
                timeline_days=base.timeline_days,
                scope_text=base.scope_text,
                terms=base.terms,
                created_by=created_by,
                change_reason=change_reason,
                source_session_id=session_id,
                content_hash=digest,
            )
            return version, items

        try:
            version = self._insert_with_retry(proposal_id, build)
        except ConflictError:
            # A concurrent replay of the same round may have won the race.
            existing = self.find_by_content_hash(proposal_id, digest)
            if existing is None:
                raise
            version = existing
        self._point_current(proposal_id, version)
        logger.info(
            "versioning.materialized",
            extra={
                "event": "versioning.materialized",
                "proposal_id": proposal_id,
                "version_id": version.id,
                "version_number": version.version_number,
            },
        )
        return version

    @staticmethod
    def _carry_forward(
        item: ProposalLineItem, version_id: str, number: int, price: Decimal | None
    ) -> ProposalLineItem:
        if price is None:
            unit_price, total = item.unit_price, item.total
        else:
            unit_price, total = _priced(item.name, item.quantity, price)
        return ProposalLineItem(
            id=new_id(),
            proposal_id=item.proposal_id,
            proposal_version_id=version_id,
            version_number=number,
            source_line_item_id=item.id,
            name=item.name,
            description=item.description,
            category=item.category,
            quantity=item.quantity,
            unit_price=unit_price,
            total=total,
            is_optional=item.is_optional,
            display_order=item.display_order,
        )

    def list_versions(self, proposal_id: str) -> list[ProposalVersion]:
        self.get_or_404(Proposal, proposal_id, "Proposal")
        stmt = (
            select(ProposalVersion)
            .where(ProposalVersion.proposal_id == proposal_id)
            .order_by(ProposalVersion.version_number.desc())
        )
        return list(self.db.scalars(stmt))

    def get_version(self, version_id: str) -> ProposalVersion:
        return self.get_or_404(ProposalVersion, version_id, "Proposal version")

    def compare_versions(self, from_version_id: str, to_version_id: str) -> VersionComparison:
        older = self.get_version(from_version_id)
        newer = self.get_version(to_version_id)
        if older.proposal_id != newer.proposal_id:
            raise ValidationError("Versions belong to different proposals.")

        all_items = self.db.scalars(
            select(ProposalLineItem).where(ProposalLineItem.proposal_id == older.proposal_id)
        )
        lineage = {item.id: item.source_line_item_id for item in all_items}

        def root(item_id: str) -> str:
            seen = set()
            while lineage.get(item_id) and item_id not in seen:
                seen.add(item_id)
                item_id = lineage[item_id]
            return item_id

        old_items = {root(item.id): item for item in self.ledger.list_for_version(older.proposal_id, older.id)}
        new_items = {root(item.id): item for item in self.ledger.list_for_version(newer.proposal_id, newer.id)}

        diffs: list[LineItemDiff] = []
        for key, item in old_items.items():
            counterpart = new_items.get(key)
            if counterpart is None:
                diffs.append(LineItemDiff(item.name, "removed", item.total, None))
            else:
                status = "unchanged" if counterpart.total == item.total else "changed"
                diffs.append(LineItemDiff(item.name, status, item.total, counterpart.total))
        for key, item in new_items.items():
            if key not in old_items:
                diffs.append(LineItemDiff(item.name, "added", None, item.total))

        price_change = to_money(Decimal(newer.price) - Decimal(older.price))
        percent = 0
        if older.price and Decimal(older.price) > 0:
            percent = int((price_change / Decimal(older.price) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return VersionComparison(
            from_version_number=older.version_number,
            to_version_number=newer.version_number,
            price_change=price_change,
            price_change_percent=percent,
            timeline_change=newer.timeline_days - older.timeline_days,
            items=diffs,
        )
