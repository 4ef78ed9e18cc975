"""Line item ledger: priced items attached to one proposal version."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import select

from quoteflow.models.proposal import Proposal, ProposalLineItem
from quoteflow.services.base_service import BaseService
from quoteflow.utils.money import to_money

DEFAULT_CATEGORY = "general"


def total(items: Iterable[ProposalLineItem], include_optional: bool = False) -> Decimal:
    """Sum stored totals; optional items count only when include_optional is set."""
    amount = sum(
        (Decimal(item.total) for item in items if include_optional or not item.is_optional),
        Decimal("0"),
    )
    return to_money(amount)


def required_total(items: Iterable[ProposalLineItem]) -> Decimal:
    return total(items, include_optional=False)


def full_total(items: Iterable[ProposalLineItem]) -> Decimal:
    return total(items, include_optional=True)


def split_optional(items: Iterable[ProposalLineItem]) -> tuple[list[ProposalLineItem], list[ProposalLineItem]]:
    required: list[ProposalLineItem] = []
    optional: list[ProposalLineItem] = []
    for item in items:
        (optional if item.is_optional else required).append(item)
    return required, optional


def group_by_category(items: Iterable[ProposalLineItem]) -> dict[str, list[ProposalLineItem]]:
    groups: dict[str, list[ProposalLineItem]] = {}
    for item in items:
        groups.setdefault(item.category or DEFAULT_CATEGORY, []).append(item)
    return groups


class LineItemLedger(BaseService):
    """Reads and writes ProposalLineItem rows for a proposal version."""

    def list_for_version(self, proposal_id: str, version_id: str | None = None) -> list[ProposalLineItem]:
        """Items of the given version (current version when omitted), by display order."""
        proposal = self.get_or_404(Proposal, proposal_id, "Proposal")
        resolved_version_id = version_id or proposal.current_version_id
        if resolved_version_id is None:
            return []
        stmt = (
            select(ProposalLineItem)
            .where(
                ProposalLineItem.proposal_id == proposal_id,
                ProposalLineItem.proposal_version_id == resolved_version_id,
            )
            .order_by(ProposalLineItem.display_order, ProposalLineItem.id)
        )
        return list(self.db.scalars(stmt))

    def upsert_batch(self, items: Iterable[ProposalLineItem]) -> list[ProposalLineItem]:
        """Idempotent bulk write keyed by item id; does not commit.

        Only the versioning engine calls this while materializing a version's
        item set. Negotiation responses never mutate priced items directly.
        """
        merged = [self.db.merge(item) for item in items]
        self.flush()
        return merged
