"""Line item negotiation coordinator: per-item targets in, counter-offers out."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from sqlalchemy import select

from quoteflow.core.exceptions import ValidationError
from quoteflow.models.negotiation import LineItemNegotiation, NegotiationSession
from quoteflow.models.proposal import ProposalLineItem
from quoteflow.schemas.negotiations import LineItemAdjustmentIn, NegotiationRequest, UpdatedLineItemIn
from quoteflow.services.adjustments import ResolvedAdjustment, resolve_adjustment
from quoteflow.services.base_service import BaseService
from quoteflow.services.line_item_ledger import LineItemLedger
from quoteflow.utils.money import to_money, unit_price_for
from quoteflow.utils.validators import NOTE_MAX_LEN, sanitize_optional


def _reject_duplicates(item_ids: Sequence[str], context: str) -> None:
    seen: set[str] = set()
    duplicates = sorted({item_id for item_id in item_ids if item_id in seen or seen.add(item_id)})
    if duplicates:
        raise ValidationError(f"Duplicate line items in {context}: {', '.join(duplicates)}")


class LineItemNegotiationService(BaseService):
    """Resolves initiator adjustments and reconciles consultant counter-prices."""

    def __init__(self, db=None) -> None:
        super().__init__(db)
        self.ledger = LineItemLedger(db=self.db)

    @staticmethod
    def validate_request_targets(request: NegotiationRequest) -> None:
        """A request must ask for something: per-item adjustments or a session-level target."""
        if request.line_item_adjustments:
            return
        if request.target_total is None and request.target_reduction_percent is None:
            raise ValidationError(
                "Nothing to negotiate: provide line_item_adjustments, target_total or target_reduction_percent."
            )

    def resolve_adjustments(
        self,
        proposal_id: str,
        version_id: str,
        adjustments: Iterable[LineItemAdjustmentIn],
    ) -> list[ResolvedAdjustment]:
        """Resolve every adjustment against the negotiated version; no writes."""
        requested = list(adjustments)
        _reject_duplicates([adj.line_item_id for adj in requested], "line_item_adjustments")
        items = {item.id: item for item in self.ledger.list_for_version(proposal_id, version_id)}

        resolved = []
        for adj in requested:
            item = items.get(adj.line_item_id)
            if item is None:
                raise ValidationError(f"Line item {adj.line_item_id} is not part of the negotiated version.")
            resolved.append(
                resolve_adjustment(
                    line_item_id=item.id,
                    adjustment_type=adj.adjustment_type,
                    adjustment_value=adj.adjustment_value,
                    original_price=item.total,
                    initiator_note=sanitize_optional(adj.initiator_note, NOTE_MAX_LEN),
                )
            )
        return resolved

    def stage_targets(self, session: NegotiationSession, resolved: Iterable[ResolvedAdjustment]) -> list[LineItemNegotiation]:
        rows = [
            LineItemNegotiation(
                session_id=session.id,
                line_item_id=adj.line_item_id,
                adjustment_type=adj.adjustment_type,
                adjustment_value=adj.adjustment_value,
                original_price=adj.original_price,
                initiator_target_price=adj.initiator_target_price,
                initiator_note=adj.initiator_note,
            )
            for adj in resolved
        ]
        self.db.add_all(rows)
        return rows

    def rows_for_session(self, session_id: str) -> list[LineItemNegotiation]:
        stmt = (
            select(LineItemNegotiation)
            .where(LineItemNegotiation.session_id == session_id)
            .order_by(LineItemNegotiation.created_at, LineItemNegotiation.id)
        )
        return list(self.db.scalars(stmt))

    def _scope(self, session: NegotiationSession) -> tuple[dict[str, LineItemNegotiation], dict[str, ProposalLineItem]]:
        """Items a consultant may price: the negotiated rows, or every item for session-level requests."""
        rows = {row.line_item_id: row for row in self.rows_for_session(session.id)}
        items = {
            item.id: item
            for item in self.ledger.list_for_version(session.proposal_id, session.negotiated_version_id)
        }
        has_initiator_rows = any(row.adjustment_type is not None for row in rows.values())
        if has_initiator_rows:
            items = {item_id: item for item_id, item in items.items() if item_id in rows}
        return rows, items

    def validate_response(
        self, session: NegotiationSession, updated_items: Iterable[UpdatedLineItemIn]
    ) -> dict[str, Decimal]:
        """Check counter-offers against the session scope and return the price map; no writes."""
        offers = list(updated_items)
        if not offers:
            raise ValidationError("updated_line_items must not be empty.")
        _reject_duplicates([offer.line_item_id for offer in offers], "updated_line_items")
        _rows, items = self._scope(session)

        prices: dict[str, Decimal] = {}
        for offer in offers:
            if offer.line_item_id not in items:
                raise ValidationError(f"Line item {offer.line_item_id} is not part of this negotiation.")
            try:
                price = to_money(offer.consultant_response_price)
            except ValueError as exc:
                raise ValidationError("consultant_response_price must be a finite number.") from exc
            if price < 0:
                raise ValidationError(f"Negative price for line item {offer.line_item_id}.")
            quantity = items[offer.line_item_id].quantity
            if quantity > 0:
                try:
                    unit_price_for(price, quantity)
                except ValueError as exc:
                    raise ValidationError(
                        f"Price {price} for line item {offer.line_item_id} does not split over quantity {quantity}."
                    ) from exc
            prices[offer.line_item_id] = price
        return prices

    def record_counter_offers(
        self, session: NegotiationSession, updated_items: Iterable[UpdatedLineItemIn]
    ) -> list[LineItemNegotiation]:
        """Write consultant prices and notes onto the session rows (call validate_response first)."""
        rows, items = self._scope(session)
        touched = []
        for offer in updated_items:
            row = rows.get(offer.line_item_id)
            if row is None:
                # Session-level negotiation: the consultant chose which items to reprice.
                row = LineItemNegotiation(
                    session_id=session.id,
                    line_item_id=offer.line_item_id,
                    original_price=items[offer.line_item_id].total,
                )
                self.db.add(row)
                rows[offer.line_item_id] = row
            row.consultant_response_price = to_money(offer.consultant_response_price)
            row.consultant_note = sanitize_optional(offer.consultant_note, NOTE_MAX_LEN)
            touched.append(row)
        return touched

    def recorded_prices(self, session: NegotiationSession) -> dict[str, Decimal]:
        return {
            row.line_item_id: to_money(row.consultant_response_price)
            for row in self.rows_for_session(session.id)
            if row.consultant_response_price is not None
        }

    def finalize(self, session: NegotiationSession) -> None:
        """Stamp final prices once the new version exists."""
        for row in self.rows_for_session(session.id):
            if row.consultant_response_price is not None:
                row.final_price = row.consultant_response_price
