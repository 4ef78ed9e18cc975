"""Resolution of requested line item adjustments into absolute target prices.

An adjustment is a tagged pair ``(adjustment_type, adjustment_value)`` that is
interpreted exactly once, when a negotiation session opens. The result is a
plain ``Decimal`` and nothing downstream needs to know which variant produced
it.

- ``price_change``: the value *is* the new price (must be >= 0).
- ``flat_discount``: original minus the value. Discounts larger than the
  original price are rejected instead of being clamped, so a typo such as an
  extra zero surfaces as an error.
- ``percentage_discount``: original times ``1 - value / 100``, rounded to cents
  half-up; the value must lie in ``[0, 100]``.

Values are checked unrounded; only the resolved target is rounded to cents.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from quoteflow.core.exceptions import ValidationError
from quoteflow.models.enums import AdjustmentType, ReductionType
from quoteflow.utils.money import percent_of, to_decimal, to_money

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ResolvedAdjustment:
    """A fully resolved per-item request, ready to persist."""

    line_item_id: str
    adjustment_type: AdjustmentType
    adjustment_value: Decimal
    original_price: Decimal
    initiator_target_price: Decimal
    initiator_note: str | None = None


def _price_change(original: Decimal, value: Decimal) -> Decimal:
    if value < ZERO:
        raise ValidationError("price_change value must be >= 0.")
    return value


def _flat_discount(original: Decimal, value: Decimal) -> Decimal:
    if value < ZERO:
        raise ValidationError("flat_discount value must be >= 0.")
    if value > original:
        raise ValidationError(
            f"flat_discount of {value} exceeds the original price {original}."
        )
    return original - value


def _percentage_discount(original: Decimal, value: Decimal) -> Decimal:
    if value < ZERO or value > HUNDRED:
        raise ValidationError("percentage_discount value must be between 0 and 100.")
    return percent_of(original, value)


_RESOLVERS: dict[AdjustmentType, Callable[[Decimal, Decimal], Decimal]] = {
    AdjustmentType.PRICE_CHANGE: _price_change,
    AdjustmentType.FLAT_DISCOUNT: _flat_discount,
    AdjustmentType.PERCENTAGE_DISCOUNT: _percentage_discount,
}


def _coerce_amount(value, field_name: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as exc:
        raise ValidationError(f"{field_name} must be a finite number.") from exc


def resolve_target_price(
    adjustment_type: AdjustmentType | str,
    adjustment_value: Decimal | int | float | str,
    original_price: Decimal | int | float | str,
) -> Decimal:
    """Turn an adjustment into the absolute price the initiator is asking for."""
    try:
        kind = AdjustmentType(adjustment_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown adjustment_type: {adjustment_type!r}") from exc

    original = _coerce_amount(original_price, "original_price")
    value = _coerce_amount(adjustment_value, "adjustment_value")
    target = to_money(_RESOLVERS[kind](original, value))
    if target < ZERO:
        raise ValidationError("Resolved target price must not be negative.")
    return target


def resolve_adjustment(
    line_item_id: str,
    adjustment_type: AdjustmentType | str,
    adjustment_value: Decimal | int | float | str,
    original_price: Decimal | int | float | str,
    initiator_note: str | None = None,
) -> ResolvedAdjustment:
    target = resolve_target_price(adjustment_type, adjustment_value, original_price)
    return ResolvedAdjustment(
        line_item_id=line_item_id,
        adjustment_type=AdjustmentType(adjustment_type),
        adjustment_value=_coerce_amount(adjustment_value, "adjustment_value"),
        original_price=_coerce_amount(original_price, "original_price"),
        initiator_target_price=target,
        initiator_note=initiator_note,
    )


def reduction_targets(
    reduction_type: ReductionType | str,
    reduction_value: Decimal | int | float | str,
    proposal_price: Decimal,
) -> tuple[Decimal, Decimal | None]:
    """Session-level targets for a bulk reduction: (target_total, target_reduction_percent)."""
    try:
        kind = ReductionType(reduction_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown reduction_type: {reduction_type!r}") from exc

    value = _coerce_amount(reduction_value, "reduction_value")
    if value < ZERO:
        raise ValidationError("reduction_value must be >= 0.")
    if kind is ReductionType.PERCENT:
        if value > HUNDRED:
            raise ValidationError("Percent reduction must be between 0 and 100.")
        return percent_of(Decimal(proposal_price), value), value
    return max(to_money(Decimal(proposal_price) - value), ZERO), None
