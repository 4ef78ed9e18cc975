"""Money helpers: every ledger amount is a Decimal with two places."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Parse a finite Decimal without rounding it."""
    try:
        # str() first so floats like 0.1 do not drag binary noise into the ledger.
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return amount


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Convert a number to a 2dp Decimal using round-half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """Return amount reduced by percent, rounded to cents."""
    return to_money(amount * (Decimal("1") - Decimal(percent) / Decimal("100")))


def unit_price_for(total: Decimal, quantity: Decimal) -> Decimal:
    """Cent unit price with ``unit * quantity == total``; ValueError when none exists."""
    unit = to_money(total / quantity)
    if unit * quantity != total:
        raise ValueError(f"{total} does not split evenly over quantity {quantity}.")
    return unit
