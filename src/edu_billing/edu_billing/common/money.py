from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from ..core.constants import HUNDRED, MONEY_QUANT


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a stored/typed number into Decimal.

    Returns None for None, empty strings, NaN and anything that does not parse.
    Floats go through ``str`` so 2.675 stays 2.675 instead of its binary neighbour.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return None if value.is_nan() else value
    if isinstance(value, (int, float)):
        value = str(value)
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return None
        try:
            result = Decimal(value)
        except InvalidOperation:
            return None
        return None if result.is_nan() or result.is_infinite() else result
    return None


def round2(value: Any) -> Decimal:
    """Round half away from zero to 2 decimal places."""
    amount = to_decimal(value)
    if amount is None:
        amount = Decimal("0")
    return amount.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def discount_multiplier(discount_percent: Any) -> Decimal:
    """``1 - discount/100``; a missing discount counts as 0%."""
    percent = to_decimal(discount_percent) or Decimal("0")
    return Decimal("1") - percent / HUNDRED


def apply_discount(amount: Any, discount_percent: Any) -> Decimal:
    return round2((to_decimal(amount) or Decimal("0")) * discount_multiplier(discount_percent))


def percent_of(amount: Any, percent: Any) -> Decimal:
    return round2((to_decimal(amount) or Decimal("0")) * (to_decimal(percent) or Decimal("0")) / HUNDRED)


def format_currency(amount: Any, symbol: str = "₴") -> str:
    """Whole-unit display with space grouping, e.g. ``12 500 ₴``."""
    whole = round2(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{int(whole):,}".replace(",", " ") + f" {symbol}"
