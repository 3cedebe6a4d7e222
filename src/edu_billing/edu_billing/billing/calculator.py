"""Attendance Charge Calculator.

Turns one attendance mark into a charge. Priority:
1. enrollment ``custom_price`` (0 is a valid override), discounted;
2. the billing rule for the status (or the ``value`` key for a bare numeric mark);
3. nothing (``None``).
A mark with neither status nor value is cleared and never charges.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Sequence

from ..common.datetime_utils import DateLike, parse_iso_date
from ..common.money import apply_discount, format_currency, to_decimal
from ..core.constants import DEFAULT_CURRENCY_SYMBOL
from ..core.enums import AttendanceStatus, BillingRuleType
from ..rules.resolver import billing_rules_for_date
from .factory import ChargeStrategyFactory
from .model import VALUE_KEY, Activity, BillingRuleSet, PriceHistoryEntry
from .strategies.base import ChargeContext

_default_factory = ChargeStrategyFactory()


def _status_key(status: Any) -> Optional[str]:
    if isinstance(status, Enum):
        return str(status.value)
    return str(status) if status else None


def charge_for_mark(
    on_date: DateLike,
    status: Optional[str],
    value: Any,
    custom_price: Any,
    discount_percent: Any,
    rule_set: Optional[BillingRuleSet],
    *,
    factory: Optional[ChargeStrategyFactory] = None,
) -> Optional[Decimal]:
    status_key = _status_key(status)
    numeric_value = to_decimal(value)
    key = status_key or (VALUE_KEY if numeric_value is not None else None)
    if key is None:
        return None

    custom = to_decimal(custom_price)
    if custom is not None:
        return apply_discount(custom, discount_percent)

    if rule_set is None:
        return None
    resolved = rule_set.rule_for(key)
    if resolved is None or resolved.rule.rate is None or resolved.rule.rate == 0:
        return None
    rate = resolved.rule.rate
    if rate < 0 and not resolved.is_custom:
        return None

    strategy = (factory or _default_factory).for_rule_type(resolved.rule.type)
    if strategy is None:
        return None
    base = strategy.base_amount(rate=rate, context=ChargeContext(on_date=parse_iso_date(on_date), value=numeric_value))
    if base is None:
        return None
    return apply_discount(base, discount_percent)


def hourly_charge_for_value(
    on_date: DateLike,
    value: Any,
    custom_price: Any,
    discount_percent: Any,
    rule_set: Optional[BillingRuleSet],
) -> Optional[Decimal]:
    """Charge for the numeric ``value`` line item of a journal row."""
    if to_decimal(value) is None:
        return None
    return charge_for_mark(on_date, None, value, custom_price, discount_percent, rule_set)


def price_value(
    activity: Optional[Activity],
    price_history: Optional[Sequence[PriceHistoryEntry]],
    on_date: DateLike,
    custom_price: Any = None,
) -> Optional[Decimal]:
    """Representative price: positive custom price, else the ``present`` rate."""
    if activity is None:
        return None
    custom = to_decimal(custom_price)
    if custom is not None and custom > 0:
        return custom

    rules = billing_rules_for_date(activity, price_history, on_date)
    resolved = rules.rule_for(AttendanceStatus.PRESENT.value) if rules else None
    if resolved and resolved.rule.rate is not None and resolved.rule.rate > 0:
        return resolved.rule.rate
    return None


def display_price(
    activity: Optional[Activity],
    price_history: Optional[Sequence[PriceHistoryEntry]],
    on_date: DateLike,
    custom_price: Any = None,
    discount_percent: Any = 0,
    *,
    symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> Optional[str]:
    if activity is None:
        return None
    custom = to_decimal(custom_price)
    if custom is not None and custom > 0:
        return format_currency(apply_discount(custom, discount_percent), symbol)

    rules = billing_rules_for_date(activity, price_history, on_date)
    resolved = rules.rule_for(AttendanceStatus.PRESENT.value) if rules else None
    if not resolved or resolved.rule.rate is None or resolved.rule.rate <= 0:
        return None

    rule = resolved.rule
    if rule.type in (BillingRuleType.FIXED, BillingRuleType.SUBSCRIPTION):
        return format_currency(rule.rate, symbol)
    if rule.type == BillingRuleType.HOURLY:
        return f"{format_currency(rule.rate, symbol)}/unit"
    return None
