from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from ..common.datetime_utils import DateLike, is_holiday, is_weekend, parse_iso_date
from ..common.money import round2, to_decimal
from ..core.enums import ManualRateType
from ..rules.resolver import resolve
from .model import StaffManualRate

Holidays = Iterable[tuple[date, bool]]


def manual_rate_for_date(
    history: Sequence[StaffManualRate],
    on_date: DateLike,
    activity_id: Optional[str] = None,
) -> Optional[StaffManualRate]:
    """Activity-specific manual rate if one is in force, else the global one."""
    return resolve(history, on_date, activity_id)


def is_payroll_working_day(day: date, holidays: Optional[Holidays] = None) -> bool:
    return not is_weekend(day) and not is_holiday(day, list(holidays or []))


def manual_accrual(
    rate: Optional[StaffManualRate],
    on_date: DateLike,
    quantity: Any,
    *,
    holidays: Optional[Holidays] = None,
) -> Optional[Decimal]:
    """Amount for a manually typed journal cell.

    ``quantity`` is hours for ``hourly`` and sessions for ``per_session``; for
    ``per_working_day`` it is optional and the rate is earned once on a working day.
    ``None`` means nothing to record (the caller deletes the manual entry).
    """
    if rate is None:
        return None
    qty = to_decimal(quantity)
    value = rate.manual_rate_value

    if rate.manual_rate_type == ManualRateType.PER_WORKING_DAY:
        if qty is not None and qty <= 0:
            return None
        if not is_payroll_working_day(parse_iso_date(on_date), holidays):
            return None
        return round2(value)

    if qty is None or qty <= 0:
        return None
    return round2(value * qty)

