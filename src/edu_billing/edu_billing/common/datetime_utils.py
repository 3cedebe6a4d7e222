from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Iterable, Union


DateLike = Union[date, str]


def parse_iso_date(value: DateLike) -> date:
    """Parse YYYY-MM-DD string into date (dates pass through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def days_in_month(year: int, month: int) -> list[date]:
    start, end = month_bounds(year, month)
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def is_holiday(day: date, holidays: Iterable[tuple[date, bool]]) -> bool:
    """``holidays`` are ``(date, is_recurring)`` pairs; recurring ones match by month/day."""
    for holiday_date, is_recurring in holidays:
        if holiday_date == day:
            return True
        if is_recurring and (holiday_date.month, holiday_date.day) == (day.month, day.day):
            return True
    return False


def working_days_in_month(on_date: date) -> int:
    """Count Monday-Friday days in the month of ``on_date``; holidays are not excluded."""
    return sum(1 for day in days_in_month(on_date.year, on_date.month) if not is_weekend(day))


def previous_day(day: date) -> date:
    return day - timedelta(days=1)
