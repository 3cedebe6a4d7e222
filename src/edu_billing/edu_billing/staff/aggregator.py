"""Monthly staff accruals from a month of student attendance.

Only ``present`` records count. Per rule type:

- ``fixed``: one flat charge on the first present date whose rule is fixed;
- ``per_session``: the rate once per date with attendance;
- ``per_student``: the rate times the distinct students present that date;
- ``percent``: the rate percent of the summed record values of that date;
- ``subscription``: per (staff, rule, student) a guaranteed minimum on the first
  session, a top-up to the full rate once the trigger threshold is reached and
  an extra fee for every session beyond the lesson limit.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional

from ..common.money import percent_of, round2, to_decimal
from ..core.constants import HUNDRED
from ..core.enums import AttendanceStatus, StaffRateType
from .model import DailyAccrual, StaffBillingRule

RuleForDate = Callable[[date], Optional[StaffBillingRule]]
Accruals = dict[str, dict[date, DailyAccrual]]

ZERO = Decimal("0")


@dataclass(frozen=True)
class StaffAttendanceRecord:
    date: date
    enrollment_id: str
    student_id: str
    status: Optional[str]
    value: Optional[Decimal] = None
    student_name: Optional[str] = None


@dataclass
class _SubscriptionState:
    count: int = 0
    min_charged: bool = False
    threshold_charged: bool = False


def _add(accruals: Accruals, staff_id: str, day: date, amount: Decimal, notes: Iterable[str]) -> None:
    entry = accruals.setdefault(staff_id, {}).setdefault(day, DailyAccrual())
    entry.amount = round2(entry.amount + amount)
    entry.notes.extend(notes)


def subscription_threshold(rule: StaffBillingRule) -> int:
    """Sessions needed before the top-up is released (at least 1)."""
    lesson_limit = int(rule.lesson_limit or 0)
    if lesson_limit <= 0:
        return 1
    trigger = to_decimal(rule.penalty_trigger_percent) or ZERO
    return max(1, math.ceil(Decimal(lesson_limit) * trigger / HUNDRED))


def subscription_minimum(rule: StaffBillingRule) -> Decimal:
    penalty = to_decimal(rule.penalty_percent) or ZERO
    return max(round2(ZERO), round2(rule.rate * (1 - penalty / HUNDRED)))


def _charge_fixed(accruals: Accruals, dates: list[date], rule_for_date: RuleForDate) -> None:
    for day in dates:
        rule = rule_for_date(day)
        if rule is not None and rule.rate_type == StaffRateType.FIXED:
            _add(accruals, rule.staff_id, day, round2(rule.rate), [f"Fixed: {day:%B %Y}"])
            return


def _charge_daily(
    accruals: Accruals,
    dates: list[date],
    by_date: dict[date, list[StaffAttendanceRecord]],
    rule_for_date: RuleForDate,
) -> None:
    for day in dates:
        rule = rule_for_date(day)
        records = by_date[day]
        if rule is None or not records:
            continue

        if rule.rate_type == StaffRateType.PER_SESSION:
            _add(accruals, rule.staff_id, day, round2(rule.rate), [f"Per session: {len(records)} students"])
        elif rule.rate_type == StaffRateType.PER_STUDENT:
            students = len({r.student_id for r in records})
            _add(accruals, rule.staff_id, day, round2(rule.rate * students), [f"Per student: {students} present"])
        elif rule.rate_type == StaffRateType.PERCENT:
            base_sum = sum((to_decimal(r.value) or ZERO for r in records), ZERO)
            _add(
                accruals,
                rule.staff_id,
                day,
                percent_of(base_sum, rule.rate),
                [f"Percent: {rule.rate}% of {round2(base_sum)}"],
            )


def _charge_subscriptions(
    accruals: Accruals,
    dates: list[date],
    by_date: dict[date, list[StaffAttendanceRecord]],
    rule_for_date: RuleForDate,
) -> None:
    state: dict[tuple[str, str, str], _SubscriptionState] = defaultdict(_SubscriptionState)

    for day in dates:
        rule = rule_for_date(day)
        if rule is None or rule.rate_type != StaffRateType.SUBSCRIPTION:
            continue

        lesson_limit = int(rule.lesson_limit or 0)
        threshold = subscription_threshold(rule)
        minimum = subscription_minimum(rule)
        remaining = max(round2(ZERO), round2(rule.rate - minimum))
        extra_rate = round2(rule.extra_lesson_rate or ZERO)

        for record in by_date[day]:
            student = record.student_name or "student"
            rule_key = rule.id or f"{rule.effective_from.isoformat()}:{rule.activity_id}"
            current = state[(rule.staff_id, rule_key, record.student_id)]
            current.count += 1

            amount = ZERO
            notes: list[str] = []
            if not current.min_charged:
                current.min_charged = True
                amount += minimum
                notes.append(f"Subscription ({student}): first session minimum")
            if not current.threshold_charged and current.count >= threshold:
                current.threshold_charged = True
                amount += remaining
                notes.append(f"Top-up ({student}): threshold of {threshold} sessions reached")
            if lesson_limit > 0 and current.count > lesson_limit and extra_rate > 0:
                amount += extra_rate
                notes.append(f"Subscription ({student}): session {current.count} over limit {lesson_limit}")

            if amount > 0:
                _add(accruals, rule.staff_id, day, amount, notes)


def aggregate_monthly_accruals(
    attendance_records: Iterable[StaffAttendanceRecord],
    rule_for_date: RuleForDate,
) -> Accruals:
    by_date: dict[date, list[StaffAttendanceRecord]] = defaultdict(list)
    for record in attendance_records:
        status = getattr(record.status, "value", record.status)
        if status == AttendanceStatus.PRESENT.value:
            by_date[record.date].append(record)

    dates = sorted(by_date)
    accruals: Accruals = {}
    _charge_fixed(accruals, dates, rule_for_date)
    _charge_daily(accruals, dates, by_date, rule_for_date)
    _charge_subscriptions(accruals, dates, by_date, rule_for_date)
    return accruals
