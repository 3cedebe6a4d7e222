"""Staff Salary Calculator (single date).

Priority: the staff member's own resolved rule, then the activity's teacher
payment settings applied to the charge the activity would bill, then nothing.
Subscription and per-student rules are month-level and live in
``staff.aggregator``.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Sequence

from ..billing.calculator import charge_for_mark
from ..billing.model import Activity, BillingRuleSet
from ..common.datetime_utils import DateLike
from ..common.money import percent_of, round2, to_decimal
from ..core.enums import AttendanceStatus, DeductionType, StaffRateType
from .model import Deduction, DeductionApplied, SalaryResult, Staff, StaffBillingRule

ZERO = Decimal("0")


def apply_deductions(base_amount: Any, deductions: Sequence[Deduction]) -> tuple[tuple[DeductionApplied, ...], Decimal]:
    """Apply deductions in order to a running total; the result never goes below 0."""
    running = round2(base_amount)
    applied: list[DeductionApplied] = []
    for deduction in deductions:
        if deduction.type == DeductionType.PERCENT:
            amount = percent_of(running, deduction.value)
        else:
            amount = round2(deduction.value)
        if amount <= 0:
            continue
        applied.append(DeductionApplied(name=deduction.name, type=deduction.type, value=deduction.value, amount=amount))
        running = round2(running - amount)
    return tuple(applied), max(round2(ZERO), running)


def _activity_charge(
    activity: Optional[Activity],
    rules: Optional[BillingRuleSet],
    status: Optional[str],
    on_date: DateLike,
) -> Optional[Decimal]:
    if activity is None or rules is None or not status:
        return None
    return charge_for_mark(on_date, status, None, None, 0, rules)


def _teacher_share(activity: Activity, amount: Decimal) -> Decimal:
    fixed = to_decimal(activity.fixed_teacher_rate)
    if fixed is not None and fixed > 0:
        return fixed
    percent = to_decimal(activity.teacher_payment_percent)
    if percent is not None and percent > 0:
        return percent_of(amount, percent)
    return ZERO


def _base_from_staff_rule(
    rule: StaffBillingRule,
    activity: Optional[Activity],
    rules: Optional[BillingRuleSet],
    on_date: DateLike,
    value: Optional[Decimal],
    status: Optional[str],
) -> Decimal:
    if rule.rate_type == StaffRateType.FIXED:
        return round2(rule.rate)
    if rule.rate_type == StaffRateType.PERCENT:
        if value is not None and value > 0:
            return percent_of(value, rule.rate)
        derived = _activity_charge(activity, rules, status, on_date)
        return percent_of(derived, rule.rate) if derived is not None else ZERO
    if rule.rate_type == StaffRateType.PER_SESSION:
        return round2(rule.rate) if status == AttendanceStatus.PRESENT.value else ZERO
    return ZERO


def calculate_salary(
    staff: Optional[Staff],
    activity: Optional[Activity],
    on_date: DateLike,
    attendance_value: Any,
    attendance_status: Optional[str],
    staff_billing_rule: Optional[StaffBillingRule],
    activity_billing_rules: Optional[BillingRuleSet],
    deductions: Optional[Sequence[Deduction]] = None,
) -> Optional[SalaryResult]:
    value = to_decimal(attendance_value)
    status = attendance_status.value if isinstance(attendance_status, Enum) else attendance_status

    base = ZERO
    if staff_billing_rule is not None:
        base = _base_from_staff_rule(staff_billing_rule, activity, activity_billing_rules, on_date, value, status)
    elif activity is not None:
        derived = _activity_charge(activity, activity_billing_rules, status, on_date)
        if derived is not None:
            base = _teacher_share(activity, derived)
        elif value is not None and value > 0:
            base = _teacher_share(activity, value)

    base = round2(base)
    if base <= 0:
        return None

    if deductions is None:
        deductions = staff.deductions if staff is not None else ()
    applied, final = apply_deductions(base, deductions)
    return SalaryResult(base_amount=base, deductions_applied=applied, final_amount=final)
