"""Garden (controller activity) daily accrual.

A controller activity does not bill itself. Its config points at base tariff
activities (monthly price ``M``) and food tariff activities (daily price ``F``);
for a student's mark the daily amount is ``M / D`` when present and
``M / D - F`` otherwise, ``D`` being the Mon-Fri days of the month.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from ..billing.model import Activity, ActivityConfig, BillingRuleSet, Enrollment, PriceHistoryEntry
from ..common.datetime_utils import DateLike, parse_iso_date, working_days_in_month
from ..common.money import apply_discount, round2, to_decimal
from ..core.enums import AttendanceStatus, BillingRuleType
from ..core.exceptions import ControllerConfigError
from ..rules.resolver import billing_rules_for_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BaseTariffLine:
    activity_id: str
    monthly_tariff: Decimal
    daily_tariff: Decimal


@dataclass(frozen=True)
class FoodTariffLine:
    activity_id: str
    daily_tariff: Decimal


@dataclass(frozen=True)
class DailyAccrual:
    amount: Decimal
    base_tariff: Decimal
    food_tariff: Decimal
    base_tariffs: tuple[BaseTariffLine, ...]
    food_tariffs: tuple[FoodTariffLine, ...]
    working_days_in_month: int
    status: Optional[str]


def validate_controller_config(
    controller_id: str,
    config: Optional[ActivityConfig],
    activities_by_id: Mapping[str, Activity],
) -> None:
    """Reject a controller that references itself or another controller."""
    if config is None:
        return
    for ref in config.base_tariff_ids + config.food_tariff_ids:
        if ref == str(controller_id):
            raise ControllerConfigError("A controller activity cannot reference itself")
        referenced = activities_by_id.get(ref)
        if referenced is not None and referenced.is_controller:
            raise ControllerConfigError(f"Activity {referenced.name!r} is a controller and cannot be a tariff")


def _usable_ids(controller: Activity, ids: Sequence[str], activities_by_id: Mapping[str, Activity]) -> set[str]:
    usable: set[str] = set()
    for ref in ids:
        referenced = activities_by_id.get(ref)
        if ref == controller.id or (referenced is not None and referenced.is_controller):
            logger.warning("Controller %s: skipping invalid tariff reference %s", controller.id, ref)
            continue
        usable.add(ref)
    return usable


def _present_rule(rules: Optional[BillingRuleSet]):
    resolved = rules.rule_for(AttendanceStatus.PRESENT.value) if rules else None
    if resolved is None or resolved.rule.rate is None or resolved.rule.rate <= 0:
        return None
    return resolved.rule


def monthly_base_tariff(enrollment: Enrollment, activity: Activity, rules: Optional[BillingRuleSet]) -> Decimal:
    custom = to_decimal(enrollment.custom_price)
    if custom is not None and custom > 0:
        return apply_discount(custom, enrollment.discount_percent)
    rule = _present_rule(rules)
    if rule is not None and rule.type in (BillingRuleType.SUBSCRIPTION, BillingRuleType.FIXED):
        return rule.rate
    return to_decimal(activity.default_price) or Decimal("0")


def daily_food_tariff(
    enrollment: Enrollment,
    activity: Activity,
    rules: Optional[BillingRuleSet],
    working_days: int,
) -> Decimal:
    custom = to_decimal(enrollment.custom_price)
    if custom is not None and custom > 0:
        return apply_discount(custom, enrollment.discount_percent)
    rule = _present_rule(rules)
    if rule is not None and rule.type == BillingRuleType.FIXED:
        return rule.rate
    if rule is not None and rule.type == BillingRuleType.SUBSCRIPTION:
        return rule.rate / working_days if working_days > 0 else Decimal("0")
    return to_decimal(activity.default_price) or Decimal("0")


def daily_accrual(
    student_id: str,
    on_date: DateLike,
    controller: Optional[Activity],
    enrollments: Sequence[Enrollment],
    activities_by_id: Mapping[str, Activity],
    status: Optional[str],
    *,
    price_history: Optional[Mapping[str, Sequence[PriceHistoryEntry]]] = None,
) -> Optional[DailyAccrual]:
    if controller is None or controller.config is None:
        return None

    day = parse_iso_date(on_date)
    working_days = working_days_in_month(day)
    if working_days == 0:
        return None

    base_ids = _usable_ids(controller, controller.config.base_tariff_ids, activities_by_id)
    food_ids = _usable_ids(controller, controller.config.food_tariff_ids, activities_by_id)
    history = price_history or {}

    def rules_for(activity: Activity) -> Optional[BillingRuleSet]:
        return billing_rules_for_date(activity, history.get(activity.id), day)

    student_enrollments = [e for e in enrollments if str(e.student_id) == str(student_id) and e.is_active]

    base_lines: list[BaseTariffLine] = []
    base_total = Decimal("0")
    for enrollment in student_enrollments:
        if enrollment.activity_id not in base_ids:
            continue
        activity = activities_by_id.get(enrollment.activity_id)
        if activity is None:
            continue
        monthly = monthly_base_tariff(enrollment, activity, rules_for(activity))
        base_total += monthly
        base_lines.append(
            BaseTariffLine(activity_id=activity.id, monthly_tariff=monthly, daily_tariff=round2(monthly / working_days))
        )

    if not base_lines:
        return None

    food_lines: list[FoodTariffLine] = []
    food_total = Decimal("0")
    for enrollment in student_enrollments:
        if enrollment.activity_id not in food_ids:
            continue
        activity = activities_by_id.get(enrollment.activity_id)
        if activity is None:
            continue
        daily = daily_food_tariff(enrollment, activity, rules_for(activity), working_days)
        food_total += daily
        food_lines.append(FoodTariffLine(activity_id=activity.id, daily_tariff=round2(daily)))

    status_key = status.value if isinstance(status, AttendanceStatus) else status
    base_daily = base_total / working_days
    if status_key == AttendanceStatus.PRESENT.value:
        amount = round2(base_daily)
    else:
        amount = round2(base_daily - food_total)

    return DailyAccrual(
        amount=amount,
        base_tariff=round2(base_total),
        food_tariff=round2(food_total),
        base_tariffs=tuple(base_lines),
        food_tariffs=tuple(food_lines),
        working_days_in_month=working_days,
        status=status_key,
    )
