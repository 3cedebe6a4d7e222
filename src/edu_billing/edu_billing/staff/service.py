from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from ..attendance.model import AffectedMonth
from ..attendance.repository import AttendanceRepository
from ..billing.model import Activity
from ..billing.repository import ActivityRepository, PriceHistoryRepository
from ..common.datetime_utils import DateLike, parse_iso_date
from ..common.money import round2, to_decimal
from ..common.validators import require_editor, require_non_negative, require_percent
from ..core.enums import AttendanceStatus, ManualRateType, Role, StaffRateType
from ..core.exceptions import ValidationError
from ..rules.history import append_period
from ..rules.resolver import billing_rules_for_date, resolve
from .aggregator import StaffAttendanceRecord, aggregate_monthly_accruals
from .manual_rate import manual_accrual, manual_rate_for_date
from .model import DailyAccrual, Staff, StaffBillingRule, StaffJournalEntry, StaffManualRate
from .repository import (
    HolidayRepository,
    StaffBillingRuleRepository,
    StaffJournalRepository,
    StaffManualRateRepository,
    StaffRepository,
)
from .salary import apply_deductions, calculate_salary

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _optional(value: Any, field_name: str, *, percent: bool = False) -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return require_percent(value, field_name) if percent else require_non_negative(value, field_name)


class StaffRuleService:
    """Use case: give a staff member a new rate from a date on."""

    def __init__(
        self,
        staff: StaffRepository,
        billing_rules: StaffBillingRuleRepository,
        manual_rates: StaffManualRateRepository,
        activities: ActivityRepository,
    ):
        self._staff = staff
        self._billing_rules = billing_rules
        self._manual_rates = manual_rates
        self._activities = activities

    def _check_refs(self, staff_id: str, activity_id: Optional[str]) -> Staff:
        staff = self._staff.get_by_id(staff_id)
        if not staff:
            raise ValidationError("Staff member not found")
        if activity_id is not None and not self._activities.get_by_id(activity_id):
            raise ValidationError("Activity not found")
        return staff

    def add_billing_rule(
        self,
        *,
        current_role: Role,
        staff_id: str,
        activity_id: Optional[str],
        rate_type: str,
        rate: Any,
        effective_from: DateLike,
        lesson_limit: Any = None,
        penalty_trigger_percent: Any = None,
        penalty_percent: Any = None,
        extra_lesson_rate: Any = None,
    ) -> StaffBillingRule:
        require_editor(current_role)
        staff = self._check_refs(staff_id, activity_id)
        try:
            kind = StaffRateType(rate_type)
        except ValueError:
            raise ValidationError(f"Unknown rate type: {rate_type}")

        amount = require_percent(rate, "Rate") if kind == StaffRateType.PERCENT else require_non_negative(rate, "Rate")
        limit = _optional(lesson_limit, "Lesson limit")
        rule = StaffBillingRule(
            id=None,
            staff_id=staff.id,
            activity_id=activity_id,
            rate_type=kind,
            rate=amount,
            effective_from=parse_iso_date(effective_from),
            lesson_limit=int(limit) if limit is not None else None,
            penalty_trigger_percent=_optional(penalty_trigger_percent, "Penalty trigger", percent=True),
            penalty_percent=_optional(penalty_percent, "Penalty", percent=True),
            extra_lesson_rate=_optional(extra_lesson_rate, "Extra lesson rate"),
        )
        return append_period(self._billing_rules, self._billing_rules.list_for_staff(staff.id), rule)

    def add_manual_rate(
        self,
        *,
        current_role: Role,
        staff_id: str,
        activity_id: Optional[str],
        manual_rate_type: str,
        manual_rate_value: Any,
        effective_from: DateLike,
    ) -> StaffManualRate:
        require_editor(current_role)
        staff = self._check_refs(staff_id, activity_id)
        try:
            kind = ManualRateType(manual_rate_type)
        except ValueError:
            raise ValidationError(f"Unknown manual rate type: {manual_rate_type}")

        rate = StaffManualRate(
            id=None,
            staff_id=staff.id,
            activity_id=activity_id,
            manual_rate_type=kind,
            manual_rate_value=require_non_negative(manual_rate_value, "Rate"),
            effective_from=parse_iso_date(effective_from),
        )
        return append_period(self._manual_rates, self._manual_rates.list_for_staff(staff.id), rate)


@dataclass(frozen=True)
class PayrollMonth:
    staff_id: str
    activity_id: str
    month: str
    entries: tuple[StaffJournalEntry, ...]
    removed: tuple[date, ...] = ()

    @property
    def total(self) -> Decimal:
        return round2(sum((e.amount for e in self.entries), ZERO))


class StaffPayrollService:
    """Use case: keep the staff expense journal in step with student attendance."""

    def __init__(
        self,
        staff: StaffRepository,
        billing_rules: StaffBillingRuleRepository,
        manual_rates: StaffManualRateRepository,
        journal: StaffJournalRepository,
        attendance: AttendanceRepository,
        activities: ActivityRepository,
        price_history: PriceHistoryRepository,
        holidays: Optional[HolidayRepository] = None,
    ):
        self._staff = staff
        self._billing_rules = billing_rules
        self._manual_rates = manual_rates
        self._journal = journal
        self._attendance = attendance
        self._activities = activities
        self._price_history = price_history
        self._holidays = holidays

    def _activity_share(
        self,
        staff: Staff,
        activity: Activity,
        day: date,
        records: list[StaffAttendanceRecord],
    ) -> Optional[DailyAccrual]:
        """Teacher payment settings of the activity, for dates with no staff rule."""
        rules = billing_rules_for_date(activity, self._price_history.list_for_activity(activity.id), day)
        present = AttendanceStatus.PRESENT.value

        fixed = to_decimal(activity.fixed_teacher_rate)
        per_session = fixed is not None and fixed > 0

        total = ZERO
        for record in records:
            result = calculate_salary(staff, activity, day, record.value, present, None, rules, deductions=())
            if result is None:
                continue
            total += result.base_amount
            if per_session:
                break
        if total <= 0:
            return None
        if per_session:
            return DailyAccrual(amount=round2(total), notes=["Activity rate per session"])
        return DailyAccrual(
            amount=round2(total),
            notes=[f"Activity share {activity.teacher_payment_percent}%: {len(records)} students"],
        )

    def recompute_month(self, staff_id: str, activity_id: str, year: int, month: int) -> PayrollMonth:
        staff = self._staff.get_by_id(staff_id)
        if not staff:
            raise ValidationError("Staff member not found")
        activity = self._activities.get_by_id(activity_id)
        if not activity:
            raise ValidationError("Activity not found")

        label = f"{year:04d}-{month:02d}"
        if staff.accrual_mode == "manual":
            return PayrollMonth(staff_id=staff.id, activity_id=activity.id, month=label, entries=())

        rules = self._billing_rules.list_for_staff(staff.id)
        records = list(self._attendance.list_for_activity_month(activity.id, year, month))

        def rule_for_date(day: date) -> Optional[StaffBillingRule]:
            return resolve(rules, day, activity.id)

        daily = aggregate_monthly_accruals(records, rule_for_date).get(staff.id, {})

        present_by_date: dict[date, list[StaffAttendanceRecord]] = defaultdict(list)
        for record in records:
            if getattr(record.status, "value", record.status) == AttendanceStatus.PRESENT.value:
                present_by_date[record.date].append(record)
        for day, day_records in present_by_date.items():
            if rule_for_date(day) is None:
                share = self._activity_share(staff, activity, day, day_records)
                if share is not None:
                    daily[day] = share

        entries: list[StaffJournalEntry] = []
        for day in sorted(daily):
            accrual = daily[day]
            if accrual.amount <= 0:
                continue
            applied, final = apply_deductions(accrual.amount, staff.deductions)
            entries.append(
                self._journal.upsert(
                    StaffJournalEntry(
                        staff_id=staff.id,
                        activity_id=activity.id,
                        date=day,
                        amount=final,
                        base_amount=accrual.amount,
                        deductions_applied=applied,
                        is_manual_override=False,
                        notes="; ".join(accrual.notes) or None,
                    )
                )
            )

        kept = {e.date for e in entries}
        removed: list[date] = []
        for old in self._journal.list_for_month(staff.id, activity.id, year, month):
            if old.is_manual_override or old.date in kept:
                continue
            self._journal.delete(staff_id=staff.id, activity_id=activity.id, on_date=old.date, is_manual_override=False)
            removed.append(old.date)

        if removed:
            logger.info("Removed %d stale accruals for staff %s in %s", len(removed), staff.id, label)
        return PayrollMonth(
            staff_id=staff.id,
            activity_id=activity.id,
            month=label,
            entries=tuple(entries),
            removed=tuple(sorted(removed)),
        )

    def recompute_affected(self, affected: Iterable[AffectedMonth]) -> list[PayrollMonth]:
        """Recompute every staff member paid from the activities a journal write touched."""
        results: list[PayrollMonth] = []
        seen: set[tuple[str, str]] = set()
        for key in sorted(affected):
            if (key.activity_id, key.month) in seen:
                continue
            seen.add((key.activity_id, key.month))
            year, month = (int(part) for part in key.month.split("-"))
            for staff_id in self._billing_rules.list_staff_ids_for_activity(key.activity_id):
                results.append(self.recompute_month(staff_id, key.activity_id, year, month))
        return results

    def record_manual_entry(
        self,
        *,
        current_role: Role,
        staff_id: str,
        activity_id: Optional[str],
        on_date: DateLike,
        quantity: Any,
    ) -> Optional[StaffJournalEntry]:
        """Hours, sessions or a working day typed into the journal; empty or 0 removes the entry."""
        require_editor(current_role)
        staff = self._staff.get_by_id(staff_id)
        if not staff:
            raise ValidationError("Staff member not found")

        day = parse_iso_date(on_date)
        qty = to_decimal(quantity)
        if quantity not in (None, "") and qty is None:
            raise ValidationError("Quantity must be a number")
        if qty is not None and qty < 0:
            raise ValidationError("Quantity cannot be negative")

        amount = None
        rate = None
        if qty:
            rate = manual_rate_for_date(self._manual_rates.list_for_staff(staff.id), day, activity_id)
            if rate is None:
                raise ValidationError("No manual rate in force for this date")
            holidays = self._holidays.list_holidays() if self._holidays else ()
            amount = manual_accrual(rate, day, qty, holidays=holidays)

        if rate is None or amount is None or amount <= 0:
            self._journal.delete(staff_id=staff.id, activity_id=activity_id, on_date=day, is_manual_override=True)
            return None

        if rate.manual_rate_type == ManualRateType.HOURLY:
            notes = f"{qty} h x {round2(rate.manual_rate_value)}"
        elif rate.manual_rate_type == ManualRateType.PER_SESSION:
            notes = f"{qty} sessions x {round2(rate.manual_rate_value)}"
        else:
            notes = "Working day"
        return self._journal.upsert(
            StaffJournalEntry(
                staff_id=staff.id,
                activity_id=activity_id,
                date=day,
                amount=amount,
                base_amount=round2(rate.manual_rate_value),
                is_manual_override=True,
                notes=notes,
            )
        )
