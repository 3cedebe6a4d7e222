from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from ..billing.calculator import charge_for_mark, hourly_charge_for_value
from ..billing.factory import ChargeStrategyFactory
from ..billing.model import Activity, BillingRuleSet, Enrollment, status_label
from ..billing.repository import ActivityRepository, EnrollmentRepository, PriceHistoryRepository
from ..common.datetime_utils import DateLike, parse_iso_date
from ..common.money import round2, to_decimal
from ..core.constants import DEFAULT_INCOME_CATEGORY
from ..core.enums import AttendanceStatus, BillingRuleType, TransactionType
from ..core.exceptions import ValidationError
from ..rules.resolver import billing_rules_for_date
from .model import AffectedMonth, AttendanceMark, FinanceTransaction, MarkResult
from .repository import AttendanceRepository, TransactionRepository

logger = logging.getLogger(__name__)

BASE_STATUSES = frozenset(s.value for s in AttendanceStatus)


def parse_mark_value(raw: Any) -> Optional[Decimal]:
    """Form input to a non-negative number; blank means no value."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    value = to_decimal(raw)
    if value is None:
        raise ValidationError("Value must be a number")
    if value < 0:
        raise ValidationError("Value cannot be negative")
    return value


class AttendanceJournalService:
    """Use case: set or clear a journal cell and keep its income transaction in step.

    The mark is written first; the linked transaction second. A failure of the
    second write is logged and reported through ``MarkResult.transactions_synced``.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        enrollments: EnrollmentRepository,
        activities: ActivityRepository,
        price_history: PriceHistoryRepository,
        transactions: TransactionRepository,
        *,
        strategy_factory: Optional[ChargeStrategyFactory] = None,
        income_category: str = DEFAULT_INCOME_CATEGORY,
    ):
        self._attendance = attendance
        self._enrollments = enrollments
        self._activities = activities
        self._price_history = price_history
        self._transactions = transactions
        self._factory = strategy_factory or ChargeStrategyFactory()
        self._income_category = income_category

    def _load(self, enrollment_id: str) -> tuple[Enrollment, Activity]:
        enrollment = self._enrollments.get_by_id(enrollment_id)
        if not enrollment:
            raise ValidationError("Enrollment not found")
        activity = self._activities.get_by_id(enrollment.activity_id)
        if not activity:
            raise ValidationError("Activity not found")
        return enrollment, activity

    def rules_for(self, activity: Activity, on_date: date) -> Optional[BillingRuleSet]:
        history = self._price_history.list_for_activity(activity.id)
        return billing_rules_for_date(activity, history, on_date)

    @staticmethod
    def _check_status(status: Optional[str], rules: Optional[BillingRuleSet]) -> None:
        if status is None or status in BASE_STATUSES:
            return
        custom_ids = {c.id for c in rules.custom_statuses if c.is_active} if rules else set()
        if status not in custom_ids:
            raise ValidationError(f"Unknown attendance status: {status}")

    @staticmethod
    def _is_hourly(status: str, rules: Optional[BillingRuleSet]) -> bool:
        resolved = rules.rule_for(status) if rules else None
        return resolved is not None and resolved.rule.type == BillingRuleType.HOURLY

    def set_mark(
        self,
        enrollment_id: str,
        on_date: DateLike,
        status: Optional[str],
        value: Any = None,
        *,
        notes: Optional[str] = None,
    ) -> MarkResult:
        day = parse_iso_date(on_date)
        status = status or None
        numeric_value = parse_mark_value(value)
        if status is None and not numeric_value:
            return self.clear_mark(enrollment_id, day)

        enrollment, activity = self._load(enrollment_id)
        rules = self.rules_for(activity, day)
        self._check_status(status, rules)

        existing = self._attendance.get(enrollment.id, day)
        manual_edit = bool(existing and existing.manual_value_edit)

        if status is None:
            charged = hourly_charge_for_value(
                day, numeric_value, enrollment.custom_price, enrollment.discount_percent, rules
            )
            stored_value = numeric_value
        else:
            charged = charge_for_mark(
                day,
                status,
                numeric_value,
                enrollment.custom_price,
                enrollment.discount_percent,
                rules,
                factory=self._factory,
            )
            stored_value = numeric_value if numeric_value is not None else charged
            if numeric_value is not None and not self._is_hourly(status, rules):
                # a typed amount is the final charge, discount already included
                if charged is None or abs(charged - numeric_value) > Decimal("0.01"):
                    manual_edit = True
                charged = round2(numeric_value)

        mark = self._attendance.upsert(
            AttendanceMark(
                enrollment_id=enrollment.id,
                date=day,
                status=status,
                value=stored_value,
                charged_amount=charged,
                manual_value_edit=manual_edit,
                notes=notes,
                id=existing.id if existing else None,
            )
        )

        synced = self._sync_income(enrollment, activity, day, charged, status, rules)
        return MarkResult(
            mark=mark,
            charged_amount=charged,
            affected=frozenset({AffectedMonth.of(enrollment.student_id, activity.id, day)}),
            transactions_synced=synced,
        )

    def clear_mark(self, enrollment_id: str, on_date: DateLike) -> MarkResult:
        day = parse_iso_date(on_date)
        enrollment, activity = self._load(enrollment_id)

        self._attendance.delete(enrollment.id, day)
        synced = self._sync_income(enrollment, activity, day, None, None, None)
        return MarkResult(
            mark=None,
            charged_amount=None,
            affected=frozenset({AffectedMonth.of(enrollment.student_id, activity.id, day)}),
            transactions_synced=synced,
        )

    def _sync_income(
        self,
        enrollment: Enrollment,
        activity: Activity,
        day: date,
        charged: Optional[Decimal],
        status: Optional[str],
        rules: Optional[BillingRuleSet],
    ) -> bool:
        try:
            existing = self._transactions.find(
                on_date=day,
                type=TransactionType.INCOME,
                student_id=enrollment.student_id,
                activity_id=activity.id,
            )
            if charged is None or charged == 0:
                if existing and existing.id:
                    self._transactions.delete(existing.id)
                return True

            label = status_label(status, rules.custom_statuses if rules else ())
            self._transactions.upsert(
                FinanceTransaction(
                    type=TransactionType.INCOME,
                    amount=round2(charged),
                    date=day,
                    student_id=enrollment.student_id,
                    activity_id=activity.id,
                    description=f"{activity.name}: {label}" if label else activity.name,
                    category=self._income_category,
                    id=existing.id if existing else None,
                )
            )
            return True
        except Exception:
            logger.exception(
                "Attendance saved but income transaction sync failed (student=%s, activity=%s, date=%s)",
                enrollment.student_id,
                activity.id,
                day,
            )
            return False
