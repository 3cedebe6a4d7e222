from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping, Optional

from ..attendance.model import AffectedMonth, AttendanceMark, FinanceTransaction, MarkResult
from ..attendance.repository import AttendanceRepository, TransactionRepository
from ..billing.model import Activity, ActivityConfig, Enrollment, status_label
from ..billing.repository import ActivityRepository, EnrollmentRepository, PriceHistoryRepository
from ..common.datetime_utils import DateLike, parse_iso_date
from ..common.validators import require_editor
from ..core.constants import DEFAULT_INCOME_CATEGORY
from ..core.enums import AttendanceStatus, Role, TransactionType
from ..core.exceptions import ValidationError
from .calculator import DailyAccrual, daily_accrual, validate_controller_config

logger = logging.getLogger(__name__)


class GardenJournalService:
    """Use case: mark a student in a garden (controller) journal.

    The controller enrollment stores the daily accrual as its charge. Each base
    tariff gets its own income transaction; food tariffs get an expense (refund)
    transaction while the child is not present.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        enrollments: EnrollmentRepository,
        activities: ActivityRepository,
        price_history: PriceHistoryRepository,
        transactions: TransactionRepository,
        *,
        income_category: str = DEFAULT_INCOME_CATEGORY,
    ):
        self._attendance = attendance
        self._enrollments = enrollments
        self._activities = activities
        self._price_history = price_history
        self._transactions = transactions
        self._income_category = income_category

    def update_config(
        self,
        *,
        current_role: Role,
        controller_id: str,
        config: Mapping[str, Any],
    ) -> Optional[ActivityConfig]:
        """Point a controller at its base and food tariff activities (empty lists detach it)."""
        require_editor(current_role)
        activities_by_id = {a.id: a for a in self._activities.list_all()}
        if controller_id not in activities_by_id:
            raise ValidationError("Activity not found")

        parsed = ActivityConfig.from_dict(config)
        if parsed is not None:
            for ref in parsed.base_tariff_ids + parsed.food_tariff_ids:
                if ref not in activities_by_id:
                    raise ValidationError(f"Tariff activity {ref} not found")
        validate_controller_config(controller_id, parsed, activities_by_id)
        if parsed is not None and not parsed.is_controller:
            parsed = None

        self._activities.update_config(controller_id, parsed)
        logger.info("Controller %s config updated: %s", controller_id, parsed.to_dict() if parsed else None)
        return parsed

    def _controller_enrollment(self, enrollment_id: str) -> tuple[Enrollment, Activity, dict[str, Activity]]:
        enrollment = self._enrollments.get_by_id(enrollment_id)
        if not enrollment:
            raise ValidationError("Enrollment not found")
        activities_by_id = {a.id: a for a in self._activities.list_all()}
        controller = activities_by_id.get(enrollment.activity_id)
        if controller is None or not controller.is_controller:
            raise ValidationError("Enrollment is not in a garden journal")
        return enrollment, controller, activities_by_id

    def accrual_for(self, enrollment_id: str, on_date: DateLike, status: Optional[str]) -> Optional[DailyAccrual]:
        enrollment, controller, activities_by_id = self._controller_enrollment(enrollment_id)
        return self._accrual(enrollment, controller, activities_by_id, parse_iso_date(on_date), status)

    def _accrual(
        self,
        enrollment: Enrollment,
        controller: Activity,
        activities_by_id: dict[str, Activity],
        day: date,
        status: Optional[str],
    ) -> Optional[DailyAccrual]:
        config = controller.config
        referenced = list(config.base_tariff_ids + config.food_tariff_ids) if config else []
        history = self._price_history.list_for_activities(referenced) if referenced else {}
        return daily_accrual(
            enrollment.student_id,
            day,
            controller,
            self._enrollments.list_for_student(enrollment.student_id),
            activities_by_id,
            status,
            price_history=history,
        )

    def set_mark(self, enrollment_id: str, on_date: DateLike, status: Optional[str]) -> MarkResult:
        day = parse_iso_date(on_date)
        if not status:
            return self.clear_mark(enrollment_id, day)
        if status not in {s.value for s in AttendanceStatus}:
            raise ValidationError(f"Unknown attendance status: {status}")

        enrollment, controller, activities_by_id = self._controller_enrollment(enrollment_id)
        accrual = self._accrual(enrollment, controller, activities_by_id, day, status)
        if accrual is None:
            logger.warning(
                "No garden tariffs for student %s in controller %s on %s", enrollment.student_id, controller.id, day
            )

        existing = self._attendance.get(enrollment.id, day)
        amount = accrual.amount if accrual else None
        mark = self._attendance.upsert(
            AttendanceMark(
                enrollment_id=enrollment.id,
                date=day,
                status=status,
                value=amount,
                charged_amount=amount,
                id=existing.id if existing else None,
            )
        )

        if accrual is not None:
            synced = self._sync_transactions(enrollment.student_id, day, accrual, activities_by_id)
        else:
            synced = self._remove_tariff_transactions(enrollment.student_id, day, controller)
        return MarkResult(
            mark=mark,
            charged_amount=amount,
            affected=self._affected(enrollment, controller, day),
            transactions_synced=synced,
        )

    def clear_mark(self, enrollment_id: str, on_date: DateLike) -> MarkResult:
        day = parse_iso_date(on_date)
        enrollment, controller, _ = self._controller_enrollment(enrollment_id)
        self._attendance.delete(enrollment.id, day)

        synced = self._remove_tariff_transactions(enrollment.student_id, day, controller)
        return MarkResult(
            mark=None,
            charged_amount=None,
            affected=self._affected(enrollment, controller, day),
            transactions_synced=synced,
        )

    def _remove_tariff_transactions(self, student_id: str, day: date, controller: Activity) -> bool:
        """Drop the base income and food refund rows a garden mark booked; other activities keep theirs."""
        config = controller.config
        if config is None:
            return True
        keys = [(TransactionType.INCOME, a) for a in config.base_tariff_ids]
        keys += [(TransactionType.EXPENSE, a) for a in config.food_tariff_ids]
        try:
            for kind, activity_id in keys:
                existing = self._transactions.find(
                    on_date=day, type=kind, student_id=student_id, activity_id=activity_id
                )
                if existing and existing.id:
                    self._transactions.delete(existing.id)
            return True
        except Exception:
            logger.exception(
                "Garden transactions were not removed (student=%s, controller=%s, date=%s)",
                student_id,
                controller.id,
                day,
            )
            return False

    @staticmethod
    def _affected(enrollment: Enrollment, controller: Activity, day: date) -> frozenset[AffectedMonth]:
        ids = [controller.id]
        if controller.config:
            ids.extend(controller.config.base_tariff_ids + controller.config.food_tariff_ids)
        return frozenset(AffectedMonth.of(enrollment.student_id, activity_id, day) for activity_id in ids)

    def _sync_transactions(
        self,
        student_id: str,
        day: date,
        accrual: DailyAccrual,
        activities_by_id: dict[str, Activity],
    ) -> bool:
        present = accrual.status == AttendanceStatus.PRESENT.value

        def name_of(activity_id: str) -> str:
            activity = activities_by_id.get(activity_id)
            return activity.name if activity else activity_id

        try:
            for line in accrual.base_tariffs:
                existing = self._transactions.find(
                    on_date=day, type=TransactionType.INCOME, student_id=student_id, activity_id=line.activity_id
                )
                if line.daily_tariff <= 0:
                    if existing and existing.id:
                        self._transactions.delete(existing.id)
                    continue
                self._transactions.upsert(
                    FinanceTransaction(
                        type=TransactionType.INCOME,
                        amount=line.daily_tariff,
                        date=day,
                        student_id=student_id,
                        activity_id=line.activity_id,
                        description=f"{name_of(line.activity_id)}: {status_label(accrual.status)}",
                        category=self._income_category,
                        id=existing.id if existing else None,
                    )
                )

            for line in accrual.food_tariffs:
                existing = self._transactions.find(
                    on_date=day, type=TransactionType.EXPENSE, student_id=student_id, activity_id=line.activity_id
                )
                if present or line.daily_tariff <= 0:
                    if existing and existing.id:
                        self._transactions.delete(existing.id)
                    continue
                self._transactions.upsert(
                    FinanceTransaction(
                        type=TransactionType.EXPENSE,
                        amount=line.daily_tariff,
                        date=day,
                        student_id=student_id,
                        activity_id=line.activity_id,
                        description=f"{name_of(line.activity_id)}: refund ({status_label(accrual.status)})",
                        id=existing.id if existing else None,
                    )
                )
            return True
        except Exception:
            logger.exception("Garden mark saved but transactions sync failed (student=%s, date=%s)", student_id, day)
            return False
