from __future__ import annotations

from dataclasses import dataclass

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository, MySQLTransactionRepository
from .attendance.service import AttendanceJournalService
from .billing.factory import ChargeStrategyFactory
from .billing.mysql_billing_repository import (
    MySQLActivityRepository,
    MySQLEnrollmentRepository,
    MySQLPriceHistoryRepository,
)
from .billing.service import PriceHistoryService
from .core.constants import DEFAULT_CURRENCY_SYMBOL
from .database.connection import DBConfig, DatabaseConnection
from .garden.service import GardenJournalService
from .staff.mysql_staff_repository import (
    MySQLHolidayRepository,
    MySQLStaffBillingRuleRepository,
    MySQLStaffJournalRepository,
    MySQLStaffManualRateRepository,
    MySQLStaffRepository,
)
from .staff.service import StaffPayrollService, StaffRuleService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    activities_repo: MySQLActivityRepository
    price_history_repo: MySQLPriceHistoryRepository
    enrollments_repo: MySQLEnrollmentRepository
    attendance_repo: MySQLAttendanceRepository
    transactions_repo: MySQLTransactionRepository
    staff_repo: MySQLStaffRepository
    staff_rules_repo: MySQLStaffBillingRuleRepository
    manual_rates_repo: MySQLStaffManualRateRepository
    staff_journal_repo: MySQLStaffJournalRepository
    holidays_repo: MySQLHolidayRepository

    attendance_service: AttendanceJournalService
    garden_service: GardenJournalService
    price_history_service: PriceHistoryService
    staff_rule_service: StaffRuleService
    payroll_service: StaffPayrollService


def build_container(
    *,
    db_config: dict,
    income_category: str | None = None,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))

    activities_repo = MySQLActivityRepository(conn)
    price_history_repo = MySQLPriceHistoryRepository(conn)
    enrollments_repo = MySQLEnrollmentRepository(conn)
    attendance_repo = MySQLAttendanceRepository(conn)
    transactions_repo = MySQLTransactionRepository(conn)
    staff_repo = MySQLStaffRepository(conn)
    staff_rules_repo = MySQLStaffBillingRuleRepository(conn)
    manual_rates_repo = MySQLStaffManualRateRepository(conn)
    staff_journal_repo = MySQLStaffJournalRepository(conn)
    holidays_repo = MySQLHolidayRepository(conn)

    extra = {"income_category": income_category} if income_category else {}
    attendance_service = AttendanceJournalService(
        attendance_repo,
        enrollments_repo,
        activities_repo,
        price_history_repo,
        transactions_repo,
        strategy_factory=ChargeStrategyFactory(),
        **extra,
    )
    garden_service = GardenJournalService(
        attendance_repo,
        enrollments_repo,
        activities_repo,
        price_history_repo,
        transactions_repo,
        **extra,
    )
    price_history_service = PriceHistoryService(activities_repo, price_history_repo, currency_symbol=currency_symbol)
    staff_rule_service = StaffRuleService(staff_repo, staff_rules_repo, manual_rates_repo, activities_repo)
    payroll_service = StaffPayrollService(
        staff_repo,
        staff_rules_repo,
        manual_rates_repo,
        staff_journal_repo,
        attendance_repo,
        activities_repo,
        price_history_repo,
        holidays_repo,
    )

    return Container(
        conn=conn,
        activities_repo=activities_repo,
        price_history_repo=price_history_repo,
        enrollments_repo=enrollments_repo,
        attendance_repo=attendance_repo,
        transactions_repo=transactions_repo,
        staff_repo=staff_repo,
        staff_rules_repo=staff_rules_repo,
        manual_rates_repo=manual_rates_repo,
        staff_journal_repo=staff_journal_repo,
        holidays_repo=holidays_repo,
        attendance_service=attendance_service,
        garden_service=garden_service,
        price_history_service=price_history_service,
        staff_rule_service=staff_rule_service,
        payroll_service=payroll_service,
    )
