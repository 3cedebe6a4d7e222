from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for access checks."""

    ADMIN = "admin"
    MANAGER = "manager"
    TEACHER = "teacher"


class AttendanceStatus(str, Enum):
    """Base attendance statuses; custom statuses are referenced by id instead."""

    PRESENT = "present"
    SICK = "sick"
    ABSENT = "absent"
    VACATION = "vacation"


class BillingRuleType(str, Enum):
    FIXED = "fixed"
    SUBSCRIPTION = "subscription"
    HOURLY = "hourly"


class StaffRateType(str, Enum):
    FIXED = "fixed"
    PERCENT = "percent"
    PER_SESSION = "per_session"
    SUBSCRIPTION = "subscription"
    PER_STUDENT = "per_student"


class ManualRateType(str, Enum):
    HOURLY = "hourly"
    PER_SESSION = "per_session"
    PER_WORKING_DAY = "per_working_day"


class DeductionType(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    PAYMENT = "payment"
    SALARY = "salary"
    HOUSEHOLD = "household"
    ADVANCE_PAYMENT = "advance_payment"


class ActivityCategory(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    ADDITIONAL_INCOME = "additional_income"
    HOUSEHOLD_EXPENSE = "household_expense"
    SALARY = "salary"
