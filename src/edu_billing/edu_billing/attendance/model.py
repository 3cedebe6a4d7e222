from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from ..core.enums import TransactionType


@dataclass(frozen=True)
class AttendanceMark:
    """One journal cell: a student's mark in an activity on a date."""

    enrollment_id: str
    date: date
    status: Optional[str]
    value: Optional[Decimal] = None
    charged_amount: Optional[Decimal] = None
    manual_value_edit: bool = False
    notes: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class FinanceTransaction:
    type: TransactionType
    amount: Decimal
    date: date
    student_id: Optional[str] = None
    activity_id: Optional[str] = None
    staff_id: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True, order=True)
class AffectedMonth:
    """Aggregate key touched by a write; callers refresh these views."""

    student_id: str
    activity_id: str
    month: str

    @classmethod
    def of(cls, student_id: str, activity_id: str, on_date: date) -> "AffectedMonth":
        return cls(student_id=str(student_id), activity_id=str(activity_id), month=on_date.strftime("%Y-%m"))


@dataclass(frozen=True)
class MarkResult:
    mark: Optional[AttendanceMark]
    charged_amount: Optional[Decimal]
    affected: frozenset[AffectedMonth]
    transactions_synced: bool = True
