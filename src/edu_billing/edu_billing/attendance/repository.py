from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import TransactionType
from ..staff.aggregator import StaffAttendanceRecord
from .model import AttendanceMark, FinanceTransaction


class AttendanceRepository(Protocol):
    def get(self, enrollment_id: str, on_date: date) -> Optional[AttendanceMark]:
        raise NotImplementedError

    def upsert(self, mark: AttendanceMark) -> AttendanceMark:
        """Insert or replace the mark keyed by (enrollment_id, date)."""

        raise NotImplementedError

    def delete(self, enrollment_id: str, on_date: date) -> bool:
        raise NotImplementedError

    def list_for_activity_month(self, activity_id: str, year: int, month: int) -> Sequence[StaffAttendanceRecord]:
        """Read-model for payroll: every mark of the activity in the month."""

        raise NotImplementedError


class TransactionRepository(Protocol):
    def find(
        self,
        *,
        on_date: date,
        type: TransactionType,
        student_id: str,
        activity_id: Optional[str],
    ) -> Optional[FinanceTransaction]:
        raise NotImplementedError

    def upsert(self, transaction: FinanceTransaction) -> FinanceTransaction:
        """Insert or replace on the unique (date, type, student_id, activity_id) key."""

        raise NotImplementedError

    def delete(self, transaction_id: str) -> bool:
        raise NotImplementedError
