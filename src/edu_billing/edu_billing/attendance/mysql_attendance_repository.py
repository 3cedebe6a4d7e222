from __future__ import annotations

import dataclasses
from datetime import date
from typing import Any, Mapping, Optional, Sequence

from ..common.datetime_utils import month_bounds
from ..common.money import to_decimal
from ..core.enums import TransactionType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, new_id
from ..staff.aggregator import StaffAttendanceRecord
from .model import AttendanceMark, FinanceTransaction
from .repository import AttendanceRepository, TransactionRepository


def _mark_from_row(r: Mapping[str, Any]) -> AttendanceMark:
    return AttendanceMark(
        id=str(r["id"]),
        enrollment_id=str(r["enrollment_id"]),
        date=r["date"],
        status=r.get("status"),
        value=to_decimal(r.get("value")),
        charged_amount=to_decimal(r.get("charged_amount")),
        manual_value_edit=bool(r.get("manual_value_edit")),
        notes=r.get("notes"),
    )


def _transaction_from_row(r: Mapping[str, Any]) -> FinanceTransaction:
    return FinanceTransaction(
        id=str(r["id"]),
        type=TransactionType(r["type"]),
        amount=to_decimal(r["amount"]),
        date=r["date"],
        student_id=r.get("student_id"),
        activity_id=r.get("activity_id"),
        staff_id=r.get("staff_id"),
        description=r.get("description"),
        category=r.get("category"),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, enrollment_id: str, on_date: date) -> Optional[AttendanceMark]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, enrollment_id, date, status, value, charged_amount, manual_value_edit, notes
                FROM attendance
                WHERE enrollment_id=%s AND date=%s
                """,
                (enrollment_id, on_date),
            )
            r = fetchone(cur)
            return _mark_from_row(r) if r else None

    def upsert(self, mark: AttendanceMark) -> AttendanceMark:
        mark_id = mark.id or new_id()
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance(id, enrollment_id, date, status, value, charged_amount, manual_value_edit, notes)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    status=VALUES(status),
                    value=VALUES(value),
                    charged_amount=VALUES(charged_amount),
                    manual_value_edit=VALUES(manual_value_edit),
                    notes=VALUES(notes)
                """,
                (
                    mark_id,
                    mark.enrollment_id,
                    mark.date,
                    mark.status,
                    mark.value,
                    mark.charged_amount,
                    int(mark.manual_value_edit),
                    mark.notes,
                ),
            )
        stored = self.get(mark.enrollment_id, mark.date)
        return stored or mark

    def delete(self, enrollment_id: str, on_date: date) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance WHERE enrollment_id=%s AND date=%s", (enrollment_id, on_date))
            return cur.rowcount > 0

    def list_for_activity_month(self, activity_id: str, year: int, month: int) -> Sequence[StaffAttendanceRecord]:
        start, end = month_bounds(year, month)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT a.date, a.enrollment_id, a.status, a.value, e.student_id, s.full_name AS student_name
                FROM attendance a
                JOIN enrollments e ON e.id = a.enrollment_id
                JOIN students s ON s.id = e.student_id
                WHERE e.activity_id=%s AND a.date BETWEEN %s AND %s
                ORDER BY a.date, s.full_name
                """,
                (activity_id, start, end),
            )
            return [
                StaffAttendanceRecord(
                    date=r["date"],
                    enrollment_id=str(r["enrollment_id"]),
                    student_id=str(r["student_id"]),
                    status=r.get("status"),
                    value=to_decimal(r.get("value")),
                    student_name=r.get("student_name"),
                )
                for r in fetchall(cur)
            ]


class MySQLTransactionRepository(TransactionRepository):
    _COLUMNS = "id, type, amount, date, student_id, activity_id, staff_id, description, category"

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def find(
        self,
        *,
        on_date: date,
        type: TransactionType,
        student_id: str,
        activity_id: Optional[str],
    ) -> Optional[FinanceTransaction]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {self._COLUMNS}
                FROM finance_transactions
                WHERE date=%s AND type=%s AND student_id=%s AND activity_id <=> %s
                ORDER BY created_at
                LIMIT 1
                """,
                (on_date, type.value, student_id, activity_id),
            )
            r = fetchone(cur)
            return _transaction_from_row(r) if r else None

    def upsert(self, transaction: FinanceTransaction) -> FinanceTransaction:
        """Last write wins on the row id or on uq_transactions_student_day; the stored id is kept."""
        tx_id = transaction.id or new_id()
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO finance_transactions({self._COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    amount=VALUES(amount),
                    staff_id=VALUES(staff_id),
                    description=VALUES(description),
                    category=VALUES(category)
                """,
                (
                    tx_id,
                    transaction.type.value,
                    transaction.amount,
                    transaction.date,
                    transaction.student_id,
                    transaction.activity_id,
                    transaction.staff_id,
                    transaction.description,
                    transaction.category,
                ),
            )

        if transaction.student_id is not None:
            stored = self.find(
                on_date=transaction.date,
                type=transaction.type,
                student_id=transaction.student_id,
                activity_id=transaction.activity_id,
            )
            if stored is not None:
                return stored
        return dataclasses.replace(transaction, id=tx_id)

    def delete(self, transaction_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM finance_transactions WHERE id=%s", (transaction_id,))
            return cur.rowcount > 0
