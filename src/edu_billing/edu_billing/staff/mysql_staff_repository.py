from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from ..common.datetime_utils import month_bounds
from ..common.money import to_decimal
from ..core.enums import DeductionType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json, new_id
from .model import Deduction, DeductionApplied, Staff, StaffBillingRule, StaffJournalEntry, StaffManualRate
from .repository import (
    HolidayRepository,
    StaffBillingRuleRepository,
    StaffJournalRepository,
    StaffManualRateRepository,
    StaffRepository,
)


def _staff_from_row(r: Mapping[str, Any]) -> Staff:
    deductions = load_json(r.get("deductions")) or []
    return Staff(
        id=str(r["id"]),
        full_name=r["full_name"],
        position=r.get("position") or "",
        is_active=bool(r.get("is_active", 1)),
        deductions=tuple(Deduction.from_dict(d) for d in deductions if isinstance(d, Mapping)),
        accrual_mode=r.get("accrual_mode") or "auto",
    )


def _applied_from_json(items: Any) -> tuple[DeductionApplied, ...]:
    out = []
    for d in items or []:
        if not isinstance(d, Mapping):
            continue
        out.append(
            DeductionApplied(
                name=str(d.get("name") or ""),
                type=DeductionType(d.get("type") or DeductionType.PERCENT.value),
                value=to_decimal(d.get("value")) or Decimal("0"),
                amount=to_decimal(d.get("amount")) or Decimal("0"),
            )
        )
    return tuple(out)


def _entry_from_row(r: Mapping[str, Any]) -> StaffJournalEntry:
    return StaffJournalEntry(
        id=str(r["id"]),
        staff_id=str(r["staff_id"]),
        activity_id=r.get("activity_id"),
        date=r["date"],
        amount=to_decimal(r["amount"]),
        base_amount=to_decimal(r.get("base_amount")),
        deductions_applied=_applied_from_json(load_json(r.get("deductions_applied"))),
        is_manual_override=bool(r.get("is_manual_override")),
        notes=r.get("notes"),
    )


class MySQLStaffRepository(StaffRepository):
    _COLUMNS = "id, full_name, position, is_active, deductions, accrual_mode"

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, staff_id: str) -> Optional[Staff]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {self._COLUMNS} FROM staff WHERE id=%s", (staff_id,))
            r = fetchone(cur)
            return _staff_from_row(r) if r else None

    def list_active(self) -> Sequence[Staff]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {self._COLUMNS} FROM staff WHERE is_active=1 ORDER BY full_name")
            return [_staff_from_row(r) for r in fetchall(cur)]


class MySQLStaffBillingRuleRepository(StaffBillingRuleRepository):
    _COLUMNS = (
        "id, staff_id, activity_id, rate_type, rate, lesson_limit, penalty_trigger_percent, penalty_percent, "
        "extra_lesson_rate, effective_from, effective_to"
    )

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_staff(self, staff_id: str) -> Sequence[StaffBillingRule]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {self._COLUMNS} FROM staff_billing_rules WHERE staff_id=%s ORDER BY effective_from",
                (staff_id,),
            )
            return [StaffBillingRule.from_row(r) for r in fetchall(cur)]

    def list_staff_ids_for_activity(self, activity_id: str) -> Sequence[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT DISTINCT r.staff_id
                FROM staff_billing_rules r
                JOIN staff s ON s.id = r.staff_id
                WHERE (r.activity_id=%s OR r.activity_id IS NULL) AND s.is_active=1
                """,
                (activity_id,),
            )
            return [str(r["staff_id"]) for r in fetchall(cur)]

    def create(self, rule: StaffBillingRule) -> StaffBillingRule:
        rule_id = rule.id or new_id()
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO staff_billing_rules({self._COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    rule_id,
                    rule.staff_id,
                    rule.activity_id,
                    rule.rate_type.value,
                    rule.rate,
                    rule.lesson_limit,
                    rule.penalty_trigger_percent,
                    rule.penalty_percent,
                    rule.extra_lesson_rate,
                    rule.effective_from,
                    rule.effective_to,
                ),
            )
        return dataclasses.replace(rule, id=rule_id)

    def set_effective_to(self, rule_id: str, effective_to: date) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE staff_billing_rules SET effective_to=%s WHERE id=%s AND effective_to IS NULL",
                (effective_to, rule_id),
            )
            return cur.rowcount > 0


class MySQLStaffManualRateRepository(StaffManualRateRepository):
    _COLUMNS = "id, staff_id, activity_id, manual_rate_type, manual_rate_value, effective_from, effective_to"

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_staff(self, staff_id: str) -> Sequence[StaffManualRate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {self._COLUMNS} FROM staff_manual_rate_history WHERE staff_id=%s ORDER BY effective_from",
                (staff_id,),
            )
            return [StaffManualRate.from_row(r) for r in fetchall(cur)]

    def create(self, rate: StaffManualRate) -> StaffManualRate:
        rate_id = rate.id or new_id()
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO staff_manual_rate_history({self._COLUMNS}) VALUES(%s,%s,%s,%s,%s,%s,%s)",
                (
                    rate_id,
                    rate.staff_id,
                    rate.activity_id,
                    rate.manual_rate_type.value,
                    rate.manual_rate_value,
                    rate.effective_from,
                    rate.effective_to,
                ),
            )
        return dataclasses.replace(rate, id=rate_id)

    def set_effective_to(self, rate_id: str, effective_to: date) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE staff_manual_rate_history SET effective_to=%s WHERE id=%s AND effective_to IS NULL",
                (effective_to, rate_id),
            )
            return cur.rowcount > 0


class MySQLStaffJournalRepository(StaffJournalRepository):
    _COLUMNS = "id, staff_id, activity_id, date, amount, base_amount, deductions_applied, is_manual_override, notes"
    _KEY = "staff_id=%s AND activity_id <=> %s AND date=%s AND is_manual_override=%s"

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_month(
        self, staff_id: str, activity_id: Optional[str], year: int, month: int
    ) -> Sequence[StaffJournalEntry]:
        start, end = month_bounds(year, month)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {self._COLUMNS}
                FROM staff_journal_entries
                WHERE staff_id=%s AND activity_id <=> %s AND date BETWEEN %s AND %s
                ORDER BY date
                """,
                (staff_id, activity_id, start, end),
            )
            return [_entry_from_row(r) for r in fetchall(cur)]

    def upsert(self, entry: StaffJournalEntry) -> StaffJournalEntry:
        """Last write wins on uq_staff_journal_day; the stored id is kept."""
        entry_id = entry.id or new_id()
        applied = dump_json([d.to_dict() for d in entry.deductions_applied])
        key = (entry.staff_id, entry.activity_id, entry.date, int(entry.is_manual_override))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO staff_journal_entries({self._COLUMNS}) VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    amount=VALUES(amount),
                    base_amount=VALUES(base_amount),
                    deductions_applied=VALUES(deductions_applied),
                    notes=VALUES(notes)
                """,
                (
                    entry_id,
                    entry.staff_id,
                    entry.activity_id,
                    entry.date,
                    entry.amount,
                    entry.base_amount,
                    applied,
                    int(entry.is_manual_override),
                    entry.notes,
                ),
            )
            cur.execute(f"SELECT id FROM staff_journal_entries WHERE {self._KEY}", key)
            stored = fetchone(cur)
        if stored:
            entry_id = str(stored["id"])
        return dataclasses.replace(entry, id=entry_id)

    def delete(self, *, staff_id: str, activity_id: Optional[str], on_date: date, is_manual_override: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"DELETE FROM staff_journal_entries WHERE {self._KEY}",
                (staff_id, activity_id, on_date, int(is_manual_override)),
            )
            return cur.rowcount > 0


class MySQLHolidayRepository(HolidayRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_holidays(self) -> Sequence[tuple[date, bool]]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT date, is_recurring FROM holidays ORDER BY date")
            return [(r["date"], bool(r["is_recurring"])) for r in fetchall(cur)]
