from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from ..common.money import to_decimal
from ..core.enums import ActivityCategory
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json, new_id
from .model import Activity, ActivityConfig, BillingRuleSet, Enrollment, PriceHistoryEntry
from .repository import ActivityRepository, EnrollmentRepository, PriceHistoryRepository

_ACTIVITY_COLUMNS = (
    "id, name, category, default_price, billing_rules, config, teacher_payment_percent, fixed_teacher_rate, is_active"
)


def _activity_from_row(r: Mapping[str, Any]) -> Activity:
    return Activity(
        id=str(r["id"]),
        name=r["name"],
        billing_rules=BillingRuleSet.from_dict(load_json(r.get("billing_rules"))),
        config=ActivityConfig.from_dict(load_json(r.get("config"))),
        default_price=to_decimal(r.get("default_price")) or Decimal("0"),
        teacher_payment_percent=to_decimal(r.get("teacher_payment_percent")) or Decimal("0"),
        fixed_teacher_rate=to_decimal(r.get("fixed_teacher_rate")),
        category=ActivityCategory(r.get("category") or ActivityCategory.INCOME.value),
        is_active=bool(r.get("is_active", 1)),
    )


def _price_entry_from_row(r: Mapping[str, Any]) -> PriceHistoryEntry:
    return PriceHistoryEntry.from_row({**r, "billing_rules": load_json(r.get("billing_rules"))})


class MySQLActivityRepository(ActivityRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, activity_id: str) -> Optional[Activity]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_ACTIVITY_COLUMNS} FROM activities WHERE id=%s", (activity_id,))
            r = fetchone(cur)
            return _activity_from_row(r) if r else None

    def list_all(self) -> Sequence[Activity]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_ACTIVITY_COLUMNS} FROM activities ORDER BY name")
            return [_activity_from_row(r) for r in fetchall(cur)]

    def update_config(self, activity_id: str, config: Optional[ActivityConfig]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE activities SET config=%s WHERE id=%s",
                (dump_json(config.to_dict()) if config else None, activity_id),
            )
            return cur.rowcount > 0


class MySQLPriceHistoryRepository(PriceHistoryRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_activity(self, activity_id: str) -> Sequence[PriceHistoryEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, activity_id, billing_rules, effective_from, effective_to
                FROM activity_price_history
                WHERE activity_id=%s
                ORDER BY effective_from
                """,
                (activity_id,),
            )
            return [_price_entry_from_row(r) for r in fetchall(cur)]

    def list_for_activities(self, activity_ids: Sequence[str]) -> dict[str, list[PriceHistoryEntry]]:
        out: dict[str, list[PriceHistoryEntry]] = defaultdict(list)
        if not activity_ids:
            return dict(out)
        placeholders = ",".join(["%s"] * len(activity_ids))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT id, activity_id, billing_rules, effective_from, effective_to
                FROM activity_price_history
                WHERE activity_id IN ({placeholders})
                ORDER BY effective_from
                """,
                tuple(activity_ids),
            )
            for r in fetchall(cur):
                entry = _price_entry_from_row(r)
                out[entry.activity_id].append(entry)
        return dict(out)

    def create(self, entry: PriceHistoryEntry) -> PriceHistoryEntry:
        entry_id = entry.id or new_id()
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO activity_price_history(id, activity_id, billing_rules, effective_from, effective_to)
                VALUES(%s,%s,%s,%s,%s)
                """,
                (
                    entry_id,
                    entry.activity_id,
                    dump_json(entry.billing_rules.to_dict()) if entry.billing_rules else None,
                    entry.effective_from,
                    entry.effective_to,
                ),
            )
        return PriceHistoryEntry(
            id=entry_id,
            activity_id=entry.activity_id,
            billing_rules=entry.billing_rules,
            effective_from=entry.effective_from,
            effective_to=entry.effective_to,
        )

    def set_effective_to(self, entry_id: str, effective_to: date) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE activity_price_history SET effective_to=%s WHERE id=%s AND effective_to IS NULL",
                (effective_to, entry_id),
            )
            return cur.rowcount > 0


class MySQLEnrollmentRepository(EnrollmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _from_row(r: Mapping[str, Any]) -> Enrollment:
        return Enrollment(
            id=str(r["id"]),
            student_id=str(r["student_id"]),
            activity_id=str(r["activity_id"]),
            custom_price=to_decimal(r.get("custom_price")),
            discount_percent=to_decimal(r.get("discount_percent")) or Decimal("0"),
            is_active=bool(r.get("is_active", 1)),
            student_name=r.get("student_name"),
        )

    def get_by_id(self, enrollment_id: str) -> Optional[Enrollment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT e.id, e.student_id, e.activity_id, e.custom_price, e.discount_percent, e.is_active,
                       s.full_name AS student_name
                FROM enrollments e
                JOIN students s ON s.id = e.student_id
                WHERE e.id=%s
                """,
                (enrollment_id,),
            )
            r = fetchone(cur)
            return self._from_row(r) if r else None

    def list_for_student(self, student_id: str) -> Sequence[Enrollment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT e.id, e.student_id, e.activity_id, e.custom_price, e.discount_percent, e.is_active,
                       s.full_name AS student_name
                FROM enrollments e
                JOIN students s ON s.id = e.student_id
                WHERE e.student_id=%s
                """,
                (student_id,),
            )
            return [self._from_row(r) for r in fetchall(cur)]
