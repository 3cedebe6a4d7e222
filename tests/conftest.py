from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from src.edu_billing.edu_billing.attendance.model import AttendanceMark, FinanceTransaction
from src.edu_billing.edu_billing.attendance.service import AttendanceJournalService
from src.edu_billing.edu_billing.billing.model import Activity, ActivityConfig, BillingRuleSet, Enrollment
from src.edu_billing.edu_billing.billing.service import PriceHistoryService
from src.edu_billing.edu_billing.garden.service import GardenJournalService
from src.edu_billing.edu_billing.staff.aggregator import StaffAttendanceRecord
from src.edu_billing.edu_billing.staff.service import StaffPayrollService, StaffRuleService


class InMemoryActivities:
    def __init__(self, activities):
        self.by_id = {a.id: a for a in activities}

    def get_by_id(self, activity_id):
        return self.by_id.get(activity_id)

    def list_all(self):
        return list(self.by_id.values())

    def update_config(self, activity_id, config):
        self.by_id[activity_id] = dataclasses.replace(self.by_id[activity_id], config=config)
        return True


class InMemoryPriceHistory:
    def __init__(self):
        self.entries = []
        self._id = 0

    def list_for_activity(self, activity_id):
        return [e for e in self.entries if e.activity_id == activity_id]

    def list_for_activities(self, activity_ids):
        return {a: self.list_for_activity(a) for a in activity_ids if self.list_for_activity(a)}

    def create(self, entry):
        self._id += 1
        stored = dataclasses.replace(entry, id=entry.id or f"ph{self._id}")
        self.entries.append(stored)
        return stored

    def set_effective_to(self, entry_id, effective_to):
        for i, e in enumerate(self.entries):
            if e.id == entry_id and e.effective_to is None:
                self.entries[i] = dataclasses.replace(e, effective_to=effective_to)
                return True
        return False


class InMemoryEnrollments:
    def __init__(self, enrollments):
        self.by_id = {e.id: e for e in enrollments}

    def get_by_id(self, enrollment_id):
        return self.by_id.get(enrollment_id)

    def list_for_student(self, student_id):
        return [e for e in self.by_id.values() if e.student_id == student_id]


class InMemoryAttendance:
    def __init__(self, enrollments: InMemoryEnrollments):
        self.marks: dict[tuple[str, date], AttendanceMark] = {}
        self._enrollments = enrollments
        self._id = 0

    def get(self, enrollment_id, on_date):
        return self.marks.get((enrollment_id, on_date))

    def upsert(self, mark):
        if mark.id is None:
            self._id += 1
            mark = dataclasses.replace(mark, id=f"m{self._id}")
        self.marks[(mark.enrollment_id, mark.date)] = mark
        return mark

    def delete(self, enrollment_id, on_date):
        return self.marks.pop((enrollment_id, on_date), None) is not None

    def list_for_activity_month(self, activity_id, year, month):
        out = []
        for (enrollment_id, day), mark in sorted(self.marks.items(), key=lambda kv: kv[0][1]):
            enrollment = self._enrollments.get_by_id(enrollment_id)
            if enrollment.activity_id != activity_id or (day.year, day.month) != (year, month):
                continue
            out.append(
                StaffAttendanceRecord(
                    date=day,
                    enrollment_id=enrollment_id,
                    student_id=enrollment.student_id,
                    status=mark.status,
                    value=mark.value,
                    student_name=enrollment.student_name,
                )
            )
        return out


class InMemoryTransactions:
    def __init__(self):
        self.by_id: dict[str, FinanceTransaction] = {}
        self._id = 0
        self.fail_writes = False

    def find(self, *, on_date, type, student_id, activity_id):
        for t in self.by_id.values():
            if (t.date, t.type, t.student_id, t.activity_id) == (on_date, type, student_id, activity_id):
                return t
        return None

    def upsert(self, transaction):
        if self.fail_writes:
            raise RuntimeError("transactions table is unavailable")
        if transaction.id is None:
            existing = self.find(
                on_date=transaction.date,
                type=transaction.type,
                student_id=transaction.student_id,
                activity_id=transaction.activity_id,
            )
            if existing:
                transaction = dataclasses.replace(transaction, id=existing.id)
            else:
                self._id += 1
                transaction = dataclasses.replace(transaction, id=f"t{self._id}")
        self.by_id[transaction.id] = transaction
        return transaction

    def delete(self, transaction_id):
        return self.by_id.pop(transaction_id, None) is not None

    def for_student(self, student_id):
        return sorted(
            (t for t in self.by_id.values() if t.student_id == student_id),
            key=lambda t: (t.date, t.type.value, t.activity_id or ""),
        )


class InMemoryStaff:
    def __init__(self, staff):
        self.by_id = {s.id: s for s in staff}

    def get_by_id(self, staff_id):
        return self.by_id.get(staff_id)

    def list_active(self):
        return [s for s in self.by_id.values() if s.is_active]


class _InMemoryHistory:
    def __init__(self):
        self.items = []
        self._id = 0

    def list_for_staff(self, staff_id):
        return [r for r in self.items if r.staff_id == staff_id]

    def create(self, item):
        self._id += 1
        stored = dataclasses.replace(item, id=item.id or f"{type(self).__name__}{self._id}")
        self.items.append(stored)
        return stored

    def set_effective_to(self, item_id, effective_to):
        for i, r in enumerate(self.items):
            if r.id == item_id and r.effective_to is None:
                self.items[i] = dataclasses.replace(r, effective_to=effective_to)
                return True
        return False


class InMemoryStaffRules(_InMemoryHistory):
    def list_staff_ids_for_activity(self, activity_id):
        return sorted({r.staff_id for r in self.items if r.activity_id in (activity_id, None)})


class InMemoryManualRates(_InMemoryHistory):
    pass


class InMemoryStaffJournal:
    def __init__(self):
        self.entries = {}
        self._id = 0

    def list_for_month(self, staff_id, activity_id, year, month):
        return sorted(
            (
                e
                for (s, a, d, _), e in self.entries.items()
                if s == staff_id and a == activity_id and (d.year, d.month) == (year, month)
            ),
            key=lambda e: e.date,
        )

    def upsert(self, entry):
        key = (entry.staff_id, entry.activity_id, entry.date, entry.is_manual_override)
        existing = self.entries.get(key)
        if existing:
            entry = dataclasses.replace(entry, id=existing.id)
        else:
            self._id += 1
            entry = dataclasses.replace(entry, id=f"j{self._id}")
        self.entries[key] = entry
        return entry

    def delete(self, *, staff_id, activity_id, on_date, is_manual_override):
        return self.entries.pop((staff_id, activity_id, on_date, is_manual_override), None) is not None


@dataclass
class InMemoryHolidays:
    holidays: list = field(default_factory=list)

    def list_holidays(self):
        return list(self.holidays)


def rules(data: dict) -> Optional[BillingRuleSet]:
    return BillingRuleSet.from_dict(data)


def make_activities():
    return [
        Activity(
            id="dance",
            name="Dance",
            billing_rules=rules(
                {
                    "present": {"type": "fixed", "rate": 500},
                    "value": {"type": "hourly", "rate": 150},
                    "custom_statuses": [
                        {"id": "makeup", "name": "Make-up credit", "rate": -500, "type": "fixed"},
                    ],
                }
            ),
            teacher_payment_percent=Decimal("40"),
        ),
        Activity(id="math", name="Math", billing_rules=rules({"present": {"type": "subscription", "rate": 4400}})),
        Activity(id="tuition", name="Tuition", billing_rules=rules({"present": {"type": "subscription", "rate": 4000}})),
        Activity(id="food", name="Meals", billing_rules=rules({"present": {"type": "fixed", "rate": 50}})),
        Activity(
            id="garden",
            name="Garden group",
            config=ActivityConfig(base_tariff_ids=("tuition",), food_tariff_ids=("food",)),
        ),
    ]


def make_enrollments():
    return [
        Enrollment(id="e1", student_id="s1", activity_id="dance", discount_percent=Decimal("10"), student_name="Olena"),
        Enrollment(id="e2", student_id="s2", activity_id="dance", student_name="Taras"),
        Enrollment(id="e3", student_id="s1", activity_id="math", student_name="Olena"),
        Enrollment(id="e4", student_id="s1", activity_id="tuition", student_name="Olena"),
        Enrollment(id="e5", student_id="s1", activity_id="food", student_name="Olena"),
        Enrollment(id="e6", student_id="s1", activity_id="garden", student_name="Olena"),
    ]


@dataclass
class World:
    activities: InMemoryActivities
    price_history: InMemoryPriceHistory
    enrollments: InMemoryEnrollments
    attendance: InMemoryAttendance
    transactions: InMemoryTransactions
    staff: InMemoryStaff
    staff_rules: InMemoryStaffRules
    manual_rates: InMemoryManualRates
    journal: InMemoryStaffJournal
    holidays: InMemoryHolidays

    def attendance_service(self) -> AttendanceJournalService:
        return AttendanceJournalService(
            self.attendance, self.enrollments, self.activities, self.price_history, self.transactions
        )

    def garden_service(self) -> GardenJournalService:
        return GardenJournalService(
            self.attendance, self.enrollments, self.activities, self.price_history, self.transactions
        )

    def price_history_service(self) -> PriceHistoryService:
        return PriceHistoryService(self.activities, self.price_history)

    def staff_rule_service(self) -> StaffRuleService:
        return StaffRuleService(self.staff, self.staff_rules, self.manual_rates, self.activities)

    def payroll_service(self) -> StaffPayrollService:
        return StaffPayrollService(
            self.staff,
            self.staff_rules,
            self.manual_rates,
            self.journal,
            self.attendance,
            self.activities,
            self.price_history,
            self.holidays,
        )


@pytest.fixture
def world():
    from src.edu_billing.edu_billing.staff.model import Deduction, Staff
    from src.edu_billing.edu_billing.core.enums import DeductionType

    enrollments = InMemoryEnrollments(make_enrollments())
    staff = InMemoryStaff(
        [
            Staff(
                id="st1",
                full_name="Iryna Koval",
                position="Teacher",
                deductions=(Deduction(name="Tax", type=DeductionType.PERCENT, value=Decimal("10")),),
            ),
            Staff(id="st2", full_name="Petro Melnyk", position="Assistant", accrual_mode="manual"),
        ]
    )
    return World(
        activities=InMemoryActivities(make_activities()),
        price_history=InMemoryPriceHistory(),
        enrollments=enrollments,
        attendance=InMemoryAttendance(enrollments),
        transactions=InMemoryTransactions(),
        staff=staff,
        staff_rules=InMemoryStaffRules(),
        manual_rates=InMemoryManualRates(),
        journal=InMemoryStaffJournal(),
        holidays=InMemoryHolidays(),
    )
