from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import Staff, StaffBillingRule, StaffJournalEntry, StaffManualRate


class StaffRepository(Protocol):
    def get_by_id(self, staff_id: str) -> Optional[Staff]:
        raise NotImplementedError

    def list_active(self) -> Sequence[Staff]:
        raise NotImplementedError


class StaffBillingRuleRepository(Protocol):
    def list_for_staff(self, staff_id: str) -> Sequence[StaffBillingRule]:
        raise NotImplementedError

    def list_staff_ids_for_activity(self, activity_id: str) -> Sequence[str]:
        """Staff with a rule scoped to this activity or a global rule, in any period."""

        raise NotImplementedError

    def create(self, rule: StaffBillingRule) -> StaffBillingRule:
        raise NotImplementedError

    def set_effective_to(self, rule_id: str, effective_to: date) -> bool:
        raise NotImplementedError


class StaffManualRateRepository(Protocol):
    def list_for_staff(self, staff_id: str) -> Sequence[StaffManualRate]:
        raise NotImplementedError

    def create(self, rate: StaffManualRate) -> StaffManualRate:
        raise NotImplementedError

    def set_effective_to(self, rate_id: str, effective_to: date) -> bool:
        raise NotImplementedError


class StaffJournalRepository(Protocol):
    def list_for_month(
        self, staff_id: str, activity_id: Optional[str], year: int, month: int
    ) -> Sequence[StaffJournalEntry]:
        raise NotImplementedError

    def upsert(self, entry: StaffJournalEntry) -> StaffJournalEntry:
        """Insert or replace on the unique (staff_id, activity_id, date, is_manual_override) key."""

        raise NotImplementedError

    def delete(self, *, staff_id: str, activity_id: Optional[str], on_date: date, is_manual_override: bool) -> bool:
        raise NotImplementedError


class HolidayRepository(Protocol):
    def list_holidays(self) -> Sequence[tuple[date, bool]]:
        """``(date, is_recurring)`` pairs."""

        raise NotImplementedError
