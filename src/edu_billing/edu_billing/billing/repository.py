from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import Activity, ActivityConfig, Enrollment, PriceHistoryEntry


class ActivityRepository(Protocol):
    def get_by_id(self, activity_id: str) -> Optional[Activity]:
        raise NotImplementedError

    def list_all(self) -> Sequence[Activity]:
        raise NotImplementedError

    def update_config(self, activity_id: str, config: Optional[ActivityConfig]) -> bool:
        raise NotImplementedError


class PriceHistoryRepository(Protocol):
    def list_for_activity(self, activity_id: str) -> Sequence[PriceHistoryEntry]:
        raise NotImplementedError

    def list_for_activities(self, activity_ids: Sequence[str]) -> dict[str, list[PriceHistoryEntry]]:
        raise NotImplementedError

    def create(self, entry: PriceHistoryEntry) -> PriceHistoryEntry:
        raise NotImplementedError

    def set_effective_to(self, entry_id: str, effective_to: date) -> bool:
        raise NotImplementedError


class EnrollmentRepository(Protocol):
    def get_by_id(self, enrollment_id: str) -> Optional[Enrollment]:
        raise NotImplementedError

    def list_for_student(self, student_id: str) -> Sequence[Enrollment]:
        raise NotImplementedError
