from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional

from ..common.datetime_utils import parse_iso_date
from ..common.money import to_decimal
from ..core.enums import DeductionType, ManualRateType, StaffRateType


def _optional_id(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _optional_date(value: Any) -> Optional[date]:
    return parse_iso_date(value) if value else None


@dataclass(frozen=True)
class Deduction:
    """Commission/tax taken from a computed salary, in list order."""

    name: str
    type: DeductionType
    value: Decimal

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Deduction":
        return cls(
            name=str(data.get("name") or ""),
            type=DeductionType(data.get("type") or DeductionType.PERCENT.value),
            value=to_decimal(data.get("value")) or Decimal("0"),
        )


@dataclass(frozen=True)
class DeductionApplied:
    name: str
    type: DeductionType
    value: Decimal
    amount: Decimal

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type.value, "value": float(self.value), "amount": float(self.amount)}


@dataclass(frozen=True)
class Staff:
    id: str
    full_name: str
    position: str = ""
    is_active: bool = True
    deductions: tuple[Deduction, ...] = ()
    accrual_mode: str = "auto"


@dataclass(frozen=True)
class StaffBillingRule:
    """Compensation rule for a staff member, globally (``activity_id=None``) or per activity."""

    id: Optional[str]
    staff_id: str
    activity_id: Optional[str]
    rate_type: StaffRateType
    rate: Decimal
    effective_from: date
    effective_to: Optional[date] = None
    lesson_limit: Optional[int] = None
    penalty_trigger_percent: Optional[Decimal] = None
    penalty_percent: Optional[Decimal] = None
    extra_lesson_rate: Optional[Decimal] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "StaffBillingRule":
        lesson_limit = to_decimal(row.get("lesson_limit"))
        return cls(
            id=_optional_id(row.get("id")),
            staff_id=str(row["staff_id"]),
            activity_id=_optional_id(row.get("activity_id")),
            rate_type=StaffRateType(row["rate_type"]),
            rate=to_decimal(row.get("rate", row.get("rate_value"))) or Decimal("0"),
            effective_from=parse_iso_date(row["effective_from"]),
            effective_to=_optional_date(row.get("effective_to")),
            lesson_limit=int(lesson_limit) if lesson_limit is not None else None,
            penalty_trigger_percent=to_decimal(row.get("penalty_trigger_percent")),
            penalty_percent=to_decimal(row.get("penalty_percent")),
            extra_lesson_rate=to_decimal(row.get("extra_lesson_rate")),
        )


@dataclass(frozen=True)
class StaffManualRate:
    """Rate for staff paid from manually typed journal entries."""

    id: Optional[str]
    staff_id: str
    activity_id: Optional[str]
    manual_rate_type: ManualRateType
    manual_rate_value: Decimal
    effective_from: date
    effective_to: Optional[date] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "StaffManualRate":
        return cls(
            id=_optional_id(row.get("id")),
            staff_id=str(row["staff_id"]),
            activity_id=_optional_id(row.get("activity_id")),
            manual_rate_type=ManualRateType(row["manual_rate_type"]),
            manual_rate_value=to_decimal(row.get("manual_rate_value")) or Decimal("0"),
            effective_from=parse_iso_date(row["effective_from"]),
            effective_to=_optional_date(row.get("effective_to")),
        )


@dataclass(frozen=True)
class StaffJournalEntry:
    staff_id: str
    activity_id: Optional[str]
    date: date
    amount: Decimal
    base_amount: Optional[Decimal]
    deductions_applied: tuple[DeductionApplied, ...] = ()
    is_manual_override: bool = False
    notes: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class SalaryResult:
    base_amount: Decimal
    deductions_applied: tuple[DeductionApplied, ...]
    final_amount: Decimal


@dataclass
class DailyAccrual:
    """Running total of one staff member's accruals on one date."""

    amount: Decimal = Decimal("0")
    notes: list[str] = field(default_factory=list)
