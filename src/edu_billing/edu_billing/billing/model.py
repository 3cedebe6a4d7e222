from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional

from ..common.datetime_utils import parse_iso_date
from ..common.money import to_decimal
from ..core.constants import MAX_CUSTOM_STATUSES
from ..core.enums import ActivityCategory, AttendanceStatus, BillingRuleType

VALUE_KEY = "value"
RULE_KEYS = tuple(s.value for s in AttendanceStatus) + (VALUE_KEY,)

STATUS_SHORT_LABELS = {
    AttendanceStatus.PRESENT.value: "П",
    AttendanceStatus.SICK.value: "Х",
    AttendanceStatus.ABSENT.value: "Н",
    AttendanceStatus.VACATION.value: "О",
}


def _rule_type(value: Any) -> Optional[BillingRuleType]:
    try:
        return BillingRuleType(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class BillingRule:
    """Pricing rule for one attendance status key."""

    type: Optional[BillingRuleType]
    rate: Optional[Decimal]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BillingRule":
        return cls(type=_rule_type(data.get("type")), rate=to_decimal(data.get("rate")))

    def to_dict(self) -> dict:
        return {
            "type": self.type.value if self.type else None,
            "rate": float(self.rate) if self.rate is not None else None,
        }


@dataclass(frozen=True)
class CustomStatus:
    """User-defined attendance status; its rate may be negative (refund / make-up credit)."""

    id: str
    name: str
    rate: Optional[Decimal]
    type: Optional[BillingRuleType]
    color: str = "#999999"
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustomStatus":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            rate=to_decimal(data.get("rate")),
            type=_rule_type(data.get("type")),
            color=str(data.get("color") or "#999999"),
            is_active=data.get("is_active") is not False,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rate": float(self.rate) if self.rate is not None else None,
            "type": self.type.value if self.type else None,
            "color": self.color,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class ResolvedRule:
    rule: BillingRule
    is_custom: bool


@dataclass(frozen=True)
class BillingRuleSet:
    """Rules keyed by status (``present``, ``sick``, ``absent``, ``vacation``, ``value``)."""

    rules: Mapping[str, BillingRule] = field(default_factory=dict)
    custom_statuses: tuple[CustomStatus, ...] = ()

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["BillingRuleSet"]:
        if not data or not isinstance(data, Mapping):
            return None
        rules = {
            key: BillingRule.from_dict(data[key])
            for key in RULE_KEYS
            if isinstance(data.get(key), Mapping)
        }
        customs = tuple(
            CustomStatus.from_dict(item)
            for item in (data.get("custom_statuses") or [])[:MAX_CUSTOM_STATUSES]
            if isinstance(item, Mapping) and item.get("id") is not None
        )
        return cls(rules=rules, custom_statuses=customs)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {key: rule.to_dict() for key, rule in self.rules.items()}
        if self.custom_statuses:
            out["custom_statuses"] = [cs.to_dict() for cs in self.custom_statuses]
        return out

    def rule_for(self, key: Optional[str]) -> Optional[ResolvedRule]:
        if not key:
            return None
        rule = self.rules.get(key)
        if rule is not None:
            return ResolvedRule(rule=rule, is_custom=False)
        for custom in self.custom_statuses:
            if custom.id == key and custom.is_active:
                return ResolvedRule(rule=BillingRule(type=custom.type, rate=custom.rate), is_custom=True)
        return None


def status_label(status: Optional[str], custom_statuses: tuple[CustomStatus, ...] = ()) -> str:
    """Short journal label: base statuses map to a letter, custom ones to their first 2 chars."""
    if not status:
        return ""
    if status in STATUS_SHORT_LABELS:
        return STATUS_SHORT_LABELS[status]
    for custom in custom_statuses:
        if custom.id == status:
            return custom.name[:2].upper()
    return ""


@dataclass(frozen=True)
class PriceHistoryEntry:
    """One period of an activity's billing rules."""

    id: Optional[str]
    activity_id: str
    billing_rules: Optional[BillingRuleSet]
    effective_from: date
    effective_to: Optional[date] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PriceHistoryEntry":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            activity_id=str(row["activity_id"]),
            billing_rules=BillingRuleSet.from_dict(row.get("billing_rules")),
            effective_from=parse_iso_date(row["effective_from"]),
            effective_to=parse_iso_date(row["effective_to"]) if row.get("effective_to") else None,
        )


@dataclass(frozen=True)
class ActivityConfig:
    """Marks an activity as a garden controller referencing tariff activities by id."""

    base_tariff_ids: tuple[str, ...] = ()
    food_tariff_ids: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["ActivityConfig"]:
        if not data or not isinstance(data, Mapping):
            return None
        return cls(
            base_tariff_ids=tuple(str(i) for i in data.get("base_tariff_ids") or []),
            food_tariff_ids=tuple(str(i) for i in data.get("food_tariff_ids") or []),
        )

    def to_dict(self) -> dict:
        return {"base_tariff_ids": list(self.base_tariff_ids), "food_tariff_ids": list(self.food_tariff_ids)}

    @property
    def is_controller(self) -> bool:
        return bool(self.base_tariff_ids)


@dataclass(frozen=True)
class Activity:
    """Billing-rule owner (a class, a tariff, a meal plan, ...)."""

    id: str
    name: str
    billing_rules: Optional[BillingRuleSet] = None
    config: Optional[ActivityConfig] = None
    default_price: Decimal = Decimal("0")
    teacher_payment_percent: Decimal = Decimal("0")
    fixed_teacher_rate: Optional[Decimal] = None
    category: ActivityCategory = ActivityCategory.INCOME
    is_active: bool = True

    @property
    def is_controller(self) -> bool:
        return bool(self.config and self.config.is_controller)


@dataclass(frozen=True)
class Enrollment:
    """Student to activity link with optional per-student pricing."""

    id: str
    student_id: str
    activity_id: str
    custom_price: Optional[Decimal] = None
    discount_percent: Decimal = Decimal("0")
    is_active: bool = True
    student_name: Optional[str] = None
