from __future__ import annotations

from typing import Any, Mapping

from ..common.datetime_utils import DateLike, parse_iso_date
from ..common.validators import require_editor
from ..core.constants import DEFAULT_CURRENCY_SYMBOL
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..rules.history import append_period
from .calculator import display_price, price_value
from .model import BillingRuleSet, PriceHistoryEntry
from .repository import ActivityRepository, PriceHistoryRepository


class PriceHistoryService:
    """Use case: change an activity's prices from a date on without rewriting the past."""

    def __init__(
        self,
        activities: ActivityRepository,
        price_history: PriceHistoryRepository,
        *,
        currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
    ):
        self._activities = activities
        self._price_history = price_history
        self._currency_symbol = currency_symbol

    @staticmethod
    def _parse_rules(billing_rules: Mapping[str, Any]) -> BillingRuleSet:
        rules = BillingRuleSet.from_dict(billing_rules)
        if rules is None:
            raise ValidationError("Billing rules are required")
        for key, rule in rules.rules.items():
            if rule.type is None:
                raise ValidationError(f"Rule '{key}' has an unknown type")
            if rule.rate is not None and rule.rate < 0:
                raise ValidationError(f"Rule '{key}' cannot have a negative rate")
        return rules

    def change_prices(
        self,
        *,
        current_role: Role,
        activity_id: str,
        billing_rules: Mapping[str, Any],
        effective_from: DateLike,
    ) -> PriceHistoryEntry:
        require_editor(current_role)
        activity = self._activities.get_by_id(activity_id)
        if not activity:
            raise ValidationError("Activity not found")

        entry = PriceHistoryEntry(
            id=None,
            activity_id=activity.id,
            billing_rules=self._parse_rules(billing_rules),
            effective_from=parse_iso_date(effective_from),
        )
        history = self._price_history.list_for_activity(activity.id)
        return append_period(self._price_history, history, entry)

    def price_on(self, activity_id: str, on_date: DateLike, custom_price: Any = None) -> dict:
        activity = self._activities.get_by_id(activity_id)
        if not activity:
            raise ValidationError("Activity not found")
        history = self._price_history.list_for_activity(activity.id)
        value = price_value(activity, history, on_date, custom_price)
        return {
            "activity_id": activity.id,
            "date": parse_iso_date(on_date).isoformat(),
            "price": float(value) if value is not None else None,
            "display": display_price(activity, history, on_date, custom_price, symbol=self._currency_symbol),
        }
