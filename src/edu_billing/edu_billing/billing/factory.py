from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import BillingRuleType
from .strategies.base import ChargeStrategy
from .strategies.fixed_strategy import FixedChargeStrategy
from .strategies.hourly_strategy import HourlyChargeStrategy
from .strategies.subscription_strategy import SubscriptionChargeStrategy


@dataclass
class ChargeStrategyFactory:
    """Factory Pattern: choose the charge strategy for a billing rule type."""

    def for_rule_type(self, rule_type: Optional[BillingRuleType]) -> Optional[ChargeStrategy]:
        if rule_type == BillingRuleType.FIXED:
            return FixedChargeStrategy()
        if rule_type == BillingRuleType.SUBSCRIPTION:
            return SubscriptionChargeStrategy()
        if rule_type == BillingRuleType.HOURLY:
            return HourlyChargeStrategy()
        return None
