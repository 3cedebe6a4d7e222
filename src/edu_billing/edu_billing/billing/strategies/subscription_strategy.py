from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ...common.datetime_utils import working_days_in_month
from ...common.money import round2
from .base import ChargeContext, ChargeStrategy


class SubscriptionChargeStrategy(ChargeStrategy):
    """Monthly rate spread over the Mon-Fri days of the month (no holiday calendar)."""

    def base_amount(self, *, rate: Decimal, context: ChargeContext) -> Optional[Decimal]:
        working_days = working_days_in_month(context.on_date)
        if working_days <= 0:
            return Decimal("0")
        return round2(rate / working_days)
