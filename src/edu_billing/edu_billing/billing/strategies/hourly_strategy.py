from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ...common.money import round2
from .base import ChargeContext, ChargeStrategy


class HourlyChargeStrategy(ChargeStrategy):
    """Rate per unit typed into the journal; no usable value means no charge."""

    def base_amount(self, *, rate: Decimal, context: ChargeContext) -> Optional[Decimal]:
        if context.value is None or context.value <= 0:
            return None
        return round2(rate * context.value)
