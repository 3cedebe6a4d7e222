from __future__ import annotations

from decimal import Decimal
from typing import Optional

from .base import ChargeContext, ChargeStrategy


class FixedChargeStrategy(ChargeStrategy):
    """One mark = one rate."""

    def base_amount(self, *, rate: Decimal, context: ChargeContext) -> Optional[Decimal]:
        return rate
