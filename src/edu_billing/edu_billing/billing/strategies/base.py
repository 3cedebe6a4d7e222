from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class ChargeContext:
    on_date: date
    value: Optional[Decimal] = None


class ChargeStrategy(ABC):
    """Strategy Pattern: how one billing rule type turns a rate into a base amount."""

    @abstractmethod
    def base_amount(self, *, rate: Decimal, context: ChargeContext) -> Optional[Decimal]:
        raise NotImplementedError
