"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from decimal import Decimal

MONEY_QUANT = Decimal("0.01")
HUNDRED = Decimal("100")

MAX_CUSTOM_STATUSES = 2

DEFAULT_CURRENCY_SYMBOL = "₴"
DEFAULT_INCOME_CATEGORY = "Навчання"
