"""Rule Resolver: pick the single rule in force on a date from a rule history.

Histories are effective-interval lists (``effective_from`` inclusive,
``effective_to`` exclusive, ``None`` = open-ended). The same resolver serves
activity price history, staff billing rules and staff manual rates.
"""

from __future__ import annotations

import dataclasses
from datetime import date
from typing import Iterable, Optional, Protocol, Sequence, TypeVar

from ..billing.model import Activity, BillingRuleSet, PriceHistoryEntry
from ..common.datetime_utils import DateLike, parse_iso_date, previous_day
from ..core.exceptions import ValidationError


class EffectiveEntry(Protocol):
    effective_from: date
    effective_to: Optional[date]


E = TypeVar("E", bound=EffectiveEntry)


def covers(entry: EffectiveEntry, on_date: date) -> bool:
    if entry.effective_from > on_date:
        return False
    return entry.effective_to is None or on_date < entry.effective_to


def _scope_of(entry: EffectiveEntry) -> Optional[str]:
    scope = getattr(entry, "activity_id", None)
    return str(scope) if scope is not None else None


def resolve(history: Iterable[E], on_date: DateLike, activity_id: Optional[str] = None) -> Optional[E]:
    """Return the entry in force on ``on_date`` or None.

    With ``activity_id`` given, entries scoped to another activity are ignored and
    an exact-scope entry beats a global (``activity_id is None``) one. Among equally
    specific entries the latest ``effective_from`` wins; remaining ties keep input order.
    """
    day = parse_iso_date(on_date)
    wanted = str(activity_id) if activity_id is not None else None

    best: Optional[E] = None
    best_key: Optional[tuple[int, date]] = None
    for entry in history:
        scope = _scope_of(entry)
        if wanted is not None and scope is not None and scope != wanted:
            continue
        if not covers(entry, day):
            continue
        key = (1 if wanted is not None and scope == wanted else 0, entry.effective_from)
        if best_key is None or key > best_key:
            best, best_key = entry, key
    return best


def billing_rules_for_date(
    activity: Optional[Activity],
    price_history: Optional[Sequence[PriceHistoryEntry]],
    on_date: DateLike,
) -> Optional[BillingRuleSet]:
    """Activity rules in force on a date, falling back to the activity's current rules."""
    if activity is None:
        return None
    if price_history:
        entry = resolve(price_history, on_date, activity.id)
        if entry is not None:
            return entry.billing_rules
    return activity.billing_rules


def find_open_entry(history: Iterable[E], activity_id: Optional[str] = None) -> Optional[E]:
    """The open (``effective_to is None``) entry with exactly this scope."""
    wanted = str(activity_id) if activity_id is not None else None
    for entry in history:
        if entry.effective_to is None and _scope_of(entry) == wanted:
            return entry
    return None


def close_entry(entry: E, new_effective_from: DateLike) -> E:
    """Copy of ``entry`` closed the day before the next period starts.

    Only open entries may be closed; a closed interval is never rewritten.
    """
    start = parse_iso_date(new_effective_from)
    if entry.effective_to is not None:
        raise ValidationError("Closed rule periods cannot be changed")
    if start <= entry.effective_from:
        raise ValidationError("New period must start after the current period start")
    return dataclasses.replace(entry, effective_to=previous_day(start))
