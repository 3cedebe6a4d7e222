from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Protocol, Sequence, TypeVar

from ..core.exceptions import ValidationError
from .resolver import EffectiveEntry, close_entry, find_open_entry

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=EffectiveEntry)


class HistoryWriter(Protocol):
    def create(self, entry): ...

    def set_effective_to(self, entry_id: str, effective_to: date) -> bool: ...


def _scope(entry) -> Optional[str]:
    scope = getattr(entry, "activity_id", None)
    return str(scope) if scope is not None else None


def append_period(writer: HistoryWriter, history: Sequence[E], entry: E) -> E:
    """Insert ``entry`` as the new open period of its scope.

    The currently open period of the same scope is closed the day before
    ``entry.effective_from``; nothing else in the history is touched.
    """
    scope = _scope(entry)
    for existing in history:
        if _scope(existing) == scope and existing.effective_from >= entry.effective_from:
            raise ValidationError(f"A period starting {existing.effective_from.isoformat()} already exists")

    current = find_open_entry(history, scope)
    if current is not None:
        closed = close_entry(current, entry.effective_from)
        writer.set_effective_to(current.id, closed.effective_to)
        logger.info(
            "Closed period %s (scope=%s) at %s",
            current.id,
            scope or "global",
            closed.effective_to.isoformat(),
        )
    return writer.create(entry)
