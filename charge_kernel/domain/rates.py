"""
Rates -- Effective-dated rate lookup.

Responsibility:
    Select the rate that applies on a reference date from a time-keyed rate
    history (a step function over time).  Plugins store their history inside
    the plugin configuration settings as a list of
    ``{"effective_date": "YYYY-MM-DD", "rate": <number>}`` objects.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - The selected entry has the latest effective date on or before the
      reference date, both compared at day granularity.
    - Entries with malformed dates are ignored, never raised.
    - Deterministic: identical inputs return the identical entry.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from charge_kernel.db.types import to_decimal

DateLike = date | datetime | str


@dataclass(frozen=True)
class RateHistoryEntry:
    """One step of a rate history: ``rate`` applies from ``effective_date`` on."""

    effective_date: DateLike
    rate: Decimal


def to_day(value: Any) -> date | None:
    """
    Normalize a date-like value to a calendar day.

    Accepts ``date``, ``datetime`` (time part dropped) and ISO 8601 strings
    (``YYYY-MM-DD`` or a full timestamp).  Returns None for anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def resolve_effective_rate(
    history: Iterable[RateHistoryEntry],
    reference_date: DateLike,
) -> RateHistoryEntry | None:
    """
    Return the entry in effect on ``reference_date``, or None.

    Args:
        history: Rate history in any order.
        reference_date: The day being charged.

    Returns:
        The entry with the latest effective date on or before the reference
        date.  Among entries sharing that date, the first in ``history``
        order wins.  None if the reference date itself is malformed or no
        entry qualifies.
    """
    reference_day = to_day(reference_date)
    if reference_day is None:
        return None

    best: RateHistoryEntry | None = None
    best_day: date | None = None
    for entry in history:
        day = to_day(entry.effective_date)
        if day is None or day > reference_day:
            continue
        # Strictly later only, so the first entry of a tied day wins
        if best_day is None or day > best_day:
            best, best_day = entry, day
    return best


def parse_rate_history(raw: Any) -> tuple[RateHistoryEntry, ...]:
    """
    Convert a settings value into rate history entries.

    Items must be mappings with ``effective_date`` and ``rate`` keys.  Items
    whose rate is not numeric are dropped; malformed dates are kept and
    ignored later by ``resolve_effective_rate``.
    """
    if not isinstance(raw, (list, tuple)):
        return ()

    entries: list[RateHistoryEntry] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        try:
            rate = to_decimal(item.get("rate"))
        except (InvalidOperation, TypeError, ValueError):
            continue
        if not rate.is_finite():
            continue
        entries.append(
            RateHistoryEntry(
                effective_date=item.get("effective_date", ""),
                rate=rate,
            )
        )
    return tuple(entries)


def rate_on(raw_history: Any, reference_date: DateLike) -> Decimal | None:
    """Convenience: parse a settings value and return the rate in effect, if any."""
    entry = resolve_effective_rate(parse_rate_history(raw_history), reference_date)
    return entry.rate if entry is not None else None
