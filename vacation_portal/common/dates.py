"""Calendar-day helpers: normalisation, business-day counting, range overlap.

All comparisons in the portal happen on plain ``date`` values, so a request
submitted at 23:30 in one timezone and read back in another still lands on
the same calendar day.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Union

DateLike = Union[date, datetime, str]

# Monday=0 … Sunday=6
WEEKEND_DAYS = frozenset({5, 6})


def normalize_to_day(value: DateLike) -> date:
    """Strip any time-of-day and return the calendar date.

    Accepts ``date``, ``datetime`` (its own calendar date is kept, no
    timezone conversion) or an ISO string such as ``2025-03-03`` or
    ``2025-03-03T09:00:00Z``.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            raise ValueError(f"Invalid date value: {value!r}") from None
    raise ValueError(f"Invalid date value: {value!r}")


def count_business_days(start: DateLike, end: DateLike) -> int:
    """Count Mon–Fri days in the closed range [start, end]; 0 if end < start."""
    first = normalize_to_day(start)
    last = normalize_to_day(end)
    if last < first:
        return 0
    weeks, extra = divmod((last - first).days + 1, 7)
    count = weeks * (7 - len(WEEKEND_DAYS))
    for offset in range(extra):
        if (first.weekday() + offset) % 7 not in WEEKEND_DAYS:
            count += 1
    return count


def ranges_overlap(s0: date, e0: date, s1: date, e1: date) -> bool:
    """Closed-interval overlap; ranges that touch on a single day overlap."""
    return s0 <= e1 and s1 <= e0


def end_exclusive(end: date) -> date:
    """All-day calendar events end on the day after the last day off."""
    return normalize_to_day(end) + timedelta(days=1)
