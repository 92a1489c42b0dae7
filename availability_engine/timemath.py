"""
Minute-of-day arithmetic and date literal parsing.

Times are 24-hour ``HH:MM`` strings. ``"24:00"`` is reserved for the end of a
range that stops exactly at midnight and is only accepted where an end time
is expected.
"""

from __future__ import annotations

import re
from datetime import date, timedelta

from .errors import InvalidFormat

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
MINUTES_PER_DAY = 24 * 60
SLOT_DURATION_MINUTES = 30
SLOTS_PER_DAY = MINUTES_PER_DAY // SLOT_DURATION_MINUTES
END_OF_DAY = "24:00"

DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)
DAY_NAMES_SHORT = tuple(name[:3] for name in DAY_NAMES)

_HHMM = re.compile(r"^(\d{2}):(\d{2})$")


# ---------------------------------------------------------------------------
# Time of day
# ---------------------------------------------------------------------------
def time_to_minutes(value: str) -> int:
    """Parse ``'HH:MM'`` into minutes since midnight (0-1439)."""
    match = _HHMM.match(value) if isinstance(value, str) else None
    if match is None:
        raise InvalidFormat(f"Expected HH:MM, got {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidFormat(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def end_time_to_minutes(value: str) -> int:
    """Like :func:`time_to_minutes`, but also accepts the ``24:00`` sentinel."""
    if value == END_OF_DAY:
        return MINUTES_PER_DAY
    return time_to_minutes(value)


def minutes_to_time(minutes: int, *, overflow: bool = False) -> str:
    """Format minutes since midnight as ``'HH:MM'``.

    Values are wrapped modulo one day (1500 -> ``'01:00'``). With
    *overflow*, exactly 1440 renders as ``'24:00'`` instead of ``'00:00'``.
    """
    if overflow and minutes == MINUTES_PER_DAY:
        return END_OF_DAY
    normalized = minutes % MINUTES_PER_DAY
    return f"{normalized // 60:02d}:{normalized % 60:02d}"


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------
def parse_date(value: str | date) -> date:
    """Return *value* as a :class:`date`, parsing ISO ``YYYY-MM-DD`` strings."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value) != 10:
        raise InvalidFormat(f"Expected YYYY-MM-DD, got {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidFormat(f"Expected YYYY-MM-DD, got {value!r}") from exc


def day_of_week(day: date) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def iter_dates(start: date, end: date):
    """Yield every date from *start* to *end*, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
