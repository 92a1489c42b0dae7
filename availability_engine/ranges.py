"""
Half-open ``[start, end)`` minute ranges within one day.

Inside this module a range may run past midnight (``end > 1440``); such a
range is split with :func:`split_overnight` before it is handed to anything
that works one date at a time.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, NamedTuple, Sequence

from .timemath import (
    MINUTES_PER_DAY,
    SLOT_DURATION_MINUTES,
    end_time_to_minutes,
    minutes_to_time,
    parse_date,
    time_to_minutes,
)


class TimeRange(NamedTuple):
    start: int
    end: int

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end, overflow=True)

    @property
    def duration(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        return f"{self.start_time}-{self.end_time}"


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------
def create_range(
    start_time: str, end_time: str, crosses_midnight: bool | None = None
) -> TimeRange:
    """Build a :class:`TimeRange` from ``HH:MM`` strings.

    *crosses_midnight* is authoritative when given: ``True`` pushes the end
    into the next day, ``False`` never does, even when the clock values look
    inverted after a timezone shift. ``None`` infers crossing from
    ``end <= start``. ``"24:00"`` is the end of the day, and ``00:00-00:00``
    is read as the whole day.
    """
    start = time_to_minutes(start_time)
    end = end_time_to_minutes(end_time)

    if crosses_midnight:
        end += MINUTES_PER_DAY
    elif crosses_midnight is None and end <= start and end_time != start_time:
        end += MINUTES_PER_DAY

    if start == 0 and end == 0 and end_time == start_time:
        end = MINUTES_PER_DAY
    return TimeRange(start, end)


# ---------------------------------------------------------------------------
# Pairwise operations
# ---------------------------------------------------------------------------
def ranges_overlap(a: TimeRange, b: TimeRange) -> bool:
    return a.start < b.end and b.start < a.end


def ranges_adjacent(a: TimeRange, b: TimeRange) -> bool:
    return a.end == b.start or b.end == a.start


def merge_two(a: TimeRange, b: TimeRange) -> TimeRange | None:
    """Union of two ranges, or ``None`` when they neither overlap nor touch."""
    if not (ranges_overlap(a, b) or ranges_adjacent(a, b)):
        return None
    return TimeRange(min(a.start, b.start), max(a.end, b.end))


def intersect_two(a: TimeRange, b: TimeRange) -> TimeRange | None:
    if not ranges_overlap(a, b):
        return None
    return TimeRange(max(a.start, b.start), min(a.end, b.end))


def subtract_one(a: TimeRange, b: TimeRange) -> list[TimeRange]:
    """Remove *b* from *a*, leaving zero, one or two pieces."""
    if not ranges_overlap(a, b):
        return [a]
    pieces: list[TimeRange] = []
    if a.start < b.start:
        pieces.append(TimeRange(a.start, b.start))
    if a.end > b.end:
        pieces.append(TimeRange(b.end, a.end))
    return pieces


# ---------------------------------------------------------------------------
# Set operations
# ---------------------------------------------------------------------------
def merge_ranges(ranges: Iterable[TimeRange]) -> list[TimeRange]:
    """Merge overlapping or touching ranges into a sorted, disjoint list."""
    merged: list[TimeRange] = []
    for start, end in sorted(ranges):
        if end <= start:
            continue
        if merged and start <= merged[-1].end:
            merged[-1] = TimeRange(merged[-1].start, max(merged[-1].end, end))
        else:
            merged.append(TimeRange(start, end))
    return merged


def add_ranges(a: Iterable[TimeRange], b: Iterable[TimeRange]) -> list[TimeRange]:
    return merge_ranges([*a, *b])


def subtract_ranges(
    base: Iterable[TimeRange], to_subtract: Iterable[TimeRange]
) -> list[TimeRange]:
    """What remains of *base* after removing every range in *to_subtract*."""
    result = merge_ranges(base)
    for sub in merge_ranges(to_subtract):
        result = [piece for rng in result for piece in subtract_one(rng, sub)]
    return result


def intersect_ranges(
    a: Sequence[TimeRange], b: Sequence[TimeRange]
) -> list[TimeRange]:
    found = (intersect_two(x, y) for x in a for y in b)
    return merge_ranges(r for r in found if r is not None)


def total_minutes(ranges: Iterable[TimeRange]) -> int:
    return sum(r.duration for r in merge_ranges(ranges))


def minute_in_ranges(minute: int, ranges: Iterable[TimeRange]) -> bool:
    return any(r.start <= minute < r.end for r in ranges)


def clamp_to_window(
    ranges: Sequence[TimeRange], window_start: int, window_end: int
) -> list[TimeRange]:
    """Restrict *ranges* to the ``[window_start, window_end)`` minutes."""
    return intersect_ranges(ranges, [TimeRange(window_start, window_end)])


# ---------------------------------------------------------------------------
# Day boundaries and slots
# ---------------------------------------------------------------------------
def split_overnight(rng: TimeRange) -> list[tuple[int, TimeRange]]:
    """Split *rng* at midnight into ``(day_offset, range)`` pieces.

    ``[1320, 1560)`` becomes ``[(0, [1320, 1440)), (1, [0, 120))]``.
    Empty pieces are dropped.
    """
    pieces: list[tuple[int, TimeRange]] = []
    offset, start, end = 0, rng.start, rng.end
    while end > start:
        if end <= MINUTES_PER_DAY:
            pieces.append((offset, TimeRange(start, end)))
            break
        if start < MINUTES_PER_DAY:
            pieces.append((offset, TimeRange(start, MINUTES_PER_DAY)))
        offset += 1
        start = max(start - MINUTES_PER_DAY, 0)
        end -= MINUTES_PER_DAY
    return pieces


def ranges_to_slots(
    ranges: Iterable[TimeRange],
    on: str | date,
    step: int = SLOT_DURATION_MINUTES,
) -> list[tuple[date, str]]:
    """Expand ranges on *on* into ``(date, 'HH:MM')`` slot starts.

    Portions past midnight land on the following date(s).
    """
    day = parse_date(on)
    slots: list[tuple[date, str]] = []
    for rng in ranges:
        for minute in range(rng.start, rng.end, step):
            offset, minute_of_day = divmod(minute, MINUTES_PER_DAY)
            slots.append((day + timedelta(days=offset), minutes_to_time(minute_of_day)))
    return slots


def slots_to_ranges(
    slots: Iterable[tuple[str | date, str]],
    step: int = SLOT_DURATION_MINUTES,
) -> dict[date, list[TimeRange]]:
    """Group ``(date, 'HH:MM')`` slot starts into contiguous ranges per date.

    Two slots are contiguous when exactly *step* minutes apart.
    """
    by_date: dict[date, set[int]] = defaultdict(set)
    for on, value in slots:
        by_date[parse_date(on)].add(time_to_minutes(value))

    result: dict[date, list[TimeRange]] = {}
    for day, minutes in sorted(by_date.items()):
        ranges: list[TimeRange] = []
        for minute in sorted(minutes):
            if ranges and ranges[-1].end == minute:
                ranges[-1] = TimeRange(ranges[-1].start, minute + step)
            else:
                ranges.append(TimeRange(minute, minute + step))
        result[day] = ranges
    return result


def format_ranges(ranges: Iterable[TimeRange]) -> str:
    return ", ".join(str(r) for r in ranges) or "-"
