"""
Effective availability: the single answer to "is this participant free on
this date at this time?".

Stored UTC rules are expanded into absolute UTC intervals over a widened
lookup window, precedence is applied on those intervals, and the survivors
are converted into the display timezone and split into per-date minute
ranges. Working on absolute instants means the display offset is derived
per date at resolution time, so DST transitions, weekday shifts and
midnight crossings all fall out of the same conversion.

Precedence, lowest to highest::

    available_pattern < blocked_pattern < available_override < blocked_override

The module holds no state; every call works only on its arguments.
"""

from __future__ import annotations

import logging
from bisect import bisect_left
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Mapping, NamedTuple, Sequence, Union
from zoneinfo import ZoneInfo

from dateutil.rrule import WEEKLY, rrule

from .errors import InvalidFormat, InvalidRule
from .ranges import TimeRange, merge_ranges, minute_in_ranges
from .rules import Rule, RuleType
from .timemath import MINUTES_PER_DAY, iter_dates, parse_date, time_to_minutes
from .timezones import get_zone, local_pieces, wall_clock

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------
Interval = tuple[datetime, datetime]
RuleLike = Union[Rule, Mapping[str, Any]]
EffectiveAvailability = dict[date, list[TimeRange]]


class DateRange(NamedTuple):
    """Closed ``[start_date, end_date]`` window of calendar dates."""

    start_date: date
    end_date: date

    @classmethod
    def parse(cls, start: str | date, end: str | date) -> DateRange:
        rng = cls(parse_date(start), parse_date(end))
        if rng.start_date > rng.end_date:
            raise InvalidFormat(f"Date range ends before it starts: {start} > {end}")
        return rng

    def dates(self) -> list[date]:
        return list(iter_dates(self.start_date, self.end_date))


class DayAvailability(NamedTuple):
    date: date
    available_ranges: list[TimeRange]
    blocked_ranges: list[TimeRange]


def _as_date_range(value: DateRange | Sequence | Mapping[str, Any]) -> DateRange:
    if isinstance(value, Mapping):
        return DateRange.parse(value["start_date"], value["end_date"])
    start, end = value
    return DateRange.parse(start, end)


# ---------------------------------------------------------------------------
# Interval arithmetic on absolute instants
# ---------------------------------------------------------------------------
def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Collapse sorted UTC intervals; touching ones join into one."""
    merged: list[Interval] = []
    for start, end in intervals:
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def subtract_intervals(
    base: Sequence[Interval], removed: Iterable[Interval]
) -> list[Interval]:
    """Remove every interval of *removed* from *base*.

    *base* must already be sorted and merged (see :func:`merge_intervals`);
    *removed* may come in any order.
    """
    busy = merge_intervals(sorted(removed))
    if not busy:
        return list(base)

    busy_starts = [iv[0] for iv in busy]
    free: list[Interval] = []

    for start, end in base:
        idx = max(bisect_left(busy_starts, start) - 1, 0)
        cursor = start

        while idx < len(busy):
            b_start, b_end = busy[idx]

            if b_start >= end:
                break
            if b_end <= cursor:
                idx += 1
                continue

            if cursor < b_start:
                free.append((cursor, b_start))

            cursor = max(cursor, b_end)
            idx += 1

        if cursor < end:
            free.append((cursor, end))

    return free


def _union(*groups: Iterable[Interval]) -> list[Interval]:
    return merge_intervals(sorted(iv for group in groups for iv in group))


# ---------------------------------------------------------------------------
# Rule expansion
# ---------------------------------------------------------------------------
def _usable_rules(rules: Iterable[RuleLike], best_effort: bool) -> list[Rule]:
    """Validate *rules*; in best-effort mode invalid ones are logged and dropped."""
    usable: list[Rule] = []
    for idx, raw in enumerate(rules):
        try:
            rule = raw if isinstance(raw, Rule) else Rule.from_dict(raw)
            usable.append(rule.validate())
        except (InvalidRule, InvalidFormat) as exc:
            if not best_effort:
                raise
            ident = getattr(raw, "id", None) or (
                raw.get("id") if isinstance(raw, Mapping) else None
            )
            log.warning("Skipping invalid rule %s: %s", ident or f"#{idx}", exc)
    return usable


def _pattern_dates(dow: int, first: date, last: date) -> list[date]:
    """UTC dates in ``[first, last]`` that fall on *dow* (0 = Sunday)."""
    occurrences = rrule(
        WEEKLY,
        byweekday=(dow - 1) % 7,
        dtstart=datetime.combine(first, time.min),
        until=datetime.combine(last, time.min),
    )
    return [occ.date() for occ in occurrences]


def _expand(
    rules: Iterable[Rule], first: date, last: date
) -> dict[RuleType, list[Interval]]:
    """Absolute UTC intervals per rule type for UTC dates ``first..last``."""
    buckets: dict[RuleType, list[Interval]] = {kind: [] for kind in RuleType}
    for rule in rules:
        rng = rule.time_range()
        if rule.rule_type.is_pattern:
            days = _pattern_dates(rule.day_of_week, first, last)
        elif first <= rule.specific_date <= last:
            days = [rule.specific_date]
        else:
            days = []
        buckets[rule.rule_type].extend(
            (wall_clock(day, rng.start, timezone.utc), wall_clock(day, rng.end, timezone.utc))
            for day in days
        )
    return buckets


def _lookup_window(window: DateRange, zone: ZoneInfo) -> tuple[date, date]:
    """UTC dates whose rules can reach *window* once shown in *zone*.

    The UTC span of the local window is widened by one day on each side so
    rules stored on a neighbouring UTC date still contribute to the
    boundary dates.
    """
    utc_start = wall_clock(window.start_date, 0, zone).astimezone(timezone.utc)
    utc_end = wall_clock(window.end_date, MINUTES_PER_DAY, zone).astimezone(timezone.utc)
    return utc_start.date() - timedelta(days=1), utc_end.date() + timedelta(days=1)


def _resolve_intervals(
    rules: Iterable[RuleLike], zone: ZoneInfo, window: DateRange, best_effort: bool
) -> tuple[list[Interval], list[Interval]]:
    """Return (available, blocked) UTC intervals after applying precedence."""
    usable = _usable_rules(rules, best_effort)
    first, last = _lookup_window(window, zone)
    log.debug(
        "Resolving %d rules for %s..%s in %s (UTC lookup %s..%s)",
        len(usable),
        window.start_date,
        window.end_date,
        zone.key,
        first,
        last,
    )
    b = _expand(usable, first, last)

    available = subtract_intervals(
        _union(b[RuleType.AVAILABLE_PATTERN]), b[RuleType.BLOCKED_PATTERN]
    )
    available = _union(available, b[RuleType.AVAILABLE_OVERRIDE])
    available = subtract_intervals(available, b[RuleType.BLOCKED_OVERRIDE])

    blocked = subtract_intervals(
        _union(b[RuleType.BLOCKED_PATTERN]), b[RuleType.AVAILABLE_OVERRIDE]
    )
    blocked = _union(blocked, b[RuleType.BLOCKED_OVERRIDE])
    return available, blocked


def _localize(
    intervals: Iterable[Interval], zone: ZoneInfo, window: DateRange
) -> EffectiveAvailability:
    """Split UTC intervals into per-date minute ranges in *zone*, trimmed to *window*."""
    by_date: dict[date, list[TimeRange]] = {day: [] for day in window.dates()}
    for start, end in intervals:
        for day, piece in local_pieces(start, end, zone):
            if day in by_date:
                by_date[day].append(piece)
    return {day: merge_ranges(ranges) for day, ranges in by_date.items()}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def resolve(
    rules: Iterable[RuleLike],
    display_timezone: str,
    date_range: DateRange | Sequence | Mapping[str, Any],
    *,
    best_effort: bool = False,
) -> EffectiveAvailability:
    """Compute effective availability for every date of *date_range*.

    Returns a mapping of each requested date (in *display_timezone*) to its
    disjoint, time-ordered available ranges; dates with nothing free map to
    an empty list. Any invalid rule raises :class:`InvalidRule` unless
    *best_effort* is set, in which case it is logged and skipped.
    """
    zone = get_zone(display_timezone)
    window = _as_date_range(date_range)
    available, _ = _resolve_intervals(rules, zone, window, best_effort)
    return _localize(available, zone, window)


def resolve_days(
    rules: Iterable[RuleLike],
    display_timezone: str,
    date_range: DateRange | Sequence | Mapping[str, Any],
    *,
    best_effort: bool = False,
) -> dict[date, DayAvailability]:
    """Like :func:`resolve`, but also report the effectively blocked ranges."""
    zone = get_zone(display_timezone)
    window = _as_date_range(date_range)
    available, blocked = _resolve_intervals(rules, zone, window, best_effort)
    free = _localize(available, zone, window)
    busy = _localize(blocked, zone, window)
    return {day: DayAvailability(day, free[day], busy[day]) for day in window.dates()}


def compute_effective_for_date(
    rules: Iterable[RuleLike],
    display_timezone: str,
    on: str | date,
    *,
    best_effort: bool = False,
) -> DayAvailability:
    day = parse_date(on)
    days = resolve_days(rules, display_timezone, (day, day), best_effort=best_effort)
    return days[day]


def is_slot_available(
    rules: Iterable[RuleLike],
    display_timezone: str,
    on: str | date,
    at: str,
    *,
    best_effort: bool = False,
) -> bool:
    """True if the participant is free at *at* on *on* in *display_timezone*."""
    day = parse_date(on)
    minute = time_to_minutes(at)
    effective = resolve(rules, display_timezone, (day, day), best_effort=best_effort)
    return minute_in_ranges(minute, effective[day])
