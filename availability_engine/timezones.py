"""
Conversion of wall-clock times, weekly patterns and dated overrides between
IANA timezones.

Every conversion resolves the real UTC offset in effect for the instant being
converted (via :mod:`zoneinfo`), so daylight-saving transitions are honoured.
Weekly patterns have no date of their own; they are anchored on a fixed
reference week far from any DST transition so that the day-of-week shift of a
pattern never depends on when the conversion happens to run.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Iterator, NamedTuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import UnknownTimezone
from .ranges import TimeRange, create_range
from .timemath import (
    END_OF_DAY,
    MINUTES_PER_DAY,
    day_of_week,
    end_time_to_minutes,
    iter_dates,
    minutes_to_time,
    parse_date,
)

# Sunday of a mid-January week: no zone in the tz database changes its
# offset within a week of this date.
REFERENCE_SUNDAY = date(2024, 1, 7)

UTC = "UTC"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
class ZonedTime(NamedTuple):
    date: date
    time: str


class PatternTime(NamedTuple):
    day_of_week: int
    start_time: str
    end_time: str
    crosses_midnight: bool = False


class PatternSet(NamedTuple):
    days: tuple[int, ...]
    start_time: str
    end_time: str


class OverrideTime(NamedTuple):
    date: date
    start_time: str
    end_time: str
    crosses_midnight: bool = False


# ---------------------------------------------------------------------------
# Zone lookup
# ---------------------------------------------------------------------------
def get_zone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name, never falling back to UTC."""
    if not isinstance(name, str) or not name:
        raise UnknownTimezone(str(name))
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise UnknownTimezone(name) from exc


def wall_clock(day: date, minutes: int, tz: ZoneInfo) -> datetime:
    """Aware datetime for *minutes* past midnight of *day* in *tz*.

    *minutes* may reach or exceed 1440 to address the following day.
    """
    return datetime.combine(day, time.min, tzinfo=tz) + timedelta(minutes=minutes)


def minute_of_day(dt: datetime) -> int:
    return dt.hour * 60 + dt.minute


def _elapsed_minutes(start: datetime, end: datetime) -> int:
    """Real minutes between two aware datetimes, whatever their tzinfo."""
    delta = end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
    return int(delta.total_seconds() // 60)


def _convert_range(
    day: date, start: int, end: int, src: ZoneInfo, dst: ZoneInfo
) -> tuple[date, int, int]:
    """Convert ``[start, end)`` minutes of *day* from *src* to *dst*.

    Returns the converted start date, the start minute, and the end minute
    counted from the converted start date's midnight (so it can exceed 1440).
    The end never comes out shorter than the elapsed time, so a range
    spanning a repeated hour keeps its length.
    """
    src_start = wall_clock(day, start, src)
    src_end = wall_clock(day, end, src)
    local_start = src_start.astimezone(dst)
    local_end = src_end.astimezone(dst)
    start_day = local_start.date()
    start_minutes = minute_of_day(local_start)
    end_minutes = (local_end.date() - start_day).days * MINUTES_PER_DAY + minute_of_day(
        local_end
    )
    end_minutes = max(end_minutes, start_minutes + _elapsed_minutes(src_start, src_end))
    return start_day, start_minutes, end_minutes


def _format_range(start: int, end: int) -> tuple[str, str, bool]:
    """Render a converted range as (start, end, crosses_midnight).

    An end exactly on the next midnight becomes the ``24:00`` sentinel.
    """
    if end == MINUTES_PER_DAY:
        return minutes_to_time(start), END_OF_DAY, False
    return minutes_to_time(start), minutes_to_time(end), end > MINUTES_PER_DAY


# ---------------------------------------------------------------------------
# Absolute intervals
# ---------------------------------------------------------------------------
def _offset_change(start: datetime, end: datetime, tz: ZoneInfo) -> datetime | None:
    """First whole minute in ``(start, end)`` whose UTC offset in *tz* differs
    from the one at *start*, or ``None``."""
    before = start.astimezone(tz).utcoffset()
    total = _elapsed_minutes(start, end) - 1
    if total < 1 or (start + timedelta(minutes=total)).astimezone(tz).utcoffset() == before:
        return None
    lo, hi = 0, total
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if (start + timedelta(minutes=mid)).astimezone(tz).utcoffset() == before:
            lo = mid
        else:
            hi = mid
    return start + timedelta(minutes=hi)


def _next_midnight(day: date, tz: ZoneInfo) -> datetime:
    """UTC instant at which the local date after *day* begins in *tz*.

    Takes the later reading when midnight is repeated or skipped.
    """
    naive = datetime.combine(day + timedelta(days=1), time.min)
    return max(
        naive.replace(tzinfo=tz, fold=fold).astimezone(timezone.utc) for fold in (0, 1)
    )


def local_pieces(
    start: datetime, end: datetime, tz: ZoneInfo
) -> Iterator[tuple[date, TimeRange]]:
    """Split the absolute interval ``[start, end)`` into wall-clock ranges of *tz*.

    Yields ``(local_date, range)`` pieces cut at local midnights and at UTC
    offset changes. A piece ending on a forward jump runs up to the wall
    time the clocks jump to, so a skipped hour stays covered; a repeated
    hour shows up as two overlapping pieces of the same date.
    """
    cursor = start.astimezone(timezone.utc)
    end = end.astimezone(timezone.utc)
    while cursor < end:
        day = cursor.astimezone(tz).date()
        stop = min(end, _next_midnight(day, tz))
        while cursor < stop:
            cut = _offset_change(cursor, stop, tz) or stop
            first = minute_of_day(cursor.astimezone(tz))
            last = first + _elapsed_minutes(cursor, cut)
            if cut < stop:
                last = max(last, minute_of_day(cut.astimezone(tz)))
            yield day, TimeRange(first, min(last, MINUTES_PER_DAY))
            cursor = cut


# ---------------------------------------------------------------------------
# Single instants
# ---------------------------------------------------------------------------
def convert_date_time(
    value: str, on: str | date, from_tz: str, to_tz: str
) -> ZonedTime:
    """Reinterpret the wall-clock *value* on *on* in *from_tz* as *to_tz*.

    ``"24:00"`` is read as midnight at the start of the following day.

    >>> convert_date_time("23:00", "2024-06-03", "America/Los_Angeles", "UTC")
    ZonedTime(date=datetime.date(2024, 6, 4), time='06:00')
    """
    day = parse_date(on)
    minutes = end_time_to_minutes(value)
    converted = wall_clock(day, minutes, get_zone(from_tz)).astimezone(get_zone(to_tz))
    return ZonedTime(converted.date(), minutes_to_time(minute_of_day(converted)))


def local_to_utc(value: str, on: str | date, from_tz: str) -> ZonedTime:
    return convert_date_time(value, on, from_tz, UTC)


def utc_to_local(value: str, on: str | date, to_tz: str) -> ZonedTime:
    return convert_date_time(value, on, UTC, to_tz)


# ---------------------------------------------------------------------------
# Weekly patterns
# ---------------------------------------------------------------------------
def _reference_date(dow: int) -> date:
    return REFERENCE_SUNDAY + timedelta(days=dow)


def _convert_pattern(
    dow: int, rng: TimeRange, src: ZoneInfo, dst: ZoneInfo
) -> PatternTime:
    ref = _reference_date(dow)
    start_day, start, end = _convert_range(ref, rng.start, rng.end, src, dst)
    shifted = (dow + (start_day - ref).days) % 7
    return PatternTime(shifted, *_format_range(start, end))


def convert_pattern_to_utc(
    dow: int, start_time: str, end_time: str, from_tz: str
) -> PatternTime:
    """Convert a pattern authored in *from_tz* to its UTC weekday and times.

    An authored end at or before the start means the range crosses local
    midnight; ``00:00-00:00`` is read as the whole day.

    >>> convert_pattern_to_utc(1, "07:00", "09:00", "Asia/Manila")
    PatternTime(day_of_week=0, start_time='23:00', end_time='01:00', crosses_midnight=True)
    """
    rng = create_range(start_time, end_time)
    return _convert_pattern(dow, rng, get_zone(from_tz), timezone.utc)


def convert_pattern_from_utc(
    dow: int,
    start_time: str,
    end_time: str,
    display_tz: str,
    crosses_midnight: bool | None = None,
) -> PatternTime:
    """Convert a stored UTC pattern to the weekday and times seen in *display_tz*.

    The returned weekday is the one on which the converted range starts and
    can differ from *dow*. Pass *crosses_midnight* from the stored rule; when
    omitted it is inferred from ``end <= start``.
    """
    rng = create_range(start_time, end_time, crosses_midnight)
    return _convert_pattern(dow, rng, timezone.utc, get_zone(display_tz))


def convert_pattern_between_timezones(
    days: Iterable[int],
    start_time: str,
    end_time: str,
    from_tz: str,
    to_tz: str,
) -> PatternSet:
    """Convert a multi-day pattern entry from *from_tz* to *to_tz* through UTC.

    Each day shifts independently. A full-day ``00:00-24:00`` entry keeps its
    days: "all day Monday" stays "all day Monday" in any timezone.
    """
    days = list(days)
    get_zone(from_tz)
    get_zone(to_tz)
    if from_tz == to_tz or (start_time == "00:00" and end_time == END_OF_DAY):
        return PatternSet(tuple(sorted(set(days))), start_time, end_time)

    converted_days: set[int] = set()
    new_start, new_end = start_time, end_time
    for dow in days:
        utc = convert_pattern_to_utc(dow, start_time, end_time, from_tz)
        local = convert_pattern_from_utc(
            utc.day_of_week, utc.start_time, utc.end_time, to_tz, utc.crosses_midnight
        )
        converted_days.add(local.day_of_week)
        new_start, new_end = local.start_time, local.end_time

    return PatternSet(tuple(sorted(converted_days)), new_start, new_end)


# ---------------------------------------------------------------------------
# Dated overrides
# ---------------------------------------------------------------------------
def _convert_override(
    on: date, rng: TimeRange, src: ZoneInfo, dst: ZoneInfo
) -> OverrideTime:
    start_day, start, end = _convert_range(on, rng.start, rng.end, src, dst)
    return OverrideTime(start_day, *_format_range(start, end))


def convert_override_to_utc(
    on: str | date, start_time: str, end_time: str, from_tz: str
) -> OverrideTime:
    """Convert a dated range authored in *from_tz* to UTC.

    The returned date is the UTC date on which the range starts, which may
    differ from the authored date.
    """
    rng = create_range(start_time, end_time)
    return _convert_override(parse_date(on), rng, get_zone(from_tz), timezone.utc)


def convert_override_from_utc(
    on: str | date,
    start_time: str,
    end_time: str,
    to_tz: str,
    crosses_midnight: bool | None = None,
) -> OverrideTime:
    rng = create_range(start_time, end_time, crosses_midnight)
    return _convert_override(parse_date(on), rng, timezone.utc, get_zone(to_tz))


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------
def local_day_of_week(on: str | date, tz: str) -> int:
    """Weekday (0 = Sunday) that noon UTC of *on* falls on in *tz*."""
    noon = datetime.combine(parse_date(on), time(12), tzinfo=timezone.utc)
    return day_of_week(noon.astimezone(get_zone(tz)).date())


def date_range(start: str | date, end: str | date) -> list[date]:
    return list(iter_dates(parse_date(start), parse_date(end)))
