"""
Serialize resolved availability: an iCalendar feed of free slots, a
plain-text weekly summary, and a JSON-ready dict.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any, Mapping, Sequence

from icalendar import Calendar, Event

from .ranges import TimeRange
from .resolver import Interval, merge_intervals
from .timezones import get_zone, wall_clock

log = logging.getLogger(__name__)

Effective = Mapping[date, Sequence[TimeRange]]
# ISO (year, week) -> date -> ranges
WeeklyGroups = dict[tuple[int, int], dict[date, Sequence[TimeRange]]]


def duration_label(minutes: int) -> str:
    hours = minutes / 60
    return f"{hours:.1f}h" if hours >= 1 else f"{minutes}min"


def to_intervals(effective: Effective, tz: str) -> list[Interval]:
    """Turn per-date ranges back into absolute intervals in *tz*.

    A range ending at 24:00 and one starting at 00:00 the next day become a
    single interval.
    """
    zone = get_zone(tz)
    intervals = sorted(
        (wall_clock(day, rng.start, zone), wall_clock(day, rng.end, zone))
        for day, ranges in effective.items()
        for rng in ranges
    )
    return merge_intervals(intervals)


# ---------------------------------------------------------------------------
# iCalendar
# ---------------------------------------------------------------------------
def build_availability_calendar(
    effective: Effective, tz: str, name: str = "Available Slots"
) -> Calendar:
    """Create an ICS calendar advertising every available range."""
    cal = Calendar()
    cal.add("prodid", "-//Availability Engine//availability-engine//")
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("x-wr-calname", name)
    cal.add("x-wr-timezone", tz)

    now = datetime.now(timezone.utc)

    for idx, (start, end) in enumerate(to_intervals(effective, tz)):
        event = Event()
        event.add("summary", "Available")
        event.add("dtstart", start)
        event.add("dtend", end)
        event.add("dtstamp", now)
        event.add("uid", f"available-{idx}-{start:%Y%m%d%H%M}@availability-engine")
        event.add("status", "TENTATIVE")
        event.add("transp", "TRANSPARENT")
        cal.add_component(event)

    return cal


# ---------------------------------------------------------------------------
# Plain text
# ---------------------------------------------------------------------------
_RULE = "=" * 70
_THIN = "-" * 70


def _group_by_week(effective: Effective) -> WeeklyGroups:
    """Group non-empty dates by ISO week (both sorted)."""
    weeks: WeeklyGroups = defaultdict(dict)
    for day, ranges in sorted(effective.items()):
        if ranges:
            iso_year, week_num, _ = day.isocalendar()
            weeks[(iso_year, week_num)][day] = ranges
    return dict(sorted(weeks.items()))


def render_ascii(effective: Effective, title: str) -> str:
    """Render resolved availability as a plain-text weekly summary."""
    weeks = _group_by_week(effective)
    if not weeks:
        return "No available time slots found.\n"

    lines = [_RULE, title.center(70), _RULE, ""]

    for idx, ((iso_y, iso_w), dates) in enumerate(weeks.items()):
        if idx:
            lines.append("")
        monday = date.fromisocalendar(iso_y, iso_w, 1)
        lines.append(f"WEEK OF {monday.strftime('%B %d, %Y').upper()}")
        lines.append(_THIN)

        for day, ranges in dates.items():
            lines.append(f"\n  {day:%A, %B %d}")
            for rng in ranges:
                lines.append(
                    f"    {rng.start_time} - {rng.end_time} ({duration_label(rng.duration)})"
                )

    lines.extend(["", _RULE, f"Generated on {datetime.now():%Y-%m-%d at %H:%M}", ""])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------
def effective_to_dict(effective: Effective, tz: str) -> dict[str, Any]:
    return {
        "timezone": tz,
        "dates": {
            day.isoformat(): [
                {"start": rng.start_time, "end": rng.end_time} for rng in ranges
            ]
            for day, ranges in sorted(effective.items())
        },
    }


def log_summary(effective: Effective, preview: int = 5) -> None:
    """Log a human-friendly summary of the available ranges."""
    flat = [(day, rng) for day, ranges in sorted(effective.items()) for rng in ranges]
    total_h = sum(rng.duration for _, rng in flat) / 60
    log.info("Available ranges: %d (%.1f h total)", len(flat), total_h)
    for day, rng in flat[:preview]:
        log.info(
            "  • %s %s – %s (%s)",
            f"{day:%a %Y-%m-%d}",
            rng.start_time,
            rng.end_time,
            duration_label(rng.duration),
        )
