"""Tests for the ICS, plain-text and JSON renderings."""

import logging
from datetime import date, datetime, timedelta, timezone

from icalendar import Calendar

from availability_engine.export import (
    build_availability_calendar,
    duration_label,
    effective_to_dict,
    log_summary,
    render_ascii,
    to_intervals,
)
from availability_engine.ranges import TimeRange

MONDAY = date(2024, 6, 3)


def _events(cal):
    return [c for c in cal.walk() if c.name == "VEVENT"]


def test_duration_label():
    assert duration_label(240) == "4.0h"
    assert duration_label(90) == "1.5h"
    assert duration_label(30) == "30min"


def test_to_intervals_joins_ranges_across_midnight():
    effective = {
        date(2024, 6, 7): [TimeRange(1320, 1440)],
        date(2024, 6, 8): [TimeRange(0, 120)],
    }
    [(start, end)] = to_intervals(effective, "UTC")
    assert start == datetime(2024, 6, 7, 22, 0, tzinfo=timezone.utc)
    assert end == datetime(2024, 6, 8, 2, 0, tzinfo=timezone.utc)


def test_calendar_has_one_event_per_range():
    effective = {MONDAY: [TimeRange(540, 720), TimeRange(780, 1020)], date(2024, 6, 4): []}
    cal = build_availability_calendar(effective, "Europe/Paris", name="Team")
    events = _events(cal)
    assert len(events) == 2
    assert str(cal["x-wr-calname"]) == "Team"
    assert str(events[0]["summary"]) == "Available"
    # 09:00 Paris summer time is 07:00 UTC.
    assert events[0].decoded("dtstart") == datetime(2024, 6, 3, 7, 0, tzinfo=timezone.utc)
    assert events[0]["uid"] != events[1]["uid"]


def test_calendar_serializes_and_parses_back():
    effective = {MONDAY: [TimeRange(1080, 1320)]}
    data = build_availability_calendar(effective, "UTC").to_ical()
    assert data.startswith(b"BEGIN:VCALENDAR")
    parsed = Calendar.from_ical(data)
    [event] = _events(parsed)
    assert event.decoded("dtend") - event.decoded("dtstart") == timedelta(hours=4)


def test_render_ascii_empty():
    assert render_ascii({MONDAY: []}, "Free") == "No available time slots found.\n"


def test_render_ascii_groups_by_week():
    effective = {
        MONDAY: [TimeRange(1080, 1320)],
        date(2024, 6, 4): [],
        date(2024, 6, 10): [TimeRange(540, 570)],
    }
    text = render_ascii(effective, "Free")
    assert "WEEK OF JUNE 03, 2024" in text
    assert "WEEK OF JUNE 10, 2024" in text
    assert "  Monday, June 03" in text
    assert "Tuesday" not in text
    assert "    18:00 - 22:00 (4.0h)" in text
    assert "    09:00 - 09:30 (30min)" in text


def test_effective_to_dict():
    effective = {date(2024, 6, 4): [], MONDAY: [TimeRange(1320, 1440)]}
    assert effective_to_dict(effective, "UTC") == {
        "timezone": "UTC",
        "dates": {
            "2024-06-03": [{"start": "22:00", "end": "24:00"}],
            "2024-06-04": [],
        },
    }


def test_log_summary(caplog):
    with caplog.at_level(logging.INFO, logger="availability_engine.export"):
        log_summary({MONDAY: [TimeRange(1080, 1320)]})
    assert "Available ranges: 1 (4.0 h total)" in caplog.text
