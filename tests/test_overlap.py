"""Tests for multi-participant slot views."""

from datetime import date

import pytest

from availability_engine.overlap import (
    OverlapSlot,
    SessionSlot,
    compute_heatmap,
    find_overlapping_slots,
    find_session_slots,
)
from availability_engine.rules import Rule

MONDAY = date(2024, 6, 3)
WINDOW = ("2024-06-03", "2024-06-03")


@pytest.fixture
def participants():
    return {
        "alice": [Rule("available_pattern", "18:00", "22:00", day_of_week=1)],
        "bob": [Rule("available_pattern", "19:00", "23:00", day_of_week=1)],
    }


def test_heatmap_counts_each_participant(participants):
    heatmap = compute_heatmap(participants, "UTC", WINDOW)
    assert heatmap[(MONDAY, "18:00")] == ["alice"]
    assert heatmap[(MONDAY, "19:00")] == ["alice", "bob"]
    assert heatmap[(MONDAY, "22:30")] == ["bob"]
    assert (MONDAY, "23:00") not in heatmap
    assert list(heatmap) == sorted(heatmap)


def test_heatmap_only_counts_fully_covered_slots():
    rules = {"carol": [Rule("available_pattern", "18:15", "19:00", day_of_week=1)]}
    assert compute_heatmap(rules, "UTC", WINDOW) == {(MONDAY, "18:30"): ["carol"]}


def test_overlapping_slots_default_to_everyone(participants):
    slots = find_overlapping_slots(participants, "UTC", WINDOW)
    assert [s.time for s in slots] == ["19:00", "19:30", "20:00", "20:30", "21:00", "21:30"]
    assert slots[0] == OverlapSlot(MONDAY, "19:00", ["alice", "bob"])


def test_overlapping_slots_with_threshold(participants):
    slots = find_overlapping_slots(participants, "UTC", WINDOW, min_participants=1)
    assert len(slots) == 10


def test_overlapping_slots_without_participants():
    assert find_overlapping_slots({}, "UTC", WINDOW) == []


def test_overlap_in_display_timezone(participants):
    # 19:00-22:00 UTC is 21:00-24:00 in Berlin during summer time.
    slots = find_overlapping_slots(participants, "Europe/Berlin", WINDOW)
    assert [s.time for s in slots][0] == "21:00"
    assert [s.time for s in slots][-1] == "23:30"


def test_session_slots(participants):
    sessions = find_session_slots(participants, "UTC", ("2024-06-03", "2024-06-04"), 120)
    assert sessions == [
        SessionSlot(MONDAY, "19:00", "21:00", ["alice", "bob"]),
        SessionSlot(MONDAY, "19:30", "21:30", ["alice", "bob"]),
        SessionSlot(MONDAY, "20:00", "22:00", ["alice", "bob"]),
    ]


def test_session_ending_at_midnight():
    rules = {"solo": [Rule("available_pattern", "23:00", "24:00", day_of_week=1)]}
    assert find_session_slots(rules, "UTC", WINDOW, 60) == [
        SessionSlot(MONDAY, "23:00", "24:00", ["solo"])
    ]


def test_session_needs_consecutive_slots():
    rules = {
        "dave": [
            Rule("available_pattern", "09:00", "09:30", day_of_week=1),
            Rule("available_pattern", "10:00", "10:30", day_of_week=1),
        ]
    }
    assert find_session_slots(rules, "UTC", WINDOW, 60) == []


def test_session_length_must_be_positive(participants):
    with pytest.raises(ValueError):
        find_session_slots(participants, "UTC", WINDOW, 0)
