"""
Group views over several participants: slot heatmaps, common free slots and
session-length windows.

Every participant is resolved independently with
:func:`availability_engine.resolver.resolve`; the results are then counted
per grid slot. Slots are aligned on the slot grid (``:00``/``:30`` for the
default 30-minute step) and only count when fully covered.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import date
from typing import Iterable, Mapping, NamedTuple

from .ranges import TimeRange
from .resolver import DateRange, RuleLike, resolve
from .timemath import SLOT_DURATION_MINUTES, minutes_to_time, time_to_minutes

log = logging.getLogger(__name__)

Heatmap = dict[tuple[date, str], list[str]]


class OverlapSlot(NamedTuple):
    date: date
    time: str
    participant_ids: list[str]


class SessionSlot(NamedTuple):
    date: date
    start_time: str
    end_time: str
    participant_ids: list[str]


def _grid_slots(ranges: Iterable[TimeRange], step: int) -> list[int]:
    """Start minutes of every grid slot fully inside one of *ranges*."""
    starts: list[int] = []
    for rng in ranges:
        first = math.ceil(rng.start / step) * step
        starts.extend(range(first, rng.end - step + 1, step))
    return starts


def compute_heatmap(
    participant_rules: Mapping[str, Iterable[RuleLike]],
    display_timezone: str,
    date_range: DateRange | tuple,
    *,
    step: int = SLOT_DURATION_MINUTES,
) -> Heatmap:
    """Map each ``(date, 'HH:MM')`` slot to the participants free for all of it."""
    heatmap: dict[tuple[date, str], list[str]] = defaultdict(list)
    for participant_id, rules in participant_rules.items():
        effective = resolve(rules, display_timezone, date_range)
        for day, ranges in effective.items():
            for minute in _grid_slots(ranges, step):
                heatmap[(day, minutes_to_time(minute))].append(participant_id)
    log.debug(
        "Heatmap for %d participants: %d occupied slots",
        len(participant_rules),
        len(heatmap),
    )
    return dict(sorted(heatmap.items()))


def find_overlapping_slots(
    participant_rules: Mapping[str, Iterable[RuleLike]],
    display_timezone: str,
    date_range: DateRange | tuple,
    min_participants: int | None = None,
    *,
    step: int = SLOT_DURATION_MINUTES,
) -> list[OverlapSlot]:
    """Slots where at least *min_participants* (default: everyone) are free."""
    if not participant_rules:
        return []
    threshold = len(participant_rules) if min_participants is None else min_participants
    heatmap = compute_heatmap(participant_rules, display_timezone, date_range, step=step)
    return [
        OverlapSlot(day, slot, ids)
        for (day, slot), ids in heatmap.items()
        if len(ids) >= threshold
    ]


def find_session_slots(
    participant_rules: Mapping[str, Iterable[RuleLike]],
    display_timezone: str,
    date_range: DateRange | tuple,
    session_minutes: int,
    min_participants: int | None = None,
    *,
    step: int = SLOT_DURATION_MINUTES,
) -> list[SessionSlot]:
    """Session start slots with *session_minutes* of consecutive common time.

    A session has to fit inside one date; the participants reported are
    those free for every slot of it.
    """
    if session_minutes <= 0:
        raise ValueError("session_minutes must be positive")
    threshold = len(participant_rules) if min_participants is None else min_participants
    overlapping = find_overlapping_slots(
        participant_rules, display_timezone, date_range, threshold, step=step
    )
    needed = math.ceil(session_minutes / step)

    by_date: dict[date, list[tuple[int, set[str]]]] = defaultdict(list)
    for slot in overlapping:
        by_date[slot.date].append((time_to_minutes(slot.time), set(slot.participant_ids)))

    sessions: list[SessionSlot] = []
    for day, slots in sorted(by_date.items()):
        for i in range(len(slots) - needed + 1):
            window = slots[i : i + needed]
            if window[-1][0] - window[0][0] != (needed - 1) * step:
                continue
            common = set.intersection(*(ids for _, ids in window))
            if len(common) < threshold:
                continue
            end = window[-1][0] + step
            sessions.append(
                SessionSlot(
                    day,
                    minutes_to_time(window[0][0]),
                    minutes_to_time(end, overflow=True),
                    sorted(common),
                )
            )
    return sessions
