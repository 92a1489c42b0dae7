"""
Availability resolution engine.

Stores availability rules in UTC, converts them between IANA timezones and
resolves them into per-date free time ranges for any display timezone.
"""

from .errors import AvailabilityError, InvalidFormat, InvalidRule, UnknownTimezone
from .overlap import compute_heatmap, find_overlapping_slots, find_session_slots
from .ranges import (
    TimeRange,
    add_ranges,
    clamp_to_window,
    create_range,
    intersect_ranges,
    merge_ranges,
    ranges_to_slots,
    slots_to_ranges,
    split_overnight,
    subtract_ranges,
    total_minutes,
)
from .resolver import (
    DateRange,
    DayAvailability,
    compute_effective_for_date,
    is_slot_available,
    resolve,
    resolve_days,
)
from .rules import (
    DraftRule,
    Rule,
    RuleSource,
    RuleType,
    convert_rule_for_display,
    prepare_rule_for_storage,
    replace_rules,
)
from .timemath import (
    DAY_NAMES,
    DAY_NAMES_SHORT,
    END_OF_DAY,
    MINUTES_PER_DAY,
    SLOT_DURATION_MINUTES,
    SLOTS_PER_DAY,
    minutes_to_time,
    time_to_minutes,
)
from .timezones import (
    convert_date_time,
    convert_override_from_utc,
    convert_override_to_utc,
    convert_pattern_between_timezones,
    convert_pattern_from_utc,
    convert_pattern_to_utc,
)

__version__ = "0.1.0"
