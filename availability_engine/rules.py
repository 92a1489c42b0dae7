"""
Availability rules and their normalization for storage.

A stored :class:`Rule` is always expressed in UTC. Weekly patterns carry a
``day_of_week`` (0 = Sunday), one-off overrides carry a ``specific_date``.
The authoring timezone and weekday are kept so a rule can be shown back to
its author without drifting through repeated conversions.

User and AI input arrives as a :class:`DraftRule` in the author's timezone
and goes through :func:`prepare_rule_for_storage` before it is persisted.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, fields
from datetime import date
from typing import Any, Iterable, Mapping, NamedTuple

from .errors import InvalidFormat, InvalidRule
from .ranges import TimeRange, create_range
from .timemath import END_OF_DAY, MINUTES_PER_DAY, parse_date
from .timezones import (
    UTC,
    convert_override_from_utc,
    convert_override_to_utc,
    convert_pattern_from_utc,
    convert_pattern_to_utc,
)

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------
class RuleType(str, enum.Enum):
    AVAILABLE_PATTERN = "available_pattern"
    BLOCKED_PATTERN = "blocked_pattern"
    AVAILABLE_OVERRIDE = "available_override"
    BLOCKED_OVERRIDE = "blocked_override"

    @classmethod
    def parse(cls, value: str | RuleType) -> RuleType:
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidRule(f"Unknown rule type: {value!r}") from exc

    @property
    def is_pattern(self) -> bool:
        return self in (RuleType.AVAILABLE_PATTERN, RuleType.BLOCKED_PATTERN)

    @property
    def is_override(self) -> bool:
        return not self.is_pattern

    @property
    def is_available(self) -> bool:
        return self in (RuleType.AVAILABLE_PATTERN, RuleType.AVAILABLE_OVERRIDE)

    @property
    def is_blocked(self) -> bool:
        return not self.is_available

    @property
    def precedence(self) -> int:
        """Higher wins: blocked override > available override > blocked
        pattern > available pattern."""
        return _PRECEDENCE[self]


_PRECEDENCE = {
    RuleType.AVAILABLE_PATTERN: 1,
    RuleType.BLOCKED_PATTERN: 2,
    RuleType.AVAILABLE_OVERRIDE: 3,
    RuleType.BLOCKED_OVERRIDE: 4,
}


class RuleSource(str, enum.Enum):
    MANUAL = "manual"
    AI = "ai"
    IMPORT = "import"

    @classmethod
    def parse(cls, value: str | RuleSource) -> RuleSource:
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidRule(f"Unknown rule source: {value!r}") from exc


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def _check_shape(
    rule_type: RuleType, dow: int | None, specific_date: date | None
) -> None:
    if rule_type.is_pattern:
        if specific_date is not None:
            raise InvalidRule(f"{rule_type.value} must not set specific_date")
        if isinstance(dow, bool) or not isinstance(dow, int) or not 0 <= dow <= 6:
            raise InvalidRule(f"{rule_type.value} needs day_of_week in 0-6, got {dow!r}")
    else:
        if dow is not None:
            raise InvalidRule(f"{rule_type.value} must not set day_of_week")
        if not isinstance(specific_date, date):
            raise InvalidRule(f"{rule_type.value} needs a specific_date")


def _checked_range(
    start_time: str, end_time: str, crosses_midnight: bool | None
) -> TimeRange:
    if crosses_midnight and end_time == END_OF_DAY:
        raise InvalidRule("24:00 cannot be combined with crosses_midnight")
    try:
        rng = create_range(start_time, end_time, crosses_midnight)
    except InvalidFormat as exc:
        raise InvalidRule(str(exc)) from exc
    if not 0 < rng.duration <= MINUTES_PER_DAY:
        raise InvalidRule(
            f"{start_time}-{end_time} (crosses_midnight={crosses_midnight}) "
            "does not describe a positive duration of at most one day"
        )
    return rng


def _coerce_date(value: Any) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return parse_date(value)


def _from_mapping(cls, data: Mapping[str, Any]):
    if not isinstance(data, Mapping):
        raise InvalidRule(f"Expected a mapping, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    kwargs = {k: v for k, v in data.items() if k in known}
    try:
        return cls(**kwargs)
    except TypeError as exc:
        raise InvalidRule(f"Incomplete {cls.__name__}: {exc}") from exc


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Rule:
    """A stored rule; times, weekday and date are all relative to UTC."""

    rule_type: RuleType
    start_time: str
    end_time: str
    day_of_week: int | None = None
    specific_date: date | None = None
    # None on legacy rows: crossing is inferred from end <= start.
    crosses_midnight: bool | None = None
    participant_id: str | None = None
    original_timezone: str = UTC
    original_day_of_week: int | None = None
    source: RuleSource = RuleSource.MANUAL
    reason: str | None = None
    id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rule_type", RuleType.parse(self.rule_type))
        object.__setattr__(self, "source", RuleSource.parse(self.source))
        object.__setattr__(self, "specific_date", _coerce_date(self.specific_date))

    def validate(self) -> Rule:
        """Return the rule unchanged, or raise :class:`InvalidRule`."""
        _check_shape(self.rule_type, self.day_of_week, self.specific_date)
        if self.crosses_midnight is not None and not isinstance(self.crosses_midnight, bool):
            raise InvalidRule("crosses_midnight must be a boolean or null")
        _checked_range(self.start_time, self.end_time, self.crosses_midnight)
        return self

    def time_range(self) -> TimeRange:
        """Minute range in UTC; the end exceeds 1440 when the rule crosses midnight."""
        return create_range(self.start_time, self.end_time, self.crosses_midnight)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Rule:
        return _from_mapping(cls, data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "participant_id": self.participant_id,
            "rule_type": self.rule_type.value,
            "day_of_week": self.day_of_week,
            "specific_date": self.specific_date.isoformat() if self.specific_date else None,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "crosses_midnight": self.crosses_midnight,
            "original_timezone": self.original_timezone,
            "original_day_of_week": self.original_day_of_week,
            "source": self.source.value,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class DraftRule:
    """A rule as authored, in the author's own timezone.

    An end at or before the start means the range runs past local midnight;
    ``00:00-00:00`` means the whole day.
    """

    rule_type: RuleType
    start_time: str
    end_time: str
    day_of_week: int | None = None
    specific_date: date | None = None
    participant_id: str | None = None
    source: RuleSource = RuleSource.MANUAL
    reason: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rule_type", RuleType.parse(self.rule_type))
        object.__setattr__(self, "source", RuleSource.parse(self.source))
        object.__setattr__(self, "specific_date", _coerce_date(self.specific_date))

    def validate(self) -> DraftRule:
        _check_shape(self.rule_type, self.day_of_week, self.specific_date)
        _checked_range(self.start_time, self.end_time, None)
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DraftRule:
        return _from_mapping(cls, data)


class DisplayRule(NamedTuple):
    rule_type: RuleType
    day_of_week: int | None
    specific_date: date | None
    start_time: str
    end_time: str
    crosses_midnight: bool


# ---------------------------------------------------------------------------
# Storage normalization
# ---------------------------------------------------------------------------
def prepare_rule_for_storage(
    draft: DraftRule | Mapping[str, Any], authoring_timezone: str
) -> Rule:
    """Convert an authored rule into its stored UTC form.

    Patterns get their UTC weekday and times; overrides get their UTC date
    and times, so the stored ``specific_date`` can differ from the authored
    one (early-morning slots east of UTC land on the previous UTC date).
    ``crosses_midnight`` is set when the UTC range runs past the next UTC
    midnight. A full-day range stays a full 24 hours.
    """
    if not isinstance(draft, DraftRule):
        draft = DraftRule.from_dict(draft)
    draft.validate()

    common = dict(
        rule_type=draft.rule_type,
        participant_id=draft.participant_id,
        original_timezone=authoring_timezone,
        source=draft.source,
        reason=draft.reason,
    )
    if draft.rule_type.is_pattern:
        pattern = convert_pattern_to_utc(
            draft.day_of_week, draft.start_time, draft.end_time, authoring_timezone
        )
        rule = Rule(
            start_time=pattern.start_time,
            end_time=pattern.end_time,
            day_of_week=pattern.day_of_week,
            crosses_midnight=pattern.crosses_midnight,
            original_day_of_week=draft.day_of_week,
            **common,
        )
    else:
        override = convert_override_to_utc(
            draft.specific_date, draft.start_time, draft.end_time, authoring_timezone
        )
        rule = Rule(
            start_time=override.start_time,
            end_time=override.end_time,
            specific_date=override.date,
            crosses_midnight=override.crosses_midnight,
            **common,
        )

    log.debug(
        "Stored %s %s-%s (%s) as UTC %s %s-%s%s",
        draft.rule_type.value,
        draft.start_time,
        draft.end_time,
        authoring_timezone,
        rule.day_of_week if rule.day_of_week is not None else rule.specific_date,
        rule.start_time,
        rule.end_time,
        " +1d" if rule.crosses_midnight else "",
    )
    return rule.validate()


def convert_rule_for_display(rule: Rule, display_timezone: str) -> DisplayRule:
    """Express a stored rule in *display_timezone* for editing or display."""
    rule.validate()
    if rule.rule_type.is_pattern:
        pattern = convert_pattern_from_utc(
            rule.day_of_week,
            rule.start_time,
            rule.end_time,
            display_timezone,
            rule.crosses_midnight,
        )
        return DisplayRule(
            rule.rule_type,
            pattern.day_of_week,
            None,
            pattern.start_time,
            pattern.end_time,
            pattern.crosses_midnight,
        )
    override = convert_override_from_utc(
        rule.specific_date,
        rule.start_time,
        rule.end_time,
        display_timezone,
        rule.crosses_midnight,
    )
    return DisplayRule(
        rule.rule_type,
        None,
        override.date,
        override.start_time,
        override.end_time,
        override.crosses_midnight,
    )


def replace_rules(rules: Iterable[Rule | Mapping[str, Any]]) -> tuple[Rule, ...]:
    """Validate a complete replacement rule set and freeze it."""
    return tuple(
        (r if isinstance(r, Rule) else Rule.from_dict(r)).validate() for r in rules
    )
