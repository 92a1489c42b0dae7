"""Exceptions raised by the availability engine.

All of them are caller or data bugs, never transient conditions, so nothing
inside the engine retries.
"""

from __future__ import annotations


class AvailabilityError(Exception):
    """Base class for every error raised by the engine."""


class InvalidFormat(AvailabilityError, ValueError):
    """A malformed time or date literal."""


class UnknownTimezone(AvailabilityError, LookupError):
    """An IANA timezone name the host timezone database cannot resolve."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown timezone: {name!r}")
        self.name = name


class InvalidRule(AvailabilityError, ValueError):
    """A rule whose fields are inconsistent with its type or duration."""
