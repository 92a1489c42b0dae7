#!/usr/bin/env python3
"""
Resolve a participant's availability rules into effective availability.

Reads a JSON list of stored (UTC) rules, or of drafts authored in some
timezone when ``--authoring-tz`` is given, and writes the free ranges of a
date window as ICS, plain text or JSON.

Configuration via environment variables:
- AVAILABILITY_TZ           Display timezone (default: "UTC")
- AVAILABILITY_WEEKS        Window length when --end is omitted (default: 2)
- AVAILABILITY_BEST_EFFORT  Skip invalid rules instead of failing (default: 0)
- CALENDAR_NAME             ICS calendar name (default: "Available Slots")
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

from .errors import AvailabilityError, InvalidFormat, InvalidRule
from .export import (
    build_availability_calendar,
    effective_to_dict,
    log_summary,
    render_ascii,
)
from .resolver import DateRange, EffectiveAvailability, RuleLike, resolve
from .rules import prepare_rule_for_storage
from .timemath import parse_date
from .timezones import get_zone

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
def _env_flag(val: str) -> bool:
    return val.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    """All tuneable knobs, loaded from environment with sensible defaults."""

    tz: str
    weeks: int
    best_effort: bool
    calendar_name: str

    @classmethod
    def from_env(cls) -> Config:
        return cls(
            tz=os.environ.get("AVAILABILITY_TZ", "UTC"),
            weeks=int(os.environ.get("AVAILABILITY_WEEKS", "2")),
            best_effort=_env_flag(os.environ.get("AVAILABILITY_BEST_EFFORT", "0")),
            calendar_name=os.environ.get("CALENDAR_NAME", "Available Slots"),
        )


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------
def load_rules(
    source: str, authoring_tz: str | None = None, best_effort: bool = False
) -> list[RuleLike]:
    """Load rules from a JSON file (or ``-`` for stdin).

    Stored rules are returned as plain dicts for :func:`resolve` to validate.
    With *authoring_tz*, entries are drafts and get normalized to UTC here.
    """
    if source == "-":
        payload = json.load(sys.stdin)
    else:
        with open(source, encoding="utf-8") as f:
            payload = json.load(f)
    if isinstance(payload, dict):
        payload = payload.get("rules", [])
    if not authoring_tz:
        return list(payload)

    rules: list[RuleLike] = []
    for idx, item in enumerate(payload):
        try:
            rules.append(prepare_rule_for_storage(item, authoring_tz))
        except (InvalidRule, InvalidFormat) as exc:
            if not best_effort:
                raise
            log.warning("Skipping invalid draft #%d: %s", idx, exc)
    return rules


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
_FORMAT_ALIASES = {"text": "ascii", "txt": "ascii", "ical": "ics"}
_FORMATS = ("ics", "ascii", "json")


def _resolve_format(name: str) -> str:
    name = name.lower()
    name = _FORMAT_ALIASES.get(name, name)
    if name not in _FORMATS:
        raise argparse.ArgumentTypeError(
            f"Unknown format '{name}'. Choose from: ics, ascii (text/txt), json."
        )
    return name


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Resolve availability rules into free time ranges per date.",
    )
    p.add_argument("input", help="JSON file with a list of rules (use '-' for stdin)")
    p.add_argument(
        "output",
        nargs="?",
        default="-",
        help="Output file (default: stdout)",
    )
    p.add_argument("-s", "--start", help="First date, YYYY-MM-DD (default: today)")
    p.add_argument("-e", "--end", help="Last date, YYYY-MM-DD (default: start + weeks)")
    p.add_argument(
        "-z",
        "--timezone",
        default=None,
        help="Display timezone (default: $AVAILABILITY_TZ or UTC)",
    )
    p.add_argument(
        "-a",
        "--authoring-tz",
        default=None,
        help="Treat input entries as drafts authored in this timezone",
    )
    p.add_argument(
        "-f",
        "--format",
        type=_resolve_format,
        default="ascii",
        dest="fmt",
        help="Output format: ics, ascii/text/txt, json (default: ascii)",
    )
    p.add_argument("-t", "--title", default="Available Time Slots")
    p.add_argument(
        "--best-effort",
        action="store_true",
        default=None,
        help="Skip invalid rules instead of failing",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Increase log verbosity",
    )
    return p


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _window(args: argparse.Namespace, cfg: Config, tz: str) -> DateRange:
    start = parse_date(args.start) if args.start else datetime.now(get_zone(tz)).date()
    if args.end:
        return DateRange.parse(start, args.end)
    return DateRange.parse(start, start + timedelta(weeks=cfg.weeks, days=-1))


def render(
    fmt: str, effective: EffectiveAvailability, tz: str, title: str, cfg: Config
) -> bytes:
    if fmt == "ics":
        return build_availability_calendar(effective, tz, cfg.calendar_name).to_ical()
    if fmt == "json":
        return (json.dumps(effective_to_dict(effective, tz), indent=2) + "\n").encode()
    return render_ascii(effective, title).encode()


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    cfg = Config.from_env()

    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stderr,
    )

    tz = args.timezone or cfg.tz
    best_effort = cfg.best_effort if args.best_effort is None else args.best_effort

    try:
        window = _window(args, cfg, tz)
        log.info("Window: %s → %s (%s)", window.start_date, window.end_date, tz)

        rules = load_rules(args.input, args.authoring_tz, best_effort)
        log.info("Rules loaded: %d", len(rules))

        effective = resolve(rules, tz, window, best_effort=best_effort)
    except (AvailabilityError, OSError, json.JSONDecodeError) as exc:
        parser.error(str(exc))

    log_summary(effective)
    data = render(args.fmt, effective, tz, args.title, cfg)

    if args.output == "-":
        sys.stdout.buffer.write(data)
    else:
        with open(args.output, "wb") as f:
            f.write(data)
        log.info("✓ Written to %s", args.output)


if __name__ == "__main__":
    main()
