"""Recurrence rule codec: RecurrenceConfig <-> rule string.

Rule strings are persisted verbatim on task records, e.g.
``FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;COUNT=4`` or
``FREQ=DAILY;INTERVAL=2;UNTIL=20250502T235959Z``.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Optional

from pydantic import ValidationError

from ..core.exceptions import RuleParseError
from ..models import EndsAfterCount, EndsOnDate, Frequency, NeverEnds, RecurrenceConfig
from .weekdays import code_for, weekday_for_code

logger = logging.getLogger(__name__)

_FREQ_TOKENS: dict[Frequency, str] = {
    Frequency.DAILY: "DAILY",
    Frequency.WEEKLY: "WEEKLY",
    Frequency.MONTHLY: "MONTHLY",
    Frequency.YEARLY: "YEARLY",
}
_TOKEN_FREQS = {token: freq for freq, token in _FREQ_TOKENS.items()}

# Optional ordinal before a day code, e.g. "1MO" or "-1FR"
_BYDAY_ITEM_RE = re.compile(r"^([+-]?\d{1,2})?([A-Za-z]{2})$")
_UNTIL_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})(T\d{6}Z?)?$")

_UNIT_NAMES = {
    Frequency.DAILY: ("day", "days"),
    Frequency.WEEKLY: ("week", "weeks"),
    Frequency.MONTHLY: ("month", "months"),
    Frequency.YEARLY: ("year", "years"),
}


def format_until(until: date) -> str:
    """End-of-day UTC timestamp used for UNTIL."""
    return f"{until:%Y%m%d}T235959Z"


def encode_rule(config: RecurrenceConfig, anchor: Optional[datetime] = None) -> Optional[str]:
    """Serialize a recurrence configuration.

    Args:
        config: Structured recurrence settings
        anchor: Due date the rule will be anchored at (used for sanity checks only)

    Returns:
        Canonical rule string, or None when the configuration does not repeat
    """
    if config.frequency == Frequency.NONE:
        return None

    parts = [f"FREQ={_FREQ_TOKENS[config.frequency]}", f"INTERVAL={config.interval}"]

    # An empty weekly day set means "anchor's weekday" and is encoded by omission
    if config.frequency == Frequency.WEEKLY and config.days_of_week:
        parts.append("BYDAY=" + ",".join(code_for(day) for day in config.days_of_week))

    end = config.end
    if isinstance(end, EndsAfterCount):
        parts.append(f"COUNT={end.count}")
    elif isinstance(end, EndsOnDate):
        if anchor is not None and end.until < anchor.date():
            logger.warning(
                "Recurrence ends (%s) before its anchor (%s); rule yields no later occurrences",
                end.until,
                anchor.date(),
            )
        parts.append(f"UNTIL={format_until(end.until)}")

    return ";".join(parts)


def _extract_rule_line(rule: str) -> str:
    """Pick the RRULE body out of bare, prefixed, or DTSTART+RRULE multi-line text."""
    lines = [line.strip() for line in rule.strip().splitlines() if line.strip()]
    for line in lines:
        if line.upper().startswith("RRULE:"):
            return line.split(":", 1)[1]
    for line in lines:
        if "FREQ=" in line.upper():
            return line
    return lines[0] if lines else ""


def _parse_positive_int(key: str, value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise RuleParseError(f"{key} must be an integer, got {value!r}") from None
    if number < 1:
        raise RuleParseError(f"{key} must be positive, got {number}")
    return number


def _parse_until(value: str) -> date:
    match = _UNTIL_RE.match(value)
    if not match:
        raise RuleParseError(f"Invalid UNTIL value: {value!r}")
    year, month, day = (int(part) for part in match.groups()[:3])
    try:
        return date(year, month, day)
    except ValueError as e:
        raise RuleParseError(f"Invalid UNTIL value: {value!r}") from e


def _parse_byday(value: str) -> list[str]:
    codes = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        match = _BYDAY_ITEM_RE.match(item)
        if not match:
            raise RuleParseError(f"Invalid BYDAY item: {item!r}")
        code = match.group(2).upper()
        try:
            weekday_for_code(code)
        except KeyError:
            raise RuleParseError(f"Unknown day code in BYDAY: {item!r}") from None
        codes.append(code)
    return codes


def parse_rule_parts(rule: str) -> dict[str, Any]:
    """Parse a rule string into its components.

    Unknown parameters are kept (lower-cased key, raw value) for forward
    compatibility.

    Args:
        rule: Rule string, with or without an ``RRULE:`` prefix

    Returns:
        Dictionary with ``freq``, ``interval`` and, when present, ``byday``,
        ``count`` and ``until``

    Raises:
        RuleParseError: If the rule is empty or a known parameter is malformed
    """
    if not rule or not rule.strip():
        raise RuleParseError("Empty RRULE string")

    body = _extract_rule_line(rule)
    parts: dict[str, Any] = {"interval": 1}

    for segment in body.split(";"):
        if "=" not in segment:
            continue
        key, value = segment.split("=", 1)
        key = key.strip().lower()
        value = value.strip()

        if key == "freq":
            parts["freq"] = value.upper()
        elif key == "interval":
            parts["interval"] = _parse_positive_int("INTERVAL", value)
        elif key == "byday":
            parts["byday"] = _parse_byday(value)
        elif key == "count":
            parts["count"] = _parse_positive_int("COUNT", value)
        elif key == "until":
            parts["until"] = _parse_until(value.upper())
        else:
            parts[key] = value

    if not parts.get("freq"):
        raise RuleParseError("RRULE missing required FREQ parameter")
    if parts["freq"] not in _TOKEN_FREQS:
        raise RuleParseError(f"Unsupported FREQ: {parts['freq']!r}")

    return parts


def decode_rule(rule: Optional[str]) -> RecurrenceConfig:
    """Turn a rule string back into structured settings.

    Never raises: anything unparseable is logged and degrades to a non-recurring
    configuration so callers can treat the task as a one-off.
    """
    if not rule:
        return RecurrenceConfig()

    try:
        parts = parse_rule_parts(rule)
        frequency = _TOKEN_FREQS[parts["freq"]]

        days = []
        if frequency == Frequency.WEEKLY:
            days = [weekday_for_code(code) for code in parts.get("byday", [])]

        if "count" in parts:
            end: Any = EndsAfterCount(count=parts["count"])
        elif "until" in parts:
            end = EndsOnDate(until=parts["until"])
        else:
            end = NeverEnds()

        return RecurrenceConfig(
            frequency=frequency,
            interval=parts["interval"],
            days_of_week=days,
            end=end,
        )
    except (RuleParseError, ValidationError) as e:
        logger.warning("Treating task as non-recurring, could not decode rule %r: %s", rule, e)
        return RecurrenceConfig()


def describe_rule(rule: Optional[str]) -> str:
    """Human readable summary of a rule, e.g. "Every 2 weeks on Monday, Wednesday, 4 times"."""
    if not rule:
        return "Does not repeat"
    try:
        parse_rule_parts(rule)
    except RuleParseError:
        return "Invalid recurrence rule"

    config = decode_rule(rule)
    if not config.is_recurring:
        return "Invalid recurrence rule"

    singular, plural = _UNIT_NAMES[config.frequency]
    text = f"Every {singular}" if config.interval == 1 else f"Every {config.interval} {plural}"

    if config.days_of_week:
        text += " on " + ", ".join(day.value.capitalize() for day in config.days_of_week)

    end = config.end
    if isinstance(end, EndsAfterCount):
        text += ", 1 time" if end.count == 1 else f", {end.count} times"
    elif isinstance(end, EndsOnDate):
        text += f", until {end.until:%B} {end.until.day}, {end.until.year}"

    return text
