"""Structural checks for calendar documents.

Independent of the parser: a document can pass here and still lose events on
import (the parser also requires DTEND).
"""

import logging

from ..core.datetime_utils import parse_ics_date
from ..models import ValidationResult
from .ics_lines import split_property, unfold_lines

logger = logging.getLogger(__name__)

REQUIRED_VALIDATED_PROPERTIES = ("UID", "DTSTART", "SUMMARY")
_DATE_PROPERTIES = ("DTSTART", "DTEND")


def validate_calendar(text: str) -> ValidationResult:
    """Check envelope and event structure of a document.

    Args:
        text: Full document text

    Returns:
        ValidationResult; ``is_valid`` is True when no errors were found
    """
    result = ValidationResult()
    calendar_begins = calendar_ends = 0
    in_calendar = in_event = False
    event_props: set[str] = set()
    nested_depth = 0

    def close_event(reason: str = "") -> None:
        nonlocal in_event, event_props
        label = f"Event #{result.event_count}"
        if reason:
            result.add_error(f"{label}: {reason}")
        for prop in REQUIRED_VALIDATED_PROPERTIES:
            if prop not in event_props:
                result.add_error(f"{label}: missing required property {prop}")
        in_event = False
        event_props = set()

    for line in unfold_lines(text):
        upper = line.upper()

        if upper == "BEGIN:VCALENDAR":
            calendar_begins += 1
            if calendar_begins > 1:
                result.add_error("Duplicate BEGIN:VCALENDAR")
            in_calendar = True
            continue

        if upper == "END:VCALENDAR":
            if in_event:
                close_event("VEVENT not terminated before END:VCALENDAR")
            calendar_ends += 1
            if calendar_begins == 0:
                result.add_error("END:VCALENDAR before BEGIN:VCALENDAR")
            elif calendar_ends > 1:
                result.add_error("Duplicate END:VCALENDAR")
            in_calendar = False
            continue

        if upper == "BEGIN:VEVENT":
            if in_event and nested_depth == 0:
                close_event("nested BEGIN:VEVENT")
            if not in_calendar:
                result.add_error(f"Event #{result.event_count + 1} outside VCALENDAR")
            result.event_count += 1
            in_event = True
            nested_depth = 0
            continue

        if upper == "END:VEVENT":
            if not in_event:
                result.add_error("END:VEVENT without BEGIN:VEVENT")
            else:
                close_event()
            nested_depth = 0
            continue

        if not in_event:
            continue

        if upper.startswith("BEGIN:"):
            nested_depth += 1
            continue
        if upper.startswith("END:"):
            nested_depth = max(nested_depth - 1, 0)
            continue
        if nested_depth:
            continue

        prop = split_property(line)
        if prop is None:
            continue
        event_props.add(prop.name)

        if prop.name in _DATE_PROPERTIES and prop.value and parse_ics_date(prop.value, prop.params) is None:
            result.add_error(f"Event #{result.event_count}: invalid date format in {prop.name}")

    if in_event:
        close_event("unterminated VEVENT")
    if calendar_begins == 0:
        result.add_error("Missing BEGIN:VCALENDAR")
    if calendar_ends == 0:
        result.add_error("Missing END:VCALENDAR")

    logger.debug(
        "Validated document: %d event(s), %d error(s)",
        result.event_count,
        len(result.errors),
    )
    return result
