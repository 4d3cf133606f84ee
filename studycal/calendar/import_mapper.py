"""Maps parsed calendar events to unsaved task and timetable drafts.

The mapping is lossy; drafts are proposals for manual review, not
an authoritative import.
"""

import logging
import re
from collections.abc import Iterable
from typing import Any, Optional

from ..core.config_manager import get_config_value
from ..core.datetime_utils import format_hhmm
from ..models import CalendarEvent, EndsOnDate, ImportBundle, TaskDraft, TimetableEntryDraft
from ..recurrence.rrule_codec import decode_rule
from ..recurrence.weekdays import Weekday, sort_weekdays, weekday_for_code

logger = logging.getLogger(__name__)

_BYDAY_RE = re.compile(r"BYDAY=([^;\s]+)", re.IGNORECASE)
_BYDAY_ORDINAL_RE = re.compile(r"^[+-]?\d{1,2}")
_INSTRUCTOR_RE = re.compile(r"Instructor:\s*(.+)", re.IGNORECASE)

DEFAULT_DRAFT_COLOR = "#3b82f6"


def days_from_rule(rule: str) -> list[Weekday]:
    """Weekdays named in a rule's BYDAY part; unknown codes are ignored."""
    match = _BYDAY_RE.search(rule or "")
    if not match:
        return []

    days = []
    for item in match.group(1).split(","):
        code = _BYDAY_ORDINAL_RE.sub("", item.strip())
        try:
            days.append(weekday_for_code(code))
        except KeyError:
            logger.debug("Ignoring unknown BYDAY code %r", item)
    return sort_weekdays(days)


def extract_instructor(description: Optional[str]) -> str:
    """Name following ``Instructor:`` in a description, or ""."""
    match = _INSTRUCTOR_RE.search(description or "")
    return match.group(1).strip() if match else ""


def events_to_task_drafts(events: Iterable[CalendarEvent]) -> list[TaskDraft]:
    """One draft task per event, due at the event start."""
    return [
        TaskDraft(
            title=event.title,
            description=event.description or "",
            due_date=event.start,
        )
        for event in events
    ]


def event_to_timetable_draft(event: CalendarEvent, color: str = DEFAULT_DRAFT_COLOR) -> TimetableEntryDraft:
    rule = event.recurrence_rule or ""
    config = decode_rule(rule)
    semester_end = config.end.until if isinstance(config.end, EndsOnDate) else None

    return TimetableEntryDraft(
        course_name=event.title,
        instructor=extract_instructor(event.description),
        location=event.location or "",
        start_time=format_hhmm(event.start),
        end_time=format_hhmm(event.end),
        days_of_week=days_from_rule(rule),
        semester_start_date=event.start.date(),
        semester_end_date=semester_end,
        color=color,
    )


def events_to_timetable_drafts(
    events: Iterable[CalendarEvent], color: str = DEFAULT_DRAFT_COLOR
) -> list[TimetableEntryDraft]:
    """Draft timetable entries for recurring events that carry a rule."""
    return [
        event_to_timetable_draft(event, color)
        for event in events
        if event.is_recurring and event.recurrence_rule
    ]


def map_import(events: Iterable[CalendarEvent], settings: Any = None) -> ImportBundle:
    """Map parsed events to task drafts and timetable drafts.

    Args:
        events: Parsed events
        settings: Optional settings object or dict providing ``default_color``

    Returns:
        ImportBundle with one task draft per event and one timetable draft per
        recurring event
    """
    events = list(events)
    color = get_config_value(settings or {}, "default_color", DEFAULT_DRAFT_COLOR)
    bundle = ImportBundle(
        tasks=events_to_task_drafts(events),
        timetable_entries=events_to_timetable_drafts(events, color),
    )
    logger.debug(
        "Mapped %d event(s) to %d task draft(s) and %d timetable draft(s)",
        len(events),
        len(bundle.tasks),
        len(bundle.timetable_entries),
    )
    return bundle
