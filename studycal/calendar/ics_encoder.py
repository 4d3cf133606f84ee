"""Calendar document encoder for tasks and timetable entries.

Builds one VCALENDAR with icalendar: a point-in-time VEVENT per dated task and
a weekly recurring VEVENT per timetable entry with semester bounds.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Optional, Union

from icalendar import Calendar, Event
from icalendar.prop import vInline

from ..core.config_manager import EngineSettings
from ..core.datetime_utils import now_utc, resolve_zone
from ..core.exceptions import CalendarExportError
from ..models import (
    EndsOnDate,
    ExportData,
    Frequency,
    Priority,
    RecurrenceConfig,
    Task,
    TaskInstance,
    TimetableEntry,
)
from ..recurrence.rrule_codec import encode_rule
from ..recurrence.weekdays import Weekday, weekday_of

logger = logging.getLogger(__name__)

PRIORITY_NUMBERS = {
    Priority.HIGH: 1,
    Priority.MEDIUM: 5,
    Priority.LOW: 9,
}

# Days scanned from the semester start to find the first class
FIRST_OCCURRENCE_SCAN_DAYS = 7


def find_first_occurrence(start: date, days: Iterable[Weekday]) -> Optional[date]:
    """First date within a week of ``start`` (inclusive) whose weekday is in ``days``."""
    wanted = set(days)
    for offset in range(FIRST_OCCURRENCE_SCAN_DAYS):
        candidate = start + timedelta(days=offset)
        if weekday_of(candidate) in wanted:
            return candidate
    return None


def _export_zone(settings: EngineSettings) -> tzinfo:
    if settings.timezone.upper() == "UTC":
        return UTC
    zone = resolve_zone(settings.timezone)
    if zone is None:
        raise CalendarExportError(f"Unknown export timezone: {settings.timezone!r}")
    return zone


class CalendarEncoder:
    """Serializes ExportData into a calendar document.

    Each ``export`` call reads the clock once; all DTSTAMP values in one
    document are identical.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()
        self.zone = _export_zone(self.settings)

    def export(self, data: ExportData, generated_at: Optional[datetime] = None) -> str:
        """Encode tasks then timetable entries, each group in input order.

        Args:
            data: Tasks and timetable entries to export
            generated_at: DTSTAMP for every event; defaults to the current time

        Returns:
            Document text with CRLF line endings
        """
        stamp = generated_at or now_utc()
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=UTC)
        stamp = stamp.astimezone(UTC)

        cal = self._new_calendar()
        seen_uids: set[str] = set()
        exported = skipped = 0

        for item in [*data.tasks, *data.timetable_entries]:
            try:
                if isinstance(item, TimetableEntry):
                    event = self.build_timetable_event(item, stamp)
                else:
                    event = self.build_task_event(item, stamp)
            except (CalendarExportError, ValueError) as e:
                logger.warning("Skipping %s %s: %s", type(item).__name__, item.id, e)
                event = None
            if event is None:
                skipped += 1
                continue

            uid = str(event["UID"])
            if uid in seen_uids:
                logger.warning("Skipping duplicate UID %s", uid)
                skipped += 1
                continue
            seen_uids.add(uid)
            cal.add_component(event)
            exported += 1

        logger.debug("Exported %d event(s), skipped %d", exported, skipped)
        return cal.to_ical().decode("utf-8")

    def _new_calendar(self) -> Calendar:
        cal = Calendar()
        cal.add("version", "2.0")
        cal.add("prodid", self.settings.prodid)
        cal.add("calscale", "GREGORIAN")
        cal.add("method", "PUBLISH")
        cal.add("x-wr-calname", self.settings.calendar_name)
        cal.add("x-wr-timezone", self.settings.timezone)
        return cal

    def task_uid(self, task: Union[Task, TaskInstance]) -> str:
        return f"task-{task.id}@{self.settings.uid_domain}"

    def timetable_uid(self, entry: TimetableEntry) -> str:
        return f"timetable-{entry.id}@{self.settings.uid_domain}"

    def build_task_event(self, task: Union[Task, TaskInstance], stamp: datetime) -> Optional[Event]:
        """Point-in-time event for a task, or None when it has no due date."""
        if task.due_date is None:
            logger.debug("Skipping task %s without due date", task.id)
            return None

        due = task.due_date
        if due.tzinfo is not None:
            due = due.astimezone(self.zone)

        event = Event()
        event.add("uid", self.task_uid(task))
        event.add("dtstamp", stamp)
        event.add("dtstart", due)
        event.add("dtend", due)
        event.add("summary", task.title)
        if task.description:
            event.add("description", task.description)
        event.add("categories", [task.type.value])
        event.add("priority", PRIORITY_NUMBERS.get(task.priority, 5))
        event.add("status", task.status.value.upper())
        return event

    def build_timetable_event(self, entry: TimetableEntry, stamp: datetime) -> Optional[Event]:
        """Weekly recurring event spanning the semester, or None when it cannot be placed."""
        if entry.semester_start_date is None or entry.semester_end_date is None:
            logger.info("Skipping timetable entry %s without semester bounds", entry.id)
            return None

        first = find_first_occurrence(entry.semester_start_date, entry.days_of_week)
        if first is None:
            logger.warning(
                "Skipping timetable entry %s: no class day within a week of %s",
                entry.id,
                entry.semester_start_date,
            )
            return None

        start_time = entry.start_time or self.settings.default_start_time
        end_time = entry.end_time or self.settings.default_end_time

        config = RecurrenceConfig(
            frequency=Frequency.WEEKLY,
            interval=1,
            days_of_week=entry.days_of_week,
            end=EndsOnDate(until=entry.semester_end_date),
        )
        dtstart = datetime.combine(first, start_time, tzinfo=self.zone)
        rule = encode_rule(config, anchor=dtstart)
        if rule is None:
            raise CalendarExportError(f"Weekly rule for timetable entry {entry.id} did not encode")

        summary = entry.course_name
        if entry.course_code:
            summary += f" ({entry.course_code})"

        event = Event()
        event.add("uid", self.timetable_uid(entry))
        event.add("dtstamp", stamp)
        event.add("dtstart", dtstart)
        event.add("dtend", datetime.combine(first, end_time, tzinfo=self.zone))
        # Written verbatim so the document carries the codec's part order
        event.add("rrule", vInline(rule), encode=False)
        event.add("summary", summary)
        if entry.location:
            event.add("location", entry.location)
        if entry.instructor:
            event.add("description", f"Instructor: {entry.instructor}")
        return event


def export_calendar(
    data: ExportData,
    settings: Optional[EngineSettings] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    """Encode tasks and timetable entries into one calendar document."""
    return CalendarEncoder(settings).export(data, generated_at)
