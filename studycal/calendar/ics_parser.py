"""Line-oriented calendar document parser.

Recovers as many well-formed event blocks as it can from a document and never
raises on malformed input. Blocks missing UID, SUMMARY, DTSTART or DTEND are
dropped, each drop reported as a warning on the result.
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, Optional

from ..core.datetime_utils import is_date_only, parse_ics_date
from ..models import CalendarEvent, ParseResult
from .ics_lines import ContentLine, split_property, unescape_text, unfold_lines

logger = logging.getLogger(__name__)

REQUIRED_EVENT_PROPERTIES = ("UID", "SUMMARY", "DTSTART", "DTEND")

# Calendar-level properties -> ParseResult field
_METADATA_FIELDS = {
    "X-WR-CALNAME": "calendar_name",
    "X-WR-TIMEZONE": "timezone",
    "PRODID": "prodid",
    "VERSION": "version",
}


class ParserState(Enum):
    NONE = "none"
    IN_EVENT = "in_event"


class _EventBuilder:
    """Accumulates the properties of one event block."""

    def __init__(self, ordinal: int):
        self.ordinal = ordinal
        self.fields: dict[str, Any] = {"all_day": False, "is_recurring": False}
        self.unparseable: list[str] = []
        # Depth of nested components (VALARM etc.) whose properties are ignored
        self.depth = 0

    @property
    def label(self) -> str:
        uid = self.fields.get("uid")
        return f"event {uid!r}" if uid else f"event #{self.ordinal}"

    def missing(self) -> list[str]:
        keys = {"UID": "uid", "SUMMARY": "title", "DTSTART": "start", "DTEND": "end"}
        return [prop for prop in REQUIRED_EVENT_PROPERTIES if not self.fields.get(keys[prop])]

    def build(self) -> CalendarEvent:
        return CalendarEvent(**self.fields)


class CalendarParser:
    """Parses calendar documents into CalendarEvent records.

    A parser instance keeps per-document state; ``parse`` resets it, so one
    instance can be reused sequentially but should not be shared across threads.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Callable[[_EventBuilder, ContentLine], None]] = {
            "UID": self._handle_uid,
            "SUMMARY": self._handle_text("title"),
            "DESCRIPTION": self._handle_text("description"),
            "LOCATION": self._handle_text("location"),
            "DTSTART": self._handle_dtstart,
            "DTEND": self._handle_dtend,
            "RRULE": self._handle_rrule,
        }
        self._reset()

    def _reset(self) -> None:
        self._state = ParserState.NONE
        self._current: Optional[_EventBuilder] = None
        self._result = ParseResult(success=True)

    def parse(self, text: str) -> ParseResult:
        """Parse a document.

        Args:
            text: Full document text, any line terminator

        Returns:
            ParseResult; ``success`` is False only when the input could not be
            processed at all
        """
        self._reset()
        try:
            for line in unfold_lines(text):
                self._process_line(line)
            self._finalize()
        except Exception as e:
            logger.exception("Failed to parse calendar document")
            return ParseResult(success=False, error_message=str(e))

        result = self._result
        result.dropped_count = result.event_count - len(result.events)
        logger.debug(
            "Parsed %d of %d event block(s), %d dropped",
            len(result.events),
            result.event_count,
            result.dropped_count,
        )
        return result

    def _process_line(self, line: str) -> None:
        upper = line.upper()

        if upper == "BEGIN:VEVENT":
            if self._state == ParserState.IN_EVENT and self._current is not None:
                if self._current.depth == 0:
                    self._drop(self._current, "new event began before END:VEVENT")
                else:
                    self._current.depth += 1
                    return
            self._result.event_count += 1
            self._current = _EventBuilder(self._result.event_count)
            self._state = ParserState.IN_EVENT
            return

        if self._state == ParserState.NONE:
            self._process_calendar_line(line)
            return

        event = self._current
        if event is None:
            return

        if upper.startswith("BEGIN:"):
            event.depth += 1
            return

        if upper.startswith("END:"):
            if event.depth > 0:
                event.depth -= 1
            elif upper == "END:VEVENT":
                self._complete(event)
            return

        if event.depth > 0:
            return

        prop = split_property(line)
        if prop is None or not prop.value:
            return

        handler = self._handlers.get(prop.name)
        if handler is not None:
            handler(event, prop)

    def _process_calendar_line(self, line: str) -> None:
        prop = split_property(line)
        if prop is None:
            return
        field = _METADATA_FIELDS.get(prop.name)
        if field and getattr(self._result, field) is None:
            setattr(self._result, field, unescape_text(prop.value).strip())

    def _complete(self, event: _EventBuilder) -> None:
        missing = event.missing()
        if missing:
            self._drop(event, "missing " + ", ".join(missing))
        else:
            self._result.events.append(event.build())
        self._current = None
        self._state = ParserState.NONE

    def _drop(self, event: _EventBuilder, reason: str) -> None:
        detail = reason
        if event.unparseable:
            detail += f" (unparseable {', '.join(event.unparseable)})"
        message = f"Dropped {event.label}: {detail}"
        logger.warning(message)
        self._result.warnings.append(message)

    def _finalize(self) -> None:
        if self._state == ParserState.IN_EVENT and self._current is not None:
            self._drop(self._current, "unterminated at end of document")
        self._current = None
        self._state = ParserState.NONE

    # Property handlers

    @staticmethod
    def _handle_uid(event: _EventBuilder, prop: ContentLine) -> None:
        event.fields["uid"] = prop.value.strip()

    @staticmethod
    def _handle_text(field: str) -> Callable[[_EventBuilder, ContentLine], None]:
        def handler(event: _EventBuilder, prop: ContentLine) -> None:
            event.fields[field] = unescape_text(prop.value)

        return handler

    @staticmethod
    def _handle_dtstart(event: _EventBuilder, prop: ContentLine) -> None:
        start = parse_ics_date(prop.value, prop.params)
        if start is None:
            event.unparseable.append("DTSTART")
            return
        event.fields["start"] = start
        event.fields["all_day"] = is_date_only(prop.value)

    @staticmethod
    def _handle_dtend(event: _EventBuilder, prop: ContentLine) -> None:
        end = parse_ics_date(prop.value, prop.params)
        if end is None:
            event.unparseable.append("DTEND")
            return
        event.fields["end"] = end

    @staticmethod
    def _handle_rrule(event: _EventBuilder, prop: ContentLine) -> None:
        event.fields["is_recurring"] = True
        event.fields["recurrence_rule"] = prop.value.strip()


def parse_calendar(text: str) -> ParseResult:
    """Parse a calendar document into events and calendar metadata."""
    return CalendarParser().parse(text)
