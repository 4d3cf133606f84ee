"""Custom exception hierarchy for the StudyCal engine.

Public engine operations degrade gracefully on bad input and do not let these
escape; they are raised by the strict helpers underneath (for example
``parse_rule_parts``) and caught, logged and converted at the boundary.
"""


class StudyCalError(Exception):
    """Base exception for all StudyCal errors.

    Catch this to handle any engine failure in one place.
    """


class RuleParseError(StudyCalError):
    """Recurrence rule text could not be parsed.

    Raised when:
    - The rule string is empty
    - FREQ is missing or not a supported frequency
    - INTERVAL or COUNT is not a positive integer
    - UNTIL is not a date or date-time value
    - BYDAY contains an unknown day code
    """


class ExpansionError(StudyCalError):
    """Occurrence enumeration for a master task failed.

    Wraps errors raised by dateutil while building or iterating a rule.
    """


class CalendarParseError(StudyCalError):
    """A calendar document could not be read at all."""


class CalendarExportError(StudyCalError):
    """A single task or timetable entry could not be serialized.

    The encoder skips the offending record and keeps going.
    """


class ConfigError(StudyCalError):
    """Configuration value is missing or malformed."""
