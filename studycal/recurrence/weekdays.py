"""Canonical weekday mapping table.

Two indexing conventions are in common use (Monday=0 as in ``date.weekday()``,
Sunday=0 as in JavaScript's ``getDay()``). Every weekday conversion in studycal
goes through the table below; nothing else does day arithmetic.
"""

from collections.abc import Iterable
from datetime import date
from enum import Enum
from typing import NamedTuple

from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE
from dateutil.rrule import weekday as RRuleWeekday


class Weekday(str, Enum):
    """Day of week, valued as the lower-case names used by timetable storage."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class WeekdayRow(NamedTuple):
    weekday: Weekday
    code: str
    rrule_day: RRuleWeekday


# Monday-first; position in this tuple equals date.weekday()
WEEKDAY_TABLE: tuple[WeekdayRow, ...] = (
    WeekdayRow(Weekday.MONDAY, "MO", MO),
    WeekdayRow(Weekday.TUESDAY, "TU", TU),
    WeekdayRow(Weekday.WEDNESDAY, "WE", WE),
    WeekdayRow(Weekday.THURSDAY, "TH", TH),
    WeekdayRow(Weekday.FRIDAY, "FR", FR),
    WeekdayRow(Weekday.SATURDAY, "SA", SA),
    WeekdayRow(Weekday.SUNDAY, "SU", SU),
)

_BY_WEEKDAY = {row.weekday: row for row in WEEKDAY_TABLE}
_BY_CODE = {row.code: row for row in WEEKDAY_TABLE}
_ORDER = {row.weekday: index for index, row in enumerate(WEEKDAY_TABLE)}

# Accepted spellings: full name, three-letter abbreviation, two-letter code
_ALIASES: dict[str, Weekday] = {}
for _row in WEEKDAY_TABLE:
    _ALIASES[_row.weekday.value] = _row.weekday
    _ALIASES[_row.weekday.value[:3]] = _row.weekday
    _ALIASES[_row.code.lower()] = _row.weekday


def code_for(weekday: Weekday) -> str:
    """Two-letter iCalendar code for a weekday (Monday -> "MO")."""
    return _BY_WEEKDAY[Weekday(weekday)].code


def weekday_for_code(code: str) -> Weekday:
    """Inverse of ``code_for``.

    Raises:
        KeyError: If the code is not one of MO..SU
    """
    return _BY_CODE[code.strip().upper()].weekday


def weekday_of(day: date) -> Weekday:
    """Weekday of a calendar date."""
    return WEEKDAY_TABLE[day.weekday()].weekday


def to_rrule_weekday(weekday: Weekday) -> RRuleWeekday:
    """dateutil weekday constant for a weekday."""
    return _BY_WEEKDAY[Weekday(weekday)].rrule_day


def parse_weekday(value: object) -> Weekday:
    """Coerce a name, abbreviation or code to a Weekday.

    Raises:
        ValueError: If the value is not a recognizable day
    """
    if isinstance(value, Weekday):
        return value
    key = str(value).strip().lower()
    try:
        return _ALIASES[key]
    except KeyError:
        raise ValueError(f"Unknown weekday: {value!r}") from None


def sort_weekdays(days: Iterable[Weekday]) -> list[Weekday]:
    """Deduplicate and order days Monday-first."""
    return sorted({Weekday(day) for day in days}, key=_ORDER.__getitem__)
