"""Date and time helpers shared by the studycal engine.

Covers the two iCalendar value shapes the engine understands, day-boundary
arithmetic for occurrence windows, and the single wall-clock read used for
generation timestamps.
"""

import logging
import os
import re
from datetime import UTC, date, datetime, time, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# YYYYMMDD
_ICS_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
# YYYYMMDDTHHMMSS with optional Z
_ICS_DATETIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})(Z?)$")

TEST_TIME_ENV = "STUDYCAL_TEST_TIME"


def now_utc() -> datetime:
    """Return current UTC time with tzinfo.

    Can be overridden for testing via the STUDYCAL_TEST_TIME environment variable
    (ISO 8601, e.g. "2025-01-06T08:00:00Z"). Naive override values are taken as UTC.

    Returns:
        Current time in UTC
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            dt = date_parser.isoparse(test_time)
            if dt.tzinfo is not None:
                return dt.astimezone(UTC)
            return dt.replace(tzinfo=UTC)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.now(UTC)


def resolve_zone(name: Optional[str]) -> Optional[ZoneInfo]:
    """Look up an IANA zone, returning None for empty or unknown names."""
    if not name:
        return None
    try:
        return ZoneInfo(name.strip().strip('"'))
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown timezone %r, treating value as floating time", name)
        return None


def as_datetime(value: DateLike) -> datetime:
    """Promote a date to a naive midnight datetime; datetimes pass through."""
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def start_of_day(value: DateLike) -> datetime:
    """Return 00:00:00 of the given day, keeping tzinfo."""
    return as_datetime(value).replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: DateLike) -> datetime:
    """Return the last representable instant of the given day, keeping tzinfo."""
    return as_datetime(value).replace(hour=23, minute=59, second=59, microsecond=999999)


def align_to(value: datetime, reference: Optional[datetime]) -> datetime:
    """Make ``value`` comparable with ``reference``.

    Naive values are attached to the reference zone; aware values compared with a
    naive reference keep their wall-clock time and drop tzinfo.
    """
    if reference is None:
        return value
    if reference.tzinfo is not None and value.tzinfo is None:
        return value.replace(tzinfo=reference.tzinfo)
    if reference.tzinfo is None and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def epoch_millis(value: datetime) -> int:
    """Milliseconds since the Unix epoch.

    Aware values are exact; naive values are interpreted in host local time, which
    keeps synthesized ids stable for repeated calls on one machine.
    """
    if value.tzinfo is not None:
        return (value - _EPOCH) // timedelta(milliseconds=1)
    return int(value.timestamp()) * 1000 + value.microsecond // 1000


def format_hhmm(value: datetime) -> str:
    """Format a clock time as HH:MM."""
    return value.strftime("%H:%M")


def is_date_only(value: str) -> bool:
    """True when an iCalendar value has the YYYYMMDD shape."""
    return bool(_ICS_DATE_RE.match(value.strip()))


def parse_ics_date(value: str, params: Optional[dict[str, str]] = None) -> Optional[datetime]:
    """Parse a DTSTART/DTEND style value.

    Accepts exactly two shapes:
        - ``YYYYMMDD`` -> naive local midnight
        - ``YYYYMMDDTHHMMSS[Z]`` -> UTC when Z-suffixed, otherwise the wall time in
          the ``TZID`` parameter zone when it resolves, else naive

    Args:
        value: Raw property value
        params: Property parameters keyed by upper-case name

    Returns:
        Parsed datetime, or None for any other shape or an impossible date
    """
    if value is None:
        return None
    raw = value.strip()

    match = _ICS_DATE_RE.match(raw)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    match = _ICS_DATETIME_RE.match(raw)
    if not match:
        return None

    year, month, day, hour, minute, second = (int(part) for part in match.groups()[:6])
    try:
        parsed = datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None

    if match.group(7) == "Z":
        return parsed.replace(tzinfo=UTC)

    zone = resolve_zone((params or {}).get("TZID"))
    if zone is not None:
        return parsed.replace(tzinfo=zone)
    return parsed
