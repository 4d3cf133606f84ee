"""Shared pytest fixtures for studycal tests."""

from collections.abc import Generator
from datetime import UTC, date, datetime, time
from types import SimpleNamespace
from typing import Any

import pytest

from studycal.core.config_manager import EngineSettings
from studycal.models import Task, TimetableEntry


# Configure pytest markers
def pytest_configure(config: Any) -> None:
    """Configure pytest with project markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "critical_path: Core functionality tests")
    config.addinivalue_line("markers", "smoke: Basic smoke tests")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure STUDYCAL_* environment variables do not leak between tests.

    Some tests set STUDYCAL_TEST_TIME to freeze the clock used for DTSTAMP and
    next-occurrence lookups.
    """
    for key in (
        "STUDYCAL_TEST_TIME",
        "STUDYCAL_DEBUG",
        "STUDYCAL_LOG_LEVEL",
        "STUDYCAL_CALENDAR_NAME",
        "STUDYCAL_PRODID",
        "STUDYCAL_TIMEZONE",
        "STUDYCAL_UID_DOMAIN",
        "STUDYCAL_MAX_INSTANCES",
        "STUDYCAL_MAX_INSTANCES_PER_TASK",
    ):
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight attribute-style settings used by expander tests."""
    return SimpleNamespace(max_instances=100, max_instances_per_task=50)


@pytest.fixture
def utc_settings() -> EngineSettings:
    """Deterministic engine settings exporting in UTC."""
    return EngineSettings(calendar_name="Test Calendar", timezone="UTC", uid_domain="example.test")


@pytest.fixture
def fixed_now() -> datetime:
    """Generation timestamp used for DTSTAMP in encoder tests."""
    return datetime(2025, 1, 2, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def weekly_master() -> Task:
    """Weekly task: Mondays and Wednesdays from Mon 2025-01-06, four occurrences."""
    return Task(
        id="t1",
        title="Problem set",
        due_date=datetime(2025, 1, 6, 9, 0, tzinfo=UTC),
        recurrence_rule="FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;COUNT=4",
    )


@pytest.fixture
def tue_thu_entry() -> TimetableEntry:
    """Timetable entry: Tue/Thu 09:00-10:15 for the spring semester."""
    return TimetableEntry(
        id="c1",
        course_name="Linear Algebra",
        course_code="MATH 221",
        instructor="Dr. Noether",
        location="Room 101",
        start_time=time(9, 0),
        end_time=time(10, 15),
        days_of_week=["tuesday", "thursday"],
        semester_start_date=date(2025, 1, 6),
        semester_end_date=date(2025, 5, 2),
    )


def build_ics(*event_blocks: str, header: str = "") -> str:
    """Wrap raw VEVENT blocks in a calendar envelope with CRLF endings."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//Test//EN"]
    if header:
        lines.extend(header.strip().splitlines())
    for block in event_blocks:
        lines.extend(line.strip() for line in block.strip().splitlines())
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture
def ics_builder() -> Any:
    """Return the ``build_ics`` helper."""
    return build_ics
