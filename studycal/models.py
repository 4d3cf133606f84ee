"""Data models for recurrence rules, tasks, timetables and calendar documents."""

from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .core.datetime_utils import epoch_millis
from .recurrence.weekdays import Weekday, parse_weekday, sort_weekdays

# Recurrence configuration


class Frequency(str, Enum):
    """Recurrence frequency options offered by the editor."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class NeverEnds(BaseModel):
    """Open-ended recurrence."""

    type: Literal["never"] = "never"


class EndsAfterCount(BaseModel):
    """Recurrence stops after ``count`` occurrences, anchor included."""

    type: Literal["count"] = "count"
    count: int = Field(..., ge=1, description="Total number of occurrences")


class EndsOnDate(BaseModel):
    """Recurrence stops at the end of ``until`` (inclusive)."""

    type: Literal["until"] = "until"
    until: date = Field(..., description="Last day an occurrence may fall on")


EndCondition = Annotated[
    Union[NeverEnds, EndsAfterCount, EndsOnDate],
    Field(discriminator="type"),
]


class RecurrenceConfig(BaseModel):
    """Structured recurrence settings as edited in the UI."""

    frequency: Frequency = Field(default=Frequency.NONE, description="Repeat unit")
    interval: int = Field(default=1, ge=1, description="Every N units")
    days_of_week: list[Weekday] = Field(
        default_factory=list, description="Selected days, weekly frequency only"
    )
    end: EndCondition = Field(default_factory=NeverEnds, description="End condition")

    model_config = ConfigDict(frozen=True)

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _normalize_days(cls, value: Any) -> list[Weekday]:
        if value is None:
            return []
        return sort_weekdays(parse_weekday(day) for day in value)

    @model_validator(mode="after")
    def _days_only_for_weekly(self) -> "RecurrenceConfig":
        if self.days_of_week and self.frequency != Frequency.WEEKLY:
            raise ValueError("days_of_week is only meaningful for weekly recurrence")
        return self

    @property
    def is_recurring(self) -> bool:
        return self.frequency != Frequency.NONE


# Tasks


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskType(str, Enum):
    ACADEMIC = "academic"
    PERSONAL = "personal"
    EVENT = "event"


class TaskFields(BaseModel):
    """Fields shared by stored tasks and their computed occurrences."""

    title: str = Field(..., min_length=1, description="Task title")
    description: Optional[str] = Field(default=None, description="Free-text notes")
    priority: Priority = Field(default=Priority.MEDIUM)
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    type: TaskType = Field(default=TaskType.ACADEMIC)
    recurrence_rule: Optional[str] = Field(
        default=None, description="Rule string, persisted verbatim"
    )


class Task(TaskFields):
    """A persisted task record. With a due date and a rule it is a master task."""

    kind: Literal["task"] = "task"
    id: str = Field(..., description="Storage row id")
    due_date: Optional[datetime] = Field(default=None, description="Due date, recurrence anchor")

    @property
    def is_master(self) -> bool:
        return bool(self.recurrence_rule) and self.due_date is not None


class TaskInstance(TaskFields):
    """A computed, non-persisted occurrence of a master task.

    Copy-on-read: fields are shallow copies taken at expansion time and go stale
    once the master is edited.
    """

    kind: Literal["instance"] = "instance"
    id: str = Field(..., description="Virtual key {master_id}_{epoch_millis}")
    master_id: str = Field(..., description="Id of the master task")
    due_date: datetime = Field(..., description="Occurrence date")
    original_due_date: datetime = Field(..., description="Master due date, lookup only")

    @property
    def occurrence_key(self) -> tuple[str, int]:
        """Key for per-occurrence state such as completing a single occurrence."""
        return self.master_id, epoch_millis(self.due_date)


ScheduledTask = Annotated[Union[Task, TaskInstance], Field(discriminator="kind")]


# Timetable


class TimetableEntry(BaseModel):
    """A weekly class slot for one semester."""

    id: str
    course_name: str
    course_code: Optional[str] = None
    instructor: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    days_of_week: list[Weekday] = Field(default_factory=list)
    semester_start_date: Optional[date] = None
    semester_end_date: Optional[date] = None
    color: Optional[str] = None

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _normalize_days(cls, value: Any) -> list[Weekday]:
        if value is None:
            return []
        return [parse_weekday(day) for day in value]


class ExportData(BaseModel):
    """Everything that goes into one exported document."""

    tasks: list[ScheduledTask] = Field(default_factory=list)
    timetable_entries: list[TimetableEntry] = Field(default_factory=list)


# Calendar documents


class CalendarEvent(BaseModel):
    """One event block recovered from a calendar document."""

    uid: str
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    start: datetime
    end: datetime
    all_day: bool = False
    is_recurring: bool = False
    recurrence_rule: Optional[str] = Field(default=None, description="Raw RRULE value")


class ParseResult(BaseModel):
    """Result of parsing a calendar document."""

    success: bool
    events: list[CalendarEvent] = Field(default_factory=list)
    error_message: Optional[str] = None
    warnings: list[str] = Field(default_factory=list, description="One entry per dropped block")

    calendar_name: Optional[str] = None
    timezone: Optional[str] = None
    prodid: Optional[str] = None
    version: Optional[str] = None

    event_count: int = Field(default=0, description="VEVENT blocks encountered")
    dropped_count: int = 0


class ValidationResult(BaseModel):
    """Result of a structural document check."""

    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    event_count: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)


# Import drafts


class TaskDraft(BaseModel):
    """Unsaved task proposed from an imported event, meant for manual review."""

    title: str
    description: str = ""
    due_date: datetime
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    type: TaskType = TaskType.EVENT


class TimetableEntryDraft(BaseModel):
    """Unsaved timetable entry proposed from an imported recurring event."""

    course_name: str
    instructor: str = ""
    location: str = ""
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    days_of_week: list[Weekday] = Field(default_factory=list)
    semester_start_date: Optional[date] = None
    semester_end_date: Optional[date] = None
    color: str = "#3b82f6"


class ImportBundle(BaseModel):
    tasks: list[TaskDraft] = Field(default_factory=list)
    timetable_entries: list[TimetableEntryDraft] = Field(default_factory=list)
