"""Instance expansion for recurring tasks.

A master task's due date anchors its rule. Expansion turns the pair into the
concrete occurrences that fall inside a display window: the anchor occurrence is
the master record itself, every other occurrence is a synthesized TaskInstance
keyed ``{master_id}_{epoch_millis}``.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Optional, Union

from dateutil.rrule import DAILY, MONTHLY, WEEKLY, YEARLY, rrule

from ..core.config_manager import get_config_value
from ..core.datetime_utils import (
    DateLike,
    align_to,
    end_of_day,
    epoch_millis,
    now_utc,
    start_of_day,
)
from ..core.exceptions import ExpansionError
from ..models import (
    EndsAfterCount,
    EndsOnDate,
    Frequency,
    RecurrenceConfig,
    Task,
    TaskFields,
    TaskInstance,
)
from .rrule_codec import decode_rule
from .weekdays import to_rrule_weekday

logger = logging.getLogger(__name__)

_RRULE_FREQS = {
    Frequency.DAILY: DAILY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.MONTHLY: MONTHLY,
    Frequency.YEARLY: YEARLY,
}

_SHARED_FIELDS = set(TaskFields.model_fields)

AnyTask = Union[Task, TaskInstance]


@dataclass
class RRuleExpanderConfig:
    """Configuration for instance expansion.

    Consolidates expansion limits with explicit defaults.
    """

    max_instances: int = 100
    max_instances_per_task: int = 50

    @classmethod
    def from_settings(cls, settings: Any) -> "RRuleExpanderConfig":
        """Extract expansion limits from a settings object or dict.

        Args:
            settings: Object with expansion settings (attributes or keys)

        Returns:
            RRuleExpanderConfig with values from settings or defaults
        """
        return cls(
            max_instances=get_config_value(settings, "max_instances", 100),
            max_instances_per_task=get_config_value(settings, "max_instances_per_task", 50),
        )


def _build_rrule(anchor: datetime, config: RecurrenceConfig) -> rrule:
    """dateutil rule for everything after the anchor.

    dateutil drops sub-second precision from dtstart, so the rule is built from
    the truncated anchor and callers skip anything not after the real one.

    COUNT is not passed to dateutil: the anchor always counts as the first
    occurrence, which dateutil does not guarantee when it misses BYDAY.
    """
    until = None
    if isinstance(config.end, EndsOnDate):
        until = datetime.combine(config.end.until, time(23, 59, 59), tzinfo=anchor.tzinfo)

    byweekday = [to_rrule_weekday(day) for day in config.days_of_week] or None

    return rrule(
        _RRULE_FREQS[config.frequency],
        dtstart=anchor.replace(microsecond=0),
        interval=config.interval,
        byweekday=byweekday,
        until=until,
    )


def iter_occurrences(anchor: datetime, config: RecurrenceConfig) -> Iterator[datetime]:
    """Yield every occurrence of a rule in ascending order, anchor first.

    Honors COUNT (anchor included) and UNTIL. Open-ended rules yield forever, so
    callers must bound consumption.

    Raises:
        ExpansionError: If dateutil rejects the rule
    """
    if not config.is_recurring:
        yield anchor
        return

    try:
        rule = _build_rrule(anchor, config)
    except (ValueError, TypeError) as e:
        raise ExpansionError(f"Failed to build recurrence for anchor {anchor}: {e}") from e

    limit = config.end.count if isinstance(config.end, EndsAfterCount) else None

    # UNTIL only bounds later occurrences; the anchor is always the first
    yield anchor
    emitted = 1

    try:
        for occurrence in rule:
            if limit is not None and emitted >= limit:
                return
            if occurrence <= anchor:
                continue
            yield occurrence
            emitted += 1
    except (ValueError, OverflowError) as e:
        raise ExpansionError(f"Failed to enumerate recurrence from {anchor}: {e}") from e


def _make_instance(master: Task, occurrence: datetime) -> TaskInstance:
    return TaskInstance(
        id=f"{master.id}_{epoch_millis(occurrence)}",
        master_id=master.id,
        due_date=occurrence,
        original_due_date=master.due_date,
        **master.model_dump(include=_SHARED_FIELDS),
    )


def _window(window_start: DateLike, window_end: DateLike, reference: datetime) -> tuple[datetime, datetime]:
    return (
        align_to(start_of_day(window_start), reference),
        align_to(end_of_day(window_end), reference),
    )


def _sort_key(task: AnyTask) -> tuple[bool, int]:
    if task.due_date is None:
        return True, 0
    return False, epoch_millis(task.due_date)


class TaskExpander:
    """Expands master tasks into occurrences for a window.

    Stateless apart from its limits; safe to share between callers.
    """

    def __init__(self, settings: Any = None):
        """Initialize expander with optional settings.

        Args:
            settings: Object or dict carrying max_instances / max_instances_per_task
        """
        config = RRuleExpanderConfig.from_settings(settings or {})
        self.max_instances = config.max_instances
        self.max_instances_per_task = config.max_instances_per_task

    def expand_task(
        self,
        master: Task,
        window_start: DateLike,
        window_end: DateLike,
        max_instances: Optional[int] = None,
    ) -> list[AnyTask]:
        """Expand one task over ``[start_of_day(window_start), end_of_day(window_end)]``.

        Args:
            master: Task to expand; tasks without a rule are returned as-is when due in the window
            window_start: First day of the window
            window_end: Last day of the window
            max_instances: Cap on occurrences taken from inside the window

        Returns:
            Tasks ordered by due date; the anchor occurrence is ``master`` itself
        """
        limit = self.max_instances if max_instances is None else max_instances

        day_end = end_of_day(window_end)
        if day_end < align_to(start_of_day(window_start), day_end):
            logger.debug("Window end %s precedes start %s, nothing to expand", window_end, window_start)
            return []

        anchor = master.due_date
        if anchor is None:
            return []

        start, end = _window(window_start, window_end, anchor)
        config = decode_rule(master.recurrence_rule) if master.recurrence_rule else RecurrenceConfig()

        if not config.is_recurring:
            return [master] if start <= anchor <= end else []

        results: list[AnyTask] = []
        try:
            for occurrence in iter_occurrences(anchor, config):
                if occurrence > end or len(results) >= limit:
                    break
                if occurrence < start:
                    continue
                results.append(master if occurrence == anchor else _make_instance(master, occurrence))
        except ExpansionError:
            logger.warning("Expansion failed for task %s, treating as non-recurring", master.id, exc_info=True)
            return [master] if start <= anchor <= end else []

        logger.debug(
            "Expanded task %s over %s..%s into %d occurrence(s)",
            master.id,
            start,
            end,
            len(results),
        )
        return sorted(results, key=_sort_key)

    def expand_tasks(
        self,
        tasks: Iterable[AnyTask],
        window_start: DateLike,
        window_end: DateLike,
        max_instances_per_task: Optional[int] = None,
    ) -> list[AnyTask]:
        """Expand every master task in a list; other tasks pass through unchanged.

        Returns:
            All tasks ordered by due date, undated tasks last
        """
        limit = self.max_instances_per_task if max_instances_per_task is None else max_instances_per_task
        expanded: list[AnyTask] = []

        for task in tasks:
            if is_master_recurring_task(task):
                expanded.extend(self.expand_task(task, window_start, window_end, limit))
            else:
                expanded.append(task)

        return sorted(expanded, key=_sort_key)

    def next_occurrence(self, master: Task, after: Optional[datetime] = None) -> Optional[datetime]:
        """First occurrence strictly after ``after`` (default: now), or None when the rule has ended."""
        if master.due_date is None:
            return None

        anchor = master.due_date
        threshold = align_to(after if after is not None else now_utc(), anchor)
        config = decode_rule(master.recurrence_rule) if master.recurrence_rule else RecurrenceConfig()

        try:
            for occurrence in iter_occurrences(anchor, config):
                if occurrence > threshold:
                    return occurrence
        except ExpansionError:
            logger.warning("Could not compute next occurrence for task %s", master.id, exc_info=True)
        return None


def is_recurring_instance(task: AnyTask) -> bool:
    """True for computed occurrences."""
    return isinstance(task, TaskInstance)


def is_master_recurring_task(task: AnyTask) -> bool:
    """True for stored tasks that carry a rule and an anchor."""
    return isinstance(task, Task) and task.is_master


_default_expander = TaskExpander()


def expand_task(
    master: Task,
    window_start: DateLike,
    window_end: DateLike,
    max_instances: int = 100,
) -> list[AnyTask]:
    """Module-level convenience wrapper around ``TaskExpander.expand_task``."""
    return _default_expander.expand_task(master, window_start, window_end, max_instances)


def expand_tasks(
    tasks: Iterable[AnyTask],
    window_start: DateLike,
    window_end: DateLike,
    max_instances_per_task: int = 50,
) -> list[AnyTask]:
    """Module-level convenience wrapper around ``TaskExpander.expand_tasks``."""
    return _default_expander.expand_tasks(tasks, window_start, window_end, max_instances_per_task)


def next_occurrence(master: Task, after: Optional[datetime] = None) -> Optional[datetime]:
    """Module-level convenience wrapper around ``TaskExpander.next_occurrence``."""
    return _default_expander.next_occurrence(master, after)
