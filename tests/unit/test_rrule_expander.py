"""Unit tests for studycal.recurrence.rrule_expander.

Covers:
- iter_occurrences() COUNT / UNTIL handling
- TaskExpander.expand_task() window, identity and bound behaviour
- TaskExpander.expand_tasks() and next_occurrence()
"""

from datetime import UTC, date, datetime, timedelta
from itertools import islice
from types import SimpleNamespace

import pytest

from studycal.core.datetime_utils import epoch_millis
from studycal.models import EndsAfterCount, Frequency, RecurrenceConfig, Task, TaskInstance
from studycal.recurrence.rrule_expander import (
    RRuleExpanderConfig,
    TaskExpander,
    expand_task,
    expand_tasks,
    is_master_recurring_task,
    is_recurring_instance,
    iter_occurrences,
    next_occurrence,
)

pytestmark = pytest.mark.unit

ANCHOR = datetime(2025, 1, 6, 9, 0, tzinfo=UTC)


def _task(rule: str | None, due: datetime | None = ANCHOR, task_id: str = "m1") -> Task:
    """Helper to construct a minimal Task for tests."""
    return Task(id=task_id, title="Read chapter", due_date=due, recurrence_rule=rule)


def test_expander_config_from_settings_reads_attributes_and_dicts(simple_settings: SimpleNamespace) -> None:
    assert RRuleExpanderConfig.from_settings(simple_settings) == RRuleExpanderConfig(100, 50)
    assert RRuleExpanderConfig.from_settings({"max_instances": 7}) == RRuleExpanderConfig(7, 50)


class TestIterOccurrences:
    def test_anchor_is_first_and_counts_towards_count(self) -> None:
        config = RecurrenceConfig(frequency=Frequency.DAILY, end=EndsAfterCount(count=3))
        assert list(iter_occurrences(ANCHOR, config)) == [
            ANCHOR,
            ANCHOR + timedelta(days=1),
            ANCHOR + timedelta(days=2),
        ]

    def test_anchor_off_byday_still_counts(self) -> None:
        # Anchor is a Monday; the rule only names Tuesdays
        config = RecurrenceConfig(
            frequency=Frequency.WEEKLY, days_of_week=["tue"], end=EndsAfterCount(count=2)
        )
        assert list(iter_occurrences(ANCHOR, config)) == [ANCHOR, ANCHOR + timedelta(days=1)]

    def test_until_is_inclusive_end_of_day(self) -> None:
        task = _task("FREQ=DAILY;UNTIL=20250108T000000Z")
        result = expand_task(task, date(2025, 1, 1), date(2025, 1, 31))
        assert [t.due_date.date() for t in result] == [date(2025, 1, 6), date(2025, 1, 7), date(2025, 1, 8)]

    def test_open_ended_rule_is_lazy(self) -> None:
        config = RecurrenceConfig(frequency=Frequency.YEARLY)
        first = list(islice(iter_occurrences(ANCHOR, config), 3))
        assert [d.year for d in first] == [2025, 2026, 2027]

    def test_non_recurring_yields_anchor_only(self) -> None:
        assert list(iter_occurrences(ANCHOR, RecurrenceConfig())) == [ANCHOR]


class TestExpandTask:
    def test_weekly_mon_wed_count_four(self, weekly_master: Task) -> None:
        result = expand_task(weekly_master, date(2025, 1, 1), date(2025, 1, 31))

        assert [t.due_date.date() for t in result] == [
            date(2025, 1, 6),
            date(2025, 1, 8),
            date(2025, 1, 13),
            date(2025, 1, 15),
        ]
        assert result[0] is weekly_master
        assert all(isinstance(t, TaskInstance) for t in result[1:])

    def test_instances_copy_master_fields_and_key_by_epoch_millis(self, weekly_master: Task) -> None:
        result = expand_task(weekly_master, date(2025, 1, 1), date(2025, 1, 31))
        instance = result[1]

        assert isinstance(instance, TaskInstance)
        assert instance.kind == "instance"
        assert instance.master_id == "t1"
        assert instance.id == f"t1_{epoch_millis(instance.due_date)}"
        assert instance.original_due_date == weekly_master.due_date
        assert instance.title == weekly_master.title
        assert instance.recurrence_rule == weekly_master.recurrence_rule
        assert instance.occurrence_key == ("t1", epoch_millis(datetime(2025, 1, 8, 9, 0, tzinfo=UTC)))

    def test_count_bounds_total_regardless_of_window(self) -> None:
        task = _task("FREQ=DAILY;COUNT=3")
        result = expand_task(task, date(2024, 1, 1), date(2030, 12, 31))
        assert len(result) == 3

    def test_window_excludes_master_but_keeps_later_occurrences(self, weekly_master: Task) -> None:
        result = expand_task(weekly_master, date(2025, 1, 7), date(2025, 1, 14))
        assert [t.due_date.date() for t in result] == [date(2025, 1, 8), date(2025, 1, 13)]
        assert weekly_master not in result

    def test_every_instance_lies_inside_window(self) -> None:
        task = _task("FREQ=DAILY;INTERVAL=1")
        start, end = date(2025, 2, 10), date(2025, 2, 12)
        result = expand_task(task, start, end)

        assert len(result) == 3
        for item in result:
            assert datetime(2025, 2, 10, tzinfo=UTC) <= item.due_date <= datetime(2025, 2, 12, 23, 59, 59, tzinfo=UTC)
            assert item.due_date >= task.due_date

    def test_identical_calls_produce_identical_ids(self, weekly_master: Task) -> None:
        first = expand_task(weekly_master, date(2025, 1, 1), date(2025, 1, 31))
        second = expand_task(weekly_master, date(2025, 1, 1), date(2025, 1, 31))
        assert [t.id for t in first] == [t.id for t in second]

    def test_max_instances_caps_open_ended_rule(self) -> None:
        task = _task("FREQ=DAILY")
        result = expand_task(task, date(2025, 1, 1), date(2025, 12, 31), max_instances=5)
        assert len(result) == 5

    def test_empty_weekly_day_set_uses_anchor_weekday(self) -> None:
        task = _task("FREQ=WEEKLY;INTERVAL=2")
        result = expand_task(task, date(2025, 1, 1), date(2025, 2, 28))
        assert [t.due_date.date() for t in result] == [
            date(2025, 1, 6),
            date(2025, 1, 20),
            date(2025, 2, 3),
            date(2025, 2, 17),
        ]

    def test_naive_anchor_with_date_window(self) -> None:
        task = _task("FREQ=DAILY;COUNT=2", due=datetime(2025, 3, 1, 18, 30))
        result = expand_task(task, date(2025, 3, 1), date(2025, 3, 31))
        assert [t.due_date for t in result] == [datetime(2025, 3, 1, 18, 30), datetime(2025, 3, 2, 18, 30)]

    def test_datetime_window_bounds_are_widened_to_whole_days(self, weekly_master: Task) -> None:
        result = expand_task(
            weekly_master,
            datetime(2025, 1, 8, 23, 0, tzinfo=UTC),
            datetime(2025, 1, 13, 0, 0, tzinfo=UTC),
        )
        assert [t.due_date.date() for t in result] == [date(2025, 1, 8), date(2025, 1, 13)]

    def test_reversed_window_returns_empty(self, weekly_master: Task) -> None:
        assert expand_task(weekly_master, date(2025, 1, 31), date(2025, 1, 1)) == []

    def test_same_day_window_with_later_start_time(self) -> None:
        task = _task("FREQ=DAILY;COUNT=3", due=datetime(2025, 1, 5, 8, 0, tzinfo=UTC))
        result = expand_task(task, datetime(2025, 1, 5, 10, 0, tzinfo=UTC), date(2025, 1, 5))
        assert result == [task]

    def test_sub_second_anchor_is_emitted_once(self) -> None:
        due = datetime(2025, 1, 6, 9, 0, 0, 123000, tzinfo=UTC)
        task = _task("FREQ=DAILY;INTERVAL=1;COUNT=3", due=due)
        result = expand_task(task, date(2025, 1, 1), date(2025, 1, 31))

        assert [t.due_date.date() for t in result] == [date(2025, 1, 6), date(2025, 1, 7), date(2025, 1, 8)]
        assert result[0] is task
        assert all(item.due_date >= due for item in result)

    def test_until_before_anchor_keeps_master(self) -> None:
        task = _task("FREQ=WEEKLY;INTERVAL=1;UNTIL=20250101T235959Z")
        assert expand_task(task, date(2025, 1, 1), date(2025, 1, 31)) == [task]

    def test_task_without_due_date_returns_empty(self) -> None:
        assert expand_task(_task("FREQ=DAILY", due=None), date(2025, 1, 1), date(2025, 1, 31)) == []

    @pytest.mark.parametrize("rule", [None, "FREQ=HOURLY", "not a rule"])
    def test_non_recurring_task_returned_only_when_due_in_window(self, rule: str | None) -> None:
        task = _task(rule)
        assert expand_task(task, date(2025, 1, 6), date(2025, 1, 6)) == [task]
        assert expand_task(task, date(2025, 1, 7), date(2025, 1, 31)) == []

    def test_uses_configured_limit_when_not_given(self) -> None:
        expander = TaskExpander({"max_instances": 2})
        result = expander.expand_task(_task("FREQ=DAILY"), date(2025, 1, 1), date(2025, 1, 31))
        assert len(result) == 2


class TestExpandTasks:
    def test_masters_expand_and_others_pass_through(self, weekly_master: Task) -> None:
        plain = _task(None, due=datetime(2025, 1, 10, tzinfo=UTC), task_id="p1")
        undated = _task(None, due=None, task_id="u1")

        result = expand_tasks([undated, weekly_master, plain], date(2025, 1, 1), date(2025, 1, 31))

        assert [t.id for t in result][-1] == "u1"
        dated = [t.due_date for t in result if t.due_date is not None]
        assert dated == sorted(dated)
        assert len(result) == 6

    def test_instances_are_not_re_expanded(self, weekly_master: Task) -> None:
        instances = expand_task(weekly_master, date(2025, 1, 1), date(2025, 1, 31))[1:]
        assert expand_tasks(instances, date(2025, 1, 1), date(2025, 1, 31)) == instances

    def test_per_task_limit(self) -> None:
        tasks = [_task("FREQ=DAILY", task_id="a"), _task("FREQ=DAILY", task_id="b")]
        result = expand_tasks(tasks, date(2025, 1, 1), date(2025, 12, 31), max_instances_per_task=3)
        assert len(result) == 6


class TestNextOccurrence:
    def test_returns_first_occurrence_after_given_time(self, weekly_master: Task) -> None:
        after = datetime(2025, 1, 9, tzinfo=UTC)
        assert next_occurrence(weekly_master, after) == datetime(2025, 1, 13, 9, 0, tzinfo=UTC)

    def test_returns_none_after_rule_ends(self, weekly_master: Task) -> None:
        assert next_occurrence(weekly_master, datetime(2025, 1, 16, tzinfo=UTC)) is None

    def test_defaults_to_now(self, weekly_master: Task, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STUDYCAL_TEST_TIME", "2025-01-07T00:00:00Z")
        assert next_occurrence(weekly_master) == datetime(2025, 1, 8, 9, 0, tzinfo=UTC)

    def test_task_without_due_date(self) -> None:
        assert next_occurrence(_task("FREQ=DAILY", due=None)) is None


def test_predicates(weekly_master: Task) -> None:
    instance = expand_task(weekly_master, date(2025, 1, 1), date(2025, 1, 31))[1]

    assert is_master_recurring_task(weekly_master)
    assert not is_recurring_instance(weekly_master)
    assert is_recurring_instance(instance)
    assert not is_master_recurring_task(instance)
    assert not is_master_recurring_task(_task(None))
