from datetime import date, datetime, timezone

import pytest

from goal_engine.exceptions import InactiveHabitError
from goal_engine.habits import (
    date_key_for,
    day_number,
    eligible_days,
    habit_stats,
    is_scheduled_for_day,
    previous_scheduled_day,
    recompute_streaks,
    record_log_entry,
)
from goal_engine.models import Frequency, Habit, HabitLogEntry, LogStatus

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
MON = date(2026, 3, 2)


def _habit(**kwargs) -> Habit:
    return Habit(id=kwargs.pop("id", "h1"), owner_id="u1", name="stretch", created_at=T0, **kwargs)


def _done(day: date) -> HabitLogEntry:
    return HabitLogEntry(date_key=day, status=LogStatus.COMPLETED)


def _log_days(habit: Habit, days, today: date) -> Habit:
    for day in days:
        habit = record_log_entry(habit, _done(day), today=today).habit
    return habit


def test_day_numbers_start_on_sunday():
    assert day_number(date(2026, 3, 1)) == 0
    assert day_number(MON) == 1
    assert day_number(date(2026, 3, 7)) == 6


def test_weekly_habit_requires_days_of_week():
    with pytest.raises(ValueError):
        _habit(frequency=Frequency.WEEKLY)


def test_scheduling_by_days_of_week():
    habit = _habit(frequency=Frequency.CUSTOM, days_of_week=(3, 1))
    assert habit.days_of_week == (1, 3)
    assert is_scheduled_for_day(habit, MON)
    assert not is_scheduled_for_day(habit, date(2026, 3, 3))
    assert eligible_days(habit, MON, date(2026, 3, 9)) == [MON, date(2026, 3, 4), date(2026, 3, 9)]
    assert previous_scheduled_day(habit, MON) == date(2026, 2, 25)


def test_date_key_uses_habit_timezone():
    habit = _habit(timezone="America/New_York")
    late_utc = datetime(2026, 3, 3, 2, 0, tzinfo=timezone.utc)
    assert date_key_for(habit, late_utc) == MON
    assert date_key_for(_habit(), late_utc) == date(2026, 3, 3)


def test_consecutive_completions_build_a_streak():
    days = [MON, date(2026, 3, 3), date(2026, 3, 4)]
    habit = _log_days(_habit(), days, today=date(2026, 3, 4))
    assert habit.current_streak == 3
    assert habit.longest_streak == 3
    assert habit.total_completions == 3
    assert habit.last_logged_date_key == date(2026, 3, 4)


def test_gap_restarts_the_streak():
    habit = _log_days(_habit(), [MON, date(2026, 3, 3), date(2026, 3, 5)], today=date(2026, 3, 5))
    assert habit.current_streak == 1
    assert habit.longest_streak == 2


def test_weekly_streak_follows_scheduled_days():
    habit = _habit(frequency=Frequency.WEEKLY, days_of_week=(1, 3))
    habit = _log_days(habit, [MON, date(2026, 3, 4), date(2026, 3, 9)], today=date(2026, 3, 9))
    assert habit.current_streak == 3


def test_completion_on_unscheduled_day_does_not_count():
    habit = _habit(frequency=Frequency.WEEKLY, days_of_week=(1,))
    outcome = record_log_entry(habit, _done(date(2026, 3, 3)), today=date(2026, 3, 3))
    assert outcome.habit.total_completions == 0
    assert outcome.habit.total_days == 1
    assert outcome.habit.current_streak == 0
    assert len(outcome.habit.log) == 1


def test_relogging_the_same_day_is_not_double_counted():
    habit = _log_days(_habit(), [MON, MON], today=MON)
    assert habit.total_completions == 1
    assert habit.current_streak == 1
    assert len(habit.log) == 1


def test_missed_today_resets_current_streak():
    habit = _log_days(_habit(), [MON, date(2026, 3, 3)], today=date(2026, 3, 4))
    outcome = record_log_entry(
        habit, HabitLogEntry(date(2026, 3, 4), LogStatus.MISSED), today=date(2026, 3, 4)
    )
    assert outcome.habit.current_streak == 0
    assert outcome.habit.longest_streak == 2


def test_undoing_a_completion_recomputes():
    habit = _log_days(_habit(), [MON, date(2026, 3, 3)], today=date(2026, 3, 3))
    outcome = record_log_entry(
        habit, HabitLogEntry(date(2026, 3, 3), LogStatus.SKIPPED), today=date(2026, 3, 3)
    )
    assert outcome.habit.total_completions == 1
    assert outcome.habit.current_streak == 0
    assert outcome.habit.total_days == 1
    assert outcome.habit.last_logged_date_key == MON


def test_backfill_recomputes_streak():
    habit = _log_days(_habit(), [MON, date(2026, 3, 4)], today=date(2026, 3, 4))
    assert habit.current_streak == 1
    outcome = record_log_entry(habit, _done(date(2026, 3, 3)), today=date(2026, 3, 4))
    assert outcome.habit.current_streak == 3
    assert outcome.habit.total_completions == 3
    assert outcome.milestone is None


def test_milestones_are_reported_once_reached():
    habit = _habit()
    first = record_log_entry(habit, _done(MON), today=MON)
    assert first.milestone == 1
    second = record_log_entry(first.habit, _done(date(2026, 3, 3)), today=date(2026, 3, 3))
    assert second.milestone is None

    long_run = _habit(current_streak=6, longest_streak=6, last_logged_date_key=date(2026, 3, 1))
    seventh = record_log_entry(long_run, _done(MON), today=MON, milestones=[7])
    assert seventh.milestone == 7


def test_archived_habit_rejects_logs():
    with pytest.raises(InactiveHabitError):
        record_log_entry(_habit(is_archived=True), _done(MON), today=MON)


def test_recompute_drops_stale_current_streak():
    habit = _habit(log=[_done(MON), _done(date(2026, 3, 3))], longest_streak=5)
    fresh = recompute_streaks(habit, today=date(2026, 3, 4))
    assert fresh.current_streak == 2
    stale = recompute_streaks(habit, today=date(2026, 3, 6))
    assert stale.current_streak == 0
    assert stale.longest_streak == 5


def test_habit_stats_skip_archived():
    habits = [
        _habit(id="a", current_streak=3, longest_streak=10),
        _habit(id="b", current_streak=2, longest_streak=4),
        _habit(id="c", current_streak=9, longest_streak=40, is_archived=True),
    ]
    assert habit_stats(habits) == {"total_habits": 2, "total_current_streak": 5, "best_streak": 10}
