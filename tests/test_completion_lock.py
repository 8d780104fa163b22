from datetime import datetime, timedelta, timezone

import pytest

from goal_engine.completion_lock import (
    complete_goal,
    evaluate_lock,
    goal_lock_state,
    habit_lock_state,
    uncomplete_goal,
)
from goal_engine.exceptions import StillLockedError
from goal_engine.models import Goal, Habit, LockStatus

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
DAY = timedelta(hours=24)


def _goal(**kwargs) -> Goal:
    return Goal(id="g1", owner_id="u1", title="run a marathon", created_at=T0, **kwargs)


def test_new_goal_is_locked_for_the_cooldown():
    state = goal_lock_state(_goal(), DAY, T0)
    assert state.locked
    assert state.status == LockStatus.LOCKED
    assert state.eligible_at == T0 + DAY
    assert state.time_until_can_complete == DAY


def test_lock_opens_once_cooldown_elapses():
    state = goal_lock_state(_goal(), DAY, T0 + DAY + timedelta(seconds=1))
    assert not state.locked
    assert state.status == LockStatus.UNLOCKABLE
    assert state.time_until_can_complete == timedelta(0)


def test_lock_opens_exactly_at_eligible_time():
    assert not evaluate_lock(T0, DAY, T0 + DAY).locked


def test_completion_inside_cooldown_is_rejected():
    with pytest.raises(StillLockedError) as excinfo:
        complete_goal(_goal(), DAY, T0 + timedelta(hours=1))
    assert excinfo.value.kind == "still_locked"
    assert excinfo.value.context["remaining"] == timedelta(hours=23)


def test_completion_after_cooldown_sets_timestamp():
    now = T0 + DAY + timedelta(minutes=5)
    goal = _goal()
    done = complete_goal(goal, DAY, now)
    assert done.completed
    assert done.completed_at == now
    assert not goal.completed
    assert goal_lock_state(done, DAY, now).status == LockStatus.COMPLETED


def test_uncomplete_restarts_the_cooldown():
    done = complete_goal(_goal(), DAY, T0 + 2 * DAY)
    reopened_at = T0 + 3 * DAY
    reopened = uncomplete_goal(done, reopened_at)
    assert not reopened.completed
    assert reopened.completed_at is None
    assert reopened.reopened_at == reopened_at

    state = goal_lock_state(reopened, DAY, reopened_at + timedelta(hours=1))
    assert state.locked
    assert state.eligible_at == reopened_at + DAY
    with pytest.raises(StillLockedError):
        complete_goal(reopened, DAY, reopened_at + timedelta(hours=1))


def test_uncomplete_open_goal_is_noop():
    goal = _goal()
    assert uncomplete_goal(goal, T0) is goal


def test_habit_recurring_cooldown_counts_from_last_completion():
    habit = Habit(id="h1", owner_id="u1", name="read", created_at=T0)
    assert not habit_lock_state(habit, timedelta(0), timedelta(hours=12), T0).locked

    habit.last_completed_at = T0 + timedelta(hours=1)
    state = habit_lock_state(habit, timedelta(0), timedelta(hours=12), T0 + timedelta(hours=5))
    assert state.locked
    assert state.time_until_can_complete == timedelta(hours=8)
