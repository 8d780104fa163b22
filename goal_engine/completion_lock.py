"""
Completion lock: a cooldown gate in front of "mark completed".

    LOCKED --(clock reaches eligible_at)--> UNLOCKABLE --(complete)--> COMPLETED
    COMPLETED --(uncomplete)--> LOCKED (cooldown restarts at un-completion)

LOCKED -> UNLOCKABLE needs no event; the state is a pure function of the clock
and is re-evaluated on every read.
"""
from dataclasses import replace
from datetime import datetime, timedelta

from goal_engine.exceptions import StillLockedError
from goal_engine.models import Goal, Habit, LockState, LockStatus


def evaluate_lock(
    reference_at: datetime,
    cooldown: timedelta,
    now: datetime,
    completed: bool = False,
) -> LockState:
    eligible_at = reference_at + cooldown
    remaining = max(timedelta(0), eligible_at - now)
    if completed:
        status = LockStatus.COMPLETED
    elif now < eligible_at:
        status = LockStatus.LOCKED
    else:
        status = LockStatus.UNLOCKABLE
    return LockState(status=status, eligible_at=eligible_at, time_until_can_complete=remaining)


def goal_lock_state(goal: Goal, cooldown: timedelta, now: datetime) -> LockState:
    reference = goal.reopened_at or goal.created_at
    return evaluate_lock(reference, cooldown, now, completed=goal.completed)


def habit_lock_state(
    habit: Habit,
    initial_cooldown: timedelta,
    recurring_cooldown: timedelta,
    now: datetime,
) -> LockState:
    """Habits are recurring: after each completion the lock re-arms."""
    if habit.last_completed_at is not None:
        return evaluate_lock(habit.last_completed_at, recurring_cooldown, now)
    return evaluate_lock(habit.created_at, initial_cooldown, now)


def ensure_unlocked(entity_id: str, state: LockState) -> None:
    """
    Raises:
        StillLockedError: the cooldown has not elapsed
    """
    if state.locked:
        raise StillLockedError(entity_id, state.eligible_at, state.time_until_can_complete)


def complete_goal(goal: Goal, cooldown: timedelta, now: datetime) -> Goal:
    """
    Mark a goal completed. Completing an already completed goal is a no-op.

    Raises:
        StillLockedError: the goal is inside its cooldown
    """
    if goal.completed:
        return goal
    ensure_unlocked(goal.id, goal_lock_state(goal, cooldown, now))
    return replace(goal, completed=True, completed_at=now)


def uncomplete_goal(goal: Goal, now: datetime) -> Goal:
    """Re-open a goal; the composition becomes editable and the lock re-arms from now."""
    if not goal.completed:
        return goal
    return replace(goal, completed=False, completed_at=None, reopened_at=now)
