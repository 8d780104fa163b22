"""
Habit schedule and streak tracking.

Day numbers follow the product convention 0=Sunday .. 6=Saturday. All date
keys are calendar days in the habit's own timezone.
"""
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from goal_engine.config_manager import config
from goal_engine.exceptions import InactiveHabitError
from goal_engine.logger import get_logger
from goal_engine.models import Frequency, Habit, HabitLogEntry, LogOutcome, LogStatus

logger = get_logger("habits")


def day_number(day: date) -> int:
    """date.weekday() is Monday-based; the product counts from Sunday."""
    return (day.weekday() + 1) % 7


def date_key_for(habit: Habit, instant: datetime) -> date:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(ZoneInfo(habit.timezone)).date()


def is_scheduled_for_day(habit: Habit, day: date) -> bool:
    if habit.frequency == Frequency.DAILY:
        return True
    return day_number(day) in (habit.days_of_week or ())


def eligible_days(habit: Habit, start: date, end: date) -> List[date]:
    """Scheduled days between start and end, both inclusive."""
    if end < start:
        return []
    days = []
    cursor = start
    while cursor <= end:
        if is_scheduled_for_day(habit, cursor):
            days.append(cursor)
        cursor += timedelta(days=1)
    return days


def previous_scheduled_day(habit: Habit, day: date) -> Optional[date]:
    for offset in range(1, 8):
        candidate = day - timedelta(days=offset)
        if is_scheduled_for_day(habit, candidate):
            return candidate
    return None


def completed_keys(habit: Habit, start: Optional[date] = None, end: Optional[date] = None) -> List[date]:
    """Sorted date keys logged as completed on scheduled days, optionally windowed."""
    keys = {
        e.date_key
        for e in habit.log
        if e.status == LogStatus.COMPLETED and is_scheduled_for_day(habit, e.date_key)
    }
    if start is not None:
        keys = {k for k in keys if k >= start}
    if end is not None:
        keys = {k for k in keys if k <= end}
    return sorted(keys)


def _upsert(log: Sequence[HabitLogEntry], entry: HabitLogEntry) -> List[HabitLogEntry]:
    kept = [e for e in log if e.date_key != entry.date_key]
    kept.append(entry)
    return sorted(kept, key=lambda e: e.date_key)


def recompute_streaks(habit: Habit, today: date) -> Habit:
    """
    Rebuild current/longest streak and last logged day from the full log.

    The current streak survives only while its last day is today or the
    scheduled day before today, and a non-completed entry for today ends it.
    longest_streak never decreases, since older history may have been pruned.
    """
    keys = completed_keys(habit, end=today)

    streak = 0
    longest = 0
    prev: Optional[date] = None
    for key in keys:
        if prev is not None and previous_scheduled_day(habit, key) == prev:
            streak += 1
        else:
            streak = 1
        longest = max(longest, streak)
        prev = key

    current = 0
    if prev is not None and prev in (today, previous_scheduled_day(habit, today)):
        current = streak
    today_entry = next((e for e in habit.log if e.date_key == today), None)
    if today_entry is not None and today_entry.status != LogStatus.COMPLETED:
        current = 0

    return replace(
        habit,
        current_streak=current,
        longest_streak=max(habit.longest_streak, longest),
        last_logged_date_key=prev,
    )


def record_log_entry(
    habit: Habit,
    entry: HabitLogEntry,
    today: date,
    completed_at: Optional[datetime] = None,
    milestones: Optional[Iterable[int]] = None,
) -> LogOutcome:
    """
    Upsert a daily entry and update the habit's streak counters.

    A completion on a scheduled day extends the streak when the last logged
    day is the previous scheduled day, otherwise restarts it at 1. A skipped or
    missed entry for today resets the current streak. Back-filled or changed
    entries fall back to a full recompute.

    Raises:
        InactiveHabitError: the habit is archived or inactive
    """
    if habit.is_archived or not habit.is_active:
        raise InactiveHabitError(habit.id)

    milestones = list(milestones if milestones is not None else config.STREAK_MILESTONES)
    previous = next((e for e in habit.log if e.date_key == entry.date_key), None)
    was_done = previous is not None and previous.status == LogStatus.COMPLETED
    is_done = entry.status == LogStatus.COMPLETED
    scheduled = is_scheduled_for_day(habit, entry.date_key)

    updated = replace(habit, log=_upsert(habit.log, entry))

    if is_done != was_done:
        delta = 1 if is_done else -1
        updated = replace(updated, total_days=max(0, updated.total_days + delta))
        if scheduled:
            updated = replace(updated, total_completions=max(0, updated.total_completions + delta))
    if is_done and completed_at is not None:
        updated = replace(updated, last_completed_at=completed_at)

    last = habit.last_logged_date_key
    appending = last is None or entry.date_key > last

    if is_done and scheduled and appending and not was_done:
        if last is not None and previous_scheduled_day(habit, entry.date_key) == last:
            streak = habit.current_streak + 1
        else:
            streak = 1
        updated = replace(
            updated,
            current_streak=streak,
            longest_streak=max(habit.longest_streak, streak),
            last_logged_date_key=entry.date_key,
        )
    elif not is_done and not was_done and entry.date_key == today:
        updated = replace(updated, current_streak=0)
    elif is_done != was_done or not appending:
        updated = recompute_streaks(updated, today)

    milestone = None
    if updated.current_streak > habit.current_streak and updated.current_streak in milestones:
        milestone = updated.current_streak
        logger.info(f"Habit {habit.id} reached a {milestone}-day streak")

    return LogOutcome(habit=updated, entry=entry, milestone=milestone)


def habit_stats(habits: Iterable[Habit]) -> Dict[str, int]:
    """Totals over a user's active, non-archived habits."""
    live = [h for h in habits if h.is_active and not h.is_archived]
    return {
        "total_habits": len(live),
        "total_current_streak": sum(h.current_streak for h in live),
        "best_streak": max((h.longest_streak for h in live), default=0),
    }
