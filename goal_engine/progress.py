"""
Weighted progress aggregation.

Progress is a read-time projection of entity state and is never stored by the
engine. Habit contributions depend on the clock, so results must not be
cached across days.
"""
import math
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

from goal_engine.habits import completed_keys, date_key_for, eligible_days
from goal_engine.logger import get_logger
from goal_engine.models import (
    Goal,
    Habit,
    HabitLink,
    InlineSubGoal,
    ItemContribution,
    ProgressReport,
)
from goal_engine.weights import TOTAL_WEIGHT, suggest_equal_weights

logger = get_logger("progress")

GoalResolver = Callable[[str], Optional[Goal]]
HabitResolver = Callable[[str], Optional[Habit]]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp01(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def habit_link_ratio(
    goal: Goal,
    link: HabitLink,
    habit: Optional[Habit],
    now: datetime,
) -> Tuple[float, int, int]:
    """
    Share of a linked habit that is done, as (ratio, done_count, target_count).

    A habit with target_completions is measured against that target, then one
    with target_days against its count of completed days. Otherwise
    the window runs from the later of goal creation and link start to the
    earliest of today, the link's end date and the goal's target date, and
    counts completed entries on scheduled days against scheduled days.
    """
    if habit is None:
        return 0.0, 0, 0

    if habit.target_completions and habit.target_completions > 0:
        done = habit.total_completions
        return _clamp01(done / habit.target_completions), done, habit.target_completions

    if habit.target_days and habit.target_days > 0:
        done = habit.total_days
        return _clamp01(done / habit.target_days), done, habit.target_days

    start = date_key_for(habit, goal.created_at)
    if link.start_date is not None and link.start_date > start:
        start = link.start_date

    ends: List[date] = [date_key_for(habit, now)]
    if link.end_date is not None:
        ends.append(link.end_date)
    if goal.target_date is not None:
        ends.append(goal.target_date)
    end = min(ends)

    days = eligible_days(habit, start, end)
    if not days:
        return 0.0, 0, 0

    done = len(completed_keys(habit, start, end))
    return _clamp01(done / len(days)), done, len(days)


def _evaluate(
    goal: Goal,
    linked_percent: Dict[str, int],
    resolve_habit: HabitResolver,
    now: datetime,
) -> ProgressReport:
    """Progress of one goal given the already-computed percent of its linked goals."""
    weights = goal.weights()
    total = sum(weights)

    if goal.is_leaf:
        return ProgressReport(
            goal_id=goal.id,
            percent=TOTAL_WEIGHT if goal.completed else 0,
            items=[],
            normalized=False,
            total_weight_before_normalize=0,
        )

    # read-only soft normalization; stored weights are untouched
    if total > 0:
        effective = [w * TOTAL_WEIGHT / total for w in weights]
    else:
        effective = [float(w) for w in suggest_equal_weights(len(weights))]

    items: List[ItemContribution] = []
    position = 0
    for sub in goal.sub_goals:
        share = effective[position]
        position += 1
        if isinstance(sub, InlineSubGoal):
            ratio = 1.0 if sub.completed else 0.0
            items.append(ItemContribution("inline", sub.title, sub.weight, ratio, ratio * share))
        else:
            ratio = linked_percent.get(sub.linked_goal_id, 0) / TOTAL_WEIGHT
            items.append(
                ItemContribution("linked_goal", sub.linked_goal_id, sub.weight, ratio, ratio * share)
            )

    for link in goal.habit_links:
        share = effective[position]
        position += 1
        habit = resolve_habit(link.habit_id)
        if habit is None:
            logger.warning(f"Goal {goal.id} links unknown habit {link.habit_id}")
        ratio, done, target = habit_link_ratio(goal, link, habit, now)
        items.append(
            ItemContribution("habit", link.habit_id, link.weight, ratio, ratio * share, done, target)
        )

    percent = _round_half_up(sum(item.contribution for item in items))
    percent = max(0, min(TOTAL_WEIGHT, percent))
    if goal.completed:
        percent = TOTAL_WEIGHT

    return ProgressReport(
        goal_id=goal.id,
        percent=percent,
        items=items,
        normalized=total != TOTAL_WEIGHT,
        total_weight_before_normalize=total,
    )


def _linked_percentages(
    root: Goal,
    resolve_goal: GoalResolver,
    resolve_habit: HabitResolver,
    now: datetime,
) -> Dict[str, int]:
    """
    Percent of every goal reachable from ``root`` through linked sub-goals.

    Evaluated bottom-up with an explicit stack. Ids still being expanded are
    ancestors of the current node, so meeting one again means a cycle; such a
    reference, like an unresolved one, contributes 0.
    """
    memo: Dict[str, int] = {}
    expanding: Set[str] = {root.id}
    stack: List[Tuple[str, bool]] = [(gid, False) for gid in reversed(root.linked_goal_ids())]

    while stack:
        goal_id, expanded = stack.pop()
        if goal_id in memo:
            continue

        if expanded:
            goal = resolve_goal(goal_id)
            memo[goal_id] = _evaluate(goal, memo, resolve_habit, now).percent
            expanding.discard(goal_id)
            continue

        if goal_id in expanding:
            logger.warning(f"Cycle through goal {goal_id} while computing progress of {root.id}")
            continue

        goal = resolve_goal(goal_id)
        if goal is None:
            logger.warning(f"Goal {root.id} references unknown goal {goal_id}")
            memo[goal_id] = 0
            continue

        pending = []
        if not goal.completed:
            pending = [c for c in goal.linked_goal_ids() if c not in memo and c not in expanding]
        if not pending:
            memo[goal_id] = _evaluate(goal, memo, resolve_habit, now).percent
            continue

        expanding.add(goal_id)
        stack.append((goal_id, True))
        stack.extend((child, False) for child in reversed(pending))

    return memo


def compute_progress_report(
    goal: Goal,
    resolve_goal: GoalResolver,
    resolve_habit: HabitResolver,
    now: Optional[datetime] = None,
) -> ProgressReport:
    """Progress of ``goal`` with a per-item breakdown."""
    now = now or datetime.now(timezone.utc)
    linked = {} if goal.completed else _linked_percentages(goal, resolve_goal, resolve_habit, now)
    return _evaluate(goal, linked, resolve_habit, now)


def compute_progress(
    goal: Goal,
    resolve_goal: GoalResolver,
    resolve_habit: HabitResolver,
    now: Optional[datetime] = None,
) -> int:
    """Progress of ``goal`` as an integer percent in [0, 100]."""
    return compute_progress_report(goal, resolve_goal, resolve_habit, now).percent
