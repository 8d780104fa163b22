"""
Dependency tracking for goals and habits referenced by other goals.

Before a goal or habit is deleted the caller asks which goals depend on it so
the user can confirm; at deletion time every affected goal gets a patch with
the reference dropped and the remaining weights re-normalized.
"""
from dataclasses import replace
from typing import Iterable, List

from goal_engine.logger import get_logger
from goal_engine.models import (
    DependentGoal,
    Goal,
    GoalCompositionPatch,
    ItemType,
    LinkedSubGoal,
    SubGoal,
)
from goal_engine.weights import normalize_weights

logger = get_logger("dependencies")


def _references(sub: SubGoal, item_type: ItemType, item_id: str) -> bool:
    return item_type == ItemType.GOAL and isinstance(sub, LinkedSubGoal) and sub.linked_goal_id == item_id


def _count_references(goal: Goal, item_type: ItemType, item_id: str) -> int:
    if item_type == ItemType.HABIT:
        return sum(1 for h in goal.habit_links if h.habit_id == item_id)
    return sum(1 for s in goal.sub_goals if _references(s, item_type, item_id))


def find_dependents(
    item_type: ItemType,
    item_id: str,
    candidate_goals: Iterable[Goal],
) -> List[DependentGoal]:
    """Non-completed goals whose composition references the item."""
    dependents = []
    for goal in candidate_goals:
        if goal.completed or goal.id == item_id:
            continue
        count = _count_references(goal, item_type, item_id)
        if count:
            dependents.append(DependentGoal(goal.id, goal.title, count))
    return dependents


def build_removal_patch(goal: Goal, item_type: ItemType, item_id: str) -> GoalCompositionPatch:
    """Composition of ``goal`` without the item, remaining weights re-normalized."""
    if item_type == ItemType.HABIT:
        sub_goals = list(goal.sub_goals)
        habit_links = [h for h in goal.habit_links if h.habit_id != item_id]
    else:
        sub_goals = [s for s in goal.sub_goals if not _references(s, item_type, item_id)]
        habit_links = list(goal.habit_links)

    removed = goal.composition_size - len(sub_goals) - len(habit_links)

    # proportional to current weights; the normalizer falls back to an equal
    # split when nothing with weight is left
    weights = normalize_weights([s.weight for s in sub_goals] + [h.weight for h in habit_links])
    split = len(sub_goals)
    sub_goals = [replace(s, weight=w) for s, w in zip(sub_goals, weights[:split])]
    habit_links = [replace(h, weight=w) for h, w in zip(habit_links, weights[split:])]

    return GoalCompositionPatch(
        goal_id=goal.id,
        sub_goals=sub_goals,
        habit_links=habit_links,
        removed_count=removed,
    )


def on_remove(
    item_type: ItemType,
    item_id: str,
    affected_goals: Iterable[Goal],
) -> List[GoalCompositionPatch]:
    """
    Patches for every goal that references the removed item.

    All patches are built before any is returned, so a failure leaves the
    caller with nothing to reconcile.
    """
    patches = []
    for goal in affected_goals:
        if goal.id == item_id or not goal.references(item_type, item_id):
            continue
        patch = build_removal_patch(goal, item_type, item_id)
        if patch.is_leaf:
            logger.info(f"Goal {goal.id} becomes a leaf goal after removing {item_type.value} {item_id}")
        patches.append(patch)
    return patches
