# Goal engine: weighted goal composition, progress, dependency-aware removal and completion locks.

from goal_engine.models import (
    DependentGoal,
    Frequency,
    Goal,
    GoalCompositionPatch,
    Habit,
    HabitLink,
    HabitLogEntry,
    InlineSubGoal,
    ItemType,
    LinkedSubGoal,
    LockState,
    LockStatus,
    LogStatus,
    ProgressReport,
    Result,
)
from goal_engine.registry import CompositionRegistry
from goal_engine.service import GoalCompositionService
from goal_engine.weights import normalize_weights

__all__ = [
    "CompositionRegistry",
    "DependentGoal",
    "Frequency",
    "Goal",
    "GoalCompositionPatch",
    "GoalCompositionService",
    "Habit",
    "HabitLink",
    "HabitLogEntry",
    "InlineSubGoal",
    "ItemType",
    "LinkedSubGoal",
    "LockState",
    "LockStatus",
    "LogStatus",
    "ProgressReport",
    "Result",
    "normalize_weights",
]
