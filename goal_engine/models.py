"""
Core data models for the goal engine.

Entities are plain dataclasses handed in by the storage collaborator. Engine
operations return new values (dataclasses.replace) rather than mutating them.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Generic, List, Optional, Tuple, TypeVar, Union

from goal_engine.exceptions import GoalEngineError


class ItemType(str, Enum):
    GOAL = "goal"
    HABIT = "habit"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class LogStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    MISSED = "missed"


class LockStatus(str, Enum):
    LOCKED = "locked"
    UNLOCKABLE = "unlockable"
    COMPLETED = "completed"


@dataclass(frozen=True)
class InlineSubGoal:
    """Checklist item with no backing entity; completion is stored here."""
    title: str
    weight: int = 0
    completed: bool = False
    completed_at: Optional[datetime] = None
    note: str = ""


@dataclass(frozen=True)
class LinkedSubGoal:
    """Reference to another goal of the same owner; completion is derived."""
    linked_goal_id: str
    weight: int = 0
    note: str = ""


SubGoal = Union[InlineSubGoal, LinkedSubGoal]


@dataclass(frozen=True)
class HabitLink:
    habit_id: str
    weight: int = 0
    start_date: Optional[date] = None  # defaults to the goal's creation day
    end_date: Optional[date] = None


@dataclass
class Goal:
    """Goal owned by one user, optionally decomposed into weighted parts."""
    id: str
    owner_id: str
    title: str
    created_at: datetime
    category: str = ""
    completed: bool = False
    completed_at: Optional[datetime] = None
    target_date: Optional[date] = None
    reopened_at: Optional[datetime] = None  # cooldown reference after un-completion
    sub_goals: List[SubGoal] = field(default_factory=list)
    habit_links: List[HabitLink] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.sub_goals and not self.habit_links

    @property
    def composition_size(self) -> int:
        return len(self.sub_goals) + len(self.habit_links)

    def weights(self) -> List[int]:
        """Composition weights in canonical order: sub-goals, then habit links."""
        return [s.weight for s in self.sub_goals] + [h.weight for h in self.habit_links]

    def linked_goal_ids(self) -> List[str]:
        return [s.linked_goal_id for s in self.sub_goals if isinstance(s, LinkedSubGoal)]

    def habit_ids(self) -> List[str]:
        return [h.habit_id for h in self.habit_links]

    def references(self, item_type: ItemType, item_id: str) -> bool:
        if item_type == ItemType.HABIT:
            return item_id in self.habit_ids()
        return item_id in self.linked_goal_ids()


@dataclass(frozen=True)
class HabitLogEntry:
    date_key: date
    status: LogStatus
    note: str = ""
    mood: str = "neutral"


@dataclass
class Habit:
    id: str
    owner_id: str
    name: str
    created_at: datetime
    frequency: Frequency = Frequency.DAILY
    days_of_week: Optional[Tuple[int, ...]] = None  # 0=Sunday .. 6=Saturday
    timezone: str = "UTC"
    current_streak: int = 0
    longest_streak: int = 0
    last_logged_date_key: Optional[date] = None
    total_completions: int = 0
    target_completions: Optional[int] = None
    total_days: int = 0  # distinct days with a completed entry
    target_days: Optional[int] = None
    last_completed_at: Optional[datetime] = None
    is_active: bool = True
    is_archived: bool = False
    log: List[HabitLogEntry] = field(default_factory=list)

    def __post_init__(self):
        if self.frequency != Frequency.DAILY and not self.days_of_week:
            raise ValueError(f"Habit {self.id}: days_of_week is required for {self.frequency.value} habits")
        if self.days_of_week is not None:
            if any(d < 0 or d > 6 for d in self.days_of_week):
                raise ValueError(f"Habit {self.id}: days_of_week values must be in 0..6")
            self.days_of_week = tuple(sorted(set(self.days_of_week)))


@dataclass(frozen=True)
class DependentGoal:
    parent_goal_id: str
    parent_title: str
    reference_count: int = 1


@dataclass(frozen=True)
class GoalCompositionPatch:
    """New composition for one goal after a referenced item is removed."""
    goal_id: str
    sub_goals: List[SubGoal]
    habit_links: List[HabitLink]
    removed_count: int

    @property
    def is_leaf(self) -> bool:
        return not self.sub_goals and not self.habit_links


@dataclass(frozen=True)
class LockState:
    status: LockStatus
    eligible_at: datetime
    time_until_can_complete: timedelta

    @property
    def locked(self) -> bool:
        return self.status == LockStatus.LOCKED


@dataclass(frozen=True)
class ItemContribution:
    """One composition item's share of a progress figure."""
    kind: str  # "inline" | "linked_goal" | "habit"
    ref: str  # title, linked goal id or habit id
    weight: int
    ratio: float
    contribution: float
    done_count: Optional[int] = None
    target_count: Optional[int] = None


@dataclass(frozen=True)
class ProgressReport:
    goal_id: str
    percent: int
    items: List[ItemContribution]
    normalized: bool
    total_weight_before_normalize: int


@dataclass(frozen=True)
class LogOutcome:
    habit: Habit
    entry: HabitLogEntry
    milestone: Optional[int] = None


T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a mutating engine operation: a value or a typed error."""
    value: Optional[T] = None
    error: Optional[GoalEngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: GoalEngineError) -> "Result[T]":
        return cls(error=error)
