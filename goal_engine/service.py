"""
Goal composition service: the surface the CRUD layer calls.

Reads go through the registry; nothing is written back. Mutating operations
return new entity values (or patches) wrapped in a Result for the caller to
persist, and report expected domain failures as typed errors.
"""
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from goal_engine import completion_lock
from goal_engine.config_manager import EngineConfig, TierLimits, config as default_config
from goal_engine.dependencies import find_dependents, on_remove
from goal_engine.exceptions import (
    CompositionFrozenError,
    CompositionLimitExceededError,
    CrossOwnerReferenceError,
    GoalEngineError,
    UnknownReferenceError,
)
from goal_engine.graph import check_link
from goal_engine.habits import date_key_for, habit_stats, record_log_entry
from goal_engine.logger import get_logger
from goal_engine.models import (
    DependentGoal,
    Goal,
    GoalCompositionPatch,
    Habit,
    HabitLogEntry,
    InlineSubGoal,
    ItemType,
    LockState,
    LogOutcome,
    LogStatus,
    ProgressReport,
    Result,
)
from goal_engine.progress import compute_progress_report
from goal_engine.registry import CompositionRegistry
from goal_engine.schemas import parse_habit_links, parse_sub_goals
from goal_engine.weights import normalize_weights, suggest_equal_weights, validate_weight

logger = get_logger("service")


class GoalCompositionService:
    """Application service for goal composition, progress and completion."""

    def __init__(
        self,
        registry: Optional[CompositionRegistry] = None,
        engine_config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        tier_resolver: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.registry = registry or CompositionRegistry()
        self.config = engine_config or default_config
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.tier_resolver = tier_resolver or (lambda owner_id: None)

    # ---------------------------------------------------------------------
    # Lookup helpers
    # ---------------------------------------------------------------------
    def tier_limits(self, owner_id: str) -> TierLimits:
        return self.config.tier_limits(self.tier_resolver(owner_id))

    def require_goal(self, goal_id: str) -> Goal:
        goal = self.registry.get_goal(goal_id)
        if goal is None:
            raise UnknownReferenceError(ItemType.GOAL.value, goal_id)
        return goal

    def require_habit(self, habit_id: str) -> Habit:
        habit = self.registry.get_habit(habit_id)
        if habit is None:
            raise UnknownReferenceError(ItemType.HABIT.value, habit_id)
        return habit

    @staticmethod
    def _rejected(operation: str, error: GoalEngineError) -> Result:
        logger.info(f"{operation} rejected: {error.kind} {error.context}")
        return Result.failure(error)

    # ---------------------------------------------------------------------
    # Weights
    # ---------------------------------------------------------------------
    def normalize_weights(self, weights: Sequence[float]) -> List[int]:
        return normalize_weights(weights, step=self.config.WEIGHT_STEP)

    # ---------------------------------------------------------------------
    # Link validation
    # ---------------------------------------------------------------------
    def _check_linked_goal(self, parent: Goal, candidate_goal_id: str) -> None:
        if candidate_goal_id != parent.id:
            candidate = self.registry.get_goal(candidate_goal_id)
            if candidate is None:
                raise UnknownReferenceError(ItemType.GOAL.value, candidate_goal_id)
            if candidate.owner_id != parent.owner_id:
                raise CrossOwnerReferenceError(
                    ItemType.GOAL.value, candidate_goal_id, candidate.owner_id, parent.owner_id
                )
            if candidate.completed and not self.config.ALLOW_LINKING_COMPLETED_GOALS:
                raise CompositionFrozenError(candidate_goal_id)
        check_link(parent.id, candidate_goal_id, self.registry.linked_goal_ids)

    def _check_linked_habit(self, parent: Goal, habit_id: str) -> None:
        habit = self.registry.get_habit(habit_id)
        if habit is None:
            raise UnknownReferenceError(ItemType.HABIT.value, habit_id)
        if habit.owner_id != parent.owner_id:
            raise CrossOwnerReferenceError(ItemType.HABIT.value, habit_id, habit.owner_id, parent.owner_id)

    def validate_link(self, parent_goal_id: str, candidate_goal_id: str) -> Result[None]:
        try:
            parent = self.require_goal(parent_goal_id)
            if parent.completed:
                raise CompositionFrozenError(parent_goal_id)
            self._check_linked_goal(parent, candidate_goal_id)
        except GoalEngineError as e:
            return self._rejected("validate_link", e)
        return Result.success()

    # ---------------------------------------------------------------------
    # Composition edits
    # ---------------------------------------------------------------------
    def set_composition(
        self,
        goal_id: str,
        sub_goals: Optional[Sequence[Any]] = None,
        habit_links: Optional[Sequence[Any]] = None,
        normalize: bool = True,
    ) -> Result[Goal]:
        """
        Replace a goal's composition.

        Items may be dicts, payload models or composition dataclasses. Weights
        must sit on the WEIGHT_STEP grid, except for an unchanged equal split
        such as [34, 33, 33]. They are then normalized to sum to 100 unless
        ``normalize`` is False.

        Raises:
            pydantic.ValidationError: malformed item shape
        """
        sub_payloads = parse_sub_goals(sub_goals)
        habit_payloads = parse_habit_links(habit_links)

        try:
            goal = self.require_goal(goal_id)
            if goal.completed:
                raise CompositionFrozenError(goal_id)

            limits = self.tier_limits(goal.owner_id)
            requested = len(sub_payloads) + len(habit_payloads)
            if requested > limits.max_composition_items:
                raise CompositionLimitExceededError(
                    goal_id, requested, limits.max_composition_items, limits.tier
                )

            raw = [p.weight for p in sub_payloads] + [p.weight for p in habit_payloads]
            # an untouched equal split is the only off-grid set a caller may send back
            step = 1 if raw == suggest_equal_weights(len(raw)) else self.config.WEIGHT_STEP
            weights = [validate_weight(w, index=i, step=step) for i, w in enumerate(raw)]

            for linked_id in dict.fromkeys(p.linked_goal_id for p in sub_payloads if p.linked_goal_id):
                self._check_linked_goal(goal, linked_id)
            for habit_id in dict.fromkeys(p.habit_id for p in habit_payloads):
                self._check_linked_habit(goal, habit_id)
        except GoalEngineError as e:
            return self._rejected("set_composition", e)

        if normalize:
            weights = self.normalize_weights(weights)

        split = len(sub_payloads)
        updated = replace(
            goal,
            sub_goals=[p.to_sub_goal(w) for p, w in zip(sub_payloads, weights[:split])],
            habit_links=[p.to_habit_link(w) for p, w in zip(habit_payloads, weights[split:])],
        )
        logger.info(f"Goal {goal_id} composition set: {requested} items, weights {weights}")
        return Result.success(updated)

    def update_weight(self, goal_id: str, index: int, weight: Any) -> Result[Goal]:
        """
        Change one item's weight (index in sub-goals-then-habit-links order)
        and re-normalize the whole set.

        Raises:
            IndexError: index outside the composition
        """
        try:
            goal = self.require_goal(goal_id)
            if goal.completed:
                raise CompositionFrozenError(goal_id)
            value = validate_weight(weight, index=index, step=self.config.WEIGHT_STEP)
        except GoalEngineError as e:
            return self._rejected("update_weight", e)

        weights = goal.weights()
        if not 0 <= index < len(weights):
            raise IndexError(f"Goal {goal_id} has no composition item {index}")
        weights[index] = value
        weights = self.normalize_weights(weights)

        split = len(goal.sub_goals)
        return Result.success(
            replace(
                goal,
                sub_goals=[replace(s, weight=w) for s, w in zip(goal.sub_goals, weights[:split])],
                habit_links=[replace(h, weight=w) for h, w in zip(goal.habit_links, weights[split:])],
            )
        )

    def toggle_sub_goal(
        self,
        goal_id: str,
        index: int,
        completed: bool,
        note: Optional[str] = None,
    ) -> Result[Goal]:
        """
        Mark an inline sub-goal done or not done.

        Raises:
            IndexError: index outside the sub-goal list
            ValueError: the sub-goal is a link, whose completion is derived
        """
        try:
            goal = self.require_goal(goal_id)
            if goal.completed:
                raise CompositionFrozenError(goal_id)
        except GoalEngineError as e:
            return self._rejected("toggle_sub_goal", e)

        if not 0 <= index < len(goal.sub_goals):
            raise IndexError(f"Goal {goal_id} has no sub-goal {index}")
        sub = goal.sub_goals[index]
        if not isinstance(sub, InlineSubGoal):
            raise ValueError(f"Sub-goal {index} of {goal_id} is linked; its completion follows the linked goal")

        now = self.clock()
        changed = replace(
            sub,
            completed=bool(completed),
            completed_at=(sub.completed_at or now) if completed else None,
            note=sub.note if note is None else note,
        )
        sub_goals = list(goal.sub_goals)
        sub_goals[index] = changed
        return Result.success(replace(goal, sub_goals=sub_goals))

    # ---------------------------------------------------------------------
    # Progress
    # ---------------------------------------------------------------------
    def get_progress_report(self, goal_id: str) -> ProgressReport:
        goal = self.require_goal(goal_id)
        return compute_progress_report(
            goal,
            self.registry.get_goal,
            self.registry.get_habit,
            now=self.clock(),
        )

    def compute_goal_progress(self, goal_id: str) -> int:
        return self.get_progress_report(goal_id).percent

    # ---------------------------------------------------------------------
    # Dependencies
    # ---------------------------------------------------------------------
    def _owner_of(self, item_type: ItemType, item_id: str) -> Optional[str]:
        entity = (
            self.registry.get_habit(item_id)
            if item_type == ItemType.HABIT
            else self.registry.get_goal(item_id)
        )
        return entity.owner_id if entity else None

    def find_dependent_goals(
        self, item_type: Union[ItemType, str], item_id: str
    ) -> List[DependentGoal]:
        item_type = ItemType(item_type)
        owner_id = self._owner_of(item_type, item_id)
        candidates = self.registry.goals_referencing(item_type, item_id)
        if owner_id is not None:
            candidates = [g for g in candidates if g.owner_id == owner_id]
        return find_dependents(item_type, item_id, candidates)

    def apply_removal(
        self, item_type: Union[ItemType, str], item_id: str
    ) -> List[GoalCompositionPatch]:
        """
        Patches for every goal referencing the item about to be deleted,
        completed goals included, so no reference is left dangling.
        """
        item_type = ItemType(item_type)
        affected = self.registry.goals_referencing(item_type, item_id)
        patches = on_remove(item_type, item_id, affected)
        logger.info(
            f"Removal of {item_type.value} {item_id} patches {len(patches)} goals: "
            f"{[p.goal_id for p in patches]}"
        )
        return patches

    # ---------------------------------------------------------------------
    # Completion
    # ---------------------------------------------------------------------
    def get_completion_lock_state(self, entity_id: str) -> LockState:
        now = self.clock()
        goal = self.registry.get_goal(entity_id)
        if goal is not None:
            limits = self.tier_limits(goal.owner_id)
            return completion_lock.goal_lock_state(goal, limits.goal_cooldown, now)
        habit = self.registry.get_habit(entity_id)
        if habit is not None:
            limits = self.tier_limits(habit.owner_id)
            return completion_lock.habit_lock_state(
                habit, limits.habit_initial_cooldown, limits.habit_recurring_cooldown, now
            )
        raise UnknownReferenceError("entity", entity_id)

    def complete_goal(self, goal_id: str) -> Result[Goal]:
        try:
            goal = self.require_goal(goal_id)
            limits = self.tier_limits(goal.owner_id)
            completed = completion_lock.complete_goal(goal, limits.goal_cooldown, self.clock())
        except GoalEngineError as e:
            return self._rejected("complete_goal", e)
        logger.info(f"Goal {goal_id} completed")
        return Result.success(completed)

    def uncomplete_goal(self, goal_id: str) -> Result[Goal]:
        try:
            goal = self.require_goal(goal_id)
        except GoalEngineError as e:
            return self._rejected("uncomplete_goal", e)
        return Result.success(completion_lock.uncomplete_goal(goal, self.clock()))

    def log_habit(
        self,
        habit_id: str,
        status: Union[LogStatus, str] = LogStatus.COMPLETED,
        day: Optional[date] = None,
        note: str = "",
        mood: str = "neutral",
    ) -> Result[LogOutcome]:
        """
        Record a daily habit entry. A completion for today must clear the
        habit's completion lock; back-filled days are not gated.
        """
        status = LogStatus(status)
        now = self.clock()
        try:
            habit = self.require_habit(habit_id)
            today = date_key_for(habit, now)
            day = day or today
            completed_at = None
            if status == LogStatus.COMPLETED and day == today:
                limits = self.tier_limits(habit.owner_id)
                state = completion_lock.habit_lock_state(
                    habit, limits.habit_initial_cooldown, limits.habit_recurring_cooldown, now
                )
                completion_lock.ensure_unlocked(habit_id, state)
                completed_at = now
            outcome = record_log_entry(
                habit,
                HabitLogEntry(date_key=day, status=status, note=note, mood=mood),
                today=today,
                completed_at=completed_at,
                milestones=self.config.STREAK_MILESTONES,
            )
        except GoalEngineError as e:
            return self._rejected("log_habit", e)
        return Result.success(outcome)

    def complete_habit(self, habit_id: str) -> Result[LogOutcome]:
        return self.log_habit(habit_id, LogStatus.COMPLETED)

    def habit_stats(self, owner_id: str) -> Dict[str, int]:
        return habit_stats(self.registry.habits_for_owner(owner_id))
