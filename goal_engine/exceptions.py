"""
Goal engine error kinds.

Hierarchy:
- GoalEngineError: base for every expected domain condition
- InvalidWeightError / CompositionLimitExceededError: composition input
- CycleDetectedError / SelfReferenceError / CrossOwnerReferenceError /
  UnknownReferenceError: link targets
- StillLockedError: completion cooldown
- CompositionFrozenError / InactiveHabitError: lifecycle

NormalizationError is not a domain condition; it marks a broken invariant.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional


class GoalEngineError(Exception):
    """Base class for all expected engine failures.

    Every subclass carries a stable ``kind`` plus enough context for the
    caller to render a message.
    """

    kind = "engine_error"

    def __init__(self, message: str, hint: Optional[str] = None, **context: Any):
        """
        Args:
            message: what went wrong
            hint: what the user can do about it
            context: offending ids and values
        """
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.context: Dict[str, Any] = context

    def get_user_message(self) -> str:
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "hint": self.hint, **self.context}


class InvalidWeightError(GoalEngineError):
    """Caller-entered weight outside [0,100] or off the step grid."""

    kind = "invalid_weight"

    def __init__(self, value: Any, step: int, index: Optional[int] = None):
        where = f" at position {index}" if index is not None else ""
        super().__init__(
            f"Invalid weight {value!r}{where}",
            hint=f"Use a whole number between 0 and 100 in steps of {step}",
            value=value,
            step=step,
            index=index,
        )


class CycleDetectedError(GoalEngineError):
    kind = "cycle_detected"

    def __init__(self, parent_goal_id: str, candidate_goal_id: str, path: List[str]):
        super().__init__(
            f"Linking {candidate_goal_id} under {parent_goal_id} would create a cycle",
            hint="A goal cannot contain a goal that already contains it",
            parent_goal_id=parent_goal_id,
            candidate_goal_id=candidate_goal_id,
            path=path,
        )


class SelfReferenceError(GoalEngineError):
    kind = "self_reference"

    def __init__(self, goal_id: str):
        super().__init__(
            "Cannot link a goal to itself",
            goal_id=goal_id,
        )


class CrossOwnerReferenceError(GoalEngineError):
    kind = "cross_owner_reference"

    def __init__(self, item_type: str, item_id: str, owner_id: str, expected_owner_id: str):
        super().__init__(
            f"The {item_type} {item_id} belongs to another user",
            hint="Only your own goals and habits can be linked",
            item_type=item_type,
            item_id=item_id,
            owner_id=owner_id,
            expected_owner_id=expected_owner_id,
        )


class CompositionLimitExceededError(GoalEngineError):
    kind = "composition_limit_exceeded"

    def __init__(self, goal_id: str, requested: int, allowed: int, tier: str):
        super().__init__(
            f"Goal {goal_id} can hold at most {allowed} sub-items on the {tier} tier (requested {requested})",
            hint="Remove some items or upgrade the account",
            goal_id=goal_id,
            requested=requested,
            allowed=allowed,
            tier=tier,
        )


class StillLockedError(GoalEngineError):
    kind = "still_locked"

    def __init__(self, entity_id: str, eligible_at: datetime, remaining: timedelta):
        hours = remaining.total_seconds() / 3600
        super().__init__(
            f"{entity_id} cannot be completed yet",
            hint=f"Try again in {hours:.1f} hours",
            entity_id=entity_id,
            eligible_at=eligible_at,
            remaining=remaining,
        )


class UnknownReferenceError(GoalEngineError):
    kind = "unknown_reference"

    def __init__(self, item_type: str, item_id: str):
        super().__init__(
            f"Unknown {item_type}: {item_id}",
            item_type=item_type,
            item_id=item_id,
        )


class CompositionFrozenError(GoalEngineError):
    """Composition edits on a completed goal."""

    kind = "composition_frozen"

    def __init__(self, goal_id: str):
        super().__init__(
            f"Goal {goal_id} is completed; its composition is read-only",
            hint="Mark the goal as not completed to edit it",
            goal_id=goal_id,
        )


class InactiveHabitError(GoalEngineError):
    kind = "inactive_habit"

    def __init__(self, habit_id: str):
        super().__init__(
            f"Habit {habit_id} is archived or inactive",
            habit_id=habit_id,
        )


class NormalizationError(AssertionError):
    """Round-robin weight adjustment did not converge within its bound."""
