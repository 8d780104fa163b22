"""
Input schemas for raw composition payloads.

The CRUD layer hands the engine plain dicts; these models turn them into the
typed composition items. A payload that mixes the inline shape with a goal
link is malformed input and fails validation.
"""
from datetime import date, datetime
from typing import Any, List, Optional, Sequence, Union

from pydantic import BaseModel, Field, model_validator

from goal_engine.models import HabitLink, InlineSubGoal, LinkedSubGoal, SubGoal


class SubGoalPayload(BaseModel):
    title: str = ""
    linked_goal_id: Optional[str] = None
    weight: float = 0
    completed: bool = False
    completed_at: Optional[datetime] = None
    note: str = ""

    @model_validator(mode="after")
    def check_shape(self) -> "SubGoalPayload":
        self.title = self.title.strip()
        if self.linked_goal_id:
            if self.title or self.completed:
                raise ValueError(
                    "a linked sub-goal derives its title and completion from the linked goal"
                )
        elif not self.title:
            raise ValueError("an inline sub-goal needs a title")
        return self

    def to_sub_goal(self, weight: int) -> SubGoal:
        if self.linked_goal_id:
            return LinkedSubGoal(linked_goal_id=self.linked_goal_id, weight=weight, note=self.note)
        return InlineSubGoal(
            title=self.title,
            weight=weight,
            completed=self.completed,
            completed_at=self.completed_at if self.completed else None,
            note=self.note,
        )


class HabitLinkPayload(BaseModel):
    habit_id: str = Field(min_length=1)
    weight: float = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_window(self) -> "HabitLinkPayload":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date is before start_date")
        return self

    def to_habit_link(self, weight: int) -> HabitLink:
        return HabitLink(
            habit_id=self.habit_id,
            weight=weight,
            start_date=self.start_date,
            end_date=self.end_date,
        )


def _sub_goal_payload(item: Union[SubGoal, dict, SubGoalPayload]) -> SubGoalPayload:
    if isinstance(item, SubGoalPayload):
        return item
    if isinstance(item, InlineSubGoal):
        return SubGoalPayload(
            title=item.title,
            weight=item.weight,
            completed=item.completed,
            completed_at=item.completed_at,
            note=item.note,
        )
    if isinstance(item, LinkedSubGoal):
        return SubGoalPayload(linked_goal_id=item.linked_goal_id, weight=item.weight, note=item.note)
    return SubGoalPayload.model_validate(item)


def _habit_link_payload(item: Union[HabitLink, dict, HabitLinkPayload]) -> HabitLinkPayload:
    if isinstance(item, HabitLinkPayload):
        return item
    if isinstance(item, HabitLink):
        return HabitLinkPayload(
            habit_id=item.habit_id,
            weight=item.weight,
            start_date=item.start_date,
            end_date=item.end_date,
        )
    return HabitLinkPayload.model_validate(item)


def parse_sub_goals(items: Optional[Sequence[Any]]) -> List[SubGoalPayload]:
    """
    Raises:
        pydantic.ValidationError: malformed item shape
    """
    return [_sub_goal_payload(item) for item in items or []]


def parse_habit_links(items: Optional[Sequence[Any]]) -> List[HabitLinkPayload]:
    """
    Raises:
        pydantic.ValidationError: malformed item shape
    """
    return [_habit_link_payload(item) for item in items or []]
