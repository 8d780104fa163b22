"""
CompositionRegistry: reference storage collaborator for goals and habits.

In-memory store with optional JSON persistence. Keeps a goal-by-referenced-item
index so dependency lookups do not scan every goal.
"""
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple
import json

from goal_engine.logger import get_logger, log_corrupt_record
from goal_engine.models import (
    Frequency,
    Goal,
    GoalCompositionPatch,
    Habit,
    HabitLink,
    HabitLogEntry,
    InlineSubGoal,
    ItemType,
    LinkedSubGoal,
    LogStatus,
    SubGoal,
)

DATA_DIR = Path(__file__).parent.parent / "data"
REGISTRY_PATH = DATA_DIR / "composition_registry.json"

logger = get_logger("registry")


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _d(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _sub_goal_to_dict(s: SubGoal) -> dict:
    if isinstance(s, LinkedSubGoal):
        return {"linked_goal_id": s.linked_goal_id, "weight": s.weight, "note": s.note}
    return {
        "title": s.title,
        "weight": s.weight,
        "completed": s.completed,
        "completed_at": _iso(s.completed_at),
        "note": s.note,
    }


def _dict_to_sub_goal(d: dict) -> SubGoal:
    if d.get("linked_goal_id"):
        return LinkedSubGoal(linked_goal_id=d["linked_goal_id"], weight=d.get("weight", 0), note=d.get("note", ""))
    return InlineSubGoal(
        title=d.get("title", ""),
        weight=d.get("weight", 0),
        completed=d.get("completed", False),
        completed_at=_dt(d.get("completed_at")),
        note=d.get("note", ""),
    )


def _goal_to_dict(g: Goal) -> dict:
    return {
        "id": g.id,
        "owner_id": g.owner_id,
        "title": g.title,
        "category": g.category,
        "created_at": _iso(g.created_at),
        "completed": g.completed,
        "completed_at": _iso(g.completed_at),
        "target_date": _iso(g.target_date),
        "reopened_at": _iso(g.reopened_at),
        "sub_goals": [_sub_goal_to_dict(s) for s in g.sub_goals],
        "habit_links": [
            {
                "habit_id": h.habit_id,
                "weight": h.weight,
                "start_date": _iso(h.start_date),
                "end_date": _iso(h.end_date),
            }
            for h in g.habit_links
        ],
    }


def _dict_to_goal(d: dict) -> Goal:
    return Goal(
        id=d["id"],
        owner_id=d["owner_id"],
        title=d["title"],
        category=d.get("category", ""),
        created_at=_dt(d["created_at"]),
        completed=d.get("completed", False),
        completed_at=_dt(d.get("completed_at")),
        target_date=_d(d.get("target_date")),
        reopened_at=_dt(d.get("reopened_at")),
        sub_goals=[_dict_to_sub_goal(s) for s in d.get("sub_goals", [])],
        habit_links=[
            HabitLink(
                habit_id=h["habit_id"],
                weight=h.get("weight", 0),
                start_date=_d(h.get("start_date")),
                end_date=_d(h.get("end_date")),
            )
            for h in d.get("habit_links", [])
        ],
    )


def _habit_to_dict(h: Habit) -> dict:
    return {
        "id": h.id,
        "owner_id": h.owner_id,
        "name": h.name,
        "created_at": _iso(h.created_at),
        "frequency": h.frequency.value,
        "days_of_week": list(h.days_of_week) if h.days_of_week is not None else None,
        "timezone": h.timezone,
        "current_streak": h.current_streak,
        "longest_streak": h.longest_streak,
        "last_logged_date_key": _iso(h.last_logged_date_key),
        "total_completions": h.total_completions,
        "target_completions": h.target_completions,
        "total_days": h.total_days,
        "target_days": h.target_days,
        "last_completed_at": _iso(h.last_completed_at),
        "is_active": h.is_active,
        "is_archived": h.is_archived,
        "log": [
            {"date_key": e.date_key.isoformat(), "status": e.status.value, "note": e.note, "mood": e.mood}
            for e in h.log
        ],
    }


def _dict_to_habit(d: dict) -> Habit:
    days = d.get("days_of_week")
    return Habit(
        id=d["id"],
        owner_id=d["owner_id"],
        name=d["name"],
        created_at=_dt(d["created_at"]),
        frequency=Frequency(d.get("frequency", "daily")),
        days_of_week=tuple(days) if days is not None else None,
        timezone=d.get("timezone", "UTC"),
        current_streak=d.get("current_streak", 0),
        longest_streak=d.get("longest_streak", 0),
        last_logged_date_key=_d(d.get("last_logged_date_key")),
        total_completions=d.get("total_completions", 0),
        target_completions=d.get("target_completions"),
        total_days=d.get("total_days", 0),
        target_days=d.get("target_days"),
        last_completed_at=_dt(d.get("last_completed_at")),
        is_active=d.get("is_active", True),
        is_archived=d.get("is_archived", False),
        log=[
            HabitLogEntry(
                date_key=date.fromisoformat(e["date_key"]),
                status=LogStatus(e["status"]),
                note=e.get("note", ""),
                mood=e.get("mood", "neutral"),
            )
            for e in d.get("log", [])
        ],
    )


RefKey = Tuple[ItemType, str]


class CompositionRegistry:
    """In-memory registry; persisted to JSON when a path is given."""

    def __init__(self, path: Optional[Path] = None, persist: bool = True):
        self._path = path if path is not None else REGISTRY_PATH
        self._persist = persist
        self._goals: Dict[str, Goal] = {}
        self._habits: Dict[str, Habit] = {}
        self._referrers: Dict[RefKey, Set[str]] = {}
        if persist:
            self._load()

    @classmethod
    def in_memory(cls) -> "CompositionRegistry":
        return cls(persist=False)

    def _load(self) -> None:
        if not self._path.exists():
            return
        with open(self._path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for i, d in enumerate(data.get("habits", [])):
            try:
                h = _dict_to_habit(d)
            except (KeyError, TypeError, ValueError) as e:
                log_corrupt_record(self._path, "habit", i, d, str(e))
                continue
            self._habits[h.id] = h
        for i, d in enumerate(data.get("goals", [])):
            try:
                g = _dict_to_goal(d)
            except (KeyError, TypeError, ValueError) as e:
                log_corrupt_record(self._path, "goal", i, d, str(e))
                continue
            self._goals[g.id] = g
            self._index(g)

    def save(self) -> None:
        if not self._persist:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "goals": [_goal_to_dict(g) for g in self._goals.values()],
            "habits": [_habit_to_dict(h) for h in self._habits.values()],
        }
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)

    # ------------------------------------------------------------------
    # Reference index
    # ------------------------------------------------------------------
    @staticmethod
    def _refs_of(goal: Goal) -> Set[RefKey]:
        refs = {(ItemType.GOAL, gid) for gid in goal.linked_goal_ids()}
        refs.update((ItemType.HABIT, hid) for hid in goal.habit_ids())
        return refs

    def _index(self, goal: Goal) -> None:
        for key in self._refs_of(goal):
            self._referrers.setdefault(key, set()).add(goal.id)

    def _unindex(self, goal: Goal) -> None:
        for key in self._refs_of(goal):
            bucket = self._referrers.get(key)
            if bucket:
                bucket.discard(goal.id)
                if not bucket:
                    del self._referrers[key]

    def goals_referencing(self, item_type: ItemType, item_id: str) -> List[Goal]:
        ids = sorted(self._referrers.get((item_type, item_id), ()))
        return [self._goals[i] for i in ids if i in self._goals]

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------
    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self._goals.get(goal_id)

    def put_goal(self, goal: Goal) -> None:
        old = self._goals.get(goal.id)
        if old is not None:
            self._unindex(old)
        self._goals[goal.id] = goal
        self._index(goal)
        self.save()

    def delete_goal(self, goal_id: str) -> None:
        old = self._goals.pop(goal_id, None)
        if old is not None:
            self._unindex(old)
            self.save()

    def goals_for_owner(self, owner_id: str) -> List[Goal]:
        return [g for g in self._goals.values() if g.owner_id == owner_id]

    def linked_goal_ids(self, goal_id: str) -> List[str]:
        goal = self._goals.get(goal_id)
        return goal.linked_goal_ids() if goal else []

    # ------------------------------------------------------------------
    # Habits
    # ------------------------------------------------------------------
    def get_habit(self, habit_id: str) -> Optional[Habit]:
        return self._habits.get(habit_id)

    def put_habit(self, habit: Habit) -> None:
        self._habits[habit.id] = habit
        self.save()

    def delete_habit(self, habit_id: str) -> None:
        if self._habits.pop(habit_id, None) is not None:
            self.save()

    def habits_for_owner(self, owner_id: str) -> List[Habit]:
        return [h for h in self._habits.values() if h.owner_id == owner_id]

    # ------------------------------------------------------------------
    # Patches
    # ------------------------------------------------------------------
    def apply_patches(self, patches: Iterable[GoalCompositionPatch]) -> List[Goal]:
        """Write every patch or none of them."""
        patches = list(patches)
        missing = [p.goal_id for p in patches if p.goal_id not in self._goals]
        if missing:
            raise KeyError(f"Cannot patch unknown goals: {missing}")

        updated = []
        for patch in patches:
            old = self._goals[patch.goal_id]
            goal = replace(old, sub_goals=list(patch.sub_goals), habit_links=list(patch.habit_links))
            self._unindex(old)
            self._goals[goal.id] = goal
            self._index(goal)
            updated.append(goal)

        self.save()
        logger.info(f"Applied {len(updated)} composition patches")
        return updated
