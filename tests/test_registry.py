import json
from datetime import date, datetime, timezone

import pytest

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
)
from goal_engine.registry import CompositionRegistry

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _goal(goal_id, **kwargs) -> Goal:
    return Goal(id=goal_id, owner_id="u1", title=f"goal-{goal_id}", created_at=T0, **kwargs)


def test_goals_and_habits_survive_reload(tmp_path):
    path = tmp_path / "registry.json"
    registry = CompositionRegistry(path=path)
    registry.put_habit(Habit(
        id="h1",
        owner_id="u1",
        name="swim",
        created_at=T0,
        frequency=Frequency.WEEKLY,
        days_of_week=(2, 4),
        timezone="Europe/Berlin",
        target_days=60,
        total_days=1,
        log=[HabitLogEntry(date(2026, 3, 3), LogStatus.COMPLETED, note="pool")],
    ))
    registry.put_goal(_goal(
        "g1",
        target_date=date(2026, 12, 31),
        sub_goals=[
            InlineSubGoal("warm up", 40, completed=True, completed_at=T0),
            LinkedSubGoal("g2", 20),
        ],
        habit_links=[HabitLink("h1", 40, start_date=date(2026, 3, 2))],
    ))

    reloaded = CompositionRegistry(path=path)
    goal = reloaded.get_goal("g1")
    assert goal.target_date == date(2026, 12, 31)
    assert goal.sub_goals[0] == InlineSubGoal("warm up", 40, completed=True, completed_at=T0)
    assert goal.sub_goals[1] == LinkedSubGoal("g2", 20)
    assert goal.habit_links[0].start_date == date(2026, 3, 2)

    habit = reloaded.get_habit("h1")
    assert habit.days_of_week == (2, 4)
    assert habit.timezone == "Europe/Berlin"
    assert habit.log[0].note == "pool"
    assert (habit.target_days, habit.total_days) == (60, 1)
    assert reloaded.goals_referencing(ItemType.HABIT, "h1") == [goal]


def test_in_memory_registry_writes_nothing(tmp_path):
    registry = CompositionRegistry(path=tmp_path / "registry.json", persist=False)
    registry.put_goal(_goal("g1"))
    assert not (tmp_path / "registry.json").exists()


def test_reference_index_follows_updates():
    registry = CompositionRegistry.in_memory()
    registry.put_goal(_goal("p", sub_goals=[LinkedSubGoal("c", 100)]))
    assert [g.id for g in registry.goals_referencing(ItemType.GOAL, "c")] == ["p"]
    assert registry.linked_goal_ids("p") == ["c"]

    registry.put_goal(_goal("p", habit_links=[HabitLink("h1", 100)]))
    assert registry.goals_referencing(ItemType.GOAL, "c") == []
    assert [g.id for g in registry.goals_referencing(ItemType.HABIT, "h1")] == ["p"]

    registry.delete_goal("p")
    assert registry.goals_referencing(ItemType.HABIT, "h1") == []
    assert registry.linked_goal_ids("p") == []


def test_apply_patches_is_all_or_none():
    registry = CompositionRegistry.in_memory()
    registry.put_goal(_goal("g1", habit_links=[HabitLink("h1", 50), HabitLink("h2", 50)]))
    patches = [
        GoalCompositionPatch("g1", [], [HabitLink("h2", 100)], 1),
        GoalCompositionPatch("ghost", [], [], 1),
    ]
    with pytest.raises(KeyError):
        registry.apply_patches(patches)
    assert len(registry.get_goal("g1").habit_links) == 2

    updated = registry.apply_patches(patches[:1])
    assert updated[0].habit_links == [HabitLink("h2", 100)]
    assert registry.goals_referencing(ItemType.HABIT, "h1") == []


def test_unreadable_records_are_skipped(tmp_path, isolated_logs):
    path = tmp_path / "registry.json"
    path.write_text(json.dumps({
        "goals": [
            {"owner_id": "u1", "title": "no id", "created_at": T0.isoformat()},
            {"id": "ok", "owner_id": "u1", "title": "fine", "created_at": T0.isoformat()},
        ],
        "habits": [
            {"id": "h1", "owner_id": "u1", "name": "gym", "created_at": T0.isoformat(), "frequency": "weekly"},
        ],
    }), encoding="utf-8")

    registry = CompositionRegistry(path=path)
    assert registry.get_goal("ok").title == "fine"
    assert registry.goals_for_owner("u1") == [registry.get_goal("ok")]
    assert registry.get_habit("h1") is None
    assert "goal[0]" in (isolated_logs / "corrupt.log").read_text(encoding="utf-8")
