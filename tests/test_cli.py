from datetime import datetime, timezone

import pytest
from click.testing import CliRunner

from cli.goal_cmd import goals
from goal_engine.models import Goal, Habit, HabitLink, InlineSubGoal
from goal_engine.registry import CompositionRegistry

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def registry_path(tmp_path):
    path = tmp_path / "registry.json"
    registry = CompositionRegistry(path=path)
    registry.put_habit(Habit(id="h1", owner_id="u1", name="swim", created_at=T0))
    registry.put_goal(Goal(
        id="g1",
        owner_id="u1",
        title="triathlon",
        created_at=T0,
        sub_goals=[InlineSubGoal("bike", 50, completed=True)],
        habit_links=[HabitLink("h1", 30), HabitLink("h2", 20)],
    ))
    registry.put_goal(Goal(
        id="fresh",
        owner_id="u1",
        title="just added",
        created_at=datetime.now(timezone.utc),
    ))
    return path


def _run(registry_path, *args, input=None):
    return CliRunner().invoke(goals, ["--registry", str(registry_path), *args], input=input)


def test_normalize_prints_weights(registry_path):
    result = _run(registry_path, "normalize", "10", "10", "10")
    assert result.exit_code == 0
    assert "30 35 35" in result.output


def test_progress_breakdown(registry_path):
    result = _run(registry_path, "progress", "g1")
    assert result.exit_code == 0
    assert "[inline] bike" in result.output
    assert "[habit] h1" in result.output


def test_progress_unknown_goal_fails(registry_path):
    result = _run(registry_path, "progress", "nope")
    assert result.exit_code == 1
    assert "Unknown goal" in result.output


def test_dependents_lists_referencing_goals(registry_path):
    result = _run(registry_path, "dependents", "habit", "h1")
    assert result.exit_code == 0
    assert "g1: triathlon" in result.output

    result = _run(registry_path, "dependents", "goal", "g1")
    assert "No goals depend on it" in result.output


def test_remove_redistributes_and_persists(registry_path):
    result = _run(registry_path, "remove", "habit", "h1", "--yes")
    assert result.exit_code == 0
    assert "g1: weights [70, 30]" in result.output

    registry = CompositionRegistry(path=registry_path)
    assert registry.get_habit("h1") is None
    goal = registry.get_goal("g1")
    assert [h.habit_id for h in goal.habit_links] == ["h2"]


def test_remove_can_be_cancelled(registry_path):
    result = _run(registry_path, "remove", "habit", "h1", input="n\n")
    assert "Cancelled" in result.output
    assert CompositionRegistry(path=registry_path).get_habit("h1") is not None


def test_lock_reports_state(registry_path):
    result = _run(registry_path, "lock", "fresh")
    assert result.exit_code == 0
    assert "fresh: locked" in result.output
    assert "time left" in result.output

    result = _run(registry_path, "lock", "g1")
    assert "g1: unlockable" in result.output

    result = _run(registry_path, "lock", "ghost")
    assert result.exit_code == 1
