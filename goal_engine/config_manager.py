"""
Configuration for the goal engine.

Every policy value the engine consumes is declared here with its default and
can be overridden from config/runtime.yaml.

Usage:
    from goal_engine.config_manager import config
    limits = config.tier_limits("premium")
"""
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional

import yaml


CONFIG_DIR = Path(__file__).parent.parent / "config"
RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"


@dataclass(frozen=True)
class TierLimits:
    """Per-account-tier numbers consumed by the engine."""
    tier: str
    max_composition_items: int
    goal_cooldown: timedelta
    habit_initial_cooldown: timedelta
    habit_recurring_cooldown: timedelta


def _default_tiers() -> Dict[str, Dict[str, float]]:
    return {
        "free": {
            "max_composition_items": 1,
            "goal_cooldown_hours": 24,
            "habit_initial_cooldown_hours": 0,
            "habit_recurring_cooldown_hours": 12,
        },
        "premium": {
            "max_composition_items": 10,
            "goal_cooldown_hours": 24,
            "habit_initial_cooldown_hours": 0,
            "habit_recurring_cooldown_hours": 12,
        },
    }


@dataclass
class EngineConfig:
    """
    Engine policy values.

    Defaults mirror the product's free/premium split; adjust per deployment.
    """

    # === Weights ===

    # Granularity of caller-entered weights and of the normalizer's rounding.
    WEIGHT_STEP: int = 5

    # === Linking ===

    # A completed goal linked as a sub-goal contributes a fixed 100%.
    # Set to False to reject such links instead.
    ALLOW_LINKING_COMPLETED_GOALS: bool = True

    # === Tiers ===

    # Tier used when the resolver has no answer for an owner.
    DEFAULT_TIER: str = "free"

    # Composition cap and cooldowns per tier.
    # Cooldowns are in hours:
    #   goal_cooldown_hours: from creation (or re-opening) to first allowed completion
    #   habit_initial_cooldown_hours: from habit creation to its first completion
    #   habit_recurring_cooldown_hours: between two completions of the same habit
    TIER_LIMITS: Dict[str, Dict[str, float]] = field(default_factory=_default_tiers)

    # === Streaks ===

    # Streak lengths reported as milestones when reached.
    STREAK_MILESTONES: List[int] = field(default_factory=lambda: [1, 7, 30, 100])

    def tier_limits(self, tier: Optional[str] = None) -> TierLimits:
        name = tier if tier in self.TIER_LIMITS else self.DEFAULT_TIER
        raw = self.TIER_LIMITS[name]
        return TierLimits(
            tier=name,
            max_composition_items=int(raw["max_composition_items"]),
            goal_cooldown=timedelta(hours=float(raw["goal_cooldown_hours"])),
            habit_initial_cooldown=timedelta(hours=float(raw.get("habit_initial_cooldown_hours", 0))),
            habit_recurring_cooldown=timedelta(hours=float(raw.get("habit_recurring_cooldown_hours", 0))),
        )


def _load_runtime_config(path: Path) -> dict:
    """Load runtime overrides if the file exists."""
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError):
        return {}


def get_config(path: Optional[Path] = None) -> EngineConfig:
    """
    Build an engine config.

    Priority: runtime.yaml > defaults. Tier tables are merged per tier so an
    override file only needs the values it changes.
    """
    base = EngineConfig()
    overrides = _load_runtime_config(path or RUNTIME_CONFIG_PATH)

    for key, value in overrides.items():
        if not hasattr(base, key):
            continue
        if key == "TIER_LIMITS" and isinstance(value, dict):
            for tier, limits in value.items():
                merged = dict(base.TIER_LIMITS.get(tier, {}))
                merged.update(limits or {})
                base.TIER_LIMITS[tier] = merged
            continue
        setattr(base, key, value)

    return base


config = get_config()
