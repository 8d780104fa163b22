"""
Weight normalization for goal compositions.

Composition weights must sum to exactly 100 once normalized. Caller-entered
weights live on a grid of WEIGHT_STEP (5); the equal split of an unallocated
set is the one case that leaves the grid (e.g. [34, 33, 33]).
"""
import math
from numbers import Real
from typing import List, Optional, Sequence

from goal_engine.config_manager import config
from goal_engine.exceptions import InvalidWeightError, NormalizationError

TOTAL_WEIGHT = 100


def _clamp(value: float) -> float:
    return max(0.0, min(float(TOTAL_WEIGHT), value))


def round_to_step(value: float, step: Optional[int] = None) -> int:
    """Round to the nearest multiple of ``step``; ties round up."""
    step = step or config.WEIGHT_STEP
    return int(math.floor(value / step + 0.5)) * step


def suggest_equal_weights(count: int) -> List[int]:
    """Equal split summing to 100, remainder to the earliest items."""
    if count <= 0:
        return []
    base = TOTAL_WEIGHT // count
    remainder = TOTAL_WEIGHT - base * count
    return [base + 1 if i < remainder else base for i in range(count)]


def validate_weight(value, index: Optional[int] = None, step: Optional[int] = None) -> int:
    """
    Check a weight entered by a caller before any normalization.

    Returns:
        the weight as an int

    Raises:
        InvalidWeightError: not a number, outside [0,100] or off the step grid
    """
    step = step or config.WEIGHT_STEP
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidWeightError(value, step, index)
    if value != int(value):
        raise InvalidWeightError(value, step, index)
    weight = int(value)
    if weight < 0 or weight > TOTAL_WEIGHT or weight % step != 0:
        raise InvalidWeightError(value, step, index)
    return weight


def normalize_weights(weights: Sequence[float], step: Optional[int] = None) -> List[int]:
    """
    Redistribute ``weights`` so they sum to 100, preserving order and length.

    - empty input -> []
    - already summing to 100 -> unchanged (idempotent)
    - all zero -> equal split
    - otherwise scale by 100/sum, snap to the step grid, then walk the items
      round-robin adding or removing one step until the sum is exact

    Raises:
        NormalizationError: the round-robin walk exceeded 2 x count steps
    """
    step = step or config.WEIGHT_STEP
    count = len(weights)
    if count == 0:
        return []

    clamped = [_clamp(w) for w in weights]
    total = sum(clamped)

    if total == TOTAL_WEIGHT and all(w == int(w) for w in clamped):
        return [int(w) for w in clamped]

    if total == 0:
        return suggest_equal_weights(count)

    ratio = TOTAL_WEIGHT / total
    scaled = [int(_clamp(round_to_step(w * ratio, step))) for w in clamped]
    diff = TOTAL_WEIGHT - sum(scaled)

    max_steps = 2 * count
    i = 0
    while diff != 0 and i < max_steps:
        idx = i % count
        if diff > 0 and scaled[idx] < TOTAL_WEIGHT:
            scaled[idx] += step
            diff -= step
        elif diff < 0 and scaled[idx] > 0:
            scaled[idx] -= step
            diff += step
        i += 1

    if diff != 0:
        raise NormalizationError(
            f"weights {list(weights)} did not converge after {max_steps} steps (residual {diff})"
        )

    return [int(_clamp(w)) for w in scaled]
