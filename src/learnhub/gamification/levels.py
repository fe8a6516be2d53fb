"""Level and tier derivation from a cumulative point total.

Level 1 needs ``base`` points; level L (L >= 2) needs
``floor(base * scaling ** (L - 1) * 100) / 100`` additional points.
Everything here is a pure function of its inputs.
"""

from __future__ import annotations

import math

DEFAULT_BASE_POINTS = 10.0
DEFAULT_SCALING_FACTOR = 1.2

# Evaluated highest-first.
TIER_BY_MIN_LEVEL: list[tuple[int, str]] = [
    (50, "diamond"),
    (30, "platinum"),
    (20, "gold"),
    (10, "silver"),
    (1, "bronze"),
]

TIERS: tuple[str, ...] = ("bronze", "silver", "gold", "platinum", "diamond")


def level_requirement(
    level: int,
    base_points: float = DEFAULT_BASE_POINTS,
    scaling_factor: float = DEFAULT_SCALING_FACTOR,
) -> float:
    """Points needed to finish ``level`` and reach the next one."""
    if level <= 1:
        return base_points
    return math.floor(base_points * scaling_factor ** (level - 1) * 100) / 100


def tier_for_level(level: int) -> str:
    """Map a level to its tier."""
    for min_level, tier in TIER_BY_MIN_LEVEL:
        if level >= min_level:
            return tier
    return "bronze"


def derive_level_tier(
    total_points: float,
    base_points: float = DEFAULT_BASE_POINTS,
    scaling_factor: float = DEFAULT_SCALING_FACTOR,
) -> dict:
    """Compute level info from total points.

    Returns a dict with ``level``, ``points_to_next_level``, ``tier``,
    ``level_start_points`` (cumulative points where the level began) and
    ``next_level_points`` (cumulative points where the next one begins).
    """
    if base_points <= 0 or scaling_factor < 1:
        msg = "base_points must be positive and scaling_factor at least 1"
        raise ValueError(msg)
    total_points = max(total_points, 0.0)

    level = 1
    crossed = 0.0
    needed = level_requirement(1, base_points, scaling_factor)
    while crossed + needed <= total_points:
        crossed += needed
        level += 1
        needed = level_requirement(level, base_points, scaling_factor)

    return {
        "level": level,
        "points_to_next_level": round(crossed + needed - total_points, 2),
        "tier": tier_for_level(level),
        "level_start_points": round(crossed, 2),
        "next_level_points": round(crossed + needed, 2),
    }


def level_thresholds(
    max_level: int,
    base_points: float = DEFAULT_BASE_POINTS,
    scaling_factor: float = DEFAULT_SCALING_FACTOR,
) -> list[dict]:
    """Threshold table for levels 1..max_level."""
    rows = []
    cumulative = 0.0
    for level in range(1, max_level + 1):
        required = level_requirement(level, base_points, scaling_factor)
        rows.append({
            "level": level,
            "tier": tier_for_level(level),
            "points_required": required,
            "cumulative": round(cumulative, 2),
        })
        cumulative += required
    return rows
