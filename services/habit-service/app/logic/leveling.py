"""
Leveling policy for habit-service

Flat curve: every XP_PER_LEVEL experience points is one level, starting at 1.
"""
import math
from numbers import Real
from typing import Any, Dict

XP_PER_LEVEL = 100


def level_for_xp(total_xp: int) -> int:
    """
    Calculate level based on total XP

    Formula: level = 1 + (xp // XP_PER_LEVEL)

    Args:
        total_xp: Total XP

    Returns:
        Current level
    """
    if total_xp < 0:
        return 1

    return 1 + (total_xp // XP_PER_LEVEL)


def xp_for_level(level: int) -> int:
    """
    Calculate total XP required to reach a level

    Args:
        level: Target level

    Returns:
        Total XP required
    """
    if level <= 1:
        return 0

    return (level - 1) * XP_PER_LEVEL


def xp_to_next_level(total_xp: int) -> int:
    """XP still missing before the next level up"""
    return level_for_xp(total_xp) * XP_PER_LEVEL - max(total_xp, 0)


def xp_progress_in_level(total_xp: int) -> Dict[str, int]:
    """
    Calculate progress within current level

    Args:
        total_xp: Total XP

    Returns:
        Dict with currentLevel, xpInLevel, xpNeededForNext, xpPerLevel
    """
    current_level = level_for_xp(total_xp)
    xp_in_level = max(total_xp, 0) - xp_for_level(current_level)

    return {
        'currentLevel': current_level,
        'xpInLevel': xp_in_level,
        'xpNeededForNext': XP_PER_LEVEL - xp_in_level,
        'xpPerLevel': XP_PER_LEVEL,
    }


def normalize_xp_reward(value: Any, default: int) -> int:
    """
    XP a habit awards per completion.

    Missing or zero rewards fall back to default. Fractional rewards (older
    records accepted any number) round half up, with a floor of 1.

    Raises:
        ValueError: If the stored reward is not a non-negative number
    """
    if value is None or value == 0:
        return default
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValueError(f"xpReward must be a number, got {value!r}")
    if value < 0 or not math.isfinite(value):
        raise ValueError(f"xpReward must be a non-negative number, got {value!r}")

    return max(1, math.floor(value + 0.5))
