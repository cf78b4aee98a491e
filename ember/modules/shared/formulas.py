"""
Ember Game Formulas

Purpose
-------
Pure calculation functions for progression mechanics: the leveling curve,
daily reward scaling, tool repair pricing, work taxes and the crafting
quality bonus.

Design Notes
------------
- Pure functions only (no side effects)
- No config access (all parameters passed in)
- Integer results always use floor, matching how balances are stored

Usage
-----
    from ember.modules.shared.formulas import LevelCurve, calculate_tax

    curve = LevelCurve(base_xp=100, growth_rate=1.5)
    curve.level_for_xp(450)
    calculate_tax(gross=100, rate=0.05, evaded=True, reduction=0.5)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Tuple

from ember.domain.models.base import validate_positive


# ============================================================================
# LEVELING
# ============================================================================


@dataclass(frozen=True)
class LevelCurve:
    """
    Cumulative polynomial XP curve.

    Reaching level ``n + 1`` from level ``n`` costs
    ``floor(base_xp * n ** growth_rate)`` XP; the costs accumulate.

    Example:
        >>> curve = LevelCurve(base_xp=100, growth_rate=1.5)
        >>> curve.xp_for_next(1), curve.xp_for_next(2)
        (100, 282)
        >>> curve.total_xp_for_level(3)
        382
        >>> curve.level_for_xp(381), curve.level_for_xp(382)
        (2, 3)
    """

    base_xp: int = 100
    growth_rate: float = 1.5
    max_level: int = 200

    def __post_init__(self) -> None:
        validate_positive(self.base_xp, "base_xp")
        validate_positive(self.growth_rate, "growth_rate")
        validate_positive(self.max_level, "max_level")

    def xp_for_next(self, level: int) -> int:
        """XP needed to advance from `level` to `level + 1`."""
        return math.floor(self.base_xp * math.pow(level, self.growth_rate))

    def total_xp_for_level(self, target_level: int) -> int:
        """Cumulative XP required to stand at `target_level`."""
        if target_level <= 1:
            return 0
        return sum(self.xp_for_next(lvl) for lvl in range(1, target_level))

    def level_for_xp(self, xp: int) -> int:
        level = 1
        needed = 0
        while level < self.max_level:
            needed += self.xp_for_next(level)
            if xp < needed:
                break
            level += 1
        return level

    def progress(self, xp: int) -> Dict[str, float]:
        """
        Progress inside the current level.

        Returns:
            {"level", "current", "needed", "percentage"}
        """
        level = self.level_for_xp(xp)
        floor_xp = self.total_xp_for_level(level)
        needed = self.total_xp_for_level(level + 1) - floor_xp
        current = xp - floor_xp
        percentage = (current / needed * 100) if needed > 0 else 100.0
        return {
            "level": level,
            "current": current,
            "needed": needed,
            "percentage": round(min(100.0, max(0.0, percentage)), 2),
        }


# ============================================================================
# DAILY REWARD
# ============================================================================


def calculate_daily_reward(
    streak: int,
    level: int,
    base_amount: int = 150,
    streak_bonus_factor: int = 30,
    streak_multiplier_cap: float = 0.5,
    level_scaling_per_level: float = 0.02,
) -> int:
    """
    Coins granted for a daily claim before the lucky roll.

    ``floor((base + floor(30*log2(streak+1))) * (1 + min(streak/100, 0.5))
    * (1 + level*0.02))``

    Example:
        >>> calculate_daily_reward(streak=1, level=1)
        185
    """
    streak_bonus = math.floor(streak_bonus_factor * math.log2(streak + 1))
    streak_multiplier = 1 + min(streak / 100, streak_multiplier_cap)
    level_scaling = 1 + level * level_scaling_per_level
    return math.floor((base_amount + streak_bonus) * streak_multiplier * level_scaling)


# ============================================================================
# TOOLS
# ============================================================================


def calculate_repair_cost(
    base_cost: int, durability: int, max_durability: int, rarity_multiplier: float
) -> int:
    """
    Coin cost to restore a tool to full durability.

    Example:
        >>> calculate_repair_cost(120, durability=75, max_durability=150, rarity_multiplier=1.2)
        72
    """
    if max_durability <= 0:
        return 0
    missing_ratio = 1 - durability / max_durability
    return max(0, math.floor(base_cost * missing_ratio * rarity_multiplier))


# ============================================================================
# JOBS
# ============================================================================


def calculate_tax(
    gross: int, rate: float, evaded: bool = False, reduction: float = 0.0
) -> Tuple[int, int]:
    """
    Tax owed on a work payout.

    The raw tax is ``max(1, floor(gross * rate))``. A successful evasion
    subtracts ``floor(raw_tax * reduction)`` from it. The tax never exceeds
    the gross amount, so ``0 <= gross - tax <= gross``.

    Returns:
        (tax, saved)

    Example:
        >>> calculate_tax(100, 0.05, evaded=True, reduction=0.5)
        (3, 2)
    """
    if gross <= 0 or rate <= 0:
        return 0, 0
    raw_tax = min(gross, max(1, math.floor(gross * rate)))
    saved = math.floor(raw_tax * reduction) if evaded else 0
    saved = min(max(saved, 0), raw_tax)
    return raw_tax - saved, saved


# ============================================================================
# CRAFTING
# ============================================================================


def calculate_craft_success_rate(
    base_rate: float,
    average_quality: float,
    cap: float = 0.99,
    baseline: float = 70,
    divisor: float = 300,
) -> float:
    """
    Crafting success probability including the material quality bonus.

    ``min(base_rate + (average_quality - 70) / 300, cap)``, never below
    `base_rate`.

    Example:
        >>> calculate_craft_success_rate(0.9, 100)
        0.99
        >>> calculate_craft_success_rate(0.9, 70)
        0.9
    """
    bonus = (average_quality - baseline) / divisor
    rate = min(base_rate + max(bonus, 0.0), cap)
    return max(rate, min(base_rate, cap))
