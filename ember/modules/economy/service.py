"""
Economy Service

Purpose
-------
Player-level currency rewards that are not tied to a job: the daily reward
with its streak, and the bonus paid on every level gained.

Domain
------
Daily reward (once per UTC calendar day):
- The streak continues when the previous claim was yesterday, else resets
  to 1
- ``floor((150 + floor(30*log2(streak+1))) * (1 + min(streak/100, 0.5))
  * (1 + level*0.02))`` coins
- A 10% lucky roll adds half of that again
- Streak milestones (3, 7, 14, 30, 60 days) pay extra currency

Level-up bonus (per level reached):
- ``level * 10`` coins
- ``level // 10`` tokens on multiples of 10
- Milestone bonuses at levels 5, 10, 25, 50 and 100
"""

from __future__ import annotations

import math
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING, Any, Dict, Optional

from ember.core.clock import ensure_utc
from ember.modules.shared.base_service import BaseService
from ember.modules.shared.formulas import calculate_daily_reward
from ember.modules.shared.outcomes import FailureReason, Outcome

if TYPE_CHECKING:
    from logging import Logger

    from ember.core.clock import Clock
    from ember.core.randomness import RandomSource
    from ember.domain.models.profile import PlayerProfile
    from ember.modules.catalog.catalog import GameCatalog


def _next_utc_midnight(now: datetime) -> datetime:
    return datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=now.tzinfo)


class EconomyService(BaseService):
    """
    Daily reward and level-up bonus engine.

    Public Methods
    --------------
    - claim_daily_reward() -> Pay the daily reward, advance the streak
    - daily_reward_status() -> Estimate without mutating
    - apply_level_up_bonus() -> Pay the bonus for one level reached
    """

    def __init__(
        self,
        catalog: GameCatalog,
        random_source: RandomSource,
        clock: Clock,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(catalog, logger=logger)
        self.random = random_source
        self.clock = clock

    def _base_amount(self, streak: int, level: int) -> int:
        rules = self.catalog.rules.daily_reward
        return calculate_daily_reward(
            streak,
            level,
            base_amount=rules.base_amount,
            streak_bonus_factor=rules.streak_bonus_factor,
            streak_multiplier_cap=rules.streak_multiplier_cap,
            level_scaling_per_level=rules.level_scaling_per_level,
        )

    # ========================================================================
    # DAILY REWARD
    # ========================================================================

    def claim_daily_reward(self, profile: PlayerProfile) -> Outcome:
        now = ensure_utc(self.clock.now())
        activity = profile.activity
        last_claim = ensure_utc(activity.last_daily_reward_at)

        if last_claim is not None and last_claim.date() == now.date():
            outcome = Outcome.cooldown(
                FailureReason.DAILY_ALREADY_CLAIMED,
                _next_utc_midnight(now) - now,
                streak_days=activity.streak_days,
            )
            self.log_rejection("claim_daily_reward", outcome, profile)
            return outcome

        continues = last_claim is not None and last_claim.date() == now.date() - timedelta(days=1)
        streak = activity.streak_days + 1 if continues else 1

        rules = self.catalog.rules.daily_reward
        amount = self._base_amount(streak, profile.level)
        lucky_bonus = 0
        if self.random.chance(rules.lucky_chance):
            lucky_bonus = math.floor(amount * rules.lucky_bonus_ratio)
        total = amount + lucky_bonus

        milestone = rules.streak_milestones.get(streak)
        profile.credit(coins=total)
        if milestone is not None:
            profile.credit(coins=milestone.coins, tokens=milestone.tokens)

        activity.streak_days = streak
        activity.last_daily_reward_at = now

        self.log_operation(
            "claim_daily_reward", profile,
            amount=total, streak_days=streak, lucky=lucky_bonus > 0,
        )
        return Outcome.ok(
            base_amount=amount,
            lucky_bonus=lucky_bonus,
            total_amount=total,
            streak_days=streak,
            milestone=(
                {"coins": milestone.coins, "tokens": milestone.tokens} if milestone else None
            ),
            balance=profile.coins,
        )

    def daily_reward_status(self, profile: PlayerProfile) -> Dict[str, Any]:
        now = ensure_utc(self.clock.now())
        activity = profile.activity
        last_claim = ensure_utc(activity.last_daily_reward_at)
        can_claim = last_claim is None or last_claim.date() != now.date()

        if can_claim:
            continues = last_claim is not None and last_claim.date() == now.date() - timedelta(days=1)
            next_streak = activity.streak_days + 1 if continues else 1
        else:
            next_streak = activity.streak_days

        return {
            "can_claim": can_claim,
            "last_claimed": last_claim,
            "streak_days": activity.streak_days,
            "next_available": now if can_claim else _next_utc_midnight(now),
            "estimated_reward": self._base_amount(next_streak, profile.level),
        }

    # ========================================================================
    # LEVEL-UP BONUS
    # ========================================================================

    def apply_level_up_bonus(self, profile: PlayerProfile, new_level: int) -> Outcome:
        if new_level <= 1:
            return self.fail(
                "level_up_bonus", FailureReason.INVALID_AMOUNT, profile, new_level=new_level
            )

        rules = self.catalog.rules.level_up_bonus
        coins = new_level * rules.coins_per_level
        tokens = new_level // rules.tokens_divisor if new_level % rules.tokens_divisor == 0 else 0

        milestone = rules.milestones.get(new_level)
        if milestone is not None:
            coins += milestone.coins
            tokens += milestone.tokens

        profile.credit(coins=coins, tokens=tokens)
        self.log_operation(
            "level_up_bonus", profile, new_level=new_level, coins=coins, tokens=tokens
        )
        return Outcome.ok(
            new_level=new_level,
            coins=coins,
            tokens=tokens,
            milestone=milestone is not None,
        )
