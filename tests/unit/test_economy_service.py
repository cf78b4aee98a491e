"""
Unit tests for EconomyService.

Tests the daily reward (streak continuation and reset, lucky bonus, streak
milestones, same-day cooldown) and the level-up bonus table.
"""

from datetime import timedelta

import pytest

from ember.modules.economy.service import EconomyService
from ember.modules.shared.outcomes import FailureKind, FailureReason
from tests.conftest import START


@pytest.fixture
def economy(catalog, rng, clock):
    return EconomyService(catalog, rng, clock)


@pytest.mark.unit
class TestDailyReward:
    """Test the daily claim."""

    def test_first_claim(self, economy, profile):
        outcome = economy.claim_daily_reward(profile)

        assert outcome.data == {
            "base_amount": 185,
            "lucky_bonus": 0,
            "total_amount": 185,
            "streak_days": 1,
            "milestone": None,
            "balance": 185,
        }
        assert profile.activity.last_daily_reward_at == START

    def test_lucky_claim_adds_half(self, economy, rng, profile):
        rng.push(0.05)

        outcome = economy.claim_daily_reward(profile)

        assert outcome.data["lucky_bonus"] == 92
        assert profile.coins == 277

    def test_same_day_claim_waits_for_midnight(self, economy, clock, profile):
        # Arrange
        economy.claim_daily_reward(profile)
        clock.advance(hours=3)

        # Act
        outcome = economy.claim_daily_reward(profile)

        # Assert
        assert outcome.reason == FailureReason.DAILY_ALREADY_CLAIMED
        assert outcome.kind == FailureKind.COOLDOWN
        assert outcome.remaining == timedelta(hours=9)
        assert profile.coins == 185

    def test_next_day_continues_streak(self, economy, clock, profile):
        # Arrange
        economy.claim_daily_reward(profile)
        clock.advance(hours=13)

        # Act
        outcome = economy.claim_daily_reward(profile)

        # Assert
        assert outcome.data["streak_days"] == 2
        assert outcome.data["base_amount"] == 204

    def test_missed_day_resets_streak(self, economy, clock, profile):
        economy.claim_daily_reward(profile)
        clock.advance(days=2)

        outcome = economy.claim_daily_reward(profile)

        assert outcome.data["streak_days"] == 1

    def test_streak_milestone_pays_extra(self, economy, clock, profile):
        # Arrange
        profile.activity.streak_days = 2
        profile.activity.last_daily_reward_at = START - timedelta(days=1)

        # Act
        outcome = economy.claim_daily_reward(profile)

        # Assert
        assert outcome.data["streak_days"] == 3
        assert outcome.data["milestone"] == {"coins": 100, "tokens": 0}
        assert profile.coins == outcome.data["total_amount"] + 100

    def test_week_milestone_pays_tokens(self, economy, profile):
        profile.activity.streak_days = 6
        profile.activity.last_daily_reward_at = START - timedelta(days=1)

        economy.claim_daily_reward(profile)

        assert profile.tokens == 20

    def test_status_before_claim(self, economy, profile):
        status = economy.daily_reward_status(profile)

        assert status["can_claim"] is True
        assert status["estimated_reward"] == 185

    def test_status_after_claim(self, economy, profile):
        economy.claim_daily_reward(profile)

        status = economy.daily_reward_status(profile)

        assert status["can_claim"] is False
        assert status["next_available"] == START.replace(hour=0) + timedelta(days=1)


@pytest.mark.unit
class TestLevelUpBonus:
    """Test the per-level bonus table."""

    @pytest.mark.parametrize(
        "level, coins, tokens",
        [
            (2, 20, 0),
            (5, 100, 1),
            (10, 200, 3),
            (20, 200, 2),
        ],
    )
    def test_bonus_table(self, economy, profile, level, coins, tokens):
        outcome = economy.apply_level_up_bonus(profile, level)

        assert outcome.data["coins"] == coins
        assert outcome.data["tokens"] == tokens
        assert profile.coins == coins
        assert profile.tokens == tokens

    def test_milestone_flag(self, economy, profile):
        assert economy.apply_level_up_bonus(profile, 5).data["milestone"] is True
        assert economy.apply_level_up_bonus(profile, 6).data["milestone"] is False

    @pytest.mark.parametrize("level", [1, 0, -3])
    def test_rejects_starting_level(self, economy, profile, level):
        outcome = economy.apply_level_up_bonus(profile, level)

        assert outcome.reason == FailureReason.INVALID_AMOUNT
        assert profile.coins == 0
