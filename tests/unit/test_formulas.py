"""
Unit tests for the pure game formulas and the random source.

Tests the leveling curve, daily reward scaling, repair pricing, work taxes,
crafting success rates and the integer/shuffle helpers on RandomSource.
"""

import pytest

from ember.core.randomness import RandomSource
from ember.modules.shared.formulas import (
    LevelCurve,
    calculate_craft_success_rate,
    calculate_daily_reward,
    calculate_repair_cost,
    calculate_tax,
)
from tests.conftest import ScriptedRandom


@pytest.mark.unit
class TestLevelCurve:
    """Test the cumulative polynomial XP curve."""

    def test_step_costs(self):
        curve = LevelCurve(base_xp=100, growth_rate=1.5)

        assert curve.xp_for_next(1) == 100
        assert curve.xp_for_next(2) == 282

    def test_cumulative_thresholds(self):
        curve = LevelCurve()

        assert curve.total_xp_for_level(1) == 0
        assert curve.total_xp_for_level(3) == 382

    @pytest.mark.parametrize(
        "xp, level",
        [(0, 1), (99, 1), (100, 2), (381, 2), (382, 3)],
    )
    def test_level_for_xp(self, xp, level):
        assert LevelCurve().level_for_xp(xp) == level

    def test_level_capped_at_max(self):
        curve = LevelCurve(max_level=5)

        assert curve.level_for_xp(10**9) == 5

    def test_step_costs_increase(self):
        """XP requirement should increase with each level."""
        curve = LevelCurve()

        assert curve.xp_for_next(5) < curve.xp_for_next(10) < curve.xp_for_next(20)

    def test_progress_inside_level(self):
        progress = LevelCurve().progress(241)

        assert progress["level"] == 2
        assert progress["current"] == 141
        assert progress["needed"] == 282
        assert progress["percentage"] == pytest.approx(50.0)


@pytest.mark.unit
class TestDailyReward:
    """Test daily reward scaling."""

    def test_first_claim_at_level_one(self):
        # (150 + 30) * 1.01 * 1.02 = 185.436
        assert calculate_daily_reward(streak=1, level=1) == 185

    def test_streak_multiplier_is_capped(self):
        """Past 50 days the streak multiplier stops growing."""
        at_cap = calculate_daily_reward(streak=50, level=1)
        past_cap = calculate_daily_reward(streak=51, level=1)

        # Only the logarithmic bonus moves between the two
        assert past_cap - at_cap < 5

    def test_higher_level_pays_more(self):
        assert calculate_daily_reward(3, 20) > calculate_daily_reward(3, 1)


@pytest.mark.unit
class TestRepairCost:
    """Test tool repair pricing."""

    def test_half_durability_uncommon(self):
        assert calculate_repair_cost(120, 75, 150, 1.2) == 72

    def test_full_durability_is_free(self):
        assert calculate_repair_cost(120, 150, 150, 1.2) == 0

    def test_broken_tool_pays_full_base(self):
        assert calculate_repair_cost(50, 0, 100, 1.0) == 50


@pytest.mark.unit
class TestTax:
    """Test work taxes and evasion."""

    def test_evasion_refunds_part_of_tax(self):
        assert calculate_tax(100, 0.05, evaded=True, reduction=0.5) == (3, 2)

    def test_no_evasion(self):
        assert calculate_tax(100, 0.05) == (5, 0)

    def test_minimum_tax_is_one(self):
        """A positive rate always costs at least one coin."""
        assert calculate_tax(10, 0.01) == (1, 0)

    def test_tax_never_exceeds_gross(self):
        assert calculate_tax(1, 0.5) == (1, 0)

    @pytest.mark.parametrize("gross, rate", [(0, 0.05), (-5, 0.05), (100, 0.0)])
    def test_nothing_to_tax(self, gross, rate):
        assert calculate_tax(gross, rate) == (0, 0)

    def test_net_stays_within_bounds(self):
        for gross in range(1, 300, 7):
            for rate in (0.01, 0.03, 0.05, 0.5):
                for evaded in (False, True):
                    tax, saved = calculate_tax(gross, rate, evaded=evaded, reduction=0.9)
                    assert 0 <= gross - tax <= gross
                    assert saved >= 0


@pytest.mark.unit
class TestCraftSuccessRate:
    """Test the quality bonus on crafting."""

    def test_high_quality_hits_cap(self):
        assert calculate_craft_success_rate(0.9, 100) == pytest.approx(0.99)

    def test_baseline_quality_keeps_base(self):
        assert calculate_craft_success_rate(0.9, 70) == pytest.approx(0.9)

    def test_low_quality_never_lowers_rate(self):
        assert calculate_craft_success_rate(0.5, 10) == pytest.approx(0.5)

    def test_partial_bonus(self):
        assert calculate_craft_success_rate(0.5, 100) == pytest.approx(0.6)

    def test_base_above_cap_is_clamped(self):
        assert calculate_craft_success_rate(1.0, 70) == pytest.approx(0.99)


@pytest.mark.unit
class TestRandomSource:
    """Test the helpers layered on uniform draws."""

    def test_same_seed_same_sequence(self):
        a = RandomSource(seed=42)
        b = RandomSource(seed=42)

        assert [a.random() for _ in range(5)] == [b.random() for _ in range(5)]

    def test_randint_maps_unit_interval(self):
        rng = ScriptedRandom([0.0, 0.5, 0.999999])

        assert [rng.randint(1, 4) for _ in range(3)] == [1, 3, 4]

    def test_randint_reversed_range(self):
        rng = ScriptedRandom([0.0])

        assert rng.randint(10, 5) == 5

    def test_chance_zero_draws_nothing(self):
        rng = ScriptedRandom([0.0])

        assert rng.chance(0) is False
        assert rng.calls == 0

    def test_chance_compares_strictly(self):
        rng = ScriptedRandom([0.25, 0.3])

        assert rng.chance(0.3) is True
        assert rng.chance(0.3) is False

    def test_choice_empty_sequence(self):
        with pytest.raises(IndexError):
            RandomSource().choice([])

    def test_shuffle_is_fisher_yates(self):
        """Each step swaps position i with randint(0, i)."""
        # i=3 -> j=0, i=2 -> j=2, i=1 -> j=0
        rng = ScriptedRandom([0.0, 0.99, 0.0])

        assert rng.shuffled(["a", "b", "c", "d"]) == ["b", "d", "c", "a"]

    def test_shuffled_leaves_input_untouched(self):
        items = [1, 2, 3]

        RandomSource(seed=1).shuffled(items)

        assert items == [1, 2, 3]
