"""
Unit tests for CraftingService.

Tests validation order, the success roll and its quality bonus, settlement
of costs on both roll outcomes, result kinds and capacity upgrades.
"""

import pytest

from ember.domain.models.ledger import ItemKind
from ember.modules.crafting.service import CraftingService
from ember.modules.rewards.application import RewardApplier
from ember.modules.shared.outcomes import FailureKind, FailureReason
from tests.conftest import stock


@pytest.fixture
def crafting(catalog, rng, clock):
    return CraftingService(catalog, rng, RewardApplier(catalog, rng, clock))


@pytest.fixture
def refiner(catalog, profile):
    """Profile holding exactly one iron ingot recipe worth of inputs."""
    profile.credit(coins=5)
    stock(catalog, profile, iron_ore=20, coal=15)
    return profile


@pytest.mark.unit
class TestCraftValidation:
    """Checks run in order and never mutate on failure."""

    def test_unknown_blueprint(self, crafting, profile):
        outcome = crafting.craft(profile, "perpetual_motion")

        assert outcome.reason == FailureReason.INVALID_BLUEPRINT

    def test_level_required(self, crafting, profile):
        outcome = crafting.craft(profile, "basic_craft_box")

        assert outcome.reason == FailureReason.LEVEL_REQUIRED
        assert outcome.data == {"required_level": 2, "level": 1}

    def test_not_enough_coins(self, catalog, crafting, profile):
        stock(catalog, profile, iron_ore=20, coal=15)

        outcome = crafting.craft(profile, "refine_iron_ingot")

        assert outcome.reason == FailureReason.NOT_ENOUGH_COINS

    def test_not_enough_tokens(self, crafting, profile):
        # Arrange
        profile.level = 6
        profile.credit(coins=100)

        # Act
        outcome = crafting.craft(profile, "rare_craft_box")

        # Assert
        assert outcome.reason == FailureReason.NOT_ENOUGH_TOKENS

    def test_missing_materials_lists_shortfall(self, catalog, crafting, profile):
        # Arrange
        profile.credit(coins=5)
        stock(catalog, profile, iron_ore=20, coal=3)

        # Act
        outcome = crafting.craft(profile, "refine_iron_ingot")

        # Assert
        assert outcome.reason == FailureReason.MISSING_MATERIALS
        assert outcome.data["missing"] == [{"material_id": "coal", "required": 15, "current": 3}]
        assert profile.coins == 5
        assert profile.material_quantity("iron_ore") == 20

    def test_inventory_full(self, crafting, refiner):
        # Arrange
        refiner.crafting.inventory_capacity = 1

        # Act
        outcome = crafting.craft(refiner, "refine_iron_ingot")

        # Assert
        assert outcome.reason == FailureReason.INVENTORY_FULL
        assert outcome.kind == FailureKind.CAPACITY
        assert refiner.coins == 5

    def test_can_craft_does_not_mutate(self, crafting, rng, refiner):
        outcome = crafting.can_craft(refiner, "refine_iron_ingot")

        assert outcome.success
        assert outcome.data["success_rate"] == pytest.approx(0.95)
        assert refiner.coins == 5
        assert rng.calls == 0


@pytest.mark.unit
class TestCraftRoll:
    """Test settlement of a valid craft."""

    def test_successful_craft(self, crafting, rng, refiner):
        # Arrange
        rng.push(0.5)

        # Act
        outcome = crafting.craft(refiner, "refine_iron_ingot")

        # Assert
        assert outcome.success
        assert outcome.data["crafted"] is True
        assert outcome.data["cost"] == {"coins": 5, "tokens": 0}
        assert outcome.data["reward"] == {"type": "material", "item_id": "iron_ingot", "quantity": 1}
        assert refiner.coins == 0
        assert refiner.get_material("iron_ore") is None
        assert refiner.get_material("coal") is None
        assert refiner.material_quantity("iron_ingot") == 1
        assert refiner.get_material("iron_ingot").origin == "crafting"
        assert refiner.crafting.stats.crafted_items == 1

    def test_failed_roll_still_pays(self, crafting, rng, refiner):
        """A failed roll is an applied action: inputs are spent, nothing made."""
        # Arrange
        rng.push(0.99)

        # Act
        outcome = crafting.craft(refiner, "refine_iron_ingot")

        # Assert
        assert outcome.success
        assert outcome.data["crafted"] is False
        assert "reward" not in outcome.data
        assert refiner.coins == 0
        assert refiner.material_quantity("iron_ore") == 0
        assert refiner.material_quantity("iron_ingot") == 0
        assert refiner.crafting.stats.failed_crafts == 1

    def test_exact_coins_spent_on_failed_roll(self, catalog, crafting, rng, profile):
        """25-coin recipe, exactly 25 coins, base quality: the miss still costs."""
        # Arrange
        profile.level = 2
        profile.credit(coins=25)
        stock(catalog, profile, quality=70, iron_ingot=4, coal=2)
        rng.push(0.95)

        # Act
        outcome = crafting.craft(profile, "basic_craft_box")

        # Assert
        assert outcome.success
        assert outcome.data["success_rate"] == pytest.approx(0.9)
        assert outcome.data["crafted"] is False
        assert profile.coins == 0
        assert profile.material_quantity("iron_ingot") == 0
        assert profile.material_quantity("coal") == 0
        assert profile.item_quantity(ItemKind.LOOTBOX, "common") == 0

    def test_quality_raises_success_rate(self, catalog, crafting, rng, profile):
        # Arrange
        profile.credit(coins=5)
        stock(catalog, profile, quality=100, iron_ore=20, coal=15)
        rng.push(0.98)

        # Act
        outcome = crafting.craft(profile, "refine_iron_ingot")

        # Assert
        assert outcome.data["success_rate"] == pytest.approx(0.99)
        assert outcome.data["crafted"] is True

    def test_success_rate_never_exceeds_cap(self, catalog, crafting, profile):
        """Even a guaranteed recipe leaves a sliver of failure."""
        profile.level = 3
        stock(catalog, profile, iron_ingot=3)

        outcome = crafting.can_craft(profile, "coin_bundle_small")

        assert outcome.data["success_rate"] == pytest.approx(0.99)

    def test_coin_result_paid_as_virtual_material(self, catalog, crafting, rng, profile):
        # Arrange
        profile.level = 3
        stock(catalog, profile, iron_ingot=3)
        rng.push(0.5)

        # Act
        outcome = crafting.craft(profile, "coin_bundle_small")

        # Assert
        assert outcome.data["reward"] == {
            "type": "coins",
            "item_id": "coin_bundle_virtual",
            "quantity": 350,
        }
        assert profile.material_quantity("coin_bundle_virtual") == 350
        assert profile.coins == 0

    def test_lootbox_result_goes_to_inventory(self, catalog, crafting, rng, profile):
        # Arrange
        profile.level = 2
        profile.credit(coins=25)
        stock(catalog, profile, iron_ingot=4, coal=2)
        rng.push(0.1)

        # Act
        outcome = crafting.craft(profile, "basic_craft_box")

        # Assert
        assert outcome.data["reward"]["type"] == "lootbox"
        assert profile.item_quantity(ItemKind.LOOTBOX, "common") == 1


@pytest.mark.unit
class TestCraftingSupplements:
    """Test blueprint listing and capacity upgrades."""

    def test_available_blueprints_by_level(self, crafting, refiner):
        listing = crafting.available_blueprints(refiner)

        assert [bp["blueprint_id"] for bp in listing] == ["refine_iron_ingot"]
        assert listing[0]["craftable"] is True

    def test_upgrade_capacity(self, crafting, profile):
        profile.credit(coins=300)

        outcome = crafting.upgrade_capacity(profile, 50, 300)

        assert outcome.data == {"capacity": 550, "cost": 300}
        assert profile.coins == 0

    def test_upgrade_capacity_without_funds(self, crafting, profile):
        outcome = crafting.upgrade_capacity(profile, 50, 300)

        assert outcome.reason == FailureReason.NOT_ENOUGH_COINS
        assert profile.crafting.inventory_capacity == 500

    def test_upgrade_capacity_rejects_non_positive_amount(self, crafting, profile):
        outcome = crafting.upgrade_capacity(profile, 0, 10)

        assert outcome.reason == FailureReason.INVALID_AMOUNT
