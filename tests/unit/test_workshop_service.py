"""
Unit tests for WorkshopService.

Covers tool grants, equipping, repair pricing and settlement, upgrades with
tier steps, and the ledger read models.
"""

import pytest

from ember.modules.shared.outcomes import FailureKind, FailureReason
from ember.modules.workshop.service import WorkshopService
from tests.conftest import make_tool, stock


@pytest.fixture
def workshop(catalog, clock):
    return WorkshopService(catalog, clock)


@pytest.mark.unit
class TestToolOwnership:
    """Test granting and equipping tools."""

    def test_grant_tool_at_full_durability(self, workshop, profile):
        outcome = workshop.grant_tool(profile, "reinforced_pickaxe")

        assert outcome.success
        assert outcome.data["tool"]["durability"] == 150
        assert outcome.data["equipped"] is False
        assert profile.crafting.equipped_tool_id is None

    def test_grant_and_equip(self, workshop, profile):
        workshop.grant_tool(profile, "basic_pickaxe", equip=True)

        assert profile.crafting.equipped_tool_id == "basic_pickaxe"

    def test_grant_unknown_tool(self, workshop, profile):
        outcome = workshop.grant_tool(profile, "laser_drill")

        assert outcome.reason == FailureReason.INVALID_TOOL
        assert profile.tools == []

    def test_grant_duplicate_tool(self, workshop, equipped_profile):
        outcome = workshop.grant_tool(equipped_profile, "basic_pickaxe")

        assert outcome.reason == FailureReason.TOOL_ALREADY_OWNED
        assert len(equipped_profile.tools) == 1

    def test_equip_reports_tool(self, catalog, workshop, profile):
        profile.add_tool(make_tool(catalog, "reinforced_pickaxe", durability=90))

        outcome = workshop.equip(profile, "reinforced_pickaxe")

        assert outcome.data == {"tool_id": "reinforced_pickaxe", "tier": 2, "durability": 90}

    def test_equip_not_owned(self, workshop, profile):
        assert workshop.equip(profile, "basic_pickaxe").reason == FailureReason.TOOL_NOT_OWNED

    def test_equip_broken(self, catalog, workshop, profile):
        # Arrange
        profile.add_tool(make_tool(catalog, "basic_pickaxe", durability=0))

        # Act
        outcome = workshop.equip(profile, "basic_pickaxe")

        # Assert
        assert outcome.reason == FailureReason.TOOL_BROKEN
        assert outcome.kind == FailureKind.CONFLICT
        assert profile.crafting.equipped_tool_id is None

    def test_unequip(self, workshop, equipped_profile):
        outcome = workshop.unequip(equipped_profile)

        assert outcome.data == {"tool_id": "basic_pickaxe"}
        assert equipped_profile.equipped_tool is None

    def test_unequip_with_nothing_equipped(self, workshop, profile):
        assert workshop.unequip(profile).reason == FailureReason.NO_TOOL_EQUIPPED


@pytest.mark.unit
class TestToolRepair:
    """Test repair quotes and settlement."""

    @pytest.fixture
    def damaged(self, catalog, profile):
        """Profile owning a half-worn reinforced pickaxe."""
        profile.add_tool(make_tool(catalog, "reinforced_pickaxe", durability=75))
        return profile

    def test_repair_cost_quote(self, workshop, damaged):
        outcome = workshop.repair_cost(damaged, "reinforced_pickaxe")

        assert outcome.data["cost"] == 72
        assert outcome.data["damaged"] is True
        assert outcome.data["materials"] == [{"material_id": "iron_ingot", "quantity": 2}]
        assert damaged.get_tool("reinforced_pickaxe").durability == 75

    def test_repair_charges_coins_and_materials(self, catalog, workshop, damaged):
        # Arrange
        damaged.credit(coins=72)
        stock(catalog, damaged, iron_ingot=2)

        # Act
        outcome = workshop.repair(damaged, "reinforced_pickaxe")

        # Assert
        assert outcome.success
        assert outcome.data["cost"] == 72
        assert outcome.data["restored"] == 75
        assert damaged.get_tool("reinforced_pickaxe").durability == 150
        assert damaged.coins == 0
        assert damaged.get_material("iron_ingot") is None

    def test_repair_without_materials_charges_nothing(self, workshop, damaged):
        # Arrange
        damaged.credit(coins=100)

        # Act
        outcome = workshop.repair(damaged, "reinforced_pickaxe")

        # Assert
        assert outcome.reason == FailureReason.MISSING_MATERIALS
        assert damaged.coins == 100
        assert damaged.get_tool("reinforced_pickaxe").durability == 75

    def test_repair_without_coins(self, catalog, workshop, damaged):
        stock(catalog, damaged, iron_ingot=2)

        outcome = workshop.repair(damaged, "reinforced_pickaxe")

        assert outcome.reason == FailureReason.NOT_ENOUGH_COINS
        assert damaged.material_quantity("iron_ingot") == 2

    def test_repair_full_tool(self, workshop, equipped_profile):
        outcome = workshop.repair(equipped_profile, "basic_pickaxe")

        assert outcome.reason == FailureReason.TOOL_NOT_DAMAGED
        assert outcome.kind == FailureKind.CONFLICT

    def test_repair_not_owned(self, workshop, profile):
        assert workshop.repair(profile, "basic_pickaxe").reason == FailureReason.TOOL_NOT_OWNED

    def test_broken_tool_pays_full_base(self, catalog, workshop, profile):
        profile.add_tool(make_tool(catalog, "basic_pickaxe", durability=0))

        assert workshop.repair_cost(profile, "basic_pickaxe").data["cost"] == 50


@pytest.mark.unit
class TestToolUpgrade:
    """Test upgrade pricing and tier steps."""

    def test_first_upgrade(self, workshop, equipped_profile):
        # Arrange
        equipped_profile.credit(coins=200)

        # Act
        outcome = workshop.upgrade(equipped_profile, "basic_pickaxe")

        # Assert
        assert outcome.data == {
            "tool_id": "basic_pickaxe",
            "cost": 200,
            "new_level": 1,
            "new_tier": 1,
            "tier_increased": False,
        }
        tool = equipped_profile.get_tool("basic_pickaxe")
        assert tool.max_durability == 120
        assert tool.bonus.quantity_multiplier == pytest.approx(1.07)
        assert equipped_profile.coins == 0

    def test_third_upgrade_raises_tier(self, workshop, equipped_profile):
        # Arrange
        equipped_profile.credit(coins=1200)

        # Act
        outcomes = [workshop.upgrade(equipped_profile, "basic_pickaxe") for _ in range(3)]

        # Assert
        assert [o.data["cost"] for o in outcomes] == [200, 400, 600]
        assert outcomes[-1].data["tier_increased"] is True
        assert equipped_profile.get_tool("basic_pickaxe").tier == 2

    def test_upgrade_without_funds(self, workshop, equipped_profile):
        outcome = workshop.upgrade(equipped_profile, "basic_pickaxe")

        assert outcome.reason == FailureReason.NOT_ENOUGH_COINS
        assert equipped_profile.get_tool("basic_pickaxe").upgrade_level == 0


@pytest.mark.unit
class TestLedgerReadModels:
    """Test material and inventory summaries."""

    def test_material_summary(self, catalog, workshop, equipped_profile):
        # Arrange
        stock(catalog, equipped_profile, stone=2, coal=4)

        # Act
        summary = workshop.material_summary(equipped_profile)

        # Assert
        assert [m["material_id"] for m in summary["materials"]] == ["coal", "stone"]
        assert summary["weight"] == 10
        assert summary["free_capacity"] == 490
        assert summary["equipped_tool_id"] == "basic_pickaxe"
        assert len(summary["tools"]) == 1

    def test_inventory_summary_empty(self, workshop, profile):
        assert workshop.inventory_summary(profile) == []
