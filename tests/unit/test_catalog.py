"""
Unit Tests for Configuration and the Game Catalog
=================================================

Purpose
-------
Test YAML loading through ConfigManager and construction of the
GameCatalog, including its cross-reference validation.

Test Coverage
-------------
- Deep merge of split YAML files, dotted lookups, required keys
- Malformed YAML and non-mapping files
- Catalog lookups and rule defaults from the shipped config
- Missing tables and dangling ids raise CatalogError

Testing Strategy
----------------
- Temporary config directories via pytest's tmp_path
- ConfigManager re-initialized with the shipped config after each test
- AAA pattern (Arrange, Act, Assert)
"""

import shutil
from datetime import timedelta

import pytest

from ember.core.config.config_manager import ConfigManager
from ember.core.exceptions import CatalogError, ConfigurationError
from ember.domain.models.missions import MissionScope
from ember.modules.catalog.loader import load_catalog, load_rules
from tests.conftest import CONFIG_DIR


@pytest.fixture
def config_dir(tmp_path):
    """
    Empty config directory loaded into ConfigManager.

    Scope: function (restores the shipped config on teardown)
    """
    yield tmp_path
    ConfigManager.initialize(CONFIG_DIR)


def write(directory, name, text):
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


# ============================================================================
# CONFIG MANAGER
# ============================================================================


@pytest.mark.unit
class TestConfigManager:
    """Test the YAML registry."""

    def test_split_files_are_deep_merged(self, config_dir):
        # Arrange
        write(config_dir, "a.yaml", "economy:\n  daily_reward:\n    base_amount: 150\n")
        write(config_dir, "b/more.yaml", "economy:\n  daily_reward:\n    lucky_chance: 0.2\n")

        # Act
        ConfigManager.initialize(config_dir)

        # Assert
        assert ConfigManager.get("economy.daily_reward") == {
            "base_amount": 150,
            "lucky_chance": 0.2,
        }

    def test_missing_key_returns_default(self, config_dir):
        ConfigManager.initialize(config_dir)

        assert ConfigManager.get("core.locks.lease_seconds", 30) == 30

    def test_require_missing_key(self, config_dir):
        ConfigManager.initialize(config_dir)

        with pytest.raises(ConfigurationError):
            ConfigManager.require("core.locks")

    def test_returned_tables_are_copies(self, config_dir):
        write(config_dir, "a.yaml", "tools:\n  pick: {tier: 1}\n")
        ConfigManager.initialize(config_dir)

        ConfigManager.get("tools")["pick"]["tier"] = 99

        assert ConfigManager.get("tools.pick.tier") == 1

    def test_invalid_yaml(self, config_dir):
        write(config_dir, "broken.yaml", "tools: [unclosed\n")

        with pytest.raises(ConfigurationError):
            ConfigManager.initialize(config_dir)

    def test_top_level_must_be_mapping(self, config_dir):
        write(config_dir, "list.yaml", "- a\n- b\n")

        with pytest.raises(ConfigurationError):
            ConfigManager.initialize(config_dir)


# ============================================================================
# CATALOG
# ============================================================================


@pytest.mark.unit
class TestShippedCatalog:
    """Test the catalog built from the shipped YAML."""

    def test_tables_loaded(self, catalog):
        assert catalog.material("iron_ore").weight == 2
        assert catalog.tool("reinforced_pickaxe").repair.base_cost_coins == 120
        assert catalog.zone("deep_cave").required_tool_tier == 2
        assert catalog.job("miner").xp_per_level == 100
        assert catalog.lootbox("rare").pity.upgrade_to == "epic"

    def test_virtual_currency_materials_weigh_nothing(self, catalog):
        assert catalog.material("coin_bundle_virtual").weight == 0
        assert catalog.material("token_fragment_virtual").weight == 0

    def test_unknown_id_raises(self, catalog):
        with pytest.raises(CatalogError) as exc_info:
            catalog.material("unobtainium")

        assert exc_info.value.table == "materials"

    def test_blueprints_for_level(self, catalog):
        ids = [bp.blueprint_id for bp in catalog.blueprints_for_level(3)]

        assert ids[0] == "refine_iron_ingot"
        assert "coin_bundle_small" in ids
        assert "rare_craft_box" not in ids

    def test_mission_pools(self, catalog):
        assert catalog.mission_pool(MissionScope.DAILY).effective_count == 3
        assert catalog.mission_pool(MissionScope.WEEKLY).effective_count == 3

    def test_rules(self, catalog):
        rules = catalog.rules

        assert rules.leveling.base_xp == 100
        assert rules.mining.cooldown_for(1) == timedelta(minutes=5)
        assert rules.jobs.change_cooldown == timedelta(minutes=60)
        assert catalog.repair_multiplier("legendary") == 3.0

    def test_unknown_rarity_repairs_at_base_price(self, catalog):
        assert catalog.repair_multiplier("mythic") == 1.0


@pytest.mark.unit
class TestCatalogValidation:
    """Test failures while building the catalog."""

    def test_rules_fall_back_to_defaults(self, config_dir):
        ConfigManager.initialize(config_dir)

        rules = load_rules()

        assert rules.mining.cooldown_for(2) == timedelta(minutes=4)
        assert rules.mining.cooldown_for(9) == timedelta(minutes=2)
        assert rules.daily_reward.base_amount == 150
        assert rules.tool_upgrades.base_cost == 200

    def test_missing_table(self, config_dir):
        # Arrange
        write(config_dir, "materials.yaml", "materials:\n  stone: {weight: 3}\n")
        ConfigManager.initialize(config_dir)

        # Act & Assert
        with pytest.raises(CatalogError):
            load_catalog()

    def test_dangling_material_reference(self, config_dir):
        # Arrange
        shutil.copytree(CONFIG_DIR, config_dir, dirs_exist_ok=True)
        write(
            config_dir,
            "zz_override.yaml",
            "mining_zones:\n"
            "  forest_mine:\n"
            "    drops:\n"
            "      - {material_id: unobtainium, weight: 1}\n",
        )
        ConfigManager.initialize(config_dir)

        # Act
        with pytest.raises(CatalogError) as exc_info:
            load_catalog()

        # Assert
        assert exc_info.value.identifier == "unobtainium"

    def test_malformed_row(self, config_dir):
        shutil.copytree(CONFIG_DIR, config_dir, dirs_exist_ok=True)
        write(config_dir, "zz_override.yaml", "materials:\n  stone: {weight: heavy}\n")
        ConfigManager.initialize(config_dir)

        with pytest.raises(CatalogError):
            load_catalog()
