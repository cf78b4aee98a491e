"""
Integration Tests for ProfileRepository
=======================================

Purpose
-------
Test profile persistence on a real database: default creation on first
load, insert and update with version bumps, and the optimistic version
check.

Test Coverage
-------------
- Missing profile loads as a fresh version-0 profile
- First save inserts at version 1, later saves bump the version
- Whole aggregate survives the JSON document round trip
- Stale update and duplicate insert raise StaleProfileError

Testing Strategy
----------------
- In-memory aiosqlite database per test
- Real PlayerProfile aggregates built through catalog helpers
"""

import pytest

from ember.core.exceptions import StaleProfileError
from ember.domain.models.ledger import ItemKind
from ember.domain.models.missions import MissionScope
from tests.conftest import GUILD_ID, PLAYER_ID, START, make_tool, stock


@pytest.mark.integration
@pytest.mark.database
class TestLoad:
    """Test loading profiles."""

    async def test_missing_profile_gets_defaults(self, repository):
        # Act
        profile = await repository.load(GUILD_ID, PLAYER_ID)

        # Assert
        assert profile.version == 0
        assert profile.level == 1
        assert profile.coins == 0
        assert profile.crafting.inventory_capacity == 500
        assert profile.crafting.active_zone == "forest_mine"
        assert profile.created_at == START
        assert await repository.exists(GUILD_ID, PLAYER_ID) is False

    async def test_players_are_scoped_by_guild(self, repository):
        profile = await repository.load("guild-a", PLAYER_ID)
        profile.credit(coins=10)
        await repository.save(profile)

        other = await repository.load("guild-b", PLAYER_ID)

        assert other.version == 0
        assert other.coins == 0


@pytest.mark.integration
@pytest.mark.database
class TestSave:
    """Test inserts, updates and version checks."""

    async def test_first_save_inserts_version_one(self, repository):
        # Arrange
        profile = await repository.load(GUILD_ID, PLAYER_ID)
        profile.credit(coins=50)

        # Act
        version = await repository.save(profile)

        # Assert
        assert version == 1
        assert profile.version == 1
        assert await repository.exists(GUILD_ID, PLAYER_ID) is True

    async def test_update_bumps_version(self, repository):
        # Arrange
        profile = await repository.load(GUILD_ID, PLAYER_ID)
        await repository.save(profile)
        loaded = await repository.load(GUILD_ID, PLAYER_ID)
        loaded.credit(tokens=3)

        # Act
        version = await repository.save(loaded)

        # Assert
        assert version == 2
        reloaded = await repository.load(GUILD_ID, PLAYER_ID)
        assert reloaded.version == 2
        assert reloaded.tokens == 3

    async def test_full_aggregate_round_trip(self, catalog, repository):
        # Arrange
        profile = await repository.load(GUILD_ID, PLAYER_ID)
        profile.credit(coins=120, tokens=4)
        profile.add_xp(150, catalog.rules.leveling)
        profile.add_tool(make_tool(catalog, "basic_pickaxe", durability=80))
        profile.equip_tool("basic_pickaxe")
        stock(catalog, profile, quality=85, iron_ore=7)
        profile.add_item(ItemKind.LOOTBOX, "rare", "Caja Rara", 2, START)
        profile.activity.lootbox_pity["rare"] = 3
        profile.clear_domain_events()
        await repository.save(profile)

        # Act
        reloaded = await repository.load(GUILD_ID, PLAYER_ID)

        # Assert
        assert reloaded.to_document() == profile.to_document()
        assert reloaded.equipped_tool.durability == 80
        assert reloaded.get_material("iron_ore").quality == 85
        assert reloaded.missions.missions(MissionScope.DAILY) == []

    async def test_stale_update_rejected(self, repository):
        # Arrange: two copies loaded at version 1
        await repository.save(await repository.load(GUILD_ID, PLAYER_ID))
        first = await repository.load(GUILD_ID, PLAYER_ID)
        second = await repository.load(GUILD_ID, PLAYER_ID)
        first.credit(coins=10)
        second.credit(coins=99)
        await repository.save(first)

        # Act & Assert
        with pytest.raises(StaleProfileError):
            await repository.save(second)

        stored = await repository.load(GUILD_ID, PLAYER_ID)
        assert stored.coins == 10
        assert stored.version == 2

    async def test_concurrent_first_insert_rejected(self, repository):
        """Two never-saved copies: the second insert loses the race."""
        first = await repository.load(GUILD_ID, PLAYER_ID)
        second = await repository.load(GUILD_ID, PLAYER_ID)
        await repository.save(first)

        with pytest.raises(StaleProfileError):
            await repository.save(second)
