"""
Unit Tests for ProgressionService
================================

Purpose
-------
Test the facade's load -> mutate -> react -> save cycle without a
database: event reactions, persistence of successful outcomes only, and
retries on stale saves.

Test Coverage
-------------
- Level-up bonus attached as a reaction and persisted
- XP and activity feeding mission progress
- Failed outcomes leave storage untouched
- StaleProfileError retried up to max_retries, then raised
- Facade actions round-trip through storage

Testing Strategy
----------------
- In-memory repository storing profile documents with versions
- ScriptedRandom fallback draws, FrozenClock
- AAA pattern (Arrange, Act, Assert)
"""

import copy

import pytest

from ember.core.exceptions import CatalogError, DatabaseError, StaleProfileError
from ember.core.locks.player_lock import PlayerLockManager
from ember.domain.models.ledger import ItemKind
from ember.domain.models.profile import PlayerProfile
from ember.modules.profile.service import ProgressionService
from ember.modules.shared.outcomes import FailureReason
from tests.conftest import GUILD_ID, PLAYER_ID


class InMemoryRepository:
    """Stores documents like ProfileRepository; can fail the next N saves."""

    def __init__(self, clock, stale_saves=0):
        self.clock = clock
        self.stale_saves = stale_saves
        self.save_errors = []
        self.documents = {}
        self.save_attempts = 0

    async def load(self, guild_id, player_id):
        stored = self.documents.get((guild_id, player_id))
        if stored is None:
            return PlayerProfile.new(guild_id, player_id, self.clock.now())
        document, version = stored
        return PlayerProfile.from_document(copy.deepcopy(document), version=version)

    async def save(self, profile):
        self.save_attempts += 1
        if self.save_errors:
            raise self.save_errors.pop(0)
        if self.stale_saves > 0:
            self.stale_saves -= 1
            raise StaleProfileError(profile.guild_id, profile.player_id, profile.version)
        profile.version += 1
        self.documents[profile.id] = (profile.to_document(), profile.version)
        return profile.version


@pytest.fixture
def repository(clock):
    return InMemoryRepository(clock)


@pytest.fixture
def service(catalog, rng, clock, repository):
    return ProgressionService(
        catalog, rng, clock, repository, PlayerLockManager(wait_timeout=1.0), max_retries=3
    )


# ============================================================================
# REACTIONS
# ============================================================================


@pytest.mark.unit
class TestEventReactions:
    """Test domain event dispatch inside one cycle."""

    async def test_level_up_pays_bonus(self, service, repository):
        # Act
        outcome = await service.grant_xp(GUILD_ID, PLAYER_ID, 150)

        # Assert
        assert outcome.data["level"] == 2
        assert outcome.data["reactions"] == [
            {
                "event": "profile.leveled_up",
                "success": True,
                "new_level": 2,
                "coins": 20,
                "tokens": 0,
                "milestone": False,
            }
        ]
        stored = await repository.load(GUILD_ID, PLAYER_ID)
        assert stored.coins == 20
        assert stored.version == 1

    async def test_multi_level_gain_pays_every_level(self, service):
        """Jumping from 1 to 3 pays the bonus for 2 and for 3."""
        outcome = await service.grant_xp(GUILD_ID, PLAYER_ID, 400)

        levels = [r["new_level"] for r in outcome.data["reactions"]]
        assert levels == [2, 3]

    async def test_xp_feeds_xp_missions(self, service, repository):
        # Act
        await service.grant_xp(GUILD_ID, PLAYER_ID, 50)

        # Assert
        stored = await repository.load(GUILD_ID, PLAYER_ID)
        xp_missions = [m for m in stored.missions.daily if m.type == "xp"]
        assert xp_missions[0].progress == 50
        assert "reactions" not in (await service.grant_xp(GUILD_ID, PLAYER_ID, 1)).data


# ============================================================================
# PERSISTENCE RULES
# ============================================================================


@pytest.mark.unit
class TestPersistence:
    """Test what is and is not saved."""

    async def test_failed_outcome_not_saved(self, service, repository):
        outcome = await service.mine(GUILD_ID, PLAYER_ID)

        assert outcome.reason == FailureReason.NO_TOOL_EQUIPPED
        assert repository.save_attempts == 0

    async def test_invalid_xp_amount(self, service, repository):
        outcome = await service.grant_xp(GUILD_ID, PLAYER_ID, 0)

        assert outcome.reason == FailureReason.INVALID_AMOUNT
        assert repository.save_attempts == 0

    async def test_stale_save_is_retried(self, service, repository):
        # Arrange
        repository.stale_saves = 2

        # Act
        outcome = await service.claim_daily_reward(GUILD_ID, PLAYER_ID)

        # Assert
        assert outcome.success
        assert repository.save_attempts == 3
        stored = await repository.load(GUILD_ID, PLAYER_ID)
        assert stored.coins == 185

    async def test_retries_exhausted(self, service, repository):
        repository.stale_saves = 10

        with pytest.raises(StaleProfileError):
            await service.claim_daily_reward(GUILD_ID, PLAYER_ID)

        assert repository.save_attempts == 4
        assert repository.documents == {}

    async def test_database_error_is_retried(self, service, repository):
        # Arrange
        repository.save_errors = [DatabaseError("save_profile", ConnectionResetError("reset"))]

        # Act
        outcome = await service.claim_daily_reward(GUILD_ID, PLAYER_ID)

        # Assert
        assert outcome.success
        assert repository.save_attempts == 2
        assert (await repository.load(GUILD_ID, PLAYER_ID)).coins == 185

    async def test_catalog_error_is_not_retried(self, service, repository):
        repository.save_errors = [CatalogError("materials", "unobtainium")]

        with pytest.raises(CatalogError):
            await service.claim_daily_reward(GUILD_ID, PLAYER_ID)

        assert repository.save_attempts == 1
        assert repository.documents == {}

    async def test_load_is_read_only(self, service, repository):
        profile = await service.load(GUILD_ID, PLAYER_ID)

        assert profile.version == 0
        assert repository.save_attempts == 0


# ============================================================================
# ACTIONS
# ============================================================================


@pytest.mark.unit
class TestActions:
    """Test facade actions end to end against storage."""

    async def test_record_activity(self, service, repository):
        outcome = await service.record_activity(GUILD_ID, PLAYER_ID, "messages", 30)

        assert outcome.data["completed"]
        stored = await repository.load(GUILD_ID, PLAYER_ID)
        assert stored.missions.daily[0].completed is True

    async def test_record_unknown_activity(self, service, repository):
        outcome = await service.record_activity(GUILD_ID, PLAYER_ID, "reactions")

        assert outcome.reason == FailureReason.INVALID_ACTIVITY
        assert repository.save_attempts == 0

    async def test_claim_mission_after_activity(self, service, repository):
        # Arrange
        done = await service.record_activity(GUILD_ID, PLAYER_ID, "messages", 30)
        mission_id = done.data["completed"][0]

        # Act
        outcome = await service.claim_mission(GUILD_ID, PLAYER_ID, "daily", mission_id)

        # Assert
        assert outcome.success
        stored = await repository.load(GUILD_ID, PLAYER_ID)
        assert stored.coins >= 60

    async def test_open_lootbox(self, service, repository, clock):
        # Arrange
        profile = await repository.load(GUILD_ID, PLAYER_ID)
        profile.add_item(ItemKind.LOOTBOX, "common", "Caja Común", 1, clock.now())
        await repository.save(profile)

        # Act
        outcome = await service.open_lootbox(GUILD_ID, PLAYER_ID, "common")

        # Assert
        assert outcome.success
        stored = await repository.load(GUILD_ID, PLAYER_ID)
        assert stored.item_quantity(ItemKind.LOOTBOX, "common") == 0
        assert stored.activity.total_boxes_opened == 1

    async def test_craft_rejection_passes_through(self, service):
        outcome = await service.craft(GUILD_ID, PLAYER_ID, "refine_iron_ingot")

        assert outcome.reason == FailureReason.NOT_ENOUGH_COINS

    async def test_work_without_job(self, service):
        outcome = await service.work(GUILD_ID, PLAYER_ID)

        assert outcome.reason == FailureReason.NO_ACTIVE_JOB
