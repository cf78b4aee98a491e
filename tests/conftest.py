"""
Pytest Configuration and Fixtures for the Ember Test Suite
==========================================================

Purpose
-------
Centralized fixtures shared by unit and integration tests: the game catalog
loaded from the bundled YAML tables, deterministic randomness and time,
profile factories and an in-memory database.

Responsibilities
----------------
- Load the catalog once per session from ``config/``
- Provide scripted and seeded random sources
- Provide a frozen, manually advanced clock
- Build profiles with tools and materials for engine tests
- Initialize an in-memory aiosqlite database for integration tests

Architecture Notes
------------------
- Unit tests never touch the database
- Integration tests get a fresh in-memory schema per test
- Domain event helpers mirror the aggregate's pending-event API
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator, Iterable, List, Optional

import pytest
import pytest_asyncio

from ember.core.clock import Clock
from ember.core.config.config_manager import ConfigManager
from ember.core.database.service import DatabaseService
from ember.core.locks.player_lock import PlayerLockManager
from ember.core.logging.logger import get_logger
from ember.core.randomness import RandomSource
from ember.domain.models.ledger import Tool
from ember.domain.models.profile import PlayerProfile
from ember.modules.catalog.catalog import GameCatalog
from ember.modules.catalog.loader import load_catalog
from ember.modules.profile.repository import ProfileRepository
from ember.modules.profile.service import ProgressionService

logger = get_logger(__name__)

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"
GUILD_ID = "guild-1"
PLAYER_ID = "player-1"
START = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["LOG_LEVEL"] = "DEBUG"


# ============================================================================
# DETERMINISTIC DOUBLES
# ============================================================================


class ScriptedRandom(RandomSource):
    """
    RandomSource replaying a fixed list of uniform draws.

    Every higher-level helper (chance, randint, choice, shuffle) funnels
    through ``random()``, so a script of floats fully determines an engine
    call. Once the script runs out, `fallback` is returned.
    """

    def __init__(self, values: Iterable[float] = (), fallback: float = 0.99) -> None:
        super().__init__(seed=0)
        self.values: List[float] = list(values)
        self.fallback = fallback
        self.calls = 0

    def push(self, *values: float) -> None:
        self.values.extend(values)

    def random(self) -> float:
        self.calls += 1
        if self.values:
            return self.values.pop(0)
        return self.fallback


class FrozenClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, current: datetime = START) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


# ============================================================================
# CATALOG FIXTURES
# ============================================================================


@pytest.fixture(scope="session")
def catalog() -> GameCatalog:
    """
    Game catalog built from the bundled YAML tables.

    Scope: session (the catalog is read-only)
    """
    ConfigManager.initialize(CONFIG_DIR)
    return load_catalog()


@pytest.fixture
def rng() -> ScriptedRandom:
    """
    Scripted random source; tests push the draws they need.

    Scope: function
    """
    return ScriptedRandom()


@pytest.fixture
def seeded_rng() -> RandomSource:
    """Seeded real random source for tests that only check invariants."""
    return RandomSource(seed=1234)


@pytest.fixture
def clock() -> FrozenClock:
    """
    Frozen clock starting at ``START``.

    Scope: function
    """
    return FrozenClock()


# ============================================================================
# DOMAIN MODEL FACTORIES
# ============================================================================


@pytest.fixture
def profile(catalog: GameCatalog, clock: FrozenClock) -> PlayerProfile:
    """
    Fresh level-1 profile with catalog defaults.

    Scope: function
    """
    return PlayerProfile.new(
        GUILD_ID,
        PLAYER_ID,
        clock.now(),
        inventory_capacity=catalog.rules.default_capacity,
        active_zone=catalog.rules.default_zone,
    )


def make_tool(
    catalog: GameCatalog,
    tool_id: str = "basic_pickaxe",
    durability: Optional[int] = None,
    acquired_at: Optional[datetime] = None,
) -> Tool:
    """Build a tool instance from its catalog definition."""
    definition = catalog.tool(tool_id)
    return Tool(
        tool_id=definition.tool_id,
        name=definition.name,
        rarity=definition.rarity,
        tier=definition.tier,
        durability=definition.max_durability if durability is None else durability,
        max_durability=definition.max_durability,
        bonus=definition.bonus,
        acquired_at=acquired_at or START,
    )


@pytest.fixture
def equipped_profile(catalog: GameCatalog, profile: PlayerProfile) -> PlayerProfile:
    """
    Profile holding an equipped ``basic_pickaxe``.

    Scope: function
    """
    profile.add_tool(make_tool(catalog))
    profile.equip_tool("basic_pickaxe")
    return profile


def stock(catalog: GameCatalog, profile: PlayerProfile, quality: Optional[int] = None, **quantities: int) -> None:
    """Add materials by id, e.g. ``stock(catalog, profile, iron_ore=20, coal=15)``."""
    for material_id, quantity in quantities.items():
        profile.add_material(catalog.material(material_id), quantity, quality=quality)


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[type, None]:
    """
    In-memory aiosqlite database with the schema created.

    Scope: function (fresh database per test)
    Uses: Integration tests that need real persistence
    """
    await DatabaseService.initialize("sqlite+aiosqlite:///:memory:")
    await DatabaseService.create_schema()
    yield DatabaseService
    await DatabaseService.shutdown()


@pytest.fixture
def repository(catalog: GameCatalog, clock: FrozenClock, database: type) -> ProfileRepository:
    """Profile repository bound to the in-memory database."""
    return ProfileRepository(catalog, clock, database)


@pytest.fixture
def progression(
    catalog: GameCatalog,
    seeded_rng: RandomSource,
    clock: FrozenClock,
    repository: ProfileRepository,
) -> ProgressionService:
    """
    Facade over every engine, backed by the in-memory database.

    Scope: function
    """
    return ProgressionService(
        catalog,
        seeded_rng,
        clock,
        repository,
        PlayerLockManager(wait_timeout=5.0),
        max_retries=3,
    )


# ============================================================================
# TEST UTILITIES
# ============================================================================


def assert_domain_event_emitted(model, event_name: str) -> None:
    """
    Assert that a domain event was emitted.

    Args:
        model: Aggregate to check
        event_name: Expected event name
    """
    events = model.get_pending_events()
    event_names = [e.event_name for e in events]
    assert event_name in event_names, f"Event '{event_name}' not emitted. Got: {event_names}"


def get_domain_event_payload(model, event_name: str) -> dict:
    """Return the payload of the first pending event named `event_name`."""
    for event in model.get_pending_events():
        if event.event_name == event_name:
            return event.payload
    raise AssertionError(f"Event '{event_name}' not found")
