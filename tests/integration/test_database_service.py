"""
Integration Tests for DatabaseService
=====================================

Purpose
-------
Test the class-level database service against a real in-memory SQLite
database through aiosqlite.

Test Coverage
-------------
- Health check before and after initialization
- Schema creation
- Transaction commit and rollback
- Guard against use before initialization

Testing Strategy
----------------
- Integration tests (real SQLAlchemy async engine, no mocks)
- Fresh in-memory database per test via the ``database`` fixture
"""

import pytest
from sqlalchemy import text
from sqlmodel import select

from ember.core.database.service import DatabaseService
from ember.core.exceptions import DatabaseNotInitializedError
from ember.database.models.profile import PlayerProfileRecord


# ============================================================================
# CONNECTION TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseConnection:
    """Test database connection and basic operations."""

    async def test_health_check(self, database):
        assert database.is_initialized()
        assert await database.health_check() is True

    async def test_schema_created(self, database):
        # Act
        async with database.get_session() as session:
            result = await session.execute(
                text("SELECT name FROM sqlite_master WHERE type = 'table'")
            )
            tables = [row[0] for row in result.fetchall()]

        # Assert
        assert "player_profiles" in tables

    async def test_initialize_is_idempotent(self, database):
        await database.initialize("sqlite+aiosqlite:///:memory:")

        assert await database.health_check() is True


# ============================================================================
# TRANSACTION TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestTransactions:
    """Test commit and rollback semantics."""

    @staticmethod
    def record(player_id="player-1"):
        return PlayerProfileRecord(
            guild_id="guild-1",
            player_id=player_id,
            document={"player_id": player_id},
            version=1,
        )

    async def test_commit_on_success(self, database):
        # Act
        async with database.get_transaction() as session:
            session.add(self.record())

        # Assert
        async with database.get_session() as session:
            rows = (await session.execute(select(PlayerProfileRecord))).scalars().all()
        assert [row.player_id for row in rows] == ["player-1"]

    async def test_rollback_on_error(self, database):
        # Act
        with pytest.raises(RuntimeError):
            async with database.get_transaction() as session:
                session.add(self.record())
                await session.flush()
                raise RuntimeError("abort")

        # Assert
        async with database.get_session() as session:
            rows = (await session.execute(select(PlayerProfileRecord))).scalars().all()
        assert rows == []

    async def test_json_document_round_trip(self, database):
        async with database.get_transaction() as session:
            session.add(self.record("player-2"))

        async with database.get_session() as session:
            stored = (await session.execute(select(PlayerProfileRecord))).scalar_one()
        assert stored.document == {"player_id": "player-2"}


# ============================================================================
# LIFECYCLE TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestLifecycle:
    """Test use outside the initialized window."""

    async def test_health_check_before_initialize(self):
        await DatabaseService.shutdown()

        assert await DatabaseService.health_check() is False

    async def test_session_before_initialize(self):
        await DatabaseService.shutdown()

        with pytest.raises(DatabaseNotInitializedError):
            async with DatabaseService.get_session():
                pass

    async def test_shutdown_is_safe_twice(self, database):
        await database.shutdown()
        await database.shutdown()

        assert database.is_initialized() is False
