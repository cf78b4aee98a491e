"""
Profile Repository

Purpose
-------
Persistence boundary for `PlayerProfile`: load a profile (creating it with
defaults on first access) and save it back with an optimistic version
check.

Design Notes
------------
- One row per ``(guild_id, player_id)`` in ``player_profiles``; the
  aggregate is stored whole in a JSON ``document`` column
- A never-saved profile has ``version == 0`` and is INSERTed at version 1
- Later saves run ``UPDATE ... WHERE version = :expected`` and bump the
  version; zero affected rows means another writer won, and the caller gets
  `StaleProfileError`
- Load and save each run in their own transaction; the per-player lock
  held by the facade spans both
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from ember.core.clock import Clock, ensure_utc
from ember.core.database.service import DatabaseService
from ember.core.exceptions import DatabaseError, StaleProfileError
from ember.core.logging.logger import get_logger
from ember.database.models.profile import PlayerProfileRecord
from ember.domain.models.profile import PlayerProfile

if TYPE_CHECKING:
    from ember.modules.catalog.catalog import GameCatalog

logger = get_logger(__name__)


class ProfileRepository:
    """
    Load and save player profiles.

    Args:
        catalog: Supplies the defaults for newly created profiles
        clock: Timestamps for creation and saves
        database: Session provider (class-level DatabaseService by default)
    """

    def __init__(
        self,
        catalog: GameCatalog,
        clock: Optional[Clock] = None,
        database: type = DatabaseService,
    ) -> None:
        self.catalog = catalog
        self.clock = clock or Clock()
        self.database = database

    def new_profile(self, guild_id: str, player_id: str, now: Optional[datetime] = None) -> PlayerProfile:
        rules = self.catalog.rules
        return PlayerProfile.new(
            guild_id,
            player_id,
            now or self.clock.now(),
            inventory_capacity=rules.default_capacity,
            active_zone=rules.default_zone,
        )

    async def _fetch(self, guild_id: str, player_id: str) -> Optional[PlayerProfileRecord]:
        async with self.database.get_session() as session:
            result = await session.execute(
                select(PlayerProfileRecord).where(
                    PlayerProfileRecord.guild_id == guild_id,
                    PlayerProfileRecord.player_id == player_id,
                )
            )
            return result.scalar_one_or_none()

    async def load(self, guild_id: str, player_id: str) -> PlayerProfile:
        """
        Load a profile, or build a fresh unsaved one (version 0).

        Raises:
            DatabaseError: If the query fails.
        """
        try:
            record = await self._fetch(guild_id, player_id)
        except SQLAlchemyError as exc:
            raise DatabaseError("load_profile", exc) from exc

        if record is None:
            logger.debug(
                "Profile not found; creating defaults",
                extra={"guild_id": guild_id, "player_id": player_id},
            )
            return self.new_profile(guild_id, player_id)
        return PlayerProfile.from_document(record.document, version=record.version)

    async def exists(self, guild_id: str, player_id: str) -> bool:
        try:
            return await self._fetch(guild_id, player_id) is not None
        except SQLAlchemyError as exc:
            raise DatabaseError("profile_exists", exc) from exc

    async def save(self, profile: PlayerProfile) -> int:
        """
        Persist the profile and bump its version.

        Returns:
            The new version.

        Raises:
            StaleProfileError: If the stored version moved since load.
            DatabaseError: For any other database failure.
        """
        expected = profile.version
        now = ensure_utc(self.clock.now())
        document = profile.to_document()

        try:
            async with self.database.get_transaction() as session:
                if expected == 0:
                    session.add(
                        PlayerProfileRecord(
                            guild_id=profile.guild_id,
                            player_id=profile.player_id,
                            document=document,
                            version=1,
                            created_at=ensure_utc(profile.created_at),
                            updated_at=now,
                        )
                    )
                    await session.flush()
                else:
                    result = await session.execute(
                        update(PlayerProfileRecord)
                        .where(
                            PlayerProfileRecord.guild_id == profile.guild_id,
                            PlayerProfileRecord.player_id == profile.player_id,
                            PlayerProfileRecord.version == expected,
                        )
                        .values(document=document, version=expected + 1, updated_at=now)
                    )
                    if result.rowcount != 1:
                        raise StaleProfileError(profile.guild_id, profile.player_id, expected)
        except IntegrityError as exc:
            # Another writer inserted the row first
            raise StaleProfileError(profile.guild_id, profile.player_id, expected) from exc
        except SQLAlchemyError as exc:
            raise DatabaseError("save_profile", exc) from exc

        profile.version = expected + 1
        logger.debug(
            "Profile saved",
            extra={
                "guild_id": profile.guild_id,
                "player_id": profile.player_id,
                "version": profile.version,
            },
        )
        return profile.version
