"""
Player profile persistence model.

One row per ``(guild_id, player_id)``. The whole aggregate lives in the
``document`` JSON column as produced by ``PlayerProfile.to_document()``;
``version`` is the optimistic-concurrency token bumped on every save.

Schema only: no business logic lives here.

Indexes:
    - (guild_id, player_id) unique
    - updated_at
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, UniqueConstraint
from sqlmodel import Column, Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlayerProfileRecord(SQLModel, table=True):
    """
    Stored snapshot of one player's progression.

    Attributes:
        guild_id: Guild (community) scope
        player_id: Player identifier inside the guild
        document: Serialized aggregate
        version: Incremented on each successful save, starting at 1
        created_at: Row creation time (UTC)
        updated_at: Last save time (UTC)
    """

    __tablename__ = "player_profiles"
    __table_args__ = (
        UniqueConstraint("guild_id", "player_id", name="uq_player_profiles_guild_player"),
        Index("ix_player_profiles_updated_at", "updated_at"),
    )

    # ========================================================================
    # IDENTITY
    # ========================================================================

    id: Optional[int] = Field(default=None, primary_key=True)
    guild_id: str = Field(max_length=64, nullable=False)
    player_id: str = Field(max_length=64, nullable=False)

    # ========================================================================
    # STATE
    # ========================================================================

    document: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    version: int = Field(default=1, ge=1, nullable=False)

    # ========================================================================
    # TIMESTAMPS
    # ========================================================================

    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    def __repr__(self) -> str:
        return (
            f"<PlayerProfileRecord(guild_id={self.guild_id!r}, "
            f"player_id={self.player_id!r}, version={self.version})>"
        )
