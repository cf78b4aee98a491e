"""
Database Service - Core Infrastructure Layer

Purpose
-------
Centralized async database engine and session management for the profile
store.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine instance
- Provide async context managers for plain sessions and atomic transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Create the schema for development and tests
- Expose a lightweight health check

Non-Responsibilities
--------------------
- Profile serialization and optimistic versioning (ProfileRepository)
- Per-player serialization of mutations (PlayerLockManager)
- Game rules of any kind

Architecture Notes
------------------
**Transaction Model**:
- `get_transaction()` is the interface for every write
- Automatic commit on success, rollback on any exception
- Never call `session.commit()` inside repository code

**Drivers**:
- ``postgresql+asyncpg://`` in production (pooled)
- ``sqlite+aiosqlite://`` for development and tests; an in-memory URL uses a
  single shared connection so every session sees the same database

**Configuration**:
- DATABASE_URL (default: local aiosqlite file)
- DATABASE_POOL_SIZE (default: 10, PostgreSQL only)
- DATABASE_ECHO (default: False)

Usage Example
-------------
>>> await DatabaseService.initialize()
>>> await DatabaseService.create_schema()
>>> async with DatabaseService.get_transaction() as session:
>>>     session.add(record)
>>>     # Automatic commit on exit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, Optional, Type

from sqlalchemy import text
from sqlalchemy.exc import ArgumentError, DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, Pool, StaticPool
from sqlmodel import SQLModel

from ember.core.config.config import Config
from ember.core.exceptions import DatabaseError, DatabaseNotInitializedError
from ember.core.logging.logger import get_logger
from ember.database import models  # noqa: F401

logger = get_logger(__name__)


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable view of the engine configuration for its lifetime."""

    url: str
    echo: bool
    pool_class: Optional[Type[Pool]]
    pool_size: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and (":memory:" in self.url or self.url.rstrip("/").endswith("sqlite+aiosqlite:"))

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService - Core Infrastructure
# ============================================================================


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    **Lifecycle**:
    - initialize() -> Create engine and session factory
    - shutdown() -> Dispose engine and reset state
    - create_schema() -> Create every registered table

    **Sessions**:
    - get_session() -> Session without automatic commit
    - get_transaction() -> Atomic write transaction (preferred)

    **Utilities**:
    - health_check() -> Fast reachability check
    - is_initialized() -> Whether initialize() has run
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _lock(cls) -> asyncio.Lock:
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    @classmethod
    def _build_config_snapshot(cls, url: Optional[str] = None) -> _DatabaseConfigSnapshot:
        database_url = url or Config.DATABASE_URL
        if not database_url or not isinstance(database_url, str):
            raise DatabaseError(
                "initialize", ValueError("DATABASE_URL must be a non-empty string")
            )

        url_info = _DatabaseConfigSnapshot(url=database_url, echo=False, pool_class=None, pool_size=0)
        if url_info.is_memory:
            pool_class: Optional[Type[Pool]] = StaticPool
        elif url_info.is_sqlite or Config.is_testing():
            pool_class = NullPool
        else:
            pool_class = None

        snapshot = _DatabaseConfigSnapshot(
            url=database_url,
            echo=bool(Config.DATABASE_ECHO),
            pool_class=pool_class,
            pool_size=int(Config.DATABASE_POOL_SIZE),
        )
        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "pool_class": pool_class.__name__ if pool_class else "default",
            },
        )
        return snapshot

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Initialize the engine and session factory.

        Idempotent: a second call is a no-op until ``shutdown()``.

        Args:
            url: Overrides ``Config.DATABASE_URL`` (tests pass an in-memory URL)

        Raises:
            DatabaseError: If configuration is invalid or engine creation fails.
        """
        async with cls._lock():
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            config = cls._build_config_snapshot(url)
            engine_kwargs: Dict[str, Any] = {"echo": config.echo}
            if config.pool_class is not None:
                engine_kwargs["poolclass"] = config.pool_class
            else:
                engine_kwargs["pool_size"] = config.pool_size

            try:
                cls._engine = create_async_engine(config.url, **engine_kwargs)
            except (ArgumentError, ImportError) as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseError("initialize", exc) from exc

            cls._session_factory = async_sessionmaker(
                bind=cls._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            cls._config_snapshot = config
            logger.info(
                "DatabaseService initialized",
                extra={"url_scheme": config.url_scheme},
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call when not initialized."""
        async with cls._lock():
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return
            try:
                await cls._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    async def create_schema(cls) -> None:
        """Create every table registered on ``SQLModel.metadata``."""
        cls._ensure_initialized()
        async with cls._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Database schema ensured")

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Run ``SELECT 1``.

        Returns False instead of raising when the database is unreachable.
        """
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        logger.debug(
            "Database health check passed",
            extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
        )
        return True

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _ensure_initialized(cls) -> None:
        if cls._session_factory is None or cls._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError()

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session without automatic commit, for reads.

        Raises:
            DatabaseNotInitializedError: If initialize() has not run.
        """
        cls._ensure_initialized()
        async with cls._session_factory() as session:
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in an atomic transaction.

        Commits when the block exits normally; rolls back and re-raises on
        any exception.

        Raises:
            DatabaseNotInitializedError: If initialize() has not run.
        """
        cls._ensure_initialized()
        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )
            except Exception as exc:
                await session.rollback()
                logger.debug(
                    "Database transaction rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise
