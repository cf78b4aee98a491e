"""
Per-player mutation lock.

Every load -> mutate -> save cycle for a ``(guild_id, player_id)`` runs under
this lock, so two triggers for the same player never interleave. Different
players never contend.

Two layers:
- An in-process ``asyncio.Lock`` per player (always on)
- An optional Redis lease (SET NX PX with a random token, compare-and-delete
  release) when a Redis client is configured, for deployments running
  several worker processes

Configuration (``config/core/runtime.yaml``):
- core.locks.wait_timeout_seconds   : float (default 10)
- core.locks.lease_seconds          : float (default 30)
- core.locks.retry_interval_seconds : float (default 0.05)
- core.locks.key_prefix             : str (default "ember:lock:profile")

Usage
-----
>>> locks = PlayerLockManager.from_config()
>>> async with locks.lock("guild-1", "player-1"):
>>>     profile = await repository.load("guild-1", "player-1")
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional, Tuple, Type

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ember.core.config.config import Config
from ember.core.config.config_manager import ConfigManager
from ember.core.exceptions import LockTimeoutError
from ember.core.logging.logger import get_logger

logger = get_logger(__name__)

PlayerKey = Tuple[str, str]


class PlayerLockManager:
    """
    Serializes mutations per player.

    Args:
        redis_client: Optional client for the distributed lease
        wait_timeout: Seconds to wait for the lock before LockTimeoutError
        lease_seconds: Expiry of the Redis lease
        retry_interval: Sleep between Redis SET NX attempts
        key_prefix: Redis key prefix
    """

    _LUA_UNLOCK_SCRIPT = """
    if redis.call("GET", KEYS[1]) == ARGV[1] then
        return redis.call("DEL", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        redis_client: Optional[Redis] = None,
        wait_timeout: float = 10.0,
        lease_seconds: float = 30.0,
        retry_interval: float = 0.05,
        key_prefix: str = "ember:lock:profile",
    ) -> None:
        self.redis = redis_client
        self.wait_timeout = wait_timeout
        self.lease_seconds = lease_seconds
        self.retry_interval = retry_interval
        self.key_prefix = key_prefix
        self._locks: Dict[PlayerKey, asyncio.Lock] = {}
        self._holders: Dict[PlayerKey, int] = {}

    @classmethod
    def from_config(
        cls,
        config: Type[ConfigManager] = ConfigManager,
        redis_client: Optional[Redis] = None,
    ) -> "PlayerLockManager":
        """Build from ``core.locks`` settings; Redis is used when REDIS_URL is set."""
        if redis_client is None and Config.REDIS_URL:
            redis_client = Redis.from_url(Config.REDIS_URL, decode_responses=True)
        return cls(
            redis_client=redis_client,
            wait_timeout=float(config.get("core.locks.wait_timeout_seconds", 10)),
            lease_seconds=float(config.get("core.locks.lease_seconds", 30)),
            retry_interval=float(config.get("core.locks.retry_interval_seconds", 0.05)),
            key_prefix=str(config.get("core.locks.key_prefix", "ember:lock:profile")),
        )

    @property
    def distributed(self) -> bool:
        return self.redis is not None

    def key_for(self, guild_id: str, player_id: str) -> str:
        return f"{self.key_prefix}:{guild_id}:{player_id}"

    def active_locks(self) -> int:
        """Number of players with a holder or a waiter."""
        return len(self._locks)

    # ========================================================================
    # LOCAL LAYER
    # ========================================================================

    def _checkout(self, key: PlayerKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        return lock

    async def _acquire_local(self, lock: asyncio.Lock) -> bool:
        """Wait up to wait_timeout for `lock`; False on timeout, never left held."""
        acquire = asyncio.ensure_future(lock.acquire())
        try:
            done, _ = await asyncio.wait({acquire}, timeout=self.wait_timeout)
        except asyncio.CancelledError:
            self._abandon(lock, acquire)
            raise
        if acquire in done and not acquire.cancelled():
            return acquire.result()
        self._abandon(lock, acquire)
        return False

    @staticmethod
    def _abandon(lock: asyncio.Lock, acquire: "asyncio.Future[bool]") -> None:
        # The acquire may win in the same tick the wait gave up on it
        def release_if_acquired(task: "asyncio.Future[bool]") -> None:
            if not task.cancelled() and task.exception() is None:
                lock.release()

        acquire.add_done_callback(release_if_acquired)
        acquire.cancel()

    def _checkin(self, key: PlayerKey) -> None:
        remaining = self._holders.get(key, 1) - 1
        if remaining <= 0:
            self._holders.pop(key, None)
            self._locks.pop(key, None)
        else:
            self._holders[key] = remaining

    # ========================================================================
    # DISTRIBUTED LAYER
    # ========================================================================

    async def _acquire_lease(self, name: str, deadline: float) -> str:
        token = uuid.uuid4().hex
        lease_ms = int(self.lease_seconds * 1000)
        while True:
            try:
                if await self.redis.set(name, token, nx=True, px=lease_ms):
                    return token
            except RedisError as exc:
                logger.error(
                    "Redis lock acquisition error",
                    extra={"lock_key": name, "error": str(exc), "error_type": type(exc).__name__},
                )
            if time.monotonic() >= deadline:
                raise LockTimeoutError(name, self.wait_timeout)
            await asyncio.sleep(self.retry_interval)

    async def _release_lease(self, name: str, token: str) -> None:
        try:
            released = await self.redis.eval(self._LUA_UNLOCK_SCRIPT, 1, name, token)
        except RedisError as exc:
            logger.error(
                "Redis lock release failed",
                extra={"lock_key": name, "error": str(exc), "error_type": type(exc).__name__},
            )
            return
        if not released:
            logger.warning("Redis lock already expired or stolen", extra={"lock_key": name})

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    @asynccontextmanager
    async def lock(self, guild_id: str, player_id: str) -> AsyncGenerator[None, None]:
        """
        Hold the player's lock for the duration of the block.

        Raises:
            LockTimeoutError: If the lock is not acquired within wait_timeout.
        """
        key = (guild_id, player_id)
        name = self.key_for(guild_id, player_id)
        deadline = time.monotonic() + self.wait_timeout
        local = self._checkout(key)
        try:
            if not await self._acquire_local(local):
                logger.warning(
                    "Player lock wait timed out",
                    extra={"lock_key": name, "wait_timeout_seconds": self.wait_timeout},
                )
                raise LockTimeoutError(name, self.wait_timeout) from None

            try:
                token = await self._acquire_lease(name, deadline) if self.redis else None
                try:
                    yield
                finally:
                    if token is not None:
                        await self._release_lease(name, token)
            finally:
                local.release()
        finally:
            self._checkin(key)

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
