"""
Progression Service - Facade over the engines

Purpose
-------
Single entry point for presentation code. Every player action runs as one
load -> mutate -> react -> save cycle on one profile, serialized per player.

Responsibilities
----------------
- Build every engine around one catalog, RandomSource and Clock
- Hold the per-player lock for the whole cycle
- Dispatch the aggregate's domain events to the engines that react to them
- Retry the cycle on transient failures (lost version race, dropped
  connection)

Non-Responsibilities
--------------------
- Game rules (the engines)
- SQL and sessions (ProfileRepository / DatabaseService)
- Rendering (callers use ``Outcome.to_dict()``)

Domain Events
-------------
- ``profile.leveled_up``  -> level-up bonus (EconomyService)
- ``profile.xp_gained``   -> ``xp`` mission progress
- ``lootbox.opened``      -> ``lootbox`` mission progress

Handlers may raise further events; dispatch drains the queue until it is
empty. Failed outcomes are never persisted: engines only mutate on success.

Usage
-----
>>> service = ProgressionService.build(catalog)
>>> outcome = await service.mine("guild-1", "player-1")
>>> outcome.to_dict()
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Union

from ember.core.clock import Clock
from ember.core.config.config_manager import ConfigManager
from ember.core.exceptions import EmberInfrastructureException
from ember.core.locks.player_lock import PlayerLockManager
from ember.core.logging.logger import LogContext, get_logger
from ember.core.randomness import RandomSource
from ember.domain.models.base import DomainEvent
from ember.domain.models.missions import MissionScope
from ember.domain.models.profile import PlayerProfile
from ember.modules.catalog.catalog import GameCatalog
from ember.modules.crafting.service import CraftingService
from ember.modules.economy.service import EconomyService
from ember.modules.jobs.service import JobService
from ember.modules.lootbox.service import LootboxService
from ember.modules.mining.service import MiningService
from ember.modules.missions.service import MissionService
from ember.modules.profile.repository import ProfileRepository
from ember.modules.rewards.application import RewardApplier
from ember.modules.rewards.resolver import RewardResolver
from ember.modules.shared.exceptions import get_error_severity, is_transient_error
from ember.modules.shared.outcomes import FailureReason, Outcome
from ember.modules.workshop.service import WorkshopService

logger = get_logger(__name__)

Action = Callable[[PlayerProfile], Outcome]
EventHandler = Callable[[PlayerProfile, DomainEvent], Optional[Outcome]]

ACTIVITY_TYPES = ("messages", "voice")


class ProgressionService:
    """
    Facade running engine actions against persisted profiles.

    Args:
        catalog: Static lookup tables
        random_source: Shared randomness for every engine
        clock: Shared clock for every engine
        repository: Profile persistence boundary
        locks: Per-player lock manager
        max_retries: Attempts after the first on a transient failure
            (StaleProfileError, DatabaseError)
    """

    def __init__(
        self,
        catalog: GameCatalog,
        random_source: RandomSource,
        clock: Clock,
        repository: ProfileRepository,
        locks: PlayerLockManager,
        max_retries: Optional[int] = None,
    ) -> None:
        self.catalog = catalog
        self.random = random_source
        self.clock = clock
        self.repository = repository
        self.locks = locks
        if max_retries is None:
            max_retries = int(ConfigManager.get("core.persistence.max_retries", 3))
        self.max_retries = max(0, max_retries)

        self.resolver = RewardResolver(random_source, catalog)
        self.applier = RewardApplier(catalog, random_source, clock)
        self.crafting = CraftingService(catalog, random_source, self.applier)
        self.workshop = WorkshopService(catalog, clock)
        self.mining = MiningService(catalog, random_source, clock, resolver=self.resolver)
        self.jobs = JobService(catalog, random_source, clock)
        self.economy = EconomyService(catalog, random_source, clock)
        self.missions = MissionService(catalog, random_source, clock)
        self.lootbox = LootboxService(catalog, self.resolver, self.applier, clock)

        self._handlers: Dict[str, EventHandler] = {
            "profile.leveled_up": self._on_leveled_up,
            "profile.xp_gained": self._on_xp_gained,
            "lootbox.opened": self._on_lootbox_opened,
        }

    @classmethod
    def build(
        cls,
        catalog: GameCatalog,
        random_source: Optional[RandomSource] = None,
        clock: Optional[Clock] = None,
        locks: Optional[PlayerLockManager] = None,
    ) -> "ProgressionService":
        """Wire the default repository and lock manager from configuration."""
        clock = clock or Clock()
        return cls(
            catalog,
            random_source or RandomSource(),
            clock,
            ProfileRepository(catalog, clock),
            locks or PlayerLockManager.from_config(),
        )

    # ========================================================================
    # EVENT DISPATCH
    # ========================================================================

    def _on_leveled_up(self, profile: PlayerProfile, event: DomainEvent) -> Optional[Outcome]:
        return self.economy.apply_level_up_bonus(profile, event.payload["new_level"])

    def _on_xp_gained(self, profile: PlayerProfile, event: DomainEvent) -> Optional[Outcome]:
        self.missions.handle_progress(profile, "xp", event.payload["amount"])
        return None

    def _on_lootbox_opened(self, profile: PlayerProfile, event: DomainEvent) -> Optional[Outcome]:
        self.missions.handle_progress(profile, "lootbox", 1)
        return None

    def dispatch_events(self, profile: PlayerProfile) -> List[Dict[str, Any]]:
        """
        Drain the profile's pending events through the handlers.

        Returns:
            ``to_dict()`` of every handler outcome (level-up bonuses).
        """
        reactions: List[Dict[str, Any]] = []
        events = profile.clear_domain_events()
        while events:
            for event in events:
                handler = self._handlers.get(event.event_name)
                if handler is None:
                    continue
                outcome = handler(profile, event)
                if outcome is not None:
                    reactions.append({"event": event.event_name, **outcome.to_dict()})
            events = profile.clear_domain_events()
        return reactions

    # ========================================================================
    # EXECUTION
    # ========================================================================

    async def load(self, guild_id: str, player_id: str) -> PlayerProfile:
        """Read-only snapshot; never persisted."""
        return await self.repository.load(guild_id, player_id)

    async def execute(
        self,
        guild_id: str,
        player_id: str,
        action: Action,
        operation: str = "action",
    ) -> Outcome:
        """
        Run `action` on the player's profile and persist the result.

        Raises:
            LockTimeoutError: If the player lock is not acquired in time.
            StaleProfileError: If every retry loses the version race.
            DatabaseError: If persistence keeps failing after every retry.
            CatalogError: Immediately; corrupt tables are never retried.
        """
        async with LogContext(player_id=player_id, guild_id=guild_id, operation=operation):
            async with self.locks.lock(guild_id, player_id):
                attempt = 0
                while True:
                    try:
                        return await self._run_once(guild_id, player_id, action)
                    except EmberInfrastructureException as exc:
                        if not is_transient_error(exc):
                            raise
                        if attempt >= self.max_retries:
                            logger.error(
                                "Profile cycle failed after every retry",
                                extra={
                                    "attempts": attempt + 1,
                                    "error": str(exc),
                                    "severity": get_error_severity(exc).value,
                                },
                            )
                            raise
                        attempt += 1
                        logger.warning(
                            "Transient failure; retrying profile cycle",
                            extra={
                                "attempt": attempt,
                                "max_retries": self.max_retries,
                                "error_code": exc.error_code,
                            },
                        )

    async def _run_once(self, guild_id: str, player_id: str, action: Action) -> Outcome:
        profile = await self.repository.load(guild_id, player_id)
        outcome = action(profile)
        if not outcome.success:
            profile.clear_domain_events()
            return outcome

        reactions = self.dispatch_events(profile)
        await self.repository.save(profile)
        if reactions:
            outcome = Outcome.ok(**outcome.data, reactions=reactions)
        return outcome

    # ========================================================================
    # ACTIONS
    # ========================================================================

    async def grant_xp(self, guild_id: str, player_id: str, amount: int) -> Outcome:
        def action(profile: PlayerProfile) -> Outcome:
            if amount <= 0:
                return Outcome.fail(FailureReason.INVALID_AMOUNT, amount=amount)
            levels = profile.add_xp(amount, self.catalog.rules.leveling)
            return Outcome.ok(amount=amount, xp=profile.xp, level=profile.level, levels_gained=levels)

        return await self.execute(guild_id, player_id, action, operation="grant_xp")

    async def record_activity(
        self, guild_id: str, player_id: str, activity_type: str, amount: int = 1
    ) -> Outcome:
        """Feed chat-driven activity (``messages``, ``voice``) into missions."""

        def action(profile: PlayerProfile) -> Outcome:
            if activity_type not in ACTIVITY_TYPES:
                return Outcome.fail(FailureReason.INVALID_ACTIVITY, activity_type=activity_type)
            completed = self.missions.handle_progress(profile, activity_type, amount)
            return Outcome.ok(activity_type=activity_type, amount=amount, completed=completed)

        return await self.execute(guild_id, player_id, action, operation="record_activity")

    async def craft(self, guild_id: str, player_id: str, blueprint_id: str) -> Outcome:
        return await self.execute(
            guild_id, player_id, lambda p: self.crafting.craft(p, blueprint_id), operation="craft"
        )

    async def mine(self, guild_id: str, player_id: str) -> Outcome:
        return await self.execute(guild_id, player_id, self.mining.mine, operation="mine")

    async def work(self, guild_id: str, player_id: str) -> Outcome:
        return await self.execute(guild_id, player_id, self.jobs.work, operation="work")

    async def claim_daily_reward(self, guild_id: str, player_id: str) -> Outcome:
        return await self.execute(
            guild_id, player_id, self.economy.claim_daily_reward, operation="claim_daily_reward"
        )

    async def open_lootbox(self, guild_id: str, player_id: str, box_type: str) -> Outcome:
        return await self.execute(
            guild_id, player_id, lambda p: self.lootbox.open(p, box_type), operation="open_lootbox"
        )

    async def claim_mission(
        self,
        guild_id: str,
        player_id: str,
        scope: Union[MissionScope, str],
        mission_id: str,
    ) -> Outcome:
        return await self.execute(
            guild_id,
            player_id,
            lambda p: self.missions.claim(p, scope, mission_id),
            operation="claim_mission",
        )
