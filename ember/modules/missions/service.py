"""
Mission Service

Purpose
-------
Daily and weekly missions: generation from the configured pools, lazy
rollover, progress from activity events and one-shot reward claims.

Domain
------
- Generation shuffles the scope's pool and keeps ``min(count, len(pool))``
  templates; the goal is uniform in the template range and the reward is
  ``xp = coins = goal * reward_multiplier``
- A scope rolls over when its epoch changes (UTC day for daily, ISO week
  for weekly), unless a completed mission is still waiting to be claimed
- Progress only grows, is clamped to the goal and ignores non-positive
  amounts
- A claim pays out once; once every mission of a scope is claimed the
  scope regenerates

Design Notes
------------
Nothing polls: ``ensure`` is called on every read or write and compares the
stored generation time with ``Clock.now()``.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

from ember.core.clock import ensure_utc
from ember.domain.models.ledger import ItemKind
from ember.domain.models.missions import Mission, MissionReward, MissionScope
from ember.modules.shared.base_service import BaseService
from ember.modules.shared.outcomes import FailureKind, FailureReason, Outcome

if TYPE_CHECKING:
    from logging import Logger

    from ember.core.clock import Clock
    from ember.core.randomness import RandomSource
    from ember.domain.models.profile import PlayerProfile
    from ember.modules.catalog.catalog import GameCatalog


def _epoch(scope: MissionScope, moment: datetime) -> Tuple[int, ...]:
    moment = ensure_utc(moment)
    if scope == MissionScope.DAILY:
        return moment.year, moment.month, moment.day
    iso = moment.isocalendar()
    return iso[0], iso[1]


class MissionService(BaseService):
    """
    Mission tracker.

    Public Methods
    --------------
    - generate() -> A fresh mission set for one scope
    - ensure() -> Roll a scope over when due
    - handle_progress() -> Advance matching missions in both scopes
    - claim() -> Pay out one completed mission
    - board() -> Read model of both scopes
    """

    def __init__(
        self,
        catalog: GameCatalog,
        random_source: RandomSource,
        clock: Clock,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(catalog, logger=logger)
        self.random = random_source
        self.clock = clock

    # ========================================================================
    # GENERATION
    # ========================================================================

    def generate(self, scope: MissionScope, now: Optional[datetime] = None) -> List[Mission]:
        now = now or self.clock.now()
        pool = self.catalog.mission_pool(scope)
        templates = self.random.shuffled(pool.templates)[: pool.effective_count]
        stamp = int(now.timestamp() * 1000)

        missions = []
        for i, template in enumerate(templates):
            goal = self.random.randint(template.goal.minimum, template.goal.maximum)
            reward_value = goal * pool.reward_multiplier
            missions.append(
                Mission(
                    mission_id=f"{scope.value}_{stamp}_{i}",
                    type=template.type,
                    goal=goal,
                    reward=MissionReward(xp=reward_value, coins=reward_value, lootbox=template.lootbox),
                )
            )
        return missions

    def _regenerate(self, profile: PlayerProfile, scope: MissionScope, now: datetime) -> List[Mission]:
        missions = self.generate(scope, now)
        profile.missions.replace(scope, missions, now)
        self.log.debug(
            "Missions generated",
            extra={
                "scope": scope.value,
                "count": len(missions),
                "guild_id": profile.guild_id,
                "player_id": profile.player_id,
            },
        )
        return missions

    def ensure(self, profile: PlayerProfile, scope: MissionScope) -> List[Mission]:
        """Return the scope's missions, regenerating them first when due."""
        now = self.clock.now()
        missions = profile.missions.missions(scope)
        if any(m.awaiting_claim for m in missions):
            return missions

        generated_at = profile.missions.last_generated.get(scope)
        if (
            not missions
            or generated_at is None
            or _epoch(scope, generated_at) != _epoch(scope, now)
        ):
            return self._regenerate(profile, scope, now)
        return missions

    # ========================================================================
    # PROGRESS
    # ========================================================================

    def handle_progress(self, profile: PlayerProfile, mission_type: str, amount: int = 1) -> List[str]:
        """
        Advance every open mission of `mission_type` in both scopes.

        Raises one `mission.completed` event per mission this call completes.

        Returns:
            Ids of missions completed by this call.
        """
        for scope in MissionScope:
            self.ensure(profile, scope)
        if amount <= 0:
            return []

        completed = []
        for scope in MissionScope:
            for mission in profile.missions.missions(scope):
                if mission.type == mission_type and mission.advance(amount):
                    completed.append(mission.mission_id)
                    profile.add_domain_event(
                        "mission.completed",
                        {"mission_id": mission.mission_id, "scope": scope.value, "type": mission_type},
                    )

        if completed:
            self.log_operation(
                "mission_progress", profile,
                mission_type=mission_type, amount=amount, completed=completed,
            )
        return completed

    # ========================================================================
    # CLAIM
    # ========================================================================

    def claim(self, profile: PlayerProfile, scope: Union[MissionScope, str], mission_id: str) -> Outcome:
        try:
            scope = MissionScope(scope)
        except ValueError:
            return self.fail("claim_mission", FailureReason.INVALID_SCOPE, profile, scope=scope)

        mission = profile.missions.find(scope, mission_id)
        if mission is None:
            return self.fail(
                "claim_mission", FailureReason.MISSION_NOT_FOUND, profile, mission_id=mission_id
            )
        if mission.claimed:
            return self.fail(
                "claim_mission", FailureReason.MISSION_ALREADY_CLAIMED, profile,
                FailureKind.CONFLICT, mission_id=mission_id,
            )
        if not mission.completed:
            return self.fail(
                "claim_mission", FailureReason.MISSION_NOT_COMPLETED, profile,
                mission_id=mission_id, progress=mission.progress, goal=mission.goal,
            )

        now = self.clock.now()
        reward = mission.reward
        profile.credit(coins=reward.coins, tokens=reward.tokens)
        if reward.lootbox:
            box = self.catalog.lootbox(reward.lootbox)
            profile.add_item(ItemKind.LOOTBOX, box.box_type, box.name, 1, now)
        if reward.xp > 0:
            profile.add_xp(reward.xp, self.catalog.rules.leveling)
        mission.claimed = True

        regenerated = False
        if all(m.claimed for m in profile.missions.missions(scope)):
            self._regenerate(profile, scope, now)
            regenerated = True

        self.log_operation(
            "claim_mission", profile, scope=scope.value, mission_id=mission_id, **reward.to_dict()
        )
        return Outcome.ok(
            scope=scope.value,
            mission_id=mission_id,
            reward=reward.to_dict(),
            regenerated=regenerated,
        )

    # ========================================================================
    # READ MODELS
    # ========================================================================

    def board(self, profile: PlayerProfile) -> Dict[str, Any]:
        return {
            scope.value: [m.to_dict() for m in self.ensure(profile, scope)]
            for scope in MissionScope
        }
