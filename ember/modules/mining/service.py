"""
Mining Service

Purpose
-------
Cooldown-gated extraction of materials from the player's active zone using
the equipped tool.

Domain
------
- Gates, in order: cooldown, zone, level, equipped tool, tool tier, broken tool
- Drop: weighted pick from the zone table (+5 weight per entry for the miner
  job), uniform base quantity scaled by the tool multiplier, quality rolled
  in [70, 100]
- Tool rare bonus: may force a re-pick among the zone's low-weight drops
- Capacity is checked before anything is written; a full inventory leaves
  durability and cooldown untouched
- Durability decays per session; a tool reaching zero is unequipped
- Cooldown by tool tier (5/4/3/2 minutes)

Random draw order per mine: drop pick, quantity, quality, then the rare
trial and rare pick when the tool has a rare bonus.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ember.modules.catalog.definitions import ZoneDefinition, ZoneDrop
from ember.modules.rewards.resolver import RewardResolver
from ember.modules.shared.base_service import BaseService
from ember.modules.shared.outcomes import FailureKind, FailureReason, Outcome

if TYPE_CHECKING:
    from logging import Logger

    from ember.core.clock import Clock
    from ember.core.randomness import RandomSource
    from ember.domain.models.profile import PlayerProfile
    from ember.modules.catalog.catalog import GameCatalog


class MiningService(BaseService):
    """
    Mining engine.

    Public Methods
    --------------
    - mine() -> One mining session in the active zone
    - set_zone() -> Change the active zone
    - zone_status() -> Active zone and remaining cooldown
    """

    def __init__(
        self,
        catalog: GameCatalog,
        random_source: RandomSource,
        clock: Clock,
        resolver: Optional[RewardResolver] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(catalog, logger=logger)
        self.random = random_source
        self.clock = clock
        self.resolver = resolver or RewardResolver(random_source, catalog)

    # ========================================================================
    # GATES
    # ========================================================================

    def _check_zone_access(
        self, operation: str, profile: PlayerProfile, zone_id: str
    ) -> Optional[Outcome]:
        """Zone, level, equipped tool, tool tier and broken-tool gates."""
        zone = self.catalog.zones.get(zone_id)
        if zone is None:
            return self.fail(operation, FailureReason.INVALID_ZONE, profile, zone_id=zone_id)

        if profile.level < zone.min_level:
            return self.fail(
                operation, FailureReason.LEVEL_REQUIRED, profile,
                required_level=zone.min_level, level=profile.level,
            )

        tool = profile.equipped_tool
        if tool is None:
            return self.fail(operation, FailureReason.NO_TOOL_EQUIPPED, profile)

        if tool.tier < zone.required_tool_tier:
            return self.fail(
                operation, FailureReason.TOOL_TIER_REQUIRED, profile,
                required_tier=zone.required_tool_tier, tier=tool.tier,
            )

        if tool.is_broken:
            return self.fail(
                operation, FailureReason.TOOL_BROKEN, profile, FailureKind.CONFLICT,
                tool_id=tool.tool_id,
            )
        return None

    def _drop_pool(self, profile: PlayerProfile, zone: ZoneDefinition) -> List[ZoneDrop]:
        rules = self.catalog.rules.mining
        if rules.job_bonus_job_id and profile.jobs.active_job_id == rules.job_bonus_job_id:
            return [
                ZoneDrop(material_id=drop.material_id, weight=drop.weight + rules.job_bonus_weight)
                for drop in zone.drops
            ]
        return list(zone.drops)

    # ========================================================================
    # MINE
    # ========================================================================

    def mine(self, profile: PlayerProfile) -> Outcome:
        now = self.clock.now()
        cooldown_until = profile.crafting.mining_cooldown_until
        if cooldown_until is not None and cooldown_until > now:
            outcome = Outcome.cooldown(FailureReason.MINING_COOLDOWN, cooldown_until - now)
            self.log_rejection("mine", outcome, profile)
            return outcome

        zone_id = profile.crafting.active_zone
        failure = self._check_zone_access("mine", profile, zone_id)
        if failure is not None:
            return failure

        zone = self.catalog.zone(zone_id)
        tool = profile.equipped_tool
        rules = self.catalog.rules.mining

        drop = self.resolver.resolve(self._drop_pool(profile, zone))
        quantity = self.resolver.roll_range(zone.base_quantity.minimum, zone.base_quantity.maximum)
        quantity = max(1, math.floor(quantity * tool.bonus.quantity_multiplier))
        quality = self.resolver.roll_range(rules.quality_min, rules.quality_max)

        rare_roll = False
        if self.random.chance(tool.bonus.rare_chance_bonus):
            rare_pool = [d for d in zone.drops if d.weight < rules.rare_weight_threshold]
            if rare_pool:
                drop = self.resolver.resolve(rare_pool)
                rare_roll = True

        quality = min(100, quality + tool.bonus.quality_bonus)
        material = self.catalog.material(drop.material_id)

        if not profile.can_fit(material.weight * quantity):
            return self.fail(
                "mine", FailureReason.INVENTORY_FULL, profile, FailureKind.CAPACITY,
                material_id=material.material_id,
                quantity=quantity,
                free_capacity=profile.free_capacity(),
            )

        tool_broken = profile.wear_equipped_tool(zone.durability_cost)
        profile.add_material(material, quantity, quality=quality, origin=zone.zone_id)

        stats = profile.crafting.stats
        stats.mined_materials += quantity
        stats.mining_sessions += 1

        cooldown = rules.cooldown_for(tool.tier)
        profile.crafting.mining_cooldown_until = now + cooldown

        self.log_operation(
            "mine", profile,
            zone_id=zone.zone_id,
            material_id=material.material_id,
            quantity=quantity,
            quality=quality,
            tool_broken=tool_broken,
        )
        return Outcome.ok(
            zone={"id": zone.zone_id, "name": zone.name},
            material={
                "id": material.material_id,
                "name": material.name,
                "rarity": material.rarity,
                "quantity": quantity,
                "quality": quality,
            },
            rare_roll=rare_roll,
            tool={
                "id": tool.tool_id,
                "durability": tool.durability,
                "max_durability": tool.max_durability,
            },
            tool_broken=tool_broken,
            cooldown_seconds=int(cooldown.total_seconds()),
        )

    # ========================================================================
    # ZONES
    # ========================================================================

    def set_zone(self, profile: PlayerProfile, zone_id: str) -> Outcome:
        failure = self._check_zone_access("set_zone", profile, zone_id)
        if failure is not None:
            return failure

        zone = self.catalog.zone(zone_id)
        profile.crafting.active_zone = zone.zone_id
        self.log_operation("set_zone", profile, zone_id=zone_id)
        return Outcome.ok(
            zone={
                "id": zone.zone_id,
                "name": zone.name,
                "min_level": zone.min_level,
                "required_tool_tier": zone.required_tool_tier,
            }
        )

    def zone_status(self, profile: PlayerProfile) -> Dict[str, Any]:
        now = self.clock.now()
        until = profile.crafting.mining_cooldown_until
        remaining = max(0, int((until - now).total_seconds())) if until else 0
        zone = self.catalog.zones.get(profile.crafting.active_zone)
        return {
            "zone_id": profile.crafting.active_zone,
            "zone_name": zone.name if zone else None,
            "cooldown_remaining_seconds": remaining,
            "ready": remaining == 0,
            "equipped_tool_id": profile.crafting.equipped_tool_id,
        }
