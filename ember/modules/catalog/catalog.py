"""
Game Catalog

Purpose
-------
Immutable, cross-checked view of every static table the engines consume:
materials, tools, mining zones, blueprints, jobs, lootboxes and mission
pools, plus the tuning rules (leveling curve, daily reward, level-up bonus,
mining cooldowns, tool upgrade/repair pricing, job timings).

Responsibilities
----------------
- Hold tables as read-only mappings (``MappingProxyType``)
- Validate every cross-reference once, at construction
- Raise `CatalogError` for unknown ids at lookup time

Non-Responsibilities
--------------------
- Reading YAML (see ``ember.modules.catalog.loader``)
- Any game rule that needs a player profile
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ember.core.exceptions import CatalogError
from ember.domain.models.ledger import ToolUpgradeRules
from ember.domain.models.missions import MissionScope
from ember.modules.catalog.definitions import (
    BlueprintDefinition,
    BlueprintResultKind,
    JobDefinition,
    LootboxDefinition,
    MaterialDefinition,
    MissionPool,
    ToolDefinition,
    ZoneDefinition,
)
from ember.modules.rewards.models import RewardEntry, RewardKind
from ember.modules.shared.formulas import LevelCurve

COIN_BUNDLE_MATERIAL = "coin_bundle_virtual"
TOKEN_FRAGMENT_MATERIAL = "token_fragment_virtual"


# ============================================================================
# TUNING RULES
# ============================================================================


@dataclass(frozen=True)
class Bonus:
    coins: int = 0
    tokens: int = 0


@dataclass(frozen=True)
class DailyRewardRules:
    base_amount: int = 150
    streak_bonus_factor: int = 30
    streak_multiplier_cap: float = 0.5
    level_scaling_per_level: float = 0.02
    lucky_chance: float = 0.10
    lucky_bonus_ratio: float = 0.5
    streak_milestones: Mapping[int, Bonus] = field(default_factory=dict)


@dataclass(frozen=True)
class LevelUpBonusRules:
    coins_per_level: int = 10
    tokens_divisor: int = 10
    milestones: Mapping[int, Bonus] = field(default_factory=dict)


@dataclass(frozen=True)
class MiningRules:
    cooldown_by_tier: Mapping[int, timedelta]
    job_bonus_job_id: Optional[str] = "miner"
    job_bonus_weight: float = 5.0
    rare_weight_threshold: float = 15.0
    quality_min: int = 70
    quality_max: int = 100

    def cooldown_for(self, tier: int) -> timedelta:
        if tier in self.cooldown_by_tier:
            return self.cooldown_by_tier[tier]
        # Tiers beyond the table use the fastest configured cooldown
        return min(self.cooldown_by_tier.values(), default=timedelta(minutes=5))


@dataclass(frozen=True)
class CraftingRules:
    quality_baseline: int = 70
    quality_divisor: int = 300
    max_success_rate: float = 0.99


@dataclass(frozen=True)
class JobTimings:
    change_cooldown: timedelta = timedelta(hours=1)
    weekly_salary_interval: timedelta = timedelta(days=7)
    monthly_salary_interval: timedelta = timedelta(days=30)

    def salary_interval(self, period: str) -> timedelta:
        return self.weekly_salary_interval if period == "weekly" else self.monthly_salary_interval


@dataclass(frozen=True)
class CatalogRules:
    leveling: LevelCurve = field(default_factory=LevelCurve)
    daily_reward: DailyRewardRules = field(default_factory=DailyRewardRules)
    level_up_bonus: LevelUpBonusRules = field(default_factory=LevelUpBonusRules)
    mining: MiningRules = field(
        default_factory=lambda: MiningRules(
            cooldown_by_tier={
                1: timedelta(minutes=5),
                2: timedelta(minutes=4),
                3: timedelta(minutes=3),
                4: timedelta(minutes=2),
            }
        )
    )
    crafting: CraftingRules = field(default_factory=CraftingRules)
    jobs: JobTimings = field(default_factory=JobTimings)
    tool_upgrades: ToolUpgradeRules = field(default_factory=ToolUpgradeRules)
    repair_multipliers: Mapping[str, float] = field(
        default_factory=lambda: {
            "common": 1.0,
            "uncommon": 1.2,
            "rare": 1.5,
            "epic": 2.0,
            "legendary": 3.0,
        }
    )
    default_capacity: int = 500
    default_zone: str = "forest_mine"


# ============================================================================
# CATALOG
# ============================================================================


def _index(rows: Iterable, key_attr: str) -> Mapping[str, object]:
    return MappingProxyType({getattr(row, key_attr): row for row in rows})


class GameCatalog:
    """
    Read-only lookup tables shared by every engine.

    Construction validates all cross-references and raises `CatalogError`
    on the first broken one, so a catalog that exists is internally
    consistent.
    """

    def __init__(
        self,
        materials: Iterable[MaterialDefinition],
        tools: Iterable[ToolDefinition],
        zones: Iterable[ZoneDefinition],
        blueprints: Iterable[BlueprintDefinition],
        jobs: Iterable[JobDefinition],
        lootboxes: Iterable[LootboxDefinition],
        mission_pools: Dict[MissionScope, MissionPool],
        rules: Optional[CatalogRules] = None,
    ) -> None:
        self.materials: Mapping[str, MaterialDefinition] = _index(materials, "material_id")
        self.tools: Mapping[str, ToolDefinition] = _index(tools, "tool_id")
        self.zones: Mapping[str, ZoneDefinition] = _index(zones, "zone_id")
        self.blueprints: Mapping[str, BlueprintDefinition] = _index(blueprints, "blueprint_id")
        self.jobs: Mapping[str, JobDefinition] = _index(jobs, "job_id")
        self.lootboxes: Mapping[str, LootboxDefinition] = _index(lootboxes, "box_type")
        self.mission_pools: Mapping[MissionScope, MissionPool] = MappingProxyType(dict(mission_pools))
        self.rules = rules or CatalogRules()
        self._validate()

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def material(self, material_id: str) -> MaterialDefinition:
        try:
            return self.materials[material_id]
        except KeyError:
            raise CatalogError("materials", material_id) from None

    def tool(self, tool_id: str) -> ToolDefinition:
        try:
            return self.tools[tool_id]
        except KeyError:
            raise CatalogError("tools", tool_id) from None

    def zone(self, zone_id: str) -> ZoneDefinition:
        try:
            return self.zones[zone_id]
        except KeyError:
            raise CatalogError("mining_zones", zone_id) from None

    def blueprint(self, blueprint_id: str) -> BlueprintDefinition:
        try:
            return self.blueprints[blueprint_id]
        except KeyError:
            raise CatalogError("blueprints", blueprint_id) from None

    def job(self, job_id: str) -> JobDefinition:
        try:
            return self.jobs[job_id]
        except KeyError:
            raise CatalogError("jobs", job_id) from None

    def lootbox(self, box_type: str) -> LootboxDefinition:
        try:
            return self.lootboxes[box_type]
        except KeyError:
            raise CatalogError("lootboxes", box_type) from None

    def mission_pool(self, scope: MissionScope) -> MissionPool:
        try:
            return self.mission_pools[scope]
        except KeyError:
            raise CatalogError("missions", scope.value) from None

    def repair_multiplier(self, rarity: str) -> float:
        return float(self.rules.repair_multipliers.get(rarity, 1.0))

    def blueprints_for_level(self, level: int) -> List[BlueprintDefinition]:
        return sorted(
            (bp for bp in self.blueprints.values() if bp.required_level <= level),
            key=lambda bp: (bp.required_level, bp.blueprint_id),
        )

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def _require(self, table: str, mapping: Mapping, identifier: str, context: str) -> None:
        if identifier not in mapping:
            raise CatalogError(table, identifier, f"{context} references unknown id {identifier!r}")

    def _validate(self) -> None:
        for material_id in (COIN_BUNDLE_MATERIAL, TOKEN_FRAGMENT_MATERIAL):
            self._require("materials", self.materials, material_id, "crafting currency results")

        for material in self.materials.values():
            if material.refinable_into:
                self._require(
                    "materials", self.materials, material.refinable_into,
                    f"material {material.material_id!r}",
                )

        for zone in self.zones.values():
            if not zone.drops:
                raise CatalogError("mining_zones", zone.zone_id, "zone has no drops")
            for drop in zone.drops:
                self._require("materials", self.materials, drop.material_id, f"zone {zone.zone_id!r}")

        for tool in self.tools.values():
            for line in tool.repair.materials:
                self._require("materials", self.materials, line.material_id, f"tool {tool.tool_id!r} repair")

        for blueprint in self.blueprints.values():
            context = f"blueprint {blueprint.blueprint_id!r}"
            for line in blueprint.requires:
                self._require("materials", self.materials, line.material_id, context)
            result = blueprint.result
            if result.kind == BlueprintResultKind.MATERIAL:
                self._require("materials", self.materials, result.item_id, context)
            elif result.kind == BlueprintResultKind.LOOTBOX:
                self._require("lootboxes", self.lootboxes, result.item_id, context)

        for box in self.lootboxes.values():
            context = f"lootbox {box.box_type!r}"
            if not box.rewards:
                raise CatalogError("lootboxes", box.box_type, "box has no rewards")
            entries: Tuple[RewardEntry, ...] = box.rewards + ((box.jackpot.reward,) if box.jackpot else ())
            for entry in entries:
                self._validate_reward(entry, context)
            if box.pity:
                self._require("lootboxes", self.lootboxes, box.pity.upgrade_to, f"{context} pity")

        for scope, pool in self.mission_pools.items():
            for template in pool.templates:
                if template.lootbox:
                    self._require("lootboxes", self.lootboxes, template.lootbox, f"{scope.value} missions")

        self._require("mining_zones", self.zones, self.rules.default_zone, "default zone")

    def _validate_reward(self, entry: RewardEntry, context: str) -> None:
        if entry.kind == RewardKind.MATERIAL:
            self._require("materials", self.materials, entry.item_id, context)
        elif entry.kind == RewardKind.LOOTBOX:
            self._require("lootboxes", self.lootboxes, entry.item_id, context)
        elif entry.kind == RewardKind.RANDOM_BOX:
            for box_type in entry.choices:
                self._require("lootboxes", self.lootboxes, box_type, context)

    def __repr__(self) -> str:
        return (
            f"GameCatalog(materials={len(self.materials)}, tools={len(self.tools)}, "
            f"zones={len(self.zones)}, blueprints={len(self.blueprints)}, "
            f"jobs={len(self.jobs)}, lootboxes={len(self.lootboxes)})"
        )
