"""
Builds a `GameCatalog` from the YAML tables held by `ConfigManager`.

Tables live under ``config/catalog`` and tuning rules under
``config/economy`` and ``config/core``. Any missing or malformed table is a
`CatalogError`; the process should not start with a broken catalog.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Type

from ember.core.config.config_manager import ConfigManager
from ember.core.exceptions import CatalogError
from ember.core.logging.logger import get_logger
from ember.domain.models.ledger import ToolUpgradeRules
from ember.domain.models.missions import MissionScope
from ember.modules.catalog.catalog import (
    Bonus,
    CatalogRules,
    CraftingRules,
    DailyRewardRules,
    GameCatalog,
    JobTimings,
    LevelUpBonusRules,
    MiningRules,
)
from ember.modules.catalog.definitions import (
    BlueprintDefinition,
    JobDefinition,
    LootboxDefinition,
    MaterialDefinition,
    MissionPool,
    MissionTemplate,
    ToolDefinition,
    ZoneDefinition,
)
from ember.modules.shared.formulas import LevelCurve

logger = get_logger(__name__)


def _table(config: Type[ConfigManager], key: str) -> Dict[str, Dict[str, Any]]:
    rows = config.get(key)
    if not isinstance(rows, dict) or not rows:
        raise CatalogError(key, key, f"table '{key}' is missing or empty")
    return rows


def _bonuses(raw: Optional[Mapping[Any, Any]]) -> Dict[int, Bonus]:
    return {
        int(level): Bonus(coins=int(row.get("coins", 0)), tokens=int(row.get("tokens", 0)))
        for level, row in (raw or {}).items()
    }


def load_rules(config: Type[ConfigManager] = ConfigManager) -> CatalogRules:
    """Read tuning rules; every key falls back to its documented default."""
    leveling = config.get("economy.leveling", {})
    daily = config.get("economy.daily_reward", {})
    level_up = config.get("economy.level_up_bonus", {})
    crafting = config.get("economy.crafting", {})
    jobs = config.get("economy.jobs", {})
    inventory = config.get("economy.inventory", {})
    mining = config.get("core.mining", {})
    tool_rules = config.get("tool_rules", {})

    cooldowns = mining.get("cooldown_minutes_by_tier") or {1: 5, 2: 4, 3: 3, 4: 2}
    job_bonus = mining.get("job_bonus", {})
    quality_roll = mining.get("quality_roll", {})
    upgrades = tool_rules.get("upgrades", {})
    defaults = CatalogRules()

    return CatalogRules(
        leveling=LevelCurve(
            base_xp=int(leveling.get("base_xp", 100)),
            growth_rate=float(leveling.get("growth_rate", 1.5)),
            max_level=int(leveling.get("max_level", 200)),
        ),
        daily_reward=DailyRewardRules(
            base_amount=int(daily.get("base_amount", 150)),
            streak_bonus_factor=int(daily.get("streak_bonus_factor", 30)),
            streak_multiplier_cap=float(daily.get("streak_multiplier_cap", 0.5)),
            level_scaling_per_level=float(daily.get("level_scaling_per_level", 0.02)),
            lucky_chance=float(daily.get("lucky_chance", 0.10)),
            lucky_bonus_ratio=float(daily.get("lucky_bonus_ratio", 0.5)),
            streak_milestones=_bonuses(daily.get("streak_milestones")),
        ),
        level_up_bonus=LevelUpBonusRules(
            coins_per_level=int(level_up.get("coins_per_level", 10)),
            tokens_divisor=int(level_up.get("tokens_divisor", 10)),
            milestones=_bonuses(level_up.get("milestones")),
        ),
        mining=MiningRules(
            cooldown_by_tier={int(tier): timedelta(minutes=float(m)) for tier, m in cooldowns.items()},
            job_bonus_job_id=job_bonus.get("job_id", "miner"),
            job_bonus_weight=float(job_bonus.get("weight", 5)),
            rare_weight_threshold=float(mining.get("rare_weight_threshold", 15)),
            quality_min=int(quality_roll.get("min", 70)),
            quality_max=int(quality_roll.get("max", 100)),
        ),
        crafting=CraftingRules(
            quality_baseline=int(crafting.get("quality_baseline", 70)),
            quality_divisor=int(crafting.get("quality_divisor", 300)),
            max_success_rate=float(crafting.get("max_success_rate", 0.99)),
        ),
        jobs=JobTimings(
            change_cooldown=timedelta(minutes=float(jobs.get("change_cooldown_minutes", 60))),
            weekly_salary_interval=timedelta(days=float(jobs.get("weekly_salary_days", 7))),
            monthly_salary_interval=timedelta(days=float(jobs.get("monthly_salary_days", 30))),
        ),
        tool_upgrades=ToolUpgradeRules(
            base_cost=int(upgrades.get("base_cost", 200)),
            durability_step=int(upgrades.get("durability_step", 20)),
            quantity_step=float(upgrades.get("quantity_step", 0.02)),
            rare_step=float(upgrades.get("rare_step", 0.005)),
            quality_step=int(upgrades.get("quality_step", 1)),
            levels_per_tier=int(upgrades.get("levels_per_tier", 3)),
            max_tier=int(upgrades.get("max_tier", 4)),
        ),
        repair_multipliers={
            rarity: float(mult)
            for rarity, mult in (tool_rules.get("repair_multipliers") or defaults.repair_multipliers).items()
        },
        default_capacity=int(inventory.get("default_capacity", 500)),
        default_zone=inventory.get("default_zone", "forest_mine"),
    )


def _mission_pools(config: Type[ConfigManager]) -> Dict[MissionScope, MissionPool]:
    raw = _table(config, "missions")
    pools: Dict[MissionScope, MissionPool] = {}
    for scope in MissionScope:
        section = raw.get(scope.value)
        if not section:
            raise CatalogError("missions", scope.value, "mission pool is missing")
        pools[scope] = MissionPool(
            count=int(section.get("count", 3)),
            templates=tuple(MissionTemplate.from_dict(row) for row in section.get("templates", ())),
            reward_multiplier=int(section.get("reward_multiplier", 2)),
        )
    return pools


def load_catalog(config: Type[ConfigManager] = ConfigManager) -> GameCatalog:
    """
    Build and validate the catalog from loaded configuration.

    Raises:
        CatalogError: If a table is missing, malformed, or cross-references
            an unknown id.
    """
    catalog = GameCatalog(
        materials=[MaterialDefinition.from_dict(k, v) for k, v in _table(config, "materials").items()],
        tools=[ToolDefinition.from_dict(k, v) for k, v in _table(config, "tools").items()],
        zones=[ZoneDefinition.from_dict(k, v) for k, v in _table(config, "mining_zones").items()],
        blueprints=[BlueprintDefinition.from_dict(k, v) for k, v in _table(config, "blueprints").items()],
        jobs=[JobDefinition.from_dict(k, v) for k, v in _table(config, "jobs").items()],
        lootboxes=[LootboxDefinition.from_dict(k, v) for k, v in _table(config, "lootboxes").items()],
        mission_pools=_mission_pools(config),
        rules=load_rules(config),
    )
    logger.info(
        "Game catalog loaded",
        extra={
            "materials": len(catalog.materials),
            "tools": len(catalog.tools),
            "zones": len(catalog.zones),
            "blueprints": len(catalog.blueprints),
            "jobs": len(catalog.jobs),
            "lootboxes": len(catalog.lootboxes),
        },
    )
    return catalog
