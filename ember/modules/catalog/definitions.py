"""
Static table definitions.

Frozen dataclasses for every lookup table the engines consume. Each type
has a ``from_dict(key, data)`` constructor that reads the YAML shape under
``config/catalog/``. Malformed rows raise `CatalogError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from ember.core.exceptions import CatalogError
from ember.domain.models.base import DomainValidationError
from ember.domain.models.ledger import MaterialRequirement, ToolBonus
from ember.modules.rewards.models import RewardEntry


def _requirements(table: str, key: str, rows: Any) -> Tuple[MaterialRequirement, ...]:
    try:
        return tuple(
            MaterialRequirement(material_id=row["material_id"], quantity=int(row["quantity"]))
            for row in rows or ()
        )
    except (KeyError, TypeError, ValueError, DomainValidationError) as e:
        raise CatalogError(table, key, f"invalid material requirement: {e}") from e


@dataclass(frozen=True)
class QuantityRange:
    minimum: int
    maximum: int

    @classmethod
    def from_dict(cls, data: Any, default: Tuple[int, int] = (0, 0)) -> "QuantityRange":
        if data is None:
            return cls(*default)
        if isinstance(data, (int, float)):
            return cls(int(data), int(data))
        minimum = int(data.get("min", default[0]))
        return cls(minimum, int(data.get("max", minimum)))

    @property
    def is_zero(self) -> bool:
        return self.maximum <= 0


# ============================================================================
# MATERIALS / TOOLS / ZONES
# ============================================================================


@dataclass(frozen=True)
class MaterialDefinition:
    material_id: str
    name: str
    rarity: str
    weight: int
    base_value: int
    xp_gain: int = 0
    min_level: int = 1
    tradeable: bool = True
    virtual: bool = False
    refinable_into: Optional[str] = None

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "MaterialDefinition":
        try:
            return cls(
                material_id=key,
                name=data.get("name", key),
                rarity=data.get("rarity", "common"),
                weight=int(data["weight"]),
                base_value=int(data.get("base_value", 0)),
                xp_gain=int(data.get("xp_gain", 0)),
                min_level=int(data.get("min_level", 1)),
                tradeable=bool(data.get("tradeable", True)),
                virtual=bool(data.get("virtual", False)),
                refinable_into=data.get("refinable_into"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogError("materials", key, f"invalid row: {e}") from e


@dataclass(frozen=True)
class ToolRepairCost:
    base_cost_coins: int
    materials: Tuple[MaterialRequirement, ...] = ()


@dataclass(frozen=True)
class ToolDefinition:
    tool_id: str
    name: str
    rarity: str
    tier: int
    min_level: int
    max_durability: int
    bonus: ToolBonus
    repair: ToolRepairCost

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "ToolDefinition":
        try:
            repair = data.get("repair", {})
            return cls(
                tool_id=key,
                name=data.get("name", key),
                rarity=data.get("rarity", "common"),
                tier=int(data["tier"]),
                min_level=int(data.get("min_level", 1)),
                max_durability=int(data["max_durability"]),
                bonus=ToolBonus.from_dict(data.get("bonus", {})),
                repair=ToolRepairCost(
                    base_cost_coins=int(repair.get("base_cost_coins", 0)),
                    materials=_requirements("tools", key, repair.get("materials")),
                ),
            )
        except (KeyError, TypeError, ValueError, DomainValidationError) as e:
            raise CatalogError("tools", key, f"invalid row: {e}") from e


@dataclass(frozen=True)
class ZoneDrop:
    material_id: str
    weight: float


@dataclass(frozen=True)
class ZoneDefinition:
    zone_id: str
    name: str
    min_level: int
    required_tool_tier: int
    base_quantity: QuantityRange
    durability_cost: int
    drops: Tuple[ZoneDrop, ...]

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "ZoneDefinition":
        try:
            drops = tuple(
                ZoneDrop(material_id=row["material_id"], weight=float(row["weight"]))
                for row in data["drops"]
            )
            return cls(
                zone_id=key,
                name=data.get("name", key),
                min_level=int(data.get("min_level", 1)),
                required_tool_tier=int(data.get("required_tool_tier", 1)),
                base_quantity=QuantityRange.from_dict(data.get("base_quantity"), (1, 1)),
                durability_cost=int(data.get("durability_cost", 1)),
                drops=drops,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogError("mining_zones", key, f"invalid row: {e}") from e


# ============================================================================
# BLUEPRINTS
# ============================================================================


class BlueprintResultKind(str, Enum):
    MATERIAL = "material"
    LOOTBOX = "lootbox"
    COINS = "coins"
    TOKENS = "tokens"


@dataclass(frozen=True)
class BlueprintResult:
    kind: BlueprintResultKind
    quantity: int
    item_id: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class BlueprintDefinition:
    blueprint_id: str
    name: str
    category: str
    required_level: int
    success_rate: float
    cost_coins: int
    cost_tokens: int
    requires: Tuple[MaterialRequirement, ...]
    result: BlueprintResult

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "BlueprintDefinition":
        try:
            result = data["result"]
            kind = BlueprintResultKind(result["type"])
            return cls(
                blueprint_id=key,
                name=data.get("name", key),
                category=data.get("category", "misc"),
                required_level=int(data.get("required_level", 1)),
                success_rate=float(data["success_rate"]),
                cost_coins=int(data.get("cost_coins", 0)),
                cost_tokens=int(data.get("cost_tokens", 0)),
                requires=_requirements("blueprints", key, data.get("requires")),
                result=BlueprintResult(
                    kind=kind,
                    quantity=int(result.get("quantity", result.get("amount", 1))),
                    item_id=result.get("item_id"),
                    name=result.get("name"),
                ),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogError("blueprints", key, f"invalid row: {e}") from e


# ============================================================================
# JOBS
# ============================================================================


@dataclass(frozen=True)
class JobTaxes:
    rate: float
    applies_to: FrozenSet[str]


@dataclass(frozen=True)
class TaxEvasion:
    chance: float
    reduction: float


@dataclass(frozen=True)
class JobRank:
    level: int
    name: str


@dataclass(frozen=True)
class Salary:
    coins: int = 0
    tokens: int = 0


@dataclass(frozen=True)
class JobDefinition:
    job_id: str
    name: str
    illegal: bool
    fail_chance: float
    cooldown: timedelta
    rewards: Dict[str, QuantityRange]
    fail_penalty: QuantityRange
    xp_per_level: int
    max_level: int
    ranks: Tuple[JobRank, ...]
    taxes: Optional[JobTaxes] = None
    tax_evasion: Optional[TaxEvasion] = None
    weekly_salary: Optional[Salary] = None
    monthly_salary: Optional[Salary] = None

    @property
    def starting_rank(self) -> str:
        return self.ranks[0].name if self.ranks else "Novato"

    def rank_for_level(self, level: int) -> str:
        """Highest rank whose level threshold is <= `level`."""
        for rank in sorted(self.ranks, key=lambda r: r.level, reverse=True):
            if rank.level <= level:
                return rank.name
        return self.starting_rank

    def salary(self, period: str) -> Optional[Salary]:
        return self.weekly_salary if period == "weekly" else self.monthly_salary

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "JobDefinition":
        try:
            taxes = data.get("taxes")
            evasion = data.get("tax_evasion")
            progression = data.get("progression", {})
            rewards = data.get("rewards", {})

            def salary(raw: Optional[Dict[str, Any]]) -> Optional[Salary]:
                if not raw:
                    return None
                return Salary(coins=int(raw.get("coins", 0)), tokens=int(raw.get("tokens", 0)))

            return cls(
                job_id=key,
                name=data.get("name", key),
                illegal=bool(data.get("illegal", False)),
                fail_chance=float(data.get("fail_chance", 0.0)),
                cooldown=timedelta(minutes=int(data.get("cooldown_minutes", 30))),
                rewards={
                    currency: QuantityRange.from_dict(rewards.get(currency))
                    for currency in ("coins", "tokens", "xp")
                },
                fail_penalty=QuantityRange.from_dict(data.get("fail_penalty"), (90, 180)),
                xp_per_level=int(progression.get("xp_per_level", 100)),
                max_level=int(progression.get("max_level", 20)),
                ranks=tuple(
                    sorted(
                        (
                            JobRank(
                                level=int(r["level"]),
                                name=r["name"],
                            )
                            for r in data.get("ranks", ())
                        ),
                        key=lambda r: r.level,
                    )
                ),
                taxes=(
                    JobTaxes(rate=float(taxes["rate"]), applies_to=frozenset(taxes.get("applies_to", ())))
                    if taxes
                    else None
                ),
                tax_evasion=(
                    TaxEvasion(chance=float(evasion["chance"]), reduction=float(evasion["reduction"]))
                    if evasion
                    else None
                ),
                weekly_salary=salary(data.get("weekly_salary")),
                monthly_salary=salary(data.get("monthly_salary")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogError("jobs", key, f"invalid row: {e}") from e


# ============================================================================
# LOOTBOXES
# ============================================================================


@dataclass(frozen=True)
class LuckyModifier:
    chance: float
    min_multiplier: int
    max_multiplier: int


@dataclass(frozen=True)
class ExtraDrops:
    chance: float
    max_extra: int


@dataclass(frozen=True)
class Jackpot:
    chance: float
    reward: RewardEntry


@dataclass(frozen=True)
class Pity:
    threshold: int
    upgrade_to: str


@dataclass(frozen=True)
class LootboxDefinition:
    box_type: str
    name: str
    cost: int
    rewards: Tuple[RewardEntry, ...]
    lucky: Optional[LuckyModifier] = None
    extra_drops: Optional[ExtraDrops] = None
    jackpot: Optional[Jackpot] = None
    pity: Optional[Pity] = None

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "LootboxDefinition":
        try:
            lucky = data.get("lucky")
            extra = data.get("extra_drops")
            jackpot = data.get("jackpot")
            pity = data.get("pity")
            return cls(
                box_type=key,
                name=data.get("name", key),
                cost=int(data.get("cost", 0)),
                rewards=tuple(RewardEntry.from_dict(row) for row in data["rewards"]),
                lucky=(
                    LuckyModifier(
                        chance=float(lucky["chance"]),
                        min_multiplier=int(lucky.get("min", 1)),
                        max_multiplier=int(lucky.get("max", 1)),
                    )
                    if lucky
                    else None
                ),
                extra_drops=(
                    ExtraDrops(chance=float(extra["chance"]), max_extra=int(extra["max_extra"]))
                    if extra
                    else None
                ),
                jackpot=(
                    Jackpot(chance=float(jackpot["chance"]), reward=RewardEntry.from_dict(jackpot["reward"]))
                    if jackpot
                    else None
                ),
                pity=(
                    Pity(threshold=int(pity["threshold"]), upgrade_to=pity["upgrade_to"])
                    if pity
                    else None
                ),
            )
        except (KeyError, TypeError, ValueError, DomainValidationError) as e:
            raise CatalogError("lootboxes", key, f"invalid row: {e}") from e


# ============================================================================
# MISSIONS
# ============================================================================


@dataclass(frozen=True)
class MissionTemplate:
    type: str
    goal: QuantityRange
    lootbox: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MissionTemplate":
        try:
            return cls(
                type=data["type"],
                goal=QuantityRange.from_dict(data, (1, 1)),
                lootbox=data.get("lootbox"),
            )
        except (KeyError, TypeError, ValueError) as e:
            identifier = data.get("type", "?") if isinstance(data, dict) else data
            raise CatalogError("missions", identifier, f"invalid template: {e}") from e


@dataclass(frozen=True)
class MissionPool:
    count: int
    templates: Tuple[MissionTemplate, ...]
    reward_multiplier: int = 2

    @property
    def effective_count(self) -> int:
        return min(self.count, len(self.templates))
