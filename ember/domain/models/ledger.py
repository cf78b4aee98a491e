"""
Ledger value objects and entities owned by the player profile.

Purpose
-------
Model the currency wallet, the item inventory, material stacks and tools.
These are plain data holders with local validation; cross-object rules
(capacity, equipped tool must be owned...) are enforced by `PlayerProfile`.

Serialization
-------------
Each type exposes ``to_dict()`` / ``from_dict()`` producing JSON-safe data;
datetimes are ISO-8601 UTC strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ember.core.clock import from_iso, to_iso
from ember.domain.models.base import (
    DomainValidationError,
    validate_non_negative,
    validate_positive,
    validate_range,
)
from ember.modules.shared.exceptions import InsufficientFundsError

DEFAULT_QUALITY = 70
MIN_QUALITY = 1
MAX_QUALITY = 100


# ============================================================================
# WALLET
# ============================================================================


@dataclass(frozen=True)
class Wallet:
    """
    Immutable currency balance.

    Attributes
    ----------
    coins : int
        Primary currency
    tokens : int
        Premium currency
    """

    coins: int = 0
    tokens: int = 0

    def __post_init__(self) -> None:
        validate_non_negative(self.coins, "coins")
        validate_non_negative(self.tokens, "tokens")

    def can_afford(self, coins: int = 0, tokens: int = 0) -> bool:
        return self.coins >= coins and self.tokens >= tokens

    def credit(self, coins: int = 0, tokens: int = 0) -> "Wallet":
        """Return a new Wallet with the amounts added."""
        validate_non_negative(coins, "coins")
        validate_non_negative(tokens, "tokens")
        return Wallet(coins=self.coins + coins, tokens=self.tokens + tokens)

    def debit(self, coins: int = 0, tokens: int = 0) -> "Wallet":
        """
        Return a new Wallet with the amounts removed.

        Raises
        ------
        InsufficientFundsError
            If either balance would go negative. Coins are checked first.
        """
        validate_non_negative(coins, "coins")
        validate_non_negative(tokens, "tokens")
        if self.coins < coins:
            raise InsufficientFundsError("coins", coins, self.coins)
        if self.tokens < tokens:
            raise InsufficientFundsError("tokens", tokens, self.tokens)
        return Wallet(coins=self.coins - coins, tokens=self.tokens - tokens)

    def to_dict(self) -> Dict[str, int]:
        return {"coins": self.coins, "tokens": self.tokens}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Wallet":
        return cls(coins=int(data.get("coins", 0)), tokens=int(data.get("tokens", 0)))


# ============================================================================
# MATERIALS
# ============================================================================


@dataclass(frozen=True)
class MaterialRequirement:
    """One line of a material cost (blueprint input, repair cost)."""

    material_id: str
    quantity: int

    def __post_init__(self) -> None:
        validate_positive(self.quantity, "quantity")


@dataclass
class MaterialStack:
    """
    A quantity of one material held by the player.

    `unit_weight` and `rarity` are copied from the material definition when
    the stack is created so capacity can be computed without the catalog.
    """

    material_id: str
    quantity: int
    quality: int = DEFAULT_QUALITY
    rarity: str = "common"
    origin: Optional[str] = None
    bound: bool = False
    unit_weight: int = 1

    def __post_init__(self) -> None:
        validate_non_negative(self.quantity, "quantity")
        validate_range(self.quality, MIN_QUALITY, MAX_QUALITY, "quality")
        validate_non_negative(self.unit_weight, "unit_weight")

    @property
    def weight(self) -> int:
        return self.unit_weight * self.quantity

    def merge(self, quantity: int, quality: int) -> None:
        """Add units, folding quality into a floor-divided weighted average."""
        total = self.quantity + quantity
        if total > 0:
            self.quality = (self.quality * self.quantity + quality * quantity) // total
        self.quantity = total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_id": self.material_id,
            "quantity": self.quantity,
            "quality": self.quality,
            "rarity": self.rarity,
            "origin": self.origin,
            "bound": self.bound,
            "unit_weight": self.unit_weight,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MaterialStack":
        return cls(
            material_id=data["material_id"],
            quantity=int(data["quantity"]),
            quality=int(data.get("quality", DEFAULT_QUALITY)),
            rarity=data.get("rarity", "common"),
            origin=data.get("origin"),
            bound=bool(data.get("bound", False)),
            unit_weight=int(data.get("unit_weight", 1)),
        )


# ============================================================================
# INVENTORY ITEMS
# ============================================================================


class ItemKind(str, Enum):
    LOOTBOX = "lootbox"
    CONSUMABLE = "consumable"


@dataclass
class ItemStack:
    """A stack of identical inventory items (lootboxes, consumables)."""

    kind: ItemKind
    type_id: str
    name: str
    quantity: int
    acquired_at: datetime
    first_acquired_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        validate_non_negative(self.quantity, "quantity")
        if self.first_acquired_at is None:
            self.first_acquired_at = self.acquired_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "type_id": self.type_id,
            "name": self.name,
            "quantity": self.quantity,
            "acquired_at": to_iso(self.acquired_at),
            "first_acquired_at": to_iso(self.first_acquired_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItemStack":
        return cls(
            kind=ItemKind(data["kind"]),
            type_id=data["type_id"],
            name=data.get("name", data["type_id"]),
            quantity=int(data["quantity"]),
            acquired_at=from_iso(data["acquired_at"]),
            first_acquired_at=from_iso(data.get("first_acquired_at")),
        )


# ============================================================================
# TOOLS
# ============================================================================


@dataclass(frozen=True)
class ToolBonus:
    """Mining modifiers granted by a tool."""

    quantity_multiplier: float = 1.0
    rare_chance_bonus: float = 0.0
    quality_bonus: int = 0

    def __post_init__(self) -> None:
        validate_positive(self.quantity_multiplier, "quantity_multiplier")
        validate_range(self.rare_chance_bonus, 0.0, 1.0, "rare_chance_bonus")
        validate_non_negative(self.quality_bonus, "quality_bonus")

    def improved(self, quantity_step: float, rare_step: float, quality_step: int) -> "ToolBonus":
        return ToolBonus(
            quantity_multiplier=round(self.quantity_multiplier + quantity_step, 4),
            rare_chance_bonus=round(min(self.rare_chance_bonus + rare_step, 1.0), 4),
            quality_bonus=self.quality_bonus + quality_step,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quantity_multiplier": self.quantity_multiplier,
            "rare_chance_bonus": self.rare_chance_bonus,
            "quality_bonus": self.quality_bonus,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolBonus":
        return cls(
            quantity_multiplier=float(data.get("quantity_multiplier", 1.0)),
            rare_chance_bonus=float(data.get("rare_chance_bonus", 0.0)),
            quality_bonus=int(data.get("quality_bonus", 0)),
        )


@dataclass(frozen=True)
class ToolUpgradeRules:
    """Per-upgrade increments and pricing for tools."""

    base_cost: int = 200
    durability_step: int = 20
    quantity_step: float = 0.02
    rare_step: float = 0.005
    quality_step: int = 1
    levels_per_tier: int = 3
    max_tier: int = 4

    def cost_for(self, upgrade_level: int) -> int:
        return self.base_cost * (upgrade_level + 1)


@dataclass
class Tool:
    """An owned mining tool instance."""

    tool_id: str
    name: str
    rarity: str
    tier: int
    durability: int
    max_durability: int
    upgrade_level: int = 0
    bonus: ToolBonus = field(default_factory=ToolBonus)
    acquired_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        validate_range(self.tier, 1, 4, "tier")
        validate_positive(self.max_durability, "max_durability")
        if not 0 <= self.durability <= self.max_durability:
            raise DomainValidationError(
                f"durability must be within [0, {self.max_durability}], got {self.durability}",
                field="durability",
            )

    @property
    def is_broken(self) -> bool:
        return self.durability <= 0

    @property
    def is_damaged(self) -> bool:
        return self.durability < self.max_durability

    def wear(self, amount: int) -> bool:
        """Lose durability, clamped at 0. Returns True if the tool is now broken."""
        self.durability = max(0, self.durability - max(0, amount))
        return self.is_broken

    def apply_upgrade(self, rules: ToolUpgradeRules) -> None:
        self.upgrade_level += 1
        self.max_durability += rules.durability_step
        self.durability = min(self.durability + rules.durability_step, self.max_durability)
        self.bonus = self.bonus.improved(rules.quantity_step, rules.rare_step, rules.quality_step)
        if self.upgrade_level % rules.levels_per_tier == 0:
            self.tier = min(self.tier + 1, rules.max_tier)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool_id": self.tool_id,
            "name": self.name,
            "rarity": self.rarity,
            "tier": self.tier,
            "durability": self.durability,
            "max_durability": self.max_durability,
            "upgrade_level": self.upgrade_level,
            "bonus": self.bonus.to_dict(),
            "acquired_at": to_iso(self.acquired_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tool":
        return cls(
            tool_id=data["tool_id"],
            name=data.get("name", data["tool_id"]),
            rarity=data.get("rarity", "common"),
            tier=int(data.get("tier", 1)),
            durability=int(data["durability"]),
            max_durability=int(data["max_durability"]),
            upgrade_level=int(data.get("upgrade_level", 0)),
            bonus=ToolBonus.from_dict(data.get("bonus", {})),
            acquired_at=from_iso(data.get("acquired_at")),
        )


# ============================================================================
# CRAFTING / MINING STATE
# ============================================================================


@dataclass
class CraftingStats:
    crafted_items: int = 0
    failed_crafts: int = 0
    mined_materials: int = 0
    mining_sessions: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "crafted_items": self.crafted_items,
            "failed_crafts": self.failed_crafts,
            "mined_materials": self.mined_materials,
            "mining_sessions": self.mining_sessions,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CraftingStats":
        return cls(**{k: int(data.get(k, 0)) for k in cls().to_dict()})


@dataclass
class CraftingState:
    """Mining/crafting sub-state of the profile."""

    active_zone: str = "forest_mine"
    inventory_capacity: int = 500
    mining_cooldown_until: Optional[datetime] = None
    equipped_tool_id: Optional[str] = None
    stats: CraftingStats = field(default_factory=CraftingStats)

    def __post_init__(self) -> None:
        validate_non_negative(self.inventory_capacity, "inventory_capacity")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active_zone": self.active_zone,
            "inventory_capacity": self.inventory_capacity,
            "mining_cooldown_until": to_iso(self.mining_cooldown_until),
            "equipped_tool_id": self.equipped_tool_id,
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CraftingState":
        return cls(
            active_zone=data.get("active_zone", "forest_mine"),
            inventory_capacity=int(data.get("inventory_capacity", 500)),
            mining_cooldown_until=from_iso(data.get("mining_cooldown_until")),
            equipped_tool_id=data.get("equipped_tool_id"),
            stats=CraftingStats.from_dict(data.get("stats", {})),
        )
