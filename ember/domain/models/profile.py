"""
Player Profile aggregate for Ember.

Purpose
-------
Rich domain model for the single per-player, per-guild progression record:
currencies, experience, inventory, materials, tools, job memberships,
missions and activity counters.

Responsibilities
----------------
- Enforce ledger invariants on every mutation:
  - balances and quantities never go negative
  - total material weight never exceeds `inventory_capacity`
  - tool durability stays within [0, max_durability]
  - the equipped tool is always owned and never broken
- Validate first, then mutate: a method that raises leaves the profile
  exactly as it was
- Emit domain events for level-ups, XP gains and broken tools
- Serialize to and from a JSON-safe document

Non-Responsibilities
--------------------
- Game rules that need static tables or randomness (engine services)
- Persistence and locking (ProfileRepository / ProgressionService)

Usage Example
-------------
>>> profile = PlayerProfile.new("guild-1", "player-1", now)
>>> profile.credit(coins=500)
>>> profile.add_material(iron_ore, 5, quality=82, origin="forest_mine")
>>> profile.consume_materials([MaterialRequirement("iron_ore", 3)])
>>> events = profile.clear_domain_events()
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple

from ember.core.clock import from_iso, to_iso
from ember.domain.models.base import AggregateRoot, validate_non_negative, validate_positive
from ember.domain.models.jobs import JobsState
from ember.domain.models.ledger import (
    DEFAULT_QUALITY,
    MAX_QUALITY,
    MIN_QUALITY,
    CraftingState,
    ItemKind,
    ItemStack,
    MaterialRequirement,
    MaterialStack,
    Tool,
    ToolUpgradeRules,
    Wallet,
)
from ember.domain.models.missions import MissionBoard
from ember.modules.shared.exceptions import (
    CapacityExceededError,
    InsufficientMaterialError,
    InvalidOperationError,
    ItemNotOwnedError,
    ToolBrokenError,
    ToolNotOwnedError,
)
from ember.modules.shared.formulas import LevelCurve, calculate_repair_cost
from ember.modules.shared.outcomes import FailureReason

if TYPE_CHECKING:
    from ember.modules.catalog.definitions import MaterialDefinition

DOCUMENT_SCHEMA_VERSION = 1


# ============================================================================
# ACTIVITY COUNTERS
# ============================================================================


@dataclass
class ActivityStats:
    """Streaks, lootbox statistics and per-box pity counters."""

    streak_days: int = 0
    last_daily_reward_at: Optional[datetime] = None
    boxes_opened: Dict[str, int] = field(default_factory=dict)
    boxes_total_value: int = 0
    lootbox_pity: Dict[str, int] = field(default_factory=dict)

    @property
    def total_boxes_opened(self) -> int:
        return sum(self.boxes_opened.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "streak_days": self.streak_days,
            "last_daily_reward_at": to_iso(self.last_daily_reward_at),
            "boxes_opened": dict(self.boxes_opened),
            "boxes_total_value": self.boxes_total_value,
            "lootbox_pity": dict(self.lootbox_pity),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActivityStats":
        return cls(
            streak_days=int(data.get("streak_days", 0)),
            last_daily_reward_at=from_iso(data.get("last_daily_reward_at")),
            boxes_opened={k: int(v) for k, v in data.get("boxes_opened", {}).items()},
            boxes_total_value=int(data.get("boxes_total_value", 0)),
            lootbox_pity={k: int(v) for k, v in data.get("lootbox_pity", {}).items()},
        )


# ============================================================================
# AGGREGATE
# ============================================================================


class PlayerProfile(AggregateRoot):
    """
    Aggregate root for one player's progression in one guild.

    Identity is the ``(guild_id, player_id)`` pair.
    """

    def __init__(
        self,
        guild_id: str,
        player_id: str,
        created_at: datetime,
        wallet: Optional[Wallet] = None,
        level: int = 1,
        xp: int = 0,
        total_xp: int = 0,
        inventory: Optional[List[ItemStack]] = None,
        materials: Optional[List[MaterialStack]] = None,
        tools: Optional[List[Tool]] = None,
        crafting: Optional[CraftingState] = None,
        jobs: Optional[JobsState] = None,
        missions: Optional[MissionBoard] = None,
        activity: Optional[ActivityStats] = None,
        version: int = 0,
    ) -> None:
        super().__init__((guild_id, player_id))
        validate_positive(level, "level")
        validate_non_negative(xp, "xp")
        validate_non_negative(total_xp, "total_xp")

        self.guild_id = guild_id
        self.player_id = player_id
        self.created_at = created_at
        self.wallet = wallet or Wallet()
        self.level = level
        self.xp = xp
        self.total_xp = total_xp
        self.inventory: List[ItemStack] = inventory or []
        self.materials: List[MaterialStack] = materials or []
        self.tools: List[Tool] = tools or []
        self.crafting = crafting or CraftingState()
        self.jobs = jobs or JobsState()
        self.missions = missions or MissionBoard()
        self.activity = activity or ActivityStats()
        self.version = version

    @classmethod
    def new(
        cls,
        guild_id: str,
        player_id: str,
        now: datetime,
        inventory_capacity: int = 500,
        active_zone: str = "forest_mine",
    ) -> "PlayerProfile":
        """Create a fresh profile with default state."""
        return cls(
            guild_id=guild_id,
            player_id=player_id,
            created_at=now,
            crafting=CraftingState(
                active_zone=active_zone, inventory_capacity=inventory_capacity
            ),
        )

    # =========================================================================
    # CURRENCY
    # =========================================================================

    @property
    def coins(self) -> int:
        return self.wallet.coins

    @property
    def tokens(self) -> int:
        return self.wallet.tokens

    def can_afford(self, coins: int = 0, tokens: int = 0) -> bool:
        return self.wallet.can_afford(coins, tokens)

    def credit(self, coins: int = 0, tokens: int = 0) -> None:
        self.wallet = self.wallet.credit(coins=coins, tokens=tokens)

    def debit(self, coins: int = 0, tokens: int = 0) -> None:
        """
        Remove currency.

        Raises
        ------
        InsufficientFundsError
            If the balance is too low; nothing is debited.
        """
        self.wallet = self.wallet.debit(coins=coins, tokens=tokens)

    # =========================================================================
    # EXPERIENCE
    # =========================================================================

    def add_xp(self, amount: int, curve: LevelCurve) -> int:
        """
        Grant experience and re-derive the level from the curve.

        Emits ``profile.xp_gained`` and one ``profile.leveled_up`` per level
        gained.

        Returns
        -------
        int
            Number of levels gained.
        """
        if amount <= 0:
            return 0

        old_level = self.level
        self.xp += amount
        self.total_xp += amount
        self.level = max(self.level, curve.level_for_xp(self.xp))

        self.add_domain_event("profile.xp_gained", {"amount": amount, "xp": self.xp})
        for new_level in range(old_level + 1, self.level + 1):
            self.add_domain_event(
                "profile.leveled_up",
                {"old_level": new_level - 1, "new_level": new_level},
            )
        return self.level - old_level

    # =========================================================================
    # INVENTORY ITEMS
    # =========================================================================

    def _find_item(self, kind: ItemKind, type_id: str) -> Optional[ItemStack]:
        for stack in self.inventory:
            if stack.kind == kind and stack.type_id == type_id:
                return stack
        return None

    def item_quantity(self, kind: ItemKind, type_id: str) -> int:
        stack = self._find_item(kind, type_id)
        return stack.quantity if stack else 0

    def add_item(
        self, kind: ItemKind, type_id: str, name: str, quantity: int, now: datetime
    ) -> ItemStack:
        """Add items, merging into an existing stack of the same kind and type."""
        validate_positive(quantity, "quantity")
        stack = self._find_item(kind, type_id)
        if stack is None:
            stack = ItemStack(
                kind=kind, type_id=type_id, name=name, quantity=quantity, acquired_at=now
            )
            self.inventory.append(stack)
        else:
            stack.quantity += quantity
            stack.acquired_at = now
        return stack

    def remove_item(self, kind: ItemKind, type_id: str, quantity: int = 1) -> None:
        """
        Remove items, pruning the stack at zero.

        Raises
        ------
        ItemNotOwnedError
            If fewer than `quantity` items are held.
        """
        validate_positive(quantity, "quantity")
        stack = self._find_item(kind, type_id)
        held = stack.quantity if stack else 0
        if stack is None or held < quantity:
            raise ItemNotOwnedError(type_id, quantity, held)
        stack.quantity -= quantity
        if stack.quantity == 0:
            self.inventory.remove(stack)

    def consolidated_inventory(self) -> List[Dict[str, Any]]:
        """
        Read model grouping items by kind and type, largest stacks first.
        """
        grouped: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for stack in self.inventory:
            key = (stack.kind.value, stack.type_id)
            entry = grouped.get(key)
            if entry is None:
                grouped[key] = {
                    "kind": stack.kind.value,
                    "type_id": stack.type_id,
                    "name": stack.name,
                    "quantity": stack.quantity,
                    "first_acquired": stack.first_acquired_at,
                    "last_acquired": stack.acquired_at,
                }
                continue
            entry["quantity"] += stack.quantity
            entry["first_acquired"] = min(entry["first_acquired"], stack.first_acquired_at)
            entry["last_acquired"] = max(entry["last_acquired"], stack.acquired_at)
        return sorted(grouped.values(), key=lambda e: (-e["quantity"], e["type_id"]))

    # =========================================================================
    # MATERIALS
    # =========================================================================

    def get_material(self, material_id: str) -> Optional[MaterialStack]:
        for stack in self.materials:
            if stack.material_id == material_id:
                return stack
        return None

    def material_quantity(self, material_id: str) -> int:
        stack = self.get_material(material_id)
        return stack.quantity if stack else 0

    def material_weight(self) -> int:
        return sum(stack.weight for stack in self.materials)

    def free_capacity(self) -> int:
        return self.crafting.inventory_capacity - self.material_weight()

    def can_fit(self, weight: int) -> bool:
        return self.material_weight() + weight <= self.crafting.inventory_capacity

    def add_material(
        self,
        material: "MaterialDefinition",
        quantity: int,
        quality: Optional[int] = None,
        origin: Optional[str] = None,
    ) -> MaterialStack:
        """
        Add a material, merging into an existing stack.

        Quality defaults to 70 and is clamped to [1, 100]; merging uses a
        floor-divided quantity-weighted average.

        Raises
        ------
        CapacityExceededError
            If the projected weight exceeds capacity; the ledger is unchanged.
        """
        validate_positive(quantity, "quantity")
        quality = DEFAULT_QUALITY if quality is None else quality
        quality = max(MIN_QUALITY, min(MAX_QUALITY, int(quality)))

        projected = self.material_weight() + material.weight * quantity
        if projected > self.crafting.inventory_capacity:
            raise CapacityExceededError(projected, self.crafting.inventory_capacity)

        stack = self.get_material(material.material_id)
        if stack is None:
            stack = MaterialStack(
                material_id=material.material_id,
                quantity=quantity,
                quality=quality,
                rarity=material.rarity,
                origin=origin,
                unit_weight=material.weight,
            )
            self.materials.append(stack)
        else:
            stack.merge(quantity, quality)
        return stack

    @staticmethod
    def _totals(requirements: Iterable[MaterialRequirement]) -> Dict[str, int]:
        totals: Dict[str, int] = defaultdict(int)
        for line in requirements:
            totals[line.material_id] += line.quantity
        return dict(totals)

    def missing_materials(
        self, requirements: Iterable[MaterialRequirement]
    ) -> List[Dict[str, Any]]:
        """Requirement lines the ledger cannot cover, with shortfalls."""
        missing = []
        for material_id, required in self._totals(requirements).items():
            held = self.material_quantity(material_id)
            if held < required:
                missing.append(
                    {"material_id": material_id, "required": required, "current": held}
                )
        return missing

    def has_materials(self, requirements: Iterable[MaterialRequirement]) -> bool:
        return not self.missing_materials(requirements)

    def consume_materials(self, requirements: Iterable[MaterialRequirement]) -> None:
        """
        Deduct every requirement line, or nothing.

        Raises
        ------
        InsufficientMaterialError
            For the first unmet line; no stack is touched.
        """
        totals = self._totals(requirements)
        for material_id, required in totals.items():
            held = self.material_quantity(material_id)
            if held < required:
                raise InsufficientMaterialError(material_id, required, held)

        for material_id, required in totals.items():
            stack = self.get_material(material_id)
            stack.quantity -= required
        self.materials = [s for s in self.materials if s.quantity > 0]

    def weighted_quality(self, requirements: Iterable[MaterialRequirement]) -> float:
        """
        Quantity-weighted average quality of the stacks a recipe would consume.

        Returns the default quality (70) when nothing is required.
        """
        total_qty = 0
        total_quality = 0
        for material_id, required in self._totals(requirements).items():
            stack = self.get_material(material_id)
            quality = stack.quality if stack else DEFAULT_QUALITY
            total_qty += required
            total_quality += quality * required
        if total_qty == 0:
            return float(DEFAULT_QUALITY)
        return total_quality / total_qty

    def upgrade_capacity(self, amount: int, cost: int) -> int:
        """
        Buy extra material capacity.

        Raises
        ------
        InsufficientFundsError
            If the player cannot pay `cost` coins.
        """
        validate_positive(amount, "amount")
        validate_non_negative(cost, "cost")
        self.debit(coins=cost)
        self.crafting.inventory_capacity += amount
        return self.crafting.inventory_capacity

    # =========================================================================
    # TOOLS
    # =========================================================================

    def get_tool(self, tool_id: str) -> Optional[Tool]:
        for tool in self.tools:
            if tool.tool_id == tool_id:
                return tool
        return None

    def _require_tool(self, tool_id: str) -> Tool:
        tool = self.get_tool(tool_id)
        if tool is None:
            raise ToolNotOwnedError(tool_id)
        return tool

    @property
    def equipped_tool(self) -> Optional[Tool]:
        if self.crafting.equipped_tool_id is None:
            return None
        return self.get_tool(self.crafting.equipped_tool_id)

    def add_tool(self, tool: Tool) -> Tool:
        """
        Raises
        ------
        InvalidOperationError
            If a tool with the same id is already owned.
        """
        if self.get_tool(tool.tool_id) is not None:
            raise InvalidOperationError(
                "add_tool", FailureReason.TOOL_ALREADY_OWNED, tool_id=tool.tool_id
            )
        self.tools.append(tool)
        return tool

    def equip_tool(self, tool_id: str) -> Tool:
        """
        Raises
        ------
        ToolNotOwnedError
            If the tool is not owned.
        ToolBrokenError
            If the tool has no durability left.
        """
        tool = self._require_tool(tool_id)
        if tool.is_broken:
            raise ToolBrokenError(tool_id)
        self.crafting.equipped_tool_id = tool.tool_id
        return tool

    def unequip_tool(self) -> Optional[str]:
        previous = self.crafting.equipped_tool_id
        self.crafting.equipped_tool_id = None
        return previous

    def wear_equipped_tool(self, amount: int) -> bool:
        """
        Apply durability loss to the equipped tool.

        A tool that reaches 0 durability is unequipped and ``tool.broken`` is
        emitted.

        Returns
        -------
        bool
            True if the tool broke on this call.
        """
        tool = self.equipped_tool
        if tool is None:
            return False
        if tool.wear(amount):
            self.crafting.equipped_tool_id = None
            self.add_domain_event("tool.broken", {"tool_id": tool.tool_id})
            return True
        return False

    def repair_tool(
        self,
        tool_id: str,
        base_cost: int,
        rarity_multiplier: float,
        material_cost: Iterable[MaterialRequirement] = (),
    ) -> Dict[str, Any]:
        """
        Restore a tool to full durability.

        Cost is ``floor(base_cost * (1 - durability/max) * rarity_multiplier)``
        coins plus any material lines. Everything is validated before the
        first write.

        Raises
        ------
        ToolNotOwnedError
        InvalidOperationError
            If the tool is already at full durability.
        InsufficientFundsError
        InsufficientMaterialError
        """
        tool = self._require_tool(tool_id)
        if not tool.is_damaged:
            raise InvalidOperationError(
                "repair_tool", FailureReason.TOOL_NOT_DAMAGED, tool_id=tool_id
            )

        material_cost = list(material_cost)
        cost = calculate_repair_cost(
            base_cost, tool.durability, tool.max_durability, rarity_multiplier
        )
        new_wallet = self.wallet.debit(coins=cost)
        for material_id, required in self._totals(material_cost).items():
            held = self.material_quantity(material_id)
            if held < required:
                raise InsufficientMaterialError(material_id, required, held)

        self.consume_materials(material_cost)
        self.wallet = new_wallet
        restored = tool.max_durability - tool.durability
        tool.durability = tool.max_durability
        return {
            "tool_id": tool_id,
            "cost": cost,
            "restored": restored,
            "materials": [
                {"material_id": line.material_id, "quantity": line.quantity}
                for line in material_cost
            ],
        }

    def upgrade_tool(self, tool_id: str, rules: ToolUpgradeRules) -> Dict[str, Any]:
        """
        Upgrade a tool one level for ``base_cost * (upgrade_level + 1)`` coins.

        Raises
        ------
        ToolNotOwnedError
        InsufficientFundsError
        """
        tool = self._require_tool(tool_id)
        cost = rules.cost_for(tool.upgrade_level)
        self.debit(coins=cost)
        old_tier = tool.tier
        tool.apply_upgrade(rules)
        return {
            "tool_id": tool_id,
            "cost": cost,
            "new_level": tool.upgrade_level,
            "new_tier": tool.tier,
            "tier_increased": tool.tier > old_tier,
        }

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_document(self) -> Dict[str, Any]:
        """JSON-safe snapshot of the whole aggregate (version excluded)."""
        return {
            "schema": DOCUMENT_SCHEMA_VERSION,
            "guild_id": self.guild_id,
            "player_id": self.player_id,
            "created_at": to_iso(self.created_at),
            "wallet": self.wallet.to_dict(),
            "level": self.level,
            "xp": self.xp,
            "total_xp": self.total_xp,
            "inventory": [s.to_dict() for s in self.inventory],
            "materials": [s.to_dict() for s in self.materials],
            "tools": [t.to_dict() for t in self.tools],
            "crafting": self.crafting.to_dict(),
            "jobs": self.jobs.to_dict(),
            "missions": self.missions.to_dict(),
            "activity": self.activity.to_dict(),
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any], version: int = 0) -> "PlayerProfile":
        return cls(
            guild_id=document["guild_id"],
            player_id=document["player_id"],
            created_at=from_iso(document["created_at"]),
            wallet=Wallet.from_dict(document.get("wallet", {})),
            level=int(document.get("level", 1)),
            xp=int(document.get("xp", 0)),
            total_xp=int(document.get("total_xp", 0)),
            inventory=[ItemStack.from_dict(s) for s in document.get("inventory", [])],
            materials=[MaterialStack.from_dict(s) for s in document.get("materials", [])],
            tools=[Tool.from_dict(t) for t in document.get("tools", [])],
            crafting=CraftingState.from_dict(document.get("crafting", {})),
            jobs=JobsState.from_dict(document.get("jobs", {})),
            missions=MissionBoard.from_dict(document.get("missions", {})),
            activity=ActivityStats.from_dict(document.get("activity", {})),
            version=version,
        )

    def __repr__(self) -> str:
        return (
            f"PlayerProfile(guild_id={self.guild_id!r}, player_id={self.player_id!r}, "
            f"level={self.level}, coins={self.coins}, tokens={self.tokens}, "
            f"version={self.version})"
        )
