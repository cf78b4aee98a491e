"""
Workshop Service

Purpose
-------
Tool lifecycle and material ledger operations for a loaded profile:
granting, equipping, repairing and upgrading tools, plus read models of the
material ledger and inventory.

Domain
------
- Grant a fresh tool from its definition
- Equip / unequip (the equipped tool is always owned and never broken)
- Repair: ``floor(base * (1 - durability/max) * rarity_multiplier)`` coins
  plus the definition's material lines
- Upgrade: ``base_cost * (upgrade_level + 1)`` coins, better bonuses, a tier
  step every few upgrades
- Ledger and inventory read models

All rule enforcement lives on `PlayerProfile`; this service resolves catalog
data and turns domain exceptions into `Outcome` failures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ember.core.exceptions import CatalogError
from ember.domain.models.ledger import Tool
from ember.modules.shared.base_service import BaseService
from ember.modules.shared.exceptions import EmberDomainException
from ember.modules.shared.formulas import calculate_repair_cost
from ember.modules.shared.outcomes import FailureReason, Outcome

if TYPE_CHECKING:
    from logging import Logger

    from ember.core.clock import Clock
    from ember.domain.models.profile import PlayerProfile
    from ember.modules.catalog.catalog import GameCatalog


class WorkshopService(BaseService):
    """
    Tool and material ledger operations.

    Public Methods
    --------------
    - grant_tool() -> Add a fresh tool instance
    - equip() / unequip() -> Change the equipped tool
    - repair() -> Restore durability for coins and materials
    - upgrade() -> Raise a tool's upgrade level
    - material_summary() -> Ledger read model
    - inventory_summary() -> Consolidated inventory read model
    """

    def __init__(self, catalog: GameCatalog, clock: Clock, logger: Optional[Logger] = None) -> None:
        super().__init__(catalog, logger=logger)
        self.clock = clock

    # ========================================================================
    # TOOLS
    # ========================================================================

    def grant_tool(self, profile: PlayerProfile, tool_id: str, equip: bool = False) -> Outcome:
        """Add a brand-new tool at full durability."""
        try:
            definition = self.catalog.tool(tool_id)
        except CatalogError:
            return self.fail("grant_tool", FailureReason.INVALID_TOOL, profile, tool_id=tool_id)

        tool = Tool(
            tool_id=definition.tool_id,
            name=definition.name,
            rarity=definition.rarity,
            tier=definition.tier,
            durability=definition.max_durability,
            max_durability=definition.max_durability,
            bonus=definition.bonus,
            acquired_at=self.clock.now(),
        )
        try:
            profile.add_tool(tool)
            if equip:
                profile.equip_tool(tool.tool_id)
        except EmberDomainException as e:
            return self.reject("grant_tool", e, profile)

        self.log_operation("grant_tool", profile, tool_id=tool_id, equipped=equip)
        return Outcome.ok(tool=tool.to_dict(), equipped=equip)

    def equip(self, profile: PlayerProfile, tool_id: str) -> Outcome:
        try:
            tool = profile.equip_tool(tool_id)
        except EmberDomainException as e:
            return self.reject("equip_tool", e, profile)
        self.log_operation("equip_tool", profile, tool_id=tool_id)
        return Outcome.ok(tool_id=tool.tool_id, tier=tool.tier, durability=tool.durability)

    def unequip(self, profile: PlayerProfile) -> Outcome:
        previous = profile.unequip_tool()
        if previous is None:
            return self.fail("unequip_tool", FailureReason.NO_TOOL_EQUIPPED, profile)
        self.log_operation("unequip_tool", profile, tool_id=previous)
        return Outcome.ok(tool_id=previous)

    def repair_cost(self, profile: PlayerProfile, tool_id: str) -> Outcome:
        """Quote a repair without performing it."""
        tool = profile.get_tool(tool_id)
        if tool is None:
            return self.fail("repair_cost", FailureReason.TOOL_NOT_OWNED, profile, tool_id=tool_id)
        definition = self.catalog.tool(tool_id)
        cost = calculate_repair_cost(
            definition.repair.base_cost_coins,
            tool.durability,
            tool.max_durability,
            self.catalog.repair_multiplier(tool.rarity),
        )
        return Outcome.ok(
            tool_id=tool_id,
            cost=cost,
            damaged=tool.is_damaged,
            materials=[
                {"material_id": line.material_id, "quantity": line.quantity}
                for line in definition.repair.materials
            ],
        )

    def repair(self, profile: PlayerProfile, tool_id: str) -> Outcome:
        """
        Restore a tool to full durability.

        Fails with ``tool_not_owned``, ``tool_not_damaged``,
        ``not_enough_coins`` or ``missing_materials``; nothing is charged on
        failure.
        """
        tool = profile.get_tool(tool_id)
        if tool is None:
            return self.fail("repair_tool", FailureReason.TOOL_NOT_OWNED, profile, tool_id=tool_id)

        definition = self.catalog.tool(tool_id)
        try:
            result = profile.repair_tool(
                tool_id,
                base_cost=definition.repair.base_cost_coins,
                rarity_multiplier=self.catalog.repair_multiplier(tool.rarity),
                material_cost=definition.repair.materials,
            )
        except EmberDomainException as e:
            return self.reject("repair_tool", e, profile)

        self.log_operation("repair_tool", profile, **result)
        return Outcome.ok(**result)

    def upgrade(self, profile: PlayerProfile, tool_id: str) -> Outcome:
        try:
            result = profile.upgrade_tool(tool_id, self.catalog.rules.tool_upgrades)
        except EmberDomainException as e:
            return self.reject("upgrade_tool", e, profile)

        self.log_operation("upgrade_tool", profile, **result)
        return Outcome.ok(**result)

    # ========================================================================
    # READ MODELS
    # ========================================================================

    def material_summary(self, profile: PlayerProfile) -> Dict[str, Any]:
        materials: List[Dict[str, Any]] = []
        for stack in sorted(profile.materials, key=lambda s: s.material_id):
            definition = self.catalog.materials.get(stack.material_id)
            materials.append(
                {
                    **stack.to_dict(),
                    "name": definition.name if definition else stack.material_id,
                    "value": (definition.base_value * stack.quantity) if definition else 0,
                }
            )
        return {
            "materials": materials,
            "weight": profile.material_weight(),
            "capacity": profile.crafting.inventory_capacity,
            "free_capacity": profile.free_capacity(),
            "equipped_tool_id": profile.crafting.equipped_tool_id,
            "tools": [tool.to_dict() for tool in profile.tools],
        }

    def inventory_summary(self, profile: PlayerProfile) -> List[Dict[str, Any]]:
        return profile.consolidated_inventory()
