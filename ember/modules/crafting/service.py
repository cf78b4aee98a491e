"""
Crafting Service

Purpose
-------
Turns materials and currency into blueprint results with a
quality-adjusted success roll.

Domain
------
- Validate level, currency, materials and result capacity
- Success rate: ``min(success_rate + (avg_quality - 70) / 300, 0.99)``,
  never below the blueprint's base rate
- Pay regardless: the cost is debited on success and on failure
- Grant the result only on success; count failures separately

Result kinds map onto rewards: ``material`` and ``lootbox`` are granted as
is; ``coins`` and ``tokens`` are paid out as the ``coin_bundle_virtual`` /
``token_fragment_virtual`` materials with origin ``crafting``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ember.core.clock import Clock
from ember.core.exceptions import CatalogError
from ember.modules.catalog.catalog import COIN_BUNDLE_MATERIAL, TOKEN_FRAGMENT_MATERIAL
from ember.modules.catalog.definitions import BlueprintDefinition, BlueprintResultKind
from ember.modules.rewards.application import RewardApplier
from ember.modules.rewards.models import RewardKind, RolledReward
from ember.modules.shared.base_service import BaseService
from ember.modules.shared.exceptions import EmberDomainException
from ember.modules.shared.formulas import calculate_craft_success_rate
from ember.modules.shared.outcomes import FailureKind, FailureReason, Outcome

if TYPE_CHECKING:
    from logging import Logger

    from ember.core.randomness import RandomSource
    from ember.domain.models.profile import PlayerProfile
    from ember.modules.catalog.catalog import GameCatalog

CRAFTING_ORIGIN = "crafting"


class CraftingService(BaseService):
    """
    Blueprint crafting engine.

    Public Methods
    --------------
    - craft() -> Validate, roll and settle one craft
    - can_craft() -> Same validation, no mutation
    - success_rate() -> Rate the player would craft at right now
    - available_blueprints() -> Blueprints unlocked at the player's level
    - upgrade_capacity() -> Buy extra material capacity
    """

    def __init__(
        self,
        catalog: GameCatalog,
        random_source: RandomSource,
        applier: Optional[RewardApplier] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(catalog, logger=logger)
        self.random = random_source
        self.applier = applier or RewardApplier(catalog, random_source, Clock())

    # ========================================================================
    # VALIDATION
    # ========================================================================

    def _result_reward(self, blueprint: BlueprintDefinition) -> RolledReward:
        result = blueprint.result
        if result.kind == BlueprintResultKind.MATERIAL:
            return RolledReward(RewardKind.MATERIAL, result.quantity, result.item_id)
        if result.kind == BlueprintResultKind.LOOTBOX:
            return RolledReward(RewardKind.LOOTBOX, result.quantity, result.item_id)
        if result.kind == BlueprintResultKind.COINS:
            return RolledReward(RewardKind.MATERIAL, result.quantity, COIN_BUNDLE_MATERIAL)
        if result.kind == BlueprintResultKind.TOKENS:
            return RolledReward(RewardKind.MATERIAL, result.quantity, TOKEN_FRAGMENT_MATERIAL)
        raise CatalogError("blueprints", blueprint.blueprint_id, f"unknown result type {result.kind!r}")

    def _result_weight(self, reward: RolledReward) -> int:
        if reward.kind != RewardKind.MATERIAL:
            return 0
        return self.catalog.material(reward.item_id).weight * reward.amount

    def _validate(self, profile: PlayerProfile, blueprint_id: str) -> Optional[Outcome]:
        """Return the first failing check, in the documented order, or None."""
        operation = "craft"
        blueprint = self.catalog.blueprints.get(blueprint_id)
        if blueprint is None:
            return self.fail(operation, FailureReason.INVALID_BLUEPRINT, profile, blueprint_id=blueprint_id)

        if profile.level < blueprint.required_level:
            return self.fail(
                operation, FailureReason.LEVEL_REQUIRED, profile,
                required_level=blueprint.required_level, level=profile.level,
            )
        if profile.coins < blueprint.cost_coins:
            return self.fail(
                operation, FailureReason.NOT_ENOUGH_COINS, profile,
                required=blueprint.cost_coins, current=profile.coins,
            )
        if profile.tokens < blueprint.cost_tokens:
            return self.fail(
                operation, FailureReason.NOT_ENOUGH_TOKENS, profile,
                required=blueprint.cost_tokens, current=profile.tokens,
            )

        missing = profile.missing_materials(blueprint.requires)
        if missing:
            return self.fail(operation, FailureReason.MISSING_MATERIALS, profile, missing=missing)

        consumed_weight = sum(
            profile.get_material(line.material_id).unit_weight * line.quantity
            for line in blueprint.requires
        )
        projected = profile.material_weight() - consumed_weight + self._result_weight(
            self._result_reward(blueprint)
        )
        if projected > profile.crafting.inventory_capacity:
            return self.fail(
                operation, FailureReason.INVENTORY_FULL, profile, FailureKind.CAPACITY,
                projected_weight=projected, capacity=profile.crafting.inventory_capacity,
            )
        return None

    def success_rate(self, profile: PlayerProfile, blueprint: BlueprintDefinition) -> float:
        rules = self.catalog.rules.crafting
        return calculate_craft_success_rate(
            blueprint.success_rate,
            profile.weighted_quality(blueprint.requires),
            cap=rules.max_success_rate,
            baseline=rules.quality_baseline,
            divisor=rules.quality_divisor,
        )

    def can_craft(self, profile: PlayerProfile, blueprint_id: str) -> Outcome:
        failure = self._validate(profile, blueprint_id)
        if failure is not None:
            return failure
        blueprint = self.catalog.blueprint(blueprint_id)
        return Outcome.ok(blueprint_id=blueprint_id, success_rate=self.success_rate(profile, blueprint))

    # ========================================================================
    # CRAFT
    # ========================================================================

    def craft(self, profile: PlayerProfile, blueprint_id: str) -> Outcome:
        """
        Craft one blueprint.

        Returns:
            Outcome with ``crafted``, ``success_rate`` and, on success,
            ``reward``. A failed roll is still a successful Outcome
            (``crafted=False``): the cost was paid.
        """
        failure = self._validate(profile, blueprint_id)
        if failure is not None:
            return failure

        blueprint = self.catalog.blueprint(blueprint_id)
        rate = self.success_rate(profile, blueprint)
        crafted = self.random.random() <= rate
        reward = self._result_reward(blueprint)

        profile.debit(coins=blueprint.cost_coins, tokens=blueprint.cost_tokens)
        profile.consume_materials(blueprint.requires)
        granted = self.applier.apply(profile, reward, origin=CRAFTING_ORIGIN) if crafted else None

        stats = profile.crafting.stats
        if crafted:
            stats.crafted_items += 1
        else:
            stats.failed_crafts += 1

        data: Dict[str, Any] = {
            "blueprint_id": blueprint_id,
            "crafted": crafted,
            "success_rate": rate,
            "cost": {"coins": blueprint.cost_coins, "tokens": blueprint.cost_tokens},
        }
        if granted is not None:
            data["reward"] = {
                "type": blueprint.result.kind.value,
                "item_id": granted.item_id,
                "quantity": granted.amount,
            }
        self.log_operation("craft", profile, blueprint_id=blueprint_id, crafted=crafted, success_rate=rate)
        return Outcome.ok(**data)

    # ========================================================================
    # SUPPLEMENTS
    # ========================================================================

    def available_blueprints(self, profile: PlayerProfile) -> List[Dict[str, Any]]:
        return [
            {
                "blueprint_id": bp.blueprint_id,
                "name": bp.name,
                "category": bp.category,
                "required_level": bp.required_level,
                "success_rate": self.success_rate(profile, bp),
                "craftable": self._validate(profile, bp.blueprint_id) is None,
            }
            for bp in self.catalog.blueprints_for_level(profile.level)
        ]

    def upgrade_capacity(self, profile: PlayerProfile, amount: int, cost: int) -> Outcome:
        if amount <= 0 or cost < 0:
            return self.fail("upgrade_capacity", FailureReason.INVALID_AMOUNT, profile, amount=amount)
        try:
            capacity = profile.upgrade_capacity(amount, cost)
        except EmberDomainException as e:
            return self.reject("upgrade_capacity", e, profile)
        self.log_operation("upgrade_capacity", profile, amount=amount, cost=cost, capacity=capacity)
        return Outcome.ok(capacity=capacity, cost=cost)
