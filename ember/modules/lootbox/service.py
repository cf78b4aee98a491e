"""
Lootbox Service

Purpose
-------
Opening, granting and buying lootboxes.

Domain
------
- ``open``: consume one held box (unless ``ignore_inventory``), resolve it
  with the player's pity counter for that box type, apply every reward
  with the lucky multiplier, then update pity and box statistics
- Pity resets on a pity upgrade, a jackpot or a lucky strike; otherwise it
  grows by one for boxes that define pity
- ``boxes_total_value`` grows by ``coins + tokens * 100`` per open
- Material rewards are checked against capacity before the box is
  consumed; an open that would overflow the ledger changes nothing
- Each open raises ``lootbox.opened`` for mission tracking
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ember.domain.models.ledger import ItemKind
from ember.modules.rewards.models import GrantedReward, LootResolution, RewardKind
from ember.modules.shared.base_service import BaseService
from ember.modules.shared.exceptions import EmberDomainException
from ember.modules.shared.outcomes import FailureKind, FailureReason, Outcome

if TYPE_CHECKING:
    from logging import Logger

    from ember.core.clock import Clock
    from ember.domain.models.profile import PlayerProfile
    from ember.modules.catalog.catalog import GameCatalog
    from ember.modules.rewards.application import RewardApplier
    from ember.modules.rewards.resolver import RewardResolver

LOOTBOX_ORIGIN = "lootbox"
TOKEN_VALUE = 100


class LootboxService(BaseService):
    """
    Lootbox opener.

    Public Methods
    --------------
    - open() -> Consume, resolve and apply one box
    - grant_box() -> Add boxes to the inventory
    - purchase() -> Buy boxes for coins
    """

    def __init__(
        self,
        catalog: GameCatalog,
        resolver: RewardResolver,
        applier: RewardApplier,
        clock: Clock,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(catalog, logger=logger)
        self.resolver = resolver
        self.applier = applier
        self.clock = clock

    # ========================================================================
    # OPEN
    # ========================================================================

    def _material_weight(self, resolution: LootResolution) -> int:
        weight = 0
        for reward in resolution.rewards:
            if reward.kind == RewardKind.MATERIAL:
                material = self.catalog.material(reward.item_id)
                weight += material.weight * reward.amount * resolution.lucky_multiplier
        return weight

    def open(self, profile: PlayerProfile, box_type: str, ignore_inventory: bool = False) -> Outcome:
        box = self.catalog.lootboxes.get(box_type)
        if box is None:
            return self.fail("open_lootbox", FailureReason.INVALID_BOX, profile, box_type=box_type)

        if not ignore_inventory and profile.item_quantity(ItemKind.LOOTBOX, box_type) < 1:
            return self.fail("open_lootbox", FailureReason.BOX_NOT_OWNED, profile, box_type=box_type)

        activity = profile.activity
        failed_opens = activity.lootbox_pity.get(box_type, 0)
        resolution = self.resolver.resolve_box(box, failed_opens)

        weight = self._material_weight(resolution)
        if weight and not profile.can_fit(weight):
            return self.fail(
                "open_lootbox", FailureReason.INVENTORY_FULL, profile, FailureKind.CAPACITY,
                box_type=box_type, weight=weight, free_capacity=profile.free_capacity(),
            )

        now = self.clock.now()
        if not ignore_inventory:
            profile.remove_item(ItemKind.LOOTBOX, box_type, 1)

        granted: List[GrantedReward] = [
            self.applier.apply(
                profile, reward, multiplier=resolution.lucky_multiplier, now=now, origin=LOOTBOX_ORIGIN
            )
            for reward in resolution.rewards
        ]

        if resolution.pity_upgrade or resolution.is_jackpot or resolution.is_lucky:
            activity.lootbox_pity[box_type] = 0
        elif box.pity is not None:
            activity.lootbox_pity[box_type] = failed_opens + 1

        coins = sum(g.amount for g in granted if g.kind == RewardKind.COINS)
        tokens = sum(g.amount for g in granted if g.kind == RewardKind.TOKENS)
        activity.boxes_opened[box_type] = activity.boxes_opened.get(box_type, 0) + 1
        activity.boxes_total_value += coins + tokens * TOKEN_VALUE

        profile.add_domain_event(
            "lootbox.opened",
            {
                "box_type": box_type,
                "resolved_as": resolution.box_type,
                "is_jackpot": resolution.is_jackpot,
                "is_lucky": resolution.is_lucky,
            },
        )
        self.log_operation(
            "open_lootbox", profile,
            box_type=box_type,
            resolved_as=resolution.box_type,
            drops=resolution.drops,
            is_lucky=resolution.is_lucky,
            is_jackpot=resolution.is_jackpot,
        )
        return Outcome.ok(
            box_type=box_type,
            resolved_as=resolution.box_type,
            rewards=[g.to_dict() for g in granted],
            drops=resolution.drops,
            is_lucky=resolution.is_lucky,
            lucky_multiplier=resolution.lucky_multiplier,
            is_jackpot=resolution.is_jackpot,
            pity_upgrade=resolution.pity_upgrade,
            pity_counter=activity.lootbox_pity.get(box_type, 0),
        )

    # ========================================================================
    # INVENTORY
    # ========================================================================

    def grant_box(self, profile: PlayerProfile, box_type: str, quantity: int = 1) -> Outcome:
        box = self.catalog.lootboxes.get(box_type)
        if box is None:
            return self.fail("grant_lootbox", FailureReason.INVALID_BOX, profile, box_type=box_type)
        if quantity <= 0:
            return self.fail("grant_lootbox", FailureReason.INVALID_AMOUNT, profile, quantity=quantity)

        stack = profile.add_item(ItemKind.LOOTBOX, box.box_type, box.name, quantity, self.clock.now())
        self.log_operation("grant_lootbox", profile, box_type=box_type, quantity=quantity)
        return Outcome.ok(box_type=box_type, quantity=quantity, held=stack.quantity)

    def purchase(self, profile: PlayerProfile, box_type: str, quantity: int = 1) -> Outcome:
        box = self.catalog.lootboxes.get(box_type)
        if box is None:
            return self.fail("purchase_lootbox", FailureReason.INVALID_BOX, profile, box_type=box_type)
        if quantity <= 0:
            return self.fail("purchase_lootbox", FailureReason.INVALID_AMOUNT, profile, quantity=quantity)

        total_cost = box.cost * quantity
        try:
            profile.debit(coins=total_cost)
        except EmberDomainException as e:
            return self.reject("purchase_lootbox", e, profile)

        stack = profile.add_item(ItemKind.LOOTBOX, box.box_type, box.name, quantity, self.clock.now())
        self.log_operation("purchase_lootbox", profile, box_type=box_type, quantity=quantity, cost=total_cost)
        return Outcome.ok(box_type=box_type, quantity=quantity, cost=total_cost, held=stack.quantity)

    def held_boxes(self, profile: PlayerProfile) -> Dict[str, Any]:
        return {
            stack.type_id: stack.quantity
            for stack in profile.inventory
            if stack.kind == ItemKind.LOOTBOX
        }
