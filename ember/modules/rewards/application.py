"""
Applies rolled rewards to a player profile.

Every `RewardKind` member has a handler; the dispatch table is checked at
construction so a new kind without a handler fails loudly at start-up.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, Optional

from ember.core.exceptions import CatalogError
from ember.domain.models.ledger import ItemKind
from ember.modules.rewards.models import GrantedReward, RewardKind, RolledReward

if TYPE_CHECKING:
    from ember.core.clock import Clock
    from ember.core.randomness import RandomSource
    from ember.domain.models.profile import PlayerProfile
    from ember.modules.catalog.catalog import GameCatalog

Handler = Callable[["PlayerProfile", RolledReward, int, datetime, Optional[str]], GrantedReward]


class RewardApplier:
    """
    Mutates a profile according to a `RolledReward`.

    The lucky multiplier scales every kind except RANDOM_BOX, which grants
    ``amount`` boxes of one type picked uniformly from ``choices``.

    Raises (from ``apply``):
        CatalogError: Unknown kind, material or box id.
        CapacityExceededError: A material reward does not fit.
    """

    def __init__(self, catalog: GameCatalog, random_source: RandomSource, clock: Clock) -> None:
        self.catalog = catalog
        self.random = random_source
        self.clock = clock
        self._handlers: Dict[RewardKind, Handler] = {
            RewardKind.COINS: self._apply_coins,
            RewardKind.TOKENS: self._apply_tokens,
            RewardKind.XP: self._apply_xp,
            RewardKind.MATERIAL: self._apply_material,
            RewardKind.LOOTBOX: self._apply_lootbox,
            RewardKind.RANDOM_BOX: self._apply_random_box,
        }
        missing = set(RewardKind) - set(self._handlers)
        if missing:
            raise CatalogError("rewards", sorted(k.value for k in missing), "no handler for reward kind")

    def apply(
        self,
        profile: PlayerProfile,
        reward: RolledReward,
        multiplier: int = 1,
        now: Optional[datetime] = None,
        origin: Optional[str] = None,
    ) -> GrantedReward:
        """`origin` is recorded on newly created material stacks."""
        handler = self._handlers.get(reward.kind)
        if handler is None:
            raise CatalogError("rewards", reward.kind, "unknown reward kind")
        return handler(profile, reward, max(1, multiplier), now or self.clock.now(), origin)

    # ========================================================================
    # HANDLERS
    # ========================================================================

    def _apply_coins(self, profile, reward, multiplier, now, origin) -> GrantedReward:
        amount = reward.amount * multiplier
        profile.credit(coins=amount)
        return GrantedReward(RewardKind.COINS, amount, jackpot=reward.jackpot)

    def _apply_tokens(self, profile, reward, multiplier, now, origin) -> GrantedReward:
        amount = reward.amount * multiplier
        profile.credit(tokens=amount)
        return GrantedReward(RewardKind.TOKENS, amount, jackpot=reward.jackpot)

    def _apply_xp(self, profile, reward, multiplier, now, origin) -> GrantedReward:
        amount = reward.amount * multiplier
        profile.add_xp(amount, self.catalog.rules.leveling)
        return GrantedReward(RewardKind.XP, amount, jackpot=reward.jackpot)

    def _apply_material(self, profile, reward, multiplier, now, origin) -> GrantedReward:
        amount = reward.amount * multiplier
        if amount > 0:
            profile.add_material(self.catalog.material(reward.item_id), amount, origin=origin)
        return GrantedReward(RewardKind.MATERIAL, amount, reward.item_id, reward.jackpot)

    def _apply_lootbox(self, profile, reward, multiplier, now, origin) -> GrantedReward:
        box = self.catalog.lootbox(reward.item_id)
        amount = reward.amount * multiplier
        if amount > 0:
            profile.add_item(ItemKind.LOOTBOX, box.box_type, box.name, amount, now)
        return GrantedReward(RewardKind.LOOTBOX, amount, box.box_type, reward.jackpot)

    def _apply_random_box(self, profile, reward, multiplier, now, origin) -> GrantedReward:
        box = self.catalog.lootbox(self.random.choice(reward.choices))
        amount = max(1, reward.amount)
        profile.add_item(ItemKind.LOOTBOX, box.box_type, box.name, amount, now)
        return GrantedReward(RewardKind.RANDOM_BOX, amount, box.box_type, reward.jackpot)
