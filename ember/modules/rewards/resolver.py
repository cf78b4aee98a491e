"""
Reward Resolver

Purpose
-------
Weighted random selection over drop pools, and lootbox resolution with the
lucky / extra-drop / jackpot / pity modifiers.

Responsibilities
----------------
- ``resolve(pool)``: one weighted draw
- ``roll_range(min, max)``: uniform inclusive integer
- ``resolve_box(box, failed_opens)``: a full lootbox resolution

Non-Responsibilities
--------------------
- Mutating a profile (see ``RewardApplier``)
- Pity counter bookkeeping (see ``LootboxService``)

Design Notes
------------
Pure apart from the injected `RandomSource`. Draw order inside
``resolve_box`` is fixed: lucky trial, lucky multiplier, extra-drop trial,
extra-drop count, then (selection, amount) per drop, then the jackpot trial.
Trials whose chance is zero consume no randomness.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence, TypeVar

from ember.core.exceptions import CatalogError
from ember.core.logging.logger import get_logger
from ember.modules.rewards.models import LootResolution, RewardEntry, RolledReward

if TYPE_CHECKING:
    from ember.core.randomness import RandomSource
    from ember.modules.catalog.catalog import GameCatalog
    from ember.modules.catalog.definitions import LootboxDefinition

logger = get_logger(__name__)

W = TypeVar("W")


class RewardResolver:
    """
    Weighted reward selection.

    Args:
        random_source: Source of uniform randomness
        catalog: Used to look up pity upgrade targets
    """

    def __init__(self, random_source: RandomSource, catalog: Optional[GameCatalog] = None) -> None:
        self.random = random_source
        self.catalog = catalog

    def resolve(self, pool: Sequence[W]) -> W:
        """
        Pick one entry with probability proportional to its ``weight``.

        Entries with non-positive weight are ignored when any positive entry
        exists. If the subtraction walk falls through (float drift), the first
        eligible entry is returned.

        Raises:
            CatalogError: If the pool is empty.
        """
        if not pool:
            raise CatalogError("rewards", "pool", "cannot resolve an empty drop pool")

        eligible = [entry for entry in pool if getattr(entry, "weight", 0) > 0]
        if not eligible:
            eligible = list(pool)
            total = float(len(eligible))
            weights = [1.0] * len(eligible)
        else:
            weights = [float(entry.weight) for entry in eligible]
            total = sum(weights)

        remaining = self.random.random() * total
        for entry, weight in zip(eligible, weights):
            remaining -= weight
            if remaining <= 0:
                return entry
        return eligible[0]

    def roll_range(self, minimum: int, maximum: int) -> int:
        """``floor(random() * (max - min + 1)) + min``."""
        return self.random.randint(minimum, maximum)

    def roll(self, entry: RewardEntry, jackpot: bool = False) -> RolledReward:
        """Roll the amount of a single entry."""
        return RolledReward(
            kind=entry.kind,
            amount=self.roll_range(entry.minimum, entry.maximum),
            item_id=entry.item_id,
            choices=entry.choices,
            jackpot=jackpot,
        )

    def resolve_box(self, box: LootboxDefinition, failed_opens: int = 0) -> LootResolution:
        """
        Resolve one lootbox open.

        When the box defines pity and ``failed_opens`` reached its threshold,
        the upgrade target is resolved in its place and reported as
        ``pity_upgrade``.
        """
        resolved = box
        pity_upgrade: Optional[str] = None
        if box.pity and failed_opens >= box.pity.threshold:
            pity_upgrade = box.pity.upgrade_to
            if self.catalog is None:
                raise CatalogError("lootboxes", pity_upgrade, "pity upgrade needs a catalog")
            resolved = self.catalog.lootbox(pity_upgrade)

        result = LootResolution(box_type=resolved.box_type, pity_upgrade=pity_upgrade)

        if resolved.lucky and self.random.chance(resolved.lucky.chance):
            result.is_lucky = True
            result.lucky_multiplier = self.roll_range(
                resolved.lucky.min_multiplier, resolved.lucky.max_multiplier
            )

        drops = 1
        if resolved.extra_drops and self.random.chance(resolved.extra_drops.chance):
            drops += self.roll_range(1, resolved.extra_drops.max_extra)
        result.drops = drops

        for _ in range(drops):
            result.rewards.append(self.roll(self.resolve(resolved.rewards)))

        if resolved.jackpot and self.random.chance(resolved.jackpot.chance):
            result.is_jackpot = True
            result.rewards.append(self.roll(resolved.jackpot.reward, jackpot=True))

        logger.debug(
            "Lootbox resolved",
            extra={
                "box_type": resolved.box_type,
                "drops": drops,
                "is_lucky": result.is_lucky,
                "is_jackpot": result.is_jackpot,
                "pity_upgrade": pity_upgrade,
            },
        )
        return result
