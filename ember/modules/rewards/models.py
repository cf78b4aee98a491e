"""
Reward value types shared by the resolver, the applier and the catalog.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ember.domain.models.base import DomainValidationError, validate_non_negative


class RewardKind(str, Enum):
    """Closed set of reward kinds. `RewardApplier` handles every member."""

    COINS = "coins"
    TOKENS = "tokens"
    XP = "xp"
    MATERIAL = "material"
    LOOTBOX = "lootbox"
    RANDOM_BOX = "random_box"


@dataclass(frozen=True)
class RewardEntry:
    """
    One weighted line of a drop pool.

    `minimum`/`maximum` bound the rolled amount. `item_id` names the material
    or box for MATERIAL/LOOTBOX; `choices` lists candidate boxes for
    RANDOM_BOX.
    """

    kind: RewardKind
    weight: float = 0.0
    minimum: int = 0
    maximum: int = 0
    item_id: Optional[str] = None
    choices: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        validate_non_negative(self.weight, "weight")
        validate_non_negative(self.minimum, "minimum")
        if self.maximum < self.minimum:
            raise DomainValidationError(
                f"maximum ({self.maximum}) < minimum ({self.minimum})", field="maximum"
            )
        if self.kind in (RewardKind.MATERIAL, RewardKind.LOOTBOX) and not self.item_id:
            raise DomainValidationError(f"{self.kind.value} reward needs item_id", field="item_id")
        if self.kind == RewardKind.RANDOM_BOX and not self.choices:
            raise DomainValidationError("random_box reward needs choices", field="choices")

    @classmethod
    def fixed(cls, kind: RewardKind, amount: int, item_id: Optional[str] = None) -> "RewardEntry":
        return cls(kind=kind, weight=0.0, minimum=amount, maximum=amount, item_id=item_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RewardEntry":
        amount = data.get("amount")
        minimum = int(data.get("min", amount if amount is not None else 1))
        maximum = int(data.get("max", amount if amount is not None else minimum))
        return cls(
            kind=RewardKind(data["type"]),
            weight=float(data.get("weight", 0)),
            minimum=minimum,
            maximum=maximum,
            item_id=data.get("item_id"),
            choices=tuple(data.get("choices", ())),
        )


@dataclass(frozen=True)
class RolledReward:
    """A reward with its amount already rolled."""

    kind: RewardKind
    amount: int
    item_id: Optional[str] = None
    choices: Tuple[str, ...] = ()
    jackpot: bool = False


@dataclass
class LootResolution:
    """Result of resolving one lootbox open."""

    box_type: str
    rewards: List[RolledReward] = field(default_factory=list)
    lucky_multiplier: int = 1
    is_lucky: bool = False
    is_jackpot: bool = False
    pity_upgrade: Optional[str] = None
    drops: int = 1


@dataclass(frozen=True)
class GrantedReward:
    """What the applier actually changed on the profile."""

    kind: RewardKind
    amount: int
    item_id: Optional[str] = None
    jackpot: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind.value, "amount": self.amount}
        if self.item_id is not None:
            data["item_id"] = self.item_id
        if self.jackpot:
            data["jackpot"] = True
        return data
