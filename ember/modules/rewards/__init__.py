"""
Rewards Module

- RewardResolver: weighted draws, range rolls and lootbox resolution
- RewardApplier: writes rolled rewards into a profile
"""

from ember.modules.rewards.application import RewardApplier
from ember.modules.rewards.models import GrantedReward, LootResolution, RewardEntry, RewardKind, RolledReward
from ember.modules.rewards.resolver import RewardResolver

__all__ = [
    "GrantedReward",
    "LootResolution",
    "RewardApplier",
    "RewardEntry",
    "RewardKind",
    "RewardResolver",
    "RolledReward",
]
