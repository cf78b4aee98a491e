"""
Daily and weekly mission state held on the player profile.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ember.core.clock import from_iso, to_iso
from ember.domain.models.base import validate_non_negative, validate_positive


class MissionScope(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


@dataclass(frozen=True)
class MissionReward:
    xp: int = 0
    coins: int = 0
    tokens: int = 0
    lootbox: Optional[str] = None

    def __post_init__(self) -> None:
        validate_non_negative(self.xp, "xp")
        validate_non_negative(self.coins, "coins")
        validate_non_negative(self.tokens, "tokens")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "xp": self.xp,
            "coins": self.coins,
            "tokens": self.tokens,
            "lootbox": self.lootbox,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MissionReward":
        return cls(
            xp=int(data.get("xp", 0)),
            coins=int(data.get("coins", 0)),
            tokens=int(data.get("tokens", 0)),
            lootbox=data.get("lootbox"),
        )


@dataclass
class Mission:
    """
    A single generated mission.

    `progress` only grows and is clamped to `goal`; `claimed` flips once.
    """

    mission_id: str
    type: str
    goal: int
    reward: MissionReward
    progress: int = 0
    completed: bool = False
    claimed: bool = False

    def __post_init__(self) -> None:
        validate_positive(self.goal, "goal")
        validate_non_negative(self.progress, "progress")

    def advance(self, amount: int) -> bool:
        """Add progress. Returns True if this call completed the mission."""
        if self.completed or amount <= 0:
            return False
        self.progress = min(self.goal, self.progress + amount)
        if self.progress >= self.goal:
            self.completed = True
            return True
        return False

    @property
    def awaiting_claim(self) -> bool:
        return self.completed and not self.claimed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mission_id": self.mission_id,
            "type": self.type,
            "goal": self.goal,
            "progress": self.progress,
            "completed": self.completed,
            "claimed": self.claimed,
            "reward": self.reward.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Mission":
        return cls(
            mission_id=data["mission_id"],
            type=data["type"],
            goal=int(data["goal"]),
            reward=MissionReward.from_dict(data.get("reward", {})),
            progress=int(data.get("progress", 0)),
            completed=bool(data.get("completed", False)),
            claimed=bool(data.get("claimed", False)),
        )


@dataclass
class MissionBoard:
    daily: List[Mission] = field(default_factory=list)
    weekly: List[Mission] = field(default_factory=list)
    last_generated: Dict[MissionScope, datetime] = field(default_factory=dict)

    def missions(self, scope: MissionScope) -> List[Mission]:
        return self.daily if scope == MissionScope.DAILY else self.weekly

    def replace(self, scope: MissionScope, missions: List[Mission], generated_at: datetime) -> None:
        if scope == MissionScope.DAILY:
            self.daily = missions
        else:
            self.weekly = missions
        self.last_generated[scope] = generated_at

    def find(self, scope: MissionScope, mission_id: str) -> Optional[Mission]:
        for mission in self.missions(scope):
            if mission.mission_id == mission_id:
                return mission
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "daily": [m.to_dict() for m in self.daily],
            "weekly": [m.to_dict() for m in self.weekly],
            "last_generated": {
                scope.value: to_iso(ts) for scope, ts in self.last_generated.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MissionBoard":
        return cls(
            daily=[Mission.from_dict(m) for m in data.get("daily", [])],
            weekly=[Mission.from_dict(m) for m in data.get("weekly", [])],
            last_generated={
                MissionScope(scope): from_iso(ts)
                for scope, ts in data.get("last_generated", {}).items()
                if ts
            },
        )
