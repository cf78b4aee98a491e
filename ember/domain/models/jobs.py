"""
Job membership state held on the player profile.

A player may hold several job memberships at once; at most one is active.
Each membership tracks its own level, XP, rank, work cooldown and lifetime
statistics. Leaving a job deletes its record entirely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ember.core.clock import from_iso, to_iso
from ember.domain.models.base import validate_non_negative, validate_positive


@dataclass
class JobStats:
    times_worked: int = 0
    coins_earned: int = 0
    xp_earned: int = 0
    fails: int = 0
    taxes_paid: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "times_worked": self.times_worked,
            "coins_earned": self.coins_earned,
            "xp_earned": self.xp_earned,
            "fails": self.fails,
            "taxes_paid": self.taxes_paid,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobStats":
        return cls(**{k: int(data.get(k, 0)) for k in cls().to_dict()})


@dataclass
class JobRecord:
    """One job membership."""

    job_id: str
    rank: str
    joined_at: datetime
    level: int = 1
    xp: int = 0
    total_xp: int = 0
    illegal: bool = False
    cooldown_until: Optional[datetime] = None
    last_worked_at: Optional[datetime] = None
    stats: JobStats = field(default_factory=JobStats)

    def __post_init__(self) -> None:
        validate_positive(self.level, "level")
        validate_non_negative(self.xp, "xp")
        validate_non_negative(self.total_xp, "total_xp")

    def on_cooldown(self, now: datetime) -> bool:
        return self.cooldown_until is not None and self.cooldown_until > now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "rank": self.rank,
            "joined_at": to_iso(self.joined_at),
            "level": self.level,
            "xp": self.xp,
            "total_xp": self.total_xp,
            "illegal": self.illegal,
            "cooldown_until": to_iso(self.cooldown_until),
            "last_worked_at": to_iso(self.last_worked_at),
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobRecord":
        return cls(
            job_id=data["job_id"],
            rank=data.get("rank", "Novato"),
            joined_at=from_iso(data["joined_at"]),
            level=int(data.get("level", 1)),
            xp=int(data.get("xp", 0)),
            total_xp=int(data.get("total_xp", 0)),
            illegal=bool(data.get("illegal", False)),
            cooldown_until=from_iso(data.get("cooldown_until")),
            last_worked_at=from_iso(data.get("last_worked_at")),
            stats=JobStats.from_dict(data.get("stats", {})),
        )


@dataclass
class JobsState:
    active_job_id: Optional[str] = None
    last_job_change_at: Optional[datetime] = None
    last_weekly_salary_at: Optional[datetime] = None
    last_monthly_salary_at: Optional[datetime] = None
    memberships: List[JobRecord] = field(default_factory=list)

    def get(self, job_id: str) -> Optional[JobRecord]:
        for record in self.memberships:
            if record.job_id == job_id:
                return record
        return None

    def holds(self, job_id: str) -> bool:
        return self.get(job_id) is not None

    @property
    def active(self) -> Optional[JobRecord]:
        if self.active_job_id is None:
            return None
        return self.get(self.active_job_id)

    def remove(self, job_id: str) -> None:
        self.memberships = [r for r in self.memberships if r.job_id != job_id]
        if self.active_job_id == job_id:
            self.active_job_id = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active_job_id": self.active_job_id,
            "last_job_change_at": to_iso(self.last_job_change_at),
            "last_weekly_salary_at": to_iso(self.last_weekly_salary_at),
            "last_monthly_salary_at": to_iso(self.last_monthly_salary_at),
            "memberships": [r.to_dict() for r in self.memberships],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobsState":
        return cls(
            active_job_id=data.get("active_job_id"),
            last_job_change_at=from_iso(data.get("last_job_change_at")),
            last_weekly_salary_at=from_iso(data.get("last_weekly_salary_at")),
            last_monthly_salary_at=from_iso(data.get("last_monthly_salary_at")),
            memberships=[JobRecord.from_dict(r) for r in data.get("memberships", [])],
        )
