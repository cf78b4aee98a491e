"""
Structured results returned by every engine method.

Engines never let a gated failure escape as an exception. Each call returns an
`Outcome`: either success with a plain-data payload, or a typed failure with a
stable `FailureReason` code and a `FailureKind` bucket:

- VALIDATION: a precondition was unmet; nothing was mutated.
- COOLDOWN: the action is gated by time; `remaining` says how long.
- CAPACITY: the write would overflow the material ledger; nothing was mutated.
- CONFLICT: the target is in the wrong state (already claimed, broken tool...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional


class FailureKind(str, Enum):
    VALIDATION = "validation"
    COOLDOWN = "cooldown"
    CAPACITY = "capacity"
    CONFLICT = "conflict"


class FailureReason(str, Enum):
    # Generic
    INVALID_AMOUNT = "invalid_amount"
    LEVEL_REQUIRED = "level_required"
    NOT_ENOUGH_COINS = "not_enough_coins"
    NOT_ENOUGH_TOKENS = "not_enough_tokens"
    MISSING_MATERIALS = "missing_materials"
    INVENTORY_FULL = "inventory_full"
    ITEM_NOT_OWNED = "item_not_owned"

    # Crafting
    INVALID_BLUEPRINT = "invalid_blueprint"

    # Mining & tools
    MINING_COOLDOWN = "mining_cooldown"
    INVALID_ZONE = "invalid_zone"
    NO_TOOL_EQUIPPED = "no_tool_equipped"
    TOOL_TIER_REQUIRED = "tool_tier_required"
    TOOL_BROKEN = "tool_broken"
    TOOL_NOT_OWNED = "tool_not_owned"
    TOOL_NOT_DAMAGED = "tool_not_damaged"
    TOOL_ALREADY_OWNED = "tool_already_owned"
    INVALID_TOOL = "invalid_tool"

    # Jobs
    INVALID_JOB = "invalid_job"
    JOB_CHANGE_COOLDOWN = "job_change_cooldown"
    ALREADY_ACTIVE = "already_active"
    ALREADY_MEMBER = "already_member"
    NOT_MEMBER = "not_member"
    NO_ACTIVE_JOB = "no_active_job"
    WORK_COOLDOWN = "work_cooldown"
    NO_SALARY = "no_salary"
    SALARY_COOLDOWN = "salary_cooldown"

    # Economy
    DAILY_ALREADY_CLAIMED = "daily_already_claimed"

    # Missions
    INVALID_SCOPE = "invalid_scope"
    MISSION_NOT_FOUND = "mission_not_found"
    MISSION_NOT_COMPLETED = "mission_not_completed"
    MISSION_ALREADY_CLAIMED = "mission_already_claimed"
    INVALID_ACTIVITY = "invalid_activity"

    # Lootboxes
    INVALID_BOX = "invalid_box"
    BOX_NOT_OWNED = "box_not_owned"


@dataclass(frozen=True)
class Outcome:
    """
    Result of one engine call.

    Attributes
    ----------
    success : bool
        Whether the action took effect.
    reason : Optional[FailureReason]
        Stable failure code; None on success.
    kind : Optional[FailureKind]
        Failure bucket; None on success.
    data : Dict[str, Any]
        Plain-data payload (reward description, context for the failure).
    remaining : Optional[timedelta]
        Time left on the gating cooldown, for COOLDOWN failures.
    """

    success: bool
    reason: Optional[FailureReason] = None
    kind: Optional[FailureKind] = None
    data: Dict[str, Any] = field(default_factory=dict)
    remaining: Optional[timedelta] = None

    @classmethod
    def ok(cls, **data: Any) -> "Outcome":
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls,
        reason: FailureReason,
        kind: FailureKind = FailureKind.VALIDATION,
        **data: Any,
    ) -> "Outcome":
        return cls(success=False, reason=reason, kind=kind, data=data)

    @classmethod
    def cooldown(cls, reason: FailureReason, remaining: timedelta, **data: Any) -> "Outcome":
        remaining = max(remaining, timedelta(0))
        return cls(
            success=False,
            reason=reason,
            kind=FailureKind.COOLDOWN,
            data=data,
            remaining=remaining,
        )

    @classmethod
    def from_error(cls, error: Any) -> "Outcome":
        """Convert a domain exception carrying `reason`/`failure_kind` to a failure."""
        return cls(
            success=False,
            reason=error.reason,
            kind=error.failure_kind,
            data=dict(error.details),
        )

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> Dict[str, Any]:
        """Presentation-ready plain data."""
        result: Dict[str, Any] = {"success": self.success, **self.data}
        if not self.success:
            result["reason"] = self.reason.value if self.reason else None
            result["kind"] = self.kind.value if self.kind else None
        if self.remaining is not None:
            result["remaining_seconds"] = int(self.remaining.total_seconds())
        return result
