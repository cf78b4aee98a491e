"""
Domain exceptions for Ember.

Purpose
-------
Define the structured, domain-specific exception hierarchy for progression
rules. The `PlayerProfile` aggregate raises these when a ledger mutation would
break an invariant (negative balance, overflowing capacity, missing tool...).
Engine services catch them at their boundary and convert them into
`Outcome` failures, so they never reach the presentation layer.

Design Notes
------------
- All domain exceptions inherit from `EmberDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
  - `reason` / `failure_kind`: the `Outcome` mapping for engine boundaries
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ember.core.exceptions import EmberInfrastructureException, ErrorSeverity
from ember.modules.shared.outcomes import FailureKind, FailureReason


class EmberDomainException(Exception):
    """
    Base exception for all Ember domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
        reason: Failure code reported to callers
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.INFO
    DEFAULT_RETRYABLE: bool = False
    FAILURE_KIND: FailureKind = FailureKind.VALIDATION

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
        reason: Optional[FailureReason] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        self.reason: Optional[FailureReason] = reason
        self.failure_kind: FailureKind = self.FAILURE_KIND
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
            "reason": self.reason.value if self.reason else None,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class InsufficientFundsError(EmberDomainException):
    """
    Raised when a wallet debit exceeds the balance.

    Args:
        currency: "coins" or "tokens"
        required: Amount required for the action
        current: Amount the player currently has
    """

    def __init__(self, currency: str, required: int, current: int) -> None:
        self.currency = currency
        self.required = required
        self.current = current
        reason = (
            FailureReason.NOT_ENOUGH_TOKENS
            if currency == "tokens"
            else FailureReason.NOT_ENOUGH_COINS
        )
        super().__init__(
            f"Insufficient {currency}: need {required:,}, have {current:,}",
            details={
                "currency": currency,
                "required": required,
                "current": current,
                "deficit": required - current,
            },
            error_code=f"INSUFFICIENT_{currency.upper()}",
            reason=reason,
        )


class InsufficientMaterialError(EmberDomainException):
    """
    Raised when a material requirement line is not covered by the ledger.

    Args:
        material_id: Missing material
        required: Quantity required
        current: Quantity held
    """

    def __init__(self, material_id: str, required: int, current: int) -> None:
        self.material_id = material_id
        self.required = required
        self.current = current
        super().__init__(
            f"Insufficient {material_id}: need {required}, have {current}",
            details={
                "material_id": material_id,
                "required": required,
                "current": current,
            },
            error_code="INSUFFICIENT_MATERIAL",
            reason=FailureReason.MISSING_MATERIALS,
        )


class CapacityExceededError(EmberDomainException):
    """
    Raised when adding materials would overflow the weight capacity.

    Args:
        projected_weight: Total weight after the rejected write
        capacity: Current inventory capacity
    """

    FAILURE_KIND = FailureKind.CAPACITY

    def __init__(self, projected_weight: int, capacity: int) -> None:
        self.projected_weight = projected_weight
        self.capacity = capacity
        super().__init__(
            f"Inventory capacity exceeded: {projected_weight} > {capacity}",
            details={
                "projected_weight": projected_weight,
                "capacity": capacity,
            },
            error_code="CAPACITY_EXCEEDED",
            reason=FailureReason.INVENTORY_FULL,
        )


class ToolNotOwnedError(EmberDomainException):
    """Raised when a tool id is not in the player's tool list."""

    def __init__(self, tool_id: str) -> None:
        self.tool_id = tool_id
        super().__init__(
            f"Tool not owned: {tool_id}",
            details={"tool_id": tool_id},
            error_code="TOOL_NOT_OWNED",
            reason=FailureReason.TOOL_NOT_OWNED,
        )


class ToolBrokenError(EmberDomainException):
    """Raised when a tool with zero durability is equipped."""

    FAILURE_KIND = FailureKind.CONFLICT

    def __init__(self, tool_id: str) -> None:
        self.tool_id = tool_id
        super().__init__(
            f"Tool is broken: {tool_id}",
            details={"tool_id": tool_id},
            error_code="TOOL_BROKEN",
            reason=FailureReason.TOOL_BROKEN,
        )


class ItemNotOwnedError(EmberDomainException):
    """
    Raised when removing more of an inventory item than the player holds.

    Args:
        type_id: Item type (e.g. lootbox type)
        required: Quantity to remove
        current: Quantity held
    """

    def __init__(self, type_id: str, required: int = 1, current: int = 0) -> None:
        self.type_id = type_id
        super().__init__(
            f"Item not owned: {type_id} (need {required}, have {current})",
            details={"type_id": type_id, "required": required, "current": current},
            error_code="ITEM_NOT_OWNED",
            reason=FailureReason.ITEM_NOT_OWNED,
        )


class InvalidOperationError(EmberDomainException):
    """
    Raised when an action violates a state rule.

    Args:
        action: Description of the invalid action
        reason: Failure code to report

    Example:
        >>> raise InvalidOperationError("repair_tool", FailureReason.TOOL_NOT_DAMAGED)
    """

    FAILURE_KIND = FailureKind.CONFLICT

    def __init__(self, action: str, reason: FailureReason, **details: Any) -> None:
        self.action = action
        super().__init__(
            f"Invalid operation '{action}': {reason.value}",
            details={"action": action, **details},
            error_code=f"INVALID_{action.upper()}",
            reason=reason,
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Covers both hierarchies: a lost version race or a dropped connection is
    transient, a corrupt catalog or a broken game rule is not.
    """
    if isinstance(exc, (EmberDomainException, EmberInfrastructureException)):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Get the severity level of an exception for logging."""
    if isinstance(exc, (EmberDomainException, EmberInfrastructureException)):
        return exc.severity
    return ErrorSeverity.ERROR
