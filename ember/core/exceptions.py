"""
Infrastructure exceptions for the Ember progression core.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
configuration and catalog corruption, persistence failures, lost-update
detection and lock acquisition timeouts.

Responsibilities
----------------
- Infrastructure exceptions only (no game rules)
- Clear base class (`EmberInfrastructureException`) with structured metadata
- Severity levels for logging and alerting decisions
- Retry hints and error codes for programmatic handling

Design Notes
------------
- All infrastructure exceptions inherit from `EmberInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- `CatalogError` is the only fatal path an engine lets escape: it signals a
  corrupted lookup table (e.g. a zone dropping a material that does not exist).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning (e.g., cooldowns)
    INFO = "info"  # Normal operation (e.g., validation failures)
    WARNING = "warning"  # Concerning but handled (e.g., retryable errors)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class EmberInfrastructureException(Exception):
    """
    Base exception for all Ember infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise EmberInfrastructureException(
        ...     "Profile store unreachable",
        ...     {"url": "postgresql+asyncpg://db/ember"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
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


class ConfigurationError(EmberInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        error_message = f"Configuration error for {config_key}: {message}"
        super().__init__(
            error_message,
            details={
                "config_key": config_key,
                "message": message,
            },
            error_code="CONFIG_ERROR",
        )


class CatalogError(ConfigurationError):
    """
    Raised when a static lookup table is corrupt or references a missing id.

    Args:
        table: Catalog table name (e.g. "materials", "zones")
        identifier: The id that failed to resolve
        message: Optional extra context
    """

    def __init__(
        self, table: str, identifier: Any, message: Optional[str] = None
    ) -> None:
        self.table = table
        self.identifier = identifier
        super().__init__(
            f"catalog.{table}",
            message or f"unknown id {identifier!r}",
        )
        self.details["identifier"] = identifier
        self.error_code = "CATALOG_ERROR"


class DatabaseError(EmberInfrastructureException):
    """
    Raised when database operations fail.

    Args:
        operation: Description of the database operation that failed
        original_error: The underlying database exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        message = f"Database error during {operation}: {str(original_error)}"
        super().__init__(
            message,
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="DATABASE_ERROR",
            is_retryable=True,
        )


class StaleProfileError(EmberInfrastructureException):
    """
    Raised when a profile save loses an optimistic-concurrency race.

    The stored version no longer matches the version the profile was loaded
    with; the caller must reload and re-apply the action.

    Args:
        guild_id: Guild scope of the profile
        player_id: Player identifier
        expected_version: Version the in-memory profile was loaded at
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, guild_id: str, player_id: str, expected_version: int) -> None:
        self.guild_id = guild_id
        self.player_id = player_id
        self.expected_version = expected_version
        super().__init__(
            f"Profile {guild_id}/{player_id} changed since version {expected_version}",
            details={
                "guild_id": guild_id,
                "player_id": player_id,
                "expected_version": expected_version,
            },
            error_code="STALE_PROFILE",
        )


class LockTimeoutError(EmberInfrastructureException):
    """
    Raised when a per-player lock cannot be acquired in time.

    Args:
        key: Lock key
        wait_timeout: Seconds spent waiting before giving up
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, key: str, wait_timeout: float) -> None:
        self.key = key
        self.wait_timeout = wait_timeout
        super().__init__(
            f"Could not acquire lock '{key}' within {wait_timeout:.1f}s",
            details={"key": key, "wait_timeout": wait_timeout},
            error_code="LOCK_TIMEOUT",
        )


class DatabaseNotInitializedError(EmberInfrastructureException):
    """Raised when a session is requested before `DatabaseService.initialize()`."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self) -> None:
        super().__init__(
            "DatabaseService not initialized. Call initialize() first.",
            error_code="DATABASE_NOT_INITIALIZED",
        )

