"""
Base Service Foundation

Purpose
-------
Common base for the progression engines (crafting, mining, jobs, economy,
missions, lootboxes, workshop). Engines implement pure game rules over a
loaded `PlayerProfile` and return an `Outcome`.

Design Notes
------------
This base class provides:
- The shared `GameCatalog`
- Structured logging with operation context
- Safe config access patterns
- Conversion of domain exceptions into failed outcomes

What this class does NOT do:
- Load or save profiles (that's ProfileRepository's job)
- Lock players (that's PlayerLockManager's job)
- Touch the database or the network

Usage
-----
    class CraftingService(BaseService):
        def __init__(self, catalog, random_source, logger=None):
            super().__init__(catalog, logger=logger)
            self.random = random_source

        def craft(self, profile, blueprint_id):
            # Service logic here, using self.log, self.catalog, self.fail
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Type

from ember.core.config.config_manager import ConfigManager
from ember.core.exceptions import ConfigurationError
from ember.core.logging.logger import get_logger
from ember.modules.shared.outcomes import FailureKind, FailureReason, Outcome

if TYPE_CHECKING:
    from logging import Logger

    from ember.domain.models.profile import PlayerProfile
    from ember.modules.catalog.catalog import GameCatalog
    from ember.modules.shared.exceptions import EmberDomainException


class BaseService:
    """
    Base class for all engine services.

    Args:
        catalog: Static lookup tables
        logger: Structured logger instance (defaults to the module logger)
        config_manager: Configuration manager (class-level API)
    """

    def __init__(
        self,
        catalog: GameCatalog,
        logger: Optional[Logger] = None,
        config_manager: Type[ConfigManager] = ConfigManager,
    ) -> None:
        self.catalog = catalog
        self._config = config_manager
        self.log = logger or get_logger(type(self).__module__)

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    # ========================================================================
    # LOGGING
    # ========================================================================

    @staticmethod
    def _profile_context(profile: Optional[PlayerProfile]) -> dict:
        if profile is None:
            return {}
        return {"guild_id": profile.guild_id, "player_id": profile.player_id}

    def log_operation(
        self, operation: str, profile: Optional[PlayerProfile] = None, **context: Any
    ) -> None:
        """Log a successful mutation with structured context."""
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **self._profile_context(profile), **context},
        )

    def log_rejection(
        self, operation: str, outcome: Outcome, profile: Optional[PlayerProfile] = None
    ) -> None:
        """Gated failures are expected traffic; log them at DEBUG."""
        self.log.debug(
            f"Service operation rejected: {operation}",
            extra={
                "operation": operation,
                "reason": outcome.reason.value if outcome.reason else None,
                **self._profile_context(profile),
            },
        )

    # ========================================================================
    # OUTCOME HELPERS
    # ========================================================================

    def fail(
        self,
        operation: str,
        reason: FailureReason,
        profile: Optional[PlayerProfile] = None,
        kind: FailureKind = FailureKind.VALIDATION,
        **data: Any,
    ) -> Outcome:
        outcome = Outcome.fail(reason, kind, **data)
        self.log_rejection(operation, outcome, profile)
        return outcome

    def reject(
        self,
        operation: str,
        error: EmberDomainException,
        profile: Optional[PlayerProfile] = None,
    ) -> Outcome:
        """Turn a domain exception raised by the aggregate into a failure."""
        outcome = Outcome.from_error(error)
        self.log_rejection(operation, outcome, profile)
        return outcome
