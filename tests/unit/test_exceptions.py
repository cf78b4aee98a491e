"""
Unit Tests for exception classification helpers
===============================================

Purpose
-------
Test `is_transient_error` and `get_error_severity` across the domain and
infrastructure hierarchies; the facade's retry loop relies on them.

Test Coverage
-------------
- Lost version races, lock timeouts and database errors are transient
- Catalog corruption and game-rule violations are not
- Severity comes from the exception, ERROR for anything foreign

Testing Strategy
----------------
- Plain exception instances, no fixtures
"""

import pytest

from ember.core.exceptions import (
    CatalogError,
    DatabaseError,
    ErrorSeverity,
    LockTimeoutError,
    StaleProfileError,
)
from ember.modules.shared.exceptions import (
    InsufficientFundsError,
    ToolBrokenError,
    get_error_severity,
    is_transient_error,
)
from ember.modules.shared.outcomes import FailureReason


@pytest.mark.unit
class TestIsTransientError:
    """Test the retry classification."""

    @pytest.mark.parametrize(
        "exc",
        [
            StaleProfileError("guild-1", "player-1", 3),
            LockTimeoutError("ember:lock:profile:guild-1:player-1", 5.0),
            DatabaseError("save_profile", ConnectionResetError("reset")),
        ],
    )
    def test_infrastructure_retryable(self, exc):
        assert is_transient_error(exc) is True

    @pytest.mark.parametrize(
        "exc",
        [
            CatalogError("zones", "volcano"),
            InsufficientFundsError("coins", required=25, current=10),
            ToolBrokenError("basic_pickaxe"),
            ValueError("not ours"),
        ],
    )
    def test_not_retryable(self, exc):
        assert is_transient_error(exc) is False


@pytest.mark.unit
class TestGetErrorSeverity:
    """Test severity lookup."""

    def test_severity_from_exception(self):
        assert get_error_severity(CatalogError("zones", "volcano")) == ErrorSeverity.CRITICAL
        assert get_error_severity(StaleProfileError("g", "p", 1)) == ErrorSeverity.WARNING

    def test_domain_exception_severity(self):
        exc = InsufficientFundsError("tokens", required=5, current=0)

        assert get_error_severity(exc) == ErrorSeverity.INFO
        assert exc.reason == FailureReason.NOT_ENOUGH_TOKENS

    def test_foreign_exception_is_error(self):
        assert get_error_severity(RuntimeError("boom")) == ErrorSeverity.ERROR
