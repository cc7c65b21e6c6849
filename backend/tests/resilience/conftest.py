"""
Shared fixtures for resilience tests.
"""
from unittest.mock import Mock

import pytest

from backend.src.resilience import (
    CategoryRegistry,
    ErrorHandler,
    ErrorHandlerConfig,
    ErrorKind,
    ErrorRecord,
    ErrorSeverity,
    FixedDelay,
    RecoveryExecutor,
    StrategyRegistry,
)


def fixed_rng(value: float) -> Mock:
    """Random source whose random() always returns value."""
    rng = Mock()
    rng.random.return_value = value
    return rng


@pytest.fixture
def make_record():
    """Build error records without going through a handler."""
    categories = CategoryRegistry()
    strategies = StrategyRegistry()
    counter = {"n": 0}

    def _make(
        kind: ErrorKind = ErrorKind.NETWORK,
        severity: ErrorSeverity = ErrorSeverity.HIGH,
        message: str = "network error",
        strategy_id: str | None = None,
        **overrides
    ) -> ErrorRecord:
        counter["n"] += 1
        category = categories.for_kind(kind)
        strategy = (
            strategies.get_or_default(strategy_id) if strategy_id
            else strategies.select(kind, category)
        )
        fields = dict(
            id=f"err_test_{counter['n']}",
            kind=kind,
            severity=severity,
            message=message,
            category=category,
            recovery_strategy=strategy,
        )
        fields.update(overrides)
        return ErrorRecord(**fields)

    return _make


@pytest.fixture
def succeeding_handler():
    """Handler whose simulated retries always succeed and never sleep."""
    executor = RecoveryExecutor(backoff=FixedDelay(0), rng=fixed_rng(0.0))
    return ErrorHandler(ErrorHandlerConfig(retry_delay=0), executor=executor)


@pytest.fixture
def failing_handler():
    """Handler whose simulated network retries always fail."""
    executor = RecoveryExecutor(backoff=FixedDelay(0), rng=fixed_rng(0.99))
    return ErrorHandler(ErrorHandlerConfig(retry_delay=0), executor=executor)
