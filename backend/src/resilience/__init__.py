"""
Error resilience subsystem: classification, recovery and reporting of
application errors.
"""
from .backoff import BackoffPolicy, ExponentialBackoff, FixedDelay, LinearBackoff
from .classification import (
    CategoryDefinition,
    CategoryRegistry,
    Classification,
    Classifier,
    ErrorKind,
    ErrorSeverity,
    KeywordClassifier,
    RecoveryAction,
    RecoveryStep,
    StrategyDefinition,
    StrategyRegistry,
)
from .decorator import reports_errors
from .exceptions import (
    ConfigurationError,
    RecoveryStepError,
    RecoveryTimeoutError,
    ResilienceError,
)
from .executor import RecoveryExecutor
from .handler import ErrorHandler
from .metrics import ErrorMetrics, compute_metrics
from .presentation import ErrorPanel, RetryPrompt
from .snapshot import NetworkCondition, RuntimeInfo, SystemState
from .store import BaseErrorStore, MemoryErrorStore
from .types import (
    ErrorHandlerConfig,
    ErrorRecord,
    ErrorReport,
    LogLevel,
    RecoveryAttempt,
    RecoveryResult,
    UserAction,
    UserActionType,
)


__all__ = [
    # Entry point
    'ErrorHandler',
    'ErrorHandlerConfig',
    'LogLevel',
    'reports_errors',

    # Classification
    'Classifier',
    'KeywordClassifier',
    'Classification',
    'ErrorKind',
    'ErrorSeverity',
    'CategoryDefinition',
    'CategoryRegistry',
    'RecoveryAction',
    'RecoveryStep',
    'StrategyDefinition',
    'StrategyRegistry',

    # Recovery
    'RecoveryExecutor',
    'RecoveryResult',
    'RecoveryAttempt',
    'BackoffPolicy',
    'FixedDelay',
    'LinearBackoff',
    'ExponentialBackoff',

    # Records and reports
    'ErrorRecord',
    'ErrorReport',
    'UserAction',
    'UserActionType',
    'SystemState',
    'NetworkCondition',
    'RuntimeInfo',
    'BaseErrorStore',
    'MemoryErrorStore',
    'ErrorMetrics',
    'compute_metrics',

    # Presentation
    'ErrorPanel',
    'RetryPrompt',

    # Exceptions
    'ResilienceError',
    'ConfigurationError',
    'RecoveryStepError',
    'RecoveryTimeoutError',
]
