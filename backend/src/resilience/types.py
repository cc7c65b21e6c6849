"""
Shared type definitions for the resilience subsystem.
"""
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from .classification import (
    CategoryDefinition,
    ErrorKind,
    ErrorSeverity,
    RecoveryStep,
    StrategyDefinition,
)
from .exceptions import ConfigurationError
from .snapshot import NetworkCondition, RuntimeInfo, SystemState

# Re-runs the failed operation; may be sync or async
RetryCallable = Callable[[], Union[Any, Awaitable[Any]]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LogLevel(Enum):
    """Minimum level for the handler's own log lines."""
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def logging_level(self) -> int:
        return _LOGGING_LEVELS[self]

    @property
    def rank(self) -> int:
        return list(LogLevel).index(self)


_LOGGING_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class UserActionType(Enum):
    """Kinds of tracked user actions."""
    CLICK = "click"
    INPUT = "input"
    NAVIGATION = "navigation"
    UPLOAD = "upload"
    DOWNLOAD = "download"
    SUBMIT = "submit"
    ERROR_REPORTED = "error_reported"


@dataclass(frozen=True)
class UserAction:
    """A breadcrumb of what the user did before an error."""
    type: UserActionType
    target: str
    value: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
            "target": self.target,
            "value": self.value,
        }


@dataclass(frozen=True)
class ErrorHandlerConfig:
    """Configuration for the error handler."""
    enable_auto_recovery: bool = True
    max_retry_attempts: int = 3
    retry_delay: float = 1.0  # seconds
    enable_error_reporting: bool = True
    enable_metrics: bool = True
    enable_performance_tracking: bool = True
    log_level: LogLevel = LogLevel.INFO
    recovery_timeout: Optional[float] = None  # seconds, whole recovery sequence
    user_action_limit: int = 1000
    report_user_actions: int = 10

    def __post_init__(self):
        if isinstance(self.log_level, str):
            try:
                object.__setattr__(self, "log_level", LogLevel(self.log_level.lower()))
            except ValueError:
                raise ConfigurationError(f"Invalid log level: {self.log_level}", "log_level") from None
        if not isinstance(self.log_level, LogLevel):
            raise ConfigurationError(f"Invalid log level: {self.log_level!r}", "log_level")
        for name, expected in _OPTION_TYPES.items():
            value = getattr(self, name)
            if value is None and name in _OPTIONAL_OPTIONS:
                continue
            if isinstance(value, bool) and expected is not bool:
                raise ConfigurationError(f"{name} must be {_type_name(expected)}, got {value!r}", name)
            if not isinstance(value, expected):
                raise ConfigurationError(
                    f"{name} must be {_type_name(expected)}, got {type(value).__name__}", name
                )
        if self.max_retry_attempts < 0:
            raise ConfigurationError("max_retry_attempts must be >= 0", "max_retry_attempts")
        if self.retry_delay < 0:
            raise ConfigurationError("retry_delay must be >= 0", "retry_delay")
        if self.recovery_timeout is not None and self.recovery_timeout <= 0:
            raise ConfigurationError("recovery_timeout must be > 0", "recovery_timeout")
        if self.user_action_limit < 1:
            raise ConfigurationError("user_action_limit must be >= 1", "user_action_limit")
        if self.report_user_actions < 0:
            raise ConfigurationError("report_user_actions must be >= 0", "report_user_actions")

    @classmethod
    def option_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}

    def merged(self, **changes: Any) -> "ErrorHandlerConfig":
        """Return a copy with the given options changed."""
        unknown = set(changes) - self.option_names()
        if unknown:
            name = sorted(unknown)[0]
            raise ConfigurationError(f"Unknown configuration option: {name}", name)
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict) -> "ErrorHandlerConfig":
        """Create from dictionary, rejecting unknown options."""
        return cls().merged(**data)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "ErrorHandlerConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["log_level"] = self.log_level.value
        return data


_OPTION_TYPES: dict[str, Union[type, tuple[type, ...]]] = {
    "enable_auto_recovery": bool,
    "max_retry_attempts": int,
    "retry_delay": (int, float),
    "enable_error_reporting": bool,
    "enable_metrics": bool,
    "enable_performance_tracking": bool,
    "recovery_timeout": (int, float),
    "user_action_limit": int,
    "report_user_actions": int,
}

_OPTIONAL_OPTIONS = {"recovery_timeout"}


def _type_name(expected: Union[type, tuple[type, ...]]) -> str:
    if expected is bool:
        return "a boolean"
    if expected is int:
        return "an integer"
    return "a number"


@dataclass
class ErrorRecord:
    """Classified representation of one observed failure."""
    id: str
    kind: ErrorKind
    severity: ErrorSeverity
    message: str
    category: CategoryDefinition
    recovery_strategy: StrategyDefinition
    details: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)
    recoverable: bool = True
    retry_count: int = 0
    max_retries: int = 3
    suggestions: tuple[str, ...] = ()
    sub_category: str = "general_error"
    auto_recovery_attempted: bool = False
    recovery_success: bool = False
    user_action_required: bool = False
    resolved: bool = False
    context: dict[str, Any] = field(default_factory=dict)
    system_state: Optional[SystemState] = None

    @property
    def can_retry(self) -> bool:
        return self.recoverable and self.retry_count < self.max_retries

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "suggestions": list(self.suggestions),
            "category": self.category.to_dict(),
            "sub_category": self.sub_category,
            "recovery_strategy": self.recovery_strategy.to_dict(),
            "auto_recovery_attempted": self.auto_recovery_attempted,
            "recovery_success": self.recovery_success,
            "user_action_required": self.user_action_required,
            "resolved": self.resolved,
            "context": _jsonable(self.context),
            "system_state": self.system_state.to_dict() if self.system_state else None,
        }


@dataclass
class RecoveryResult:
    """Outcome of running one strategy."""
    success: bool
    strategy: StrategyDefinition
    steps_executed: list[RecoveryStep] = field(default_factory=list)
    time_taken: float = 0.0  # seconds
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "strategy": self.strategy.id,
            "steps_executed": [step.to_dict() for step in self.steps_executed],
            "time_taken": self.time_taken,
            "error": self.error,
        }


@dataclass(frozen=True)
class RecoveryAttempt:
    """One execution of a strategy against an error."""
    strategy: StrategyDefinition
    success: bool
    duration: float  # seconds
    error: Optional[str] = None
    manual: bool = False
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def from_result(cls, result: RecoveryResult, manual: bool = False) -> "RecoveryAttempt":
        return cls(
            strategy=result.strategy,
            success=result.success,
            duration=max(result.time_taken, 0.0),
            error=result.error,
            manual=manual,
        )

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "strategy": self.strategy.id,
            "success": self.success,
            "duration": self.duration,
            "error": self.error,
            "manual": self.manual,
        }


@dataclass
class ErrorReport:
    """Audit envelope around an error record."""
    id: str
    error: ErrorRecord
    system_state: SystemState
    network_condition: NetworkCondition
    runtime_info: RuntimeInfo
    user_actions: list[UserAction] = field(default_factory=list)
    recovery_attempts: list[RecoveryAttempt] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "error": self.error.to_dict(),
            "system_state": self.system_state.to_dict(),
            "user_actions": [action.to_dict() for action in self.user_actions],
            "network_condition": self.network_condition.to_dict(),
            "runtime_info": self.runtime_info.to_dict(),
            "recovery_attempts": [attempt.to_dict() for attempt in self.recovery_attempts],
        }


def _jsonable(value: Any) -> Any:
    """Best effort conversion of caller supplied context for export."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    return repr(value)
