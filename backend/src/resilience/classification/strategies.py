"""Recovery strategy catalog and strategy selection."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .categories import CategoryDefinition, ErrorKind

logger = logging.getLogger(__name__)


class RecoveryAction(Enum):
    """Known recovery step actions."""

    WAIT = "wait"  # Sleep for the configured delay
    RETRY = "retry"  # Re-run the failed operation
    CHECK_CACHE = "check_cache"
    LOAD_CACHE = "load_cache"
    CLEAR_CACHE = "clear_cache"
    CLEANUP_OBJECTS = "cleanup_objects"
    REVIEW_INPUT = "review_input"
    CORRECT_INPUT = "correct_input"
    RESUBMIT = "resubmit"
    SAVE_STATE = "save_state"
    RESTART = "restart"


@dataclass(frozen=True)
class RecoveryStep:
    """One scripted step of a recovery strategy."""

    order: int
    action: str
    description: str
    expected_outcome: str
    rollback_action: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": self.order,
            "action": self.action,
            "description": self.description,
            "expected_outcome": self.expected_outcome,
            "rollback_action": self.rollback_action,
        }


@dataclass(frozen=True)
class StrategyDefinition:
    """Static description of a recovery strategy."""

    id: str
    name: str
    description: str
    automatic: bool
    success_rate: float
    estimated_time: float  # seconds
    prerequisites: tuple[str, ...] = ()
    steps: tuple[RecoveryStep, ...] = ()

    def __post_init__(self):
        if not 0.0 <= self.success_rate <= 1.0:
            raise ValueError(f"success_rate must be within [0, 1], got {self.success_rate}")
        if self.estimated_time < 0:
            raise ValueError(f"estimated_time must be >= 0, got {self.estimated_time}")

    @property
    def ordered_steps(self) -> list[RecoveryStep]:
        """Steps in ascending order."""
        return sorted(self.steps, key=lambda step: step.order)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "automatic": self.automatic,
            "success_rate": self.success_rate,
            "estimated_time": self.estimated_time,
            "prerequisites": list(self.prerequisites),
            "steps": [step.to_dict() for step in self.ordered_steps],
        }


FALLBACK_STRATEGY_ID = "restart_app"

DEFAULT_STRATEGIES: list[StrategyDefinition] = [
    StrategyDefinition(
        id="retry_request",
        name="Retry request",
        description="Automatically retry the failed network request",
        automatic=True,
        success_rate=0.85,
        estimated_time=3.0,
        prerequisites=("Network connection available",),
        steps=(
            RecoveryStep(1, "wait", "Wait before retrying", "Avoid hammering the remote service"),
            RecoveryStep(2, "retry", "Send the original request again", "A response is received"),
        ),
    ),
    StrategyDefinition(
        id="offline_mode",
        name="Offline mode",
        description="Switch to offline mode and serve cached data",
        automatic=True,
        success_rate=0.70,
        estimated_time=0.5,
        prerequisites=("Cached data exists",),
        steps=(
            RecoveryStep(1, "check_cache", "Check the local cache", "Usable cached data is found"),
            RecoveryStep(2, "load_cache", "Load cached data", "Cached content is shown to the user"),
        ),
    ),
    StrategyDefinition(
        id="memory_cleanup",
        name="Memory cleanup",
        description="Release memory held by caches and stale objects",
        automatic=True,
        success_rate=0.90,
        estimated_time=2.0,
        steps=(
            RecoveryStep(1, "clear_cache", "Clear application caches", "Memory is released"),
            RecoveryStep(2, "cleanup_objects", "Drop unused objects", "Memory usage goes down"),
        ),
    ),
    StrategyDefinition(
        id="retry_upload",
        name="Retry upload",
        description="Retry the failed file transfer",
        automatic=True,
        success_rate=0.75,
        estimated_time=5.0,
        prerequisites=("Source file still available",),
        steps=(
            RecoveryStep(1, "wait", "Wait before retrying", "Transient failures settle"),
            RecoveryStep(2, "retry", "Transfer the file again", "The transfer completes"),
        ),
    ),
    StrategyDefinition(
        id="user_correction",
        name="User correction",
        description="Guide the user through correcting the rejected input",
        automatic=False,
        success_rate=0.95,
        estimated_time=60.0,
        prerequisites=("User is available to edit the input",),
        steps=(
            RecoveryStep(1, "review_input", "Review the highlighted fields", "Invalid values are identified"),
            RecoveryStep(2, "correct_input", "Correct the invalid values", "All fields pass validation"),
            RecoveryStep(3, "resubmit", "Submit the form again", "The input is accepted"),
        ),
    ),
    StrategyDefinition(
        id="restart_app",
        name="Restart application",
        description="Save work and restart the application",
        automatic=False,
        success_rate=0.80,
        estimated_time=30.0,
        steps=(
            RecoveryStep(1, "save_state", "Save current work", "No work is lost"),
            RecoveryStep(2, "restart", "Restart the application", "The application starts cleanly"),
        ),
    ),
]

_FALLBACK_STRATEGY = next(s for s in DEFAULT_STRATEGIES if s.id == FALLBACK_STRATEGY_ID)

# Preferred strategy for each kind
KIND_STRATEGY_MAP: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "retry_request",
    ErrorKind.FILE: "retry_upload",
    ErrorKind.VALIDATION: "user_correction",
    ErrorKind.TIMEOUT: "retry_request",
    ErrorKind.PERMISSION: "restart_app",
    ErrorKind.RESOURCE: "memory_cleanup",
    ErrorKind.UNKNOWN: "restart_app",
}


class StrategyRegistry:
    """Catalog of recovery strategies, seeded once at construction."""

    def __init__(self, strategies: list[StrategyDefinition] | None = None):
        self._strategies: dict[str, StrategyDefinition] = {}
        for strategy in DEFAULT_STRATEGIES if strategies is None else strategies:
            self.register(strategy)

    def register(self, strategy: StrategyDefinition) -> None:
        """Add a strategy, replacing any entry with the same id."""
        self._strategies[strategy.id] = strategy

    def get(self, strategy_id: str) -> StrategyDefinition | None:
        """Look up a strategy by id."""
        return self._strategies.get(strategy_id)

    def get_or_default(self, strategy_id: str) -> StrategyDefinition:
        """Look up a strategy, falling back to restarting the application."""
        strategy = self._strategies.get(strategy_id)
        if strategy is not None:
            return strategy

        logger.debug(f"Unknown strategy '{strategy_id}', using '{FALLBACK_STRATEGY_ID}'")
        return self._strategies.get(FALLBACK_STRATEGY_ID, _FALLBACK_STRATEGY)

    def select(self, kind: ErrorKind, category: CategoryDefinition) -> StrategyDefinition:
        """Choose the strategy for a classified error.

        The kind's preferred strategy wins; otherwise the first strategy of the
        category that is registered; otherwise the fallback.
        """
        preferred = self._strategies.get(KIND_STRATEGY_MAP.get(kind, FALLBACK_STRATEGY_ID))
        if preferred is not None:
            return preferred

        for strategy_id in category.recovery_strategies:
            strategy = self._strategies.get(strategy_id)
            if strategy is not None:
                return strategy

        return self.get_or_default(FALLBACK_STRATEGY_ID)

    def ids(self) -> list[str]:
        return list(self._strategies)

    def all(self) -> list[StrategyDefinition]:
        return list(self._strategies.values())

    def __contains__(self, strategy_id: object) -> bool:
        return strategy_id in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)
