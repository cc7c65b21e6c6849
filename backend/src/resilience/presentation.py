"""
View models for showing errors to the user.

``ErrorPanel`` presents a stored error with its category, strategy and
recovery outcome. ``RetryPrompt`` is the simpler retry/skip/close prompt for
a raw error. Neither keeps state beyond what the user did with the prompt;
recovery goes through the handler.
"""
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Optional, Union

from .classification.classifier import error_text
from .types import ErrorRecord, RecoveryResult

if TYPE_CHECKING:
    from .handler import ErrorHandler

logger = logging.getLogger(__name__)

RESOLVED_AUTOMATICALLY = "Resolved automatically"
RESOLVED_MANUALLY = "Resolved"
ACTION_REQUIRED = "Action required"
IN_PROGRESS = "Recovering"


def outcome_message(record: ErrorRecord) -> str:
    """Status line for a record."""
    if record.recovery_success:
        return RESOLVED_AUTOMATICALLY
    if record.resolved:
        return RESOLVED_MANUALLY
    if record.user_action_required:
        return ACTION_REQUIRED
    return IN_PROGRESS


class ErrorPanel:
    """Detailed panel for one stored error."""

    def __init__(
        self,
        handler: "ErrorHandler",
        error_id: str,
        on_close: Optional[Callable[[str], None]] = None
    ):
        self.handler = handler
        self.error_id = error_id
        self._on_close = on_close
        self.closed = False

    @property
    def record(self) -> Optional[ErrorRecord]:
        return self.handler.get_error_by_id(self.error_id)

    @property
    def can_retry(self) -> bool:
        record = self.record
        return record is not None and not self.closed and record.can_retry

    @property
    def can_recover_manually(self) -> bool:
        record = self.record
        return record is not None and not self.closed and record.user_action_required

    def view(self) -> dict[str, Any]:
        """Everything the panel renders, or an empty dict if the error is gone."""
        record = self.record
        if record is None:
            return {}

        strategy = record.recovery_strategy
        return {
            "id": record.id,
            "message": record.message,
            "details": record.details,
            "kind": record.kind.value,
            "severity": record.severity.value,
            "sub_category": record.sub_category,
            "category": {
                "name": record.category.name,
                "description": record.category.description,
                "prevention_tips": list(record.category.prevention_tips),
            },
            "suggestions": list(record.suggestions),
            "strategy": {
                "name": strategy.name,
                "description": strategy.description,
                "automatic": strategy.automatic,
                "success_rate": strategy.success_rate,
                "estimated_time": strategy.estimated_time,
                "steps": [step.description for step in strategy.ordered_steps],
            },
            "retries": f"{record.retry_count}/{record.max_retries}",
            "status": outcome_message(record),
            "can_retry": self.can_retry,
            "can_recover_manually": self.can_recover_manually,
        }

    async def on_retry(self) -> Optional[RecoveryResult]:
        """Re-run the error's recovery strategy."""
        if not self.can_retry:
            return None
        return await self.handler.retry_error(self.error_id)

    def on_manual_recovery(self) -> list[str]:
        """The strategy steps as numbered instructions for the user."""
        record = self.record
        if record is None:
            return []
        return [
            f"{index}. {step.description} (expected: {step.expected_outcome})"
            for index, step in enumerate(record.recovery_strategy.ordered_steps, start=1)
        ]

    def on_close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close(self.error_id)


class RetryPrompt:
    """Retry / skip / close prompt for a raw error."""

    def __init__(
        self,
        error: Union[BaseException, str],
        on_retry: Callable[[], Union[Any, Awaitable[Any]]],
        on_skip: Optional[Callable[[], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
        retry_count: int = 0,
        max_retries: int = 3
    ):
        self.error = error
        self.retry_count = max(0, min(retry_count, max_retries))
        self.max_retries = max_retries
        self._on_retry = on_retry
        self._on_skip = on_skip
        self._on_close = on_close
        self.retrying = False
        self.dismissed = False

    @property
    def message(self) -> str:
        return error_text(self.error)

    @property
    def can_retry(self) -> bool:
        return not self.dismissed and not self.retrying and self.retry_count < self.max_retries

    @property
    def remaining_retries(self) -> int:
        return self.max_retries - self.retry_count

    @property
    def can_skip(self) -> bool:
        return self._on_skip is not None and not self.dismissed

    async def retry(self) -> bool:
        """
        Invoke the retry callback once.

        Returns:
            True if the callback completed without raising
        """
        if not self.can_retry:
            return False

        self.retrying = True
        self.retry_count += 1
        try:
            outcome = self._on_retry()
            if inspect.isawaitable(outcome):
                await outcome
            return True
        except Exception as e:
            logger.info(f"Retry {self.retry_count}/{self.max_retries} failed: {e}")
            self.error = e
            return False
        finally:
            self.retrying = False

    def skip(self) -> None:
        if not self.can_skip:
            return
        self.dismissed = True
        self._on_skip()

    def close(self) -> None:
        if self.dismissed:
            return
        self.dismissed = True
        if self._on_close is not None:
            self._on_close()
