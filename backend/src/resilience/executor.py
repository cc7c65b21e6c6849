"""Recovery executor: runs a strategy's steps against one error.
"""
import asyncio
import inspect
import logging
import random
import time
import traceback
from collections.abc import Awaitable, Callable
from typing import Any, Optional, Union

from .backoff import BackoffPolicy, FixedDelay
from .classification import ErrorKind, RecoveryAction, RecoveryStep, StrategyDefinition
from .exceptions import RecoveryStepError, RecoveryTimeoutError
from .types import ErrorRecord, RecoveryResult, RetryCallable

logger = logging.getLogger(__name__)

# Returning False fails the step; None or anything truthy succeeds
ActionHandler = Callable[
    [RecoveryStep, ErrorRecord],
    Union[Optional[bool], Awaitable[Optional[bool]]]
]

# Success probability of the simulated retry used when no retry callable exists
SIMULATED_NETWORK_RETRY_SUCCESS = 0.7


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class RecoveryExecutor:
    """Runs recovery strategies step by step.

    Steps run in ascending order and the run stops at the first failing step.
    ``execute`` never raises, apart from task cancellation.
    """

    def __init__(
        self,
        backoff: Optional[BackoffPolicy] = None,
        rng: Optional[random.Random] = None,
        strict: bool = False,
        simulated_success_rate: float = SIMULATED_NETWORK_RETRY_SUCCESS
    ):
        """
        Args:
            backoff: Delay policy for ``wait`` steps (default: fixed 1 second)
            rng: Random source for the simulated retry
            strict: Fail steps whose action has no handler instead of
                treating them as successful
            simulated_success_rate: Success probability of a simulated retry
                of a network error
        """
        self.backoff = backoff or FixedDelay(1.0)
        self.strict = strict
        self.simulated_success_rate = simulated_success_rate
        self._rng = rng or random.Random()
        self._actions: dict[str, ActionHandler] = {}

    def register_action(self, action: Union[str, RecoveryAction], handler: ActionHandler) -> None:
        """Register the handler for a step action."""
        self._actions[_action_name(action)] = handler

    def unregister_action(self, action: Union[str, RecoveryAction]) -> None:
        self._actions.pop(_action_name(action), None)

    @property
    def actions(self) -> list[str]:
        return list(self._actions)

    async def execute(
        self,
        strategy: StrategyDefinition,
        record: ErrorRecord,
        *,
        retry: Optional[RetryCallable] = None,
        timeout: Optional[float] = None
    ) -> RecoveryResult:
        """Run a strategy for an error.

        Args:
            strategy: Strategy whose steps are run
            record: The error being recovered
            retry: Callable re-running the failed operation, used by
                ``retry`` steps
            timeout: Deadline in seconds for the whole sequence

        Returns:
            Result with the steps that ran and the elapsed time
        """
        result = RecoveryResult(success=False, strategy=strategy)
        started = time.monotonic()

        try:
            await self._with_deadline(
                self._run_steps(strategy, record, retry, result),
                strategy,
                timeout
            )
        except RecoveryTimeoutError as e:
            result.success = False
            result.error = str(e)
            logger.warning(f"{e} for error {record.id}")
        except Exception as e:
            result.success = False
            result.error = str(e) or type(e).__name__
            logger.error(f"Recovery '{strategy.id}' failed for error {record.id}: {e}")
            logger.debug(f"Traceback: {traceback.format_exc()}")

        result.time_taken = time.monotonic() - started
        return result

    async def _with_deadline(
        self,
        coro: Awaitable[None],
        strategy: StrategyDefinition,
        timeout: Optional[float]
    ) -> None:
        """
        Await coro, converting an expired deadline into RecoveryTimeoutError.

        Raises:
            RecoveryTimeoutError: if timeout seconds pass first
        """
        if timeout is None:
            await coro
            return

        try:
            await asyncio.wait_for(coro, timeout=timeout)
        except TimeoutError:
            raise RecoveryTimeoutError(
                f"Recovery '{strategy.id}' timed out after {timeout}s", timeout
            ) from None

    async def _run_steps(
        self,
        strategy: StrategyDefinition,
        record: ErrorRecord,
        retry: Optional[RetryCallable],
        result: RecoveryResult
    ) -> None:
        for step in strategy.ordered_steps:
            result.steps_executed.append(step)

            try:
                succeeded = await self._run_step(step, record, retry)
            except RecoveryStepError as e:
                succeeded = False
                result.error = str(e)
            except Exception as e:
                succeeded = False
                result.error = str(e) or type(e).__name__
                logger.debug(f"Step {step.order} ({step.action}) raised: {traceback.format_exc()}")

            if not succeeded:
                result.success = False
                if result.error is None:
                    result.error = f"Recovery step '{step.action}' failed"
                logger.info(
                    f"Recovery '{strategy.id}' stopped at step {step.order} ({step.action}) "
                    f"for error {record.id}"
                )
                return

        result.success = True

    async def _run_step(
        self,
        step: RecoveryStep,
        record: ErrorRecord,
        retry: Optional[RetryCallable]
    ) -> bool:
        action = step.action

        if action == RecoveryAction.WAIT.value:
            delay = self.backoff.calculate_delay(record.retry_count)
            logger.debug(f"Waiting {delay}s before next recovery step ({self.backoff.name})")
            await asyncio.sleep(delay)
            return True

        if action == RecoveryAction.RETRY.value:
            return await self._retry(record, retry)

        handler = self._actions.get(action)
        if handler is not None:
            outcome = await _maybe_await(handler(step, record))
            return outcome is not False

        if self.strict:
            raise RecoveryStepError(f"No handler for recovery action '{action}'", action)

        logger.debug(f"No handler for recovery action '{action}', treating as done")
        return True

    async def _retry(self, record: ErrorRecord, retry: Optional[RetryCallable]) -> bool:
        if retry is not None:
            logger.info(f"Re-running failed operation for error {record.id}")
            await _maybe_await(retry())
            return True

        # Without the original operation only network errors are simulated
        if record.kind == ErrorKind.NETWORK:
            return self._rng.random() < self.simulated_success_rate
        return True


def _action_name(action: Union[str, RecoveryAction]) -> str:
    return action.value if isinstance(action, RecoveryAction) else action
