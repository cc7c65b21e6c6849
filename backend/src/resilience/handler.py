"""
Error handler: the entry point of the resilience subsystem.

``report`` classifies a failure, stores it with a context snapshot, and runs
automatic recovery when the category and strategy allow it. The handler is a
terminal error sink, so none of its operations raise into the caller apart
from configuration validation.
"""
import asyncio
import gc
import logging
import time
import traceback
import uuid
from collections.abc import MutableMapping
from typing import Any, Optional, Union

from .backoff import BackoffPolicy, FixedDelay
from .classification import (
    CategoryRegistry,
    Classifier,
    ErrorKind,
    ErrorSeverity,
    KeywordClassifier,
    RecoveryAction,
    RecoveryStep,
    StrategyRegistry,
)
from .classification.classifier import ErrorInput, error_text
from .classification.patterns import SUGGESTIONS
from .executor import RecoveryExecutor
from .interception import GlobalFaultInterceptor
from .metrics import ErrorMetrics, compute_metrics
from .snapshot import (
    RuntimeInfo,
    SystemState,
    collect_network_condition,
    collect_runtime_info,
    collect_system_state,
)
from .store import BaseErrorStore, MemoryErrorStore
from .types import (
    ErrorHandlerConfig,
    ErrorRecord,
    ErrorReport,
    LogLevel,
    RecoveryAttempt,
    RecoveryResult,
    RetryCallable,
    UserAction,
    UserActionType,
)

logger = logging.getLogger(__name__)

# Retention applied by the cleanup_objects recovery action
CLEANUP_KEEP_REPORTS = 50
CLEANUP_KEEP_USER_ACTIONS = 100


def generate_id(prefix: str = "err") -> str:
    """Process-unique id: monotonic clock plus a random suffix."""
    return f"{prefix}_{time.monotonic_ns()}_{uuid.uuid4().hex[:9]}"


class ErrorHandler:
    """Classifies, records and recovers from application errors.

    Construct one per application (or per test) and pass it to the code that
    reports errors. ``install``/``uninstall`` hook uncaught exceptions;
    ``async with handler:`` does both around a block.
    """

    def __init__(
        self,
        config: Optional[ErrorHandlerConfig] = None,
        *,
        classifier: Optional[Classifier] = None,
        categories: Optional[CategoryRegistry] = None,
        strategies: Optional[StrategyRegistry] = None,
        store: Optional[BaseErrorStore] = None,
        executor: Optional[RecoveryExecutor] = None,
        backoff: Optional[BackoffPolicy] = None
    ):
        self.config = config or ErrorHandlerConfig()
        self.classifier = classifier or KeywordClassifier()
        self.categories = categories or CategoryRegistry()
        self.strategies = strategies or StrategyRegistry()
        self.store = store or MemoryErrorStore(self.config.user_action_limit)
        self.store.set_user_action_limit(self.config.user_action_limit)

        # wait-step delay follows retry_delay unless a policy was supplied
        self._follows_retry_delay = backoff is None and executor is None
        self.executor = executor or RecoveryExecutor(
            backoff=backoff or FixedDelay(self.config.retry_delay)
        )

        self._caches: dict[str, MutableMapping] = {}
        self._retry_callbacks: dict[str, RetryCallable] = {}
        self._runtime_info: Optional[RuntimeInfo] = None
        self._interceptor = GlobalFaultInterceptor(self.report)

        self.executor.register_action(RecoveryAction.CLEAR_CACHE, self._clear_caches)
        self.executor.register_action(RecoveryAction.CLEANUP_OBJECTS, self._cleanup_objects)
        self.executor.register_action(RecoveryAction.CHECK_CACHE, self._check_cache)

    # Lifecycle

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Route uncaught exceptions and unhandled async failures to ``report``."""
        self._interceptor.install(loop)

    def uninstall(self) -> None:
        self._interceptor.uninstall()

    @property
    def installed(self) -> bool:
        return self._interceptor.installed

    async def drain(self) -> None:
        """Wait for reports scheduled by the global hooks."""
        await self._interceptor.drain()

    async def __aenter__(self) -> "ErrorHandler":
        self.install(asyncio.get_running_loop())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.drain()
        self.uninstall()

    # Reporting

    async def report(
        self,
        error: ErrorInput,
        context: Optional[dict[str, Any]] = None,
        *,
        kind: Optional[ErrorKind] = None,
        severity: Optional[ErrorSeverity] = None,
        retry: Optional[RetryCallable] = None
    ) -> str:
        """
        Record a failure and recover from it if possible.

        Args:
            error: Exception or message describing the failure
            context: Caller supplied context stored with the record
            kind: Force the error kind instead of classifying the message
            severity: Force the severity
            retry: Callable re-running the failed operation; used by
                ``retry`` recovery steps

        Returns:
            Id of the stored error record. Recovery has finished by the time
            this returns.
        """
        error_id = generate_id()

        try:
            record = self._build_record(error_id, error, context, kind, severity)
            if retry is not None:
                self._retry_callbacks[error_id] = retry
            self._store_record(record)
        except Exception as e:
            logger.error(f"Failed to record error {error_id}: {e}")
            logger.debug(f"Traceback: {traceback.format_exc()}")
            return error_id

        if self._auto_recovery_eligible(record):
            await self._attempt_auto_recovery(record)
        else:
            record.user_action_required = True
        self._release_retry(record)

        return error_id

    async def retry_error(self, error_id: str) -> Optional[RecoveryResult]:
        """
        Manually re-run the recovery strategy of a stored error.

        Returns:
            The recovery result, or None when the error is unknown or has no
            retries left
        """
        record = self.store.get_record(error_id)
        if record is None:
            self._log(LogLevel.WARN, f"Cannot retry unknown error {error_id}")
            return None

        if not record.can_retry:
            self._log(
                LogLevel.WARN,
                f"No retries left for error {error_id} ({record.retry_count}/{record.max_retries})"
            )
            return None

        record.retry_count += 1
        result = await self._run_recovery(record)
        self.store.append_attempt(record.id, RecoveryAttempt.from_result(result, manual=True))

        if result.success:
            record.resolved = True
            record.user_action_required = False
            self._log(LogLevel.INFO, f"Manual recovery succeeded for error {error_id}")
        else:
            record.user_action_required = True
            self._log(LogLevel.WARN, f"Manual recovery failed for error {error_id}: {result.error}")

        self._release_retry(record)

        return result

    # Queries

    def get_error_by_id(self, error_id: str) -> Optional[ErrorRecord]:
        return self.store.get_record(error_id)

    def get_error_reports(self, limit: int = 50) -> list[ErrorReport]:
        """Newest reports first."""
        return self.store.get_reports(limit)

    def get_metrics(self) -> ErrorMetrics:
        return compute_metrics(self.store.records(), self.store.reports())

    def export_error_data(self) -> dict[str, Any]:
        """Dump everything for offline analysis."""
        return {
            "errors": [record.to_dict() for record in self.store.records()],
            "reports": [report.to_dict() for report in self.store.reports()],
            "metrics": self.get_metrics().to_dict(),
        }

    def clear_errors(self) -> None:
        """Forget all errors, reports and user actions."""
        self.store.clear()
        self._retry_callbacks.clear()
        self._log(LogLevel.INFO, "Error history cleared")

    # Configuration

    def update_config(self, partial: Optional[dict[str, Any]] = None, **options: Any) -> None:
        """
        Change configuration options.

        Raises:
            ConfigurationError: for unknown options or invalid values
        """
        changes = dict(partial or {}, **options)
        self.config = self.config.merged(**changes)
        self.store.set_user_action_limit(self.config.user_action_limit)
        if self._follows_retry_delay:
            self.executor.backoff = FixedDelay(self.config.retry_delay)
        self._log(LogLevel.DEBUG, f"Configuration updated: {sorted(changes)}")

    # User actions and caches

    def track_user_action(
        self,
        action_type: Union[UserActionType, str],
        target: str,
        value: Optional[str] = None
    ) -> None:
        """Record a user action breadcrumb (only when metrics are enabled)."""
        if not self.config.enable_metrics:
            return
        self.store.add_user_action(UserAction(UserActionType(action_type), target, value))

    def register_cache(self, name: str, cache: MutableMapping) -> None:
        """Expose an application cache to the cache recovery actions."""
        self._caches[name] = cache

    def unregister_cache(self, name: str) -> None:
        self._caches.pop(name, None)

    # Internals

    @property
    def runtime_info(self) -> RuntimeInfo:
        if self._runtime_info is None:
            self._runtime_info = collect_runtime_info()
        return self._runtime_info

    def _build_record(
        self,
        error_id: str,
        error: ErrorInput,
        context: Optional[dict[str, Any]],
        kind: Optional[ErrorKind],
        severity: Optional[ErrorSeverity]
    ) -> ErrorRecord:
        classification = self.classifier.classify(error)
        resolved_kind = kind or classification.kind
        suggestions = (
            classification.suggestions if kind is None
            else SUGGESTIONS.get(resolved_kind, SUGGESTIONS[ErrorKind.UNKNOWN])
        )
        category = self.categories.for_kind(resolved_kind)
        strategy = self.strategies.select(resolved_kind, category)

        return ErrorRecord(
            id=error_id,
            kind=resolved_kind,
            severity=severity or classification.severity,
            message=error_text(error) or "Unknown error",
            details=_error_details(error),
            recoverable=bool(strategy.steps),
            max_retries=self.config.max_retry_attempts,
            suggestions=tuple(suggestions),
            category=category,
            sub_category=classification.sub_category,
            recovery_strategy=strategy,
            context=dict(context or {}),
            system_state=self._system_state(),
        )

    def _store_record(self, record: ErrorRecord) -> None:
        self.store.save_record(record)
        self._log(
            LogLevel.ERROR,
            record.message,
            error_id=record.id,
            kind=record.kind.value,
            severity=record.severity.value,
        )

        if self.config.enable_error_reporting:
            report = ErrorReport(
                id=generate_id("rpt"),
                error=record,
                system_state=record.system_state or self._system_state(),
                network_condition=collect_network_condition(),
                runtime_info=self.runtime_info,
                user_actions=self.store.recent_user_actions(self.config.report_user_actions),
            )
            self.store.add_report(report)
            self._log(LogLevel.DEBUG, f"Error report {report.id} created for {record.id}")

        self.store.add_user_action(
            UserAction(UserActionType.ERROR_REPORTED, target=record.kind.value, value=record.id)
        )

    def _auto_recovery_eligible(self, record: ErrorRecord) -> bool:
        return (
            self.config.enable_auto_recovery
            and record.category.auto_recovery
            and record.recovery_strategy.automatic
        )

    async def _attempt_auto_recovery(self, record: ErrorRecord) -> None:
        strategy = record.recovery_strategy
        record.auto_recovery_attempted = True

        result = await self._run_recovery(record)

        if result.success:
            record.recovery_success = True
            record.resolved = True
            record.user_action_required = False
            self._log(
                LogLevel.INFO,
                f"Automatic recovery succeeded: {strategy.name} ({result.time_taken:.3f}s)",
                error_id=record.id,
            )
        else:
            record.user_action_required = True
            self._log(
                LogLevel.WARN,
                f"Automatic recovery failed: {strategy.name}: {result.error}",
                error_id=record.id,
            )

        self.store.append_attempt(record.id, RecoveryAttempt.from_result(result))

    async def _run_recovery(self, record: ErrorRecord) -> RecoveryResult:
        strategy = record.recovery_strategy
        try:
            result = await self.executor.execute(
                strategy,
                record,
                retry=self._retry_callbacks.get(record.id),
                timeout=self.config.recovery_timeout,
            )
        except Exception as e:
            logger.error(f"Recovery executor failed for error {record.id}: {e}")
            result = RecoveryResult(success=False, strategy=strategy, error=str(e) or type(e).__name__)

        if self.config.enable_performance_tracking:
            self._log(
                LogLevel.DEBUG,
                f"Recovery '{strategy.id}' took {result.time_taken:.3f}s "
                f"({len(result.steps_executed)}/{len(strategy.steps)} steps)"
            )
        return result

    def _release_retry(self, record: ErrorRecord) -> None:
        """Forget the retry callable once the error cannot be retried again."""
        if record.resolved or not record.can_retry:
            self._retry_callbacks.pop(record.id, None)

    def _system_state(self) -> SystemState:
        return collect_system_state(
            storage=self.store.storage_state(self._cache_entries()),
            include_performance=self.config.enable_performance_tracking,
        )

    def _cache_entries(self) -> int:
        return sum(len(cache) for cache in self._caches.values())

    def _clear_caches(self, step: RecoveryStep, record: ErrorRecord) -> bool:
        for name, cache in self._caches.items():
            cache.clear()
            logger.debug(f"Cleared cache '{name}'")
        self.classifier.clear_cache()
        self._log(LogLevel.INFO, "Application caches cleared")
        return True

    def _cleanup_objects(self, step: RecoveryStep, record: ErrorRecord) -> bool:
        collected = gc.collect()
        dropped = self.store.prune(CLEANUP_KEEP_REPORTS, CLEANUP_KEEP_USER_ACTIONS)
        for error_id in dropped:
            self._retry_callbacks.pop(error_id, None)
        self._log(
            LogLevel.INFO,
            f"Unused objects cleaned up ({collected} collected, {len(dropped)} reports dropped)"
        )
        return True

    def _check_cache(self, step: RecoveryStep, record: ErrorRecord) -> bool:
        return any(len(cache) > 0 for cache in self._caches.values())

    def _log(self, level: LogLevel, message: str, **data: Any) -> None:
        """Log through the module logger if level passes the configured minimum."""
        if level.rank < self.config.log_level.rank:
            return
        logger.log(
            level.logging_level,
            f"[{level.value.upper()}] {message}",
            extra={"resilience": data} if data else None,
        )


def _error_details(error: ErrorInput) -> Optional[str]:
    if not isinstance(error, BaseException):
        return None
    return "".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip()
