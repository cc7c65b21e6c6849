"""Tests for the error handler."""
import asyncio
import json
import logging
from unittest.mock import AsyncMock, Mock

import pytest

from backend.src.resilience import (
    ConfigurationError,
    ErrorHandler,
    ErrorHandlerConfig,
    ErrorKind,
    ErrorSeverity,
    FixedDelay,
    LogLevel,
    UserActionType,
)
from backend.src.resilience.classification.patterns import SUGGESTIONS


class TestReportScenarios:
    """End-to-end behaviour of report()."""

    @pytest.mark.asyncio
    async def test_network_error_recovers_automatically(self, succeeding_handler):
        handler = succeeding_handler
        error_id = await handler.report(RuntimeError("fetch failed: network error"))

        record = handler.get_error_by_id(error_id)
        assert record.kind == ErrorKind.NETWORK
        assert record.severity == ErrorSeverity.HIGH
        assert record.sub_category == "fetch_error"
        assert record.category.id == "network_connectivity"
        assert record.recovery_strategy.id == "retry_request"
        assert record.auto_recovery_attempted is True
        assert record.recovery_success is True
        assert record.resolved is True
        assert record.user_action_required is False

        report = handler.get_error_reports()[0]
        assert report.error is record
        assert len(report.recovery_attempts) == 1
        attempt = report.recovery_attempts[0]
        assert attempt.strategy.id == "retry_request"
        assert attempt.success is True
        assert attempt.duration >= 0
        assert attempt.manual is False

    @pytest.mark.asyncio
    async def test_failed_automatic_recovery(self, failing_handler):
        handler = failing_handler
        error_id = await handler.report("Network request failed")

        record = handler.get_error_by_id(error_id)
        assert record.auto_recovery_attempted is True
        assert record.recovery_success is False
        assert record.user_action_required is True

        attempt = handler.get_error_reports()[0].recovery_attempts[0]
        assert attempt.success is False
        assert attempt.error == "Recovery step 'retry' failed"

    @pytest.mark.asyncio
    async def test_validation_error_needs_user(self, succeeding_handler):
        handler = succeeding_handler
        error_id = await handler.report("Required field missing: email")

        record = handler.get_error_by_id(error_id)
        assert record.kind == ErrorKind.VALIDATION
        assert record.category.id == "validation_error"
        assert record.recovery_strategy.id == "user_correction"
        assert record.auto_recovery_attempted is False
        assert record.recovery_success is False
        assert record.user_action_required is True
        assert handler.get_error_reports()[0].recovery_attempts == []

    @pytest.mark.asyncio
    async def test_unknown_error_uses_manual_fallback(self, succeeding_handler):
        handler = succeeding_handler
        error_id = await handler.report("Something odd happened")

        record = handler.get_error_by_id(error_id)
        assert record.kind == ErrorKind.UNKNOWN
        assert record.category.id == "system_resource"
        assert record.recovery_strategy.id == "restart_app"
        assert record.auto_recovery_attempted is False
        assert record.user_action_required is True

    @pytest.mark.asyncio
    async def test_counts_by_kind(self, succeeding_handler):
        handler = succeeding_handler
        for _ in range(3):
            await handler.report("Network request failed")
        await handler.report("Invalid date")

        metrics = handler.get_metrics()
        assert metrics.total_errors == 4
        assert metrics.errors_by_type[ErrorKind.NETWORK] == 3
        assert metrics.errors_by_type[ErrorKind.VALIDATION] == 1
        assert metrics.total_recovery_attempts == 3
        assert metrics.recovery_success_rate == 1.0

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, succeeding_handler):
        first = await succeeding_handler.report("Network request failed")
        second = await succeeding_handler.report("Network request failed")
        assert first != second
        assert first.startswith("err_")

    @pytest.mark.asyncio
    async def test_recovery_flags_are_consistent(self, failing_handler):
        """Recovery success is only ever set by an automatic attempt."""
        handler = failing_handler
        messages = [
            "Network request failed",
            "Upload failed",
            "Invalid date",
            "Request timeout",
            "Permission denied",
            "Out of memory",
            "Something odd happened",
            None,
        ]
        for message in messages:
            await handler.report(message)

        for record in handler.store.records():
            if record.recovery_success:
                assert record.auto_recovery_attempted
            report = handler.store.report_for(record.id)
            assert len(report.recovery_attempts) == (1 if record.auto_recovery_attempted else 0)
            assert record.user_action_required == (not record.recovery_success)

    @pytest.mark.asyncio
    async def test_none_error(self, succeeding_handler):
        error_id = await succeeding_handler.report(None)
        record = succeeding_handler.get_error_by_id(error_id)
        assert record.message == "Unknown error"
        assert record.kind == ErrorKind.UNKNOWN
        assert record.severity == ErrorSeverity.LOW

    @pytest.mark.asyncio
    async def test_exception_details_and_context(self, succeeding_handler):
        try:
            raise ValueError("Invalid date")
        except ValueError as e:
            error_id = await succeeding_handler.report(e, {"form": "signup"})

        record = succeeding_handler.get_error_by_id(error_id)
        assert record.message == "Invalid date"
        assert "ValueError" in record.details
        assert record.context == {"form": "signup"}
        assert record.system_state is not None

    @pytest.mark.asyncio
    async def test_kind_and_severity_override(self, succeeding_handler):
        error_id = await succeeding_handler.report(
            "Something odd happened",
            kind=ErrorKind.FILE,
            severity=ErrorSeverity.CRITICAL,
        )
        record = succeeding_handler.get_error_by_id(error_id)
        assert record.kind == ErrorKind.FILE
        assert record.severity == ErrorSeverity.CRITICAL
        assert record.category.id == "file_processing"
        assert record.suggestions == SUGGESTIONS[ErrorKind.FILE]

    @pytest.mark.asyncio
    async def test_report_never_raises(self):
        classifier = Mock()
        classifier.classify.side_effect = RuntimeError("classifier broken")
        handler = ErrorHandler(ErrorHandlerConfig(retry_delay=0), classifier=classifier)

        error_id = await handler.report("Network request failed")

        assert error_id.startswith("err_")
        assert handler.get_error_by_id(error_id) is None

    @pytest.mark.asyncio
    async def test_retry_callable_used_by_recovery(self):
        handler = ErrorHandler(ErrorHandlerConfig(retry_delay=0))
        operation = AsyncMock(return_value="ok")

        error_id = await handler.report("Network request failed", retry=operation)

        operation.assert_awaited_once()
        assert handler.get_error_by_id(error_id).recovery_success is True

    @pytest.mark.asyncio
    async def test_recovery_timeout(self):
        async def hang():
            await asyncio.sleep(10)

        handler = ErrorHandler(ErrorHandlerConfig(retry_delay=0, recovery_timeout=0.05))
        error_id = await handler.report("Network request failed", retry=hang)

        record = handler.get_error_by_id(error_id)
        assert record.recovery_success is False
        assert record.user_action_required is True
        assert "timed out" in handler.get_error_reports()[0].recovery_attempts[0].error


class TestConfigurationEffects:
    """Test how options change handler behaviour."""

    @pytest.mark.asyncio
    async def test_auto_recovery_disabled(self):
        handler = ErrorHandler(ErrorHandlerConfig(retry_delay=0, enable_auto_recovery=False))
        error_id = await handler.report("Network request failed")

        record = handler.get_error_by_id(error_id)
        assert record.auto_recovery_attempted is False
        assert record.user_action_required is True
        assert handler.get_metrics().total_recovery_attempts == 0

    @pytest.mark.asyncio
    async def test_error_reporting_disabled(self):
        handler = ErrorHandler(ErrorHandlerConfig(retry_delay=0, enable_error_reporting=False))
        error_id = await handler.report("Invalid date")

        assert handler.get_error_by_id(error_id) is not None
        assert handler.get_error_reports() == []
        assert handler.get_metrics().total_errors == 1

    def test_metrics_disabled_ignores_user_actions(self):
        handler = ErrorHandler(ErrorHandlerConfig(enable_metrics=False))
        handler.track_user_action(UserActionType.CLICK, "save")
        assert handler.store.user_action_count() == 0

    def test_performance_tracking_disabled(self):
        handler = ErrorHandler(ErrorHandlerConfig(enable_performance_tracking=False))
        assert handler._system_state().performance is None

    def test_update_config(self):
        handler = ErrorHandler()
        handler.update_config(retry_delay=0, user_action_limit=5)

        assert handler.config.retry_delay == 0
        assert handler.executor.backoff.calculate_delay(0) == 0
        for n in range(10):
            handler.track_user_action(UserActionType.CLICK, f"button-{n}")
        assert handler.store.user_action_count() == 5

    def test_update_config_with_dict(self):
        handler = ErrorHandler()
        handler.update_config({"log_level": "error"})
        assert handler.config.log_level == LogLevel.ERROR

    def test_update_config_rejects_unknown_option(self):
        handler = ErrorHandler()
        with pytest.raises(ConfigurationError) as exc_info:
            handler.update_config(colour="blue")
        assert exc_info.value.option == "colour"
        assert handler.config == ErrorHandlerConfig()

    def test_update_config_rejects_wrong_type(self):
        handler = ErrorHandler()
        with pytest.raises(ConfigurationError) as exc_info:
            handler.update_config(max_retry_attempts="5")
        assert exc_info.value.option == "max_retry_attempts"
        assert handler.config.max_retry_attempts == 3

    def test_update_config_keeps_supplied_backoff(self):
        backoff = FixedDelay(5)
        handler = ErrorHandler(backoff=backoff)
        handler.update_config(retry_delay=0)
        assert handler.executor.backoff is backoff

    @pytest.mark.asyncio
    async def test_log_level_filters_handler_logs(self, succeeding_handler, caplog):
        caplog.set_level(logging.DEBUG, logger="backend.src.resilience.handler")
        succeeding_handler.update_config(log_level=LogLevel.ERROR)

        await succeeding_handler.report("Network request failed")

        messages = [r.getMessage() for r in caplog.records if r.name == "backend.src.resilience.handler"]
        assert any(m.startswith("[ERROR] Network request failed") for m in messages)
        assert not any(m.startswith("[INFO]") for m in messages)

    @pytest.mark.asyncio
    async def test_debug_level_logs_recovery_timing(self, succeeding_handler, caplog):
        caplog.set_level(logging.DEBUG, logger="backend.src.resilience.handler")
        succeeding_handler.update_config(log_level="debug")

        await succeeding_handler.report("Network request failed")

        assert any("Recovery 'retry_request' took" in r.getMessage() for r in caplog.records)


class TestManualRetry:
    """Test retry_error()."""

    @pytest.mark.asyncio
    async def test_unknown_id(self, succeeding_handler):
        assert await succeeding_handler.retry_error("err_missing") is None

    @pytest.mark.asyncio
    async def test_retry_resolves_error(self, succeeding_handler):
        handler = succeeding_handler
        error_id = await handler.report("Invalid date")

        result = await handler.retry_error(error_id)

        record = handler.get_error_by_id(error_id)
        assert result.success is True
        assert record.retry_count == 1
        assert record.resolved is True
        assert record.user_action_required is False
        assert record.recovery_success is False
        attempts = handler.get_error_reports()[0].recovery_attempts
        assert [a.manual for a in attempts] == [True]

    @pytest.mark.asyncio
    async def test_retry_bounded_by_max_retries(self):
        handler = ErrorHandler(ErrorHandlerConfig(retry_delay=0, max_retry_attempts=2))
        error_id = await handler.report("Invalid date")

        assert await handler.retry_error(error_id) is not None
        assert await handler.retry_error(error_id) is not None
        assert await handler.retry_error(error_id) is None
        assert handler.get_error_by_id(error_id).retry_count == 2

    @pytest.mark.asyncio
    async def test_failed_retry_requires_user(self):
        handler = ErrorHandler(ErrorHandlerConfig(retry_delay=0, enable_auto_recovery=False))
        operation = Mock(side_effect=ConnectionError("still down"))
        error_id = await handler.report("Network request failed", retry=operation)

        result = await handler.retry_error(error_id)

        assert result.success is False
        assert result.error == "still down"
        record = handler.get_error_by_id(error_id)
        assert record.user_action_required is True
        assert record.resolved is False
        operation.assert_called_once()


class TestRetryCallbacks:
    """Test when retry callables are released."""

    @pytest.mark.asyncio
    async def test_released_after_automatic_recovery(self):
        handler = ErrorHandler(ErrorHandlerConfig(retry_delay=0))
        error_id = await handler.report("Network request failed", retry=AsyncMock())

        assert handler.get_error_by_id(error_id).resolved is True
        assert error_id not in handler._retry_callbacks

    @pytest.mark.asyncio
    async def test_kept_while_retries_remain(self):
        handler = ErrorHandler(ErrorHandlerConfig(retry_delay=0, enable_auto_recovery=False))
        operation = Mock()
        error_id = await handler.report("Network request failed", retry=operation)

        assert error_id in handler._retry_callbacks

        await handler.retry_error(error_id)

        operation.assert_called_once()
        assert error_id not in handler._retry_callbacks

    @pytest.mark.asyncio
    async def test_released_when_retries_run_out(self):
        handler = ErrorHandler(ErrorHandlerConfig(
            retry_delay=0, enable_auto_recovery=False, max_retry_attempts=1
        ))
        operation = Mock(side_effect=ConnectionError("still down"))
        error_id = await handler.report("Network request failed", retry=operation)

        result = await handler.retry_error(error_id)

        assert result.success is False
        assert handler.get_error_by_id(error_id).can_retry is False
        assert error_id not in handler._retry_callbacks

    @pytest.mark.asyncio
    async def test_not_kept_without_retries(self):
        handler = ErrorHandler(ErrorHandlerConfig(retry_delay=0, max_retry_attempts=0))
        error_id = await handler.report("Invalid input", retry=Mock())
        assert error_id not in handler._retry_callbacks

    @pytest.mark.asyncio
    async def test_memory_cleanup_drops_callbacks_of_pruned_reports(self, succeeding_handler):
        handler = succeeding_handler
        error_ids = [
            await handler.report("Invalid input", retry=Mock())
            for _ in range(60)
        ]
        assert len(handler._retry_callbacks) == 60

        await handler.report("Out of memory")

        assert len(handler.get_error_reports(limit=100)) == 50
        assert len(handler._retry_callbacks) == 49
        assert error_ids[0] not in handler._retry_callbacks
        assert error_ids[10] not in handler._retry_callbacks
        assert error_ids[11] in handler._retry_callbacks


class TestQueriesAndMaintenance:
    """Test export, clearing and housekeeping."""

    @pytest.mark.asyncio
    async def test_reports_newest_first(self, succeeding_handler):
        first = await succeeding_handler.report("Invalid date")
        second = await succeeding_handler.report("Invalid email")

        reports = succeeding_handler.get_error_reports()
        assert [r.error.id for r in reports] == [second, first]
        assert len(succeeding_handler.get_error_reports(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_export_error_data(self, succeeding_handler):
        await succeeding_handler.report("Network request failed", {"url": "/api/items"})

        data = succeeding_handler.export_error_data()

        assert set(data) == {"errors", "reports", "metrics"}
        assert data["errors"][0]["kind"] == "network"
        assert data["reports"][0]["recovery_attempts"][0]["strategy"] == "retry_request"
        assert data["metrics"]["total_errors"] == 1
        json.dumps(data)

    @pytest.mark.asyncio
    async def test_clear_errors(self, succeeding_handler):
        await succeeding_handler.report("Network request failed")
        succeeding_handler.track_user_action("click", "retry")

        succeeding_handler.clear_errors()

        assert succeeding_handler.get_error_reports() == []
        assert succeeding_handler.get_metrics().total_errors == 0
        assert succeeding_handler.store.user_action_count() == 0

    @pytest.mark.asyncio
    async def test_report_captures_recent_user_actions(self):
        handler = ErrorHandler(ErrorHandlerConfig(retry_delay=0, report_user_actions=2))
        for target in ("home", "settings", "save"):
            handler.track_user_action(UserActionType.CLICK, target)

        error_id = await handler.report("Invalid date")

        report = handler.get_error_reports()[0]
        assert [a.target for a in report.user_actions] == ["settings", "save"]
        breadcrumb = handler.store.recent_user_actions(1)[0]
        assert breadcrumb.type == UserActionType.ERROR_REPORTED
        assert breadcrumb.value == error_id

    def test_user_action_history_capped(self):
        handler = ErrorHandler(ErrorHandlerConfig(user_action_limit=3))
        for n in range(10):
            handler.track_user_action(UserActionType.INPUT, "field", str(n))
        assert handler.store.user_action_count() == 3

    @pytest.mark.asyncio
    async def test_memory_cleanup_clears_registered_caches(self, succeeding_handler):
        handler = succeeding_handler
        thumbnails = {"a.png": b"...", "b.png": b"..."}
        handler.register_cache("thumbnails", thumbnails)
        for n in range(120):
            handler.track_user_action(UserActionType.NAVIGATION, f"/page/{n}")

        error_id = await handler.report("Out of memory")

        record = handler.get_error_by_id(error_id)
        assert record.recovery_strategy.id == "memory_cleanup"
        assert record.recovery_success is True
        assert thumbnails == {}
        assert handler.store.user_action_count() == 100
        assert handler.classifier.cache_size == 0

    @pytest.mark.asyncio
    async def test_check_cache_action(self, succeeding_handler, make_record):
        handler = succeeding_handler
        offline = handler.strategies.get("offline_mode")
        record = make_record()

        empty = await handler.executor.execute(offline, record)
        assert empty.success is False

        handler.register_cache("pages", {"/": "<html>"})
        loaded = await handler.executor.execute(offline, record)
        assert loaded.success is True

        handler.unregister_cache("pages")
        assert (await handler.executor.execute(offline, record)).success is False


class TestLifecycle:
    """Test installing the global hooks."""

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        loop = asyncio.get_running_loop()
        previous = loop.get_exception_handler()

        async with ErrorHandler(ErrorHandlerConfig(retry_delay=0)) as handler:
            assert handler.installed
            assert loop.get_exception_handler() is not previous

        assert not handler.installed
        assert loop.get_exception_handler() is previous

    def test_runtime_info_cached(self):
        handler = ErrorHandler()
        assert handler.runtime_info is handler.runtime_info
