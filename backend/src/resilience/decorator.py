"""Decorator that reports failures of a function to an error handler.
"""
import asyncio
import functools
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Optional, TypeVar, cast

if TYPE_CHECKING:
    from .handler import ErrorHandler

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def reports_errors(
    handler: "ErrorHandler",
    *,
    reraise: bool = True,
    context: Optional[dict[str, Any]] = None
) -> Callable[[F], F]:
    """Report exceptions raised by the decorated function.

    The report carries a retry callable that calls the function again with
    the same arguments, so ``retry`` recovery steps re-run the real operation.
    When automatic recovery re-runs the call successfully, the wrapper returns
    the value of that re-run instead of failing. The operation has then run
    twice.

    Args:
        handler: Handler receiving the reports
        reraise: Re-raise the exception after reporting when it was not
            recovered (default: True); otherwise the call returns None
        context: Extra context stored with every report

    Returns:
        Decorated function
    """
    def decorator(func: F) -> F:
        func_name = f"{func.__module__}.{func.__qualname__}"
        base_context = {"function": func_name, **(context or {})}

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.debug(f"Reporting failure of {func_name}: {e}")
                recovered: list[Any] = []

                async def rerun() -> Any:
                    value = await func(*args, **kwargs)
                    recovered.append(value)
                    return value

                error_id = await handler.report(e, base_context, retry=rerun)
                if _recovered(handler, error_id) and recovered:
                    logger.info(f"{func_name} recovered after error {error_id}")
                    return recovered[0]
                if reraise:
                    raise
                return None

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.debug(f"Reporting failure of {func_name}: {e}")
                recovered: list[Any] = []

                def rerun() -> Any:
                    value = func(*args, **kwargs)
                    recovered.append(value)
                    return value

                error_id = _report_from_sync(handler, e, base_context, rerun)
                if error_id is not None and _recovered(handler, error_id) and recovered:
                    logger.info(f"{func_name} recovered after error {error_id}")
                    return recovered[0]
                if reraise:
                    raise
                return None

        if asyncio.iscoroutinefunction(func):
            return cast(F, async_wrapper)
        return cast(F, sync_wrapper)

    return decorator


def _recovered(handler: "ErrorHandler", error_id: str) -> bool:
    record = handler.get_error_by_id(error_id)
    return record is not None and record.recovery_success


def _report_from_sync(
    handler: "ErrorHandler",
    error: Exception,
    context: dict,
    retry
) -> Optional[str]:
    """Run the report to completion, or schedule it if a loop is running.

    Returns:
        The error id, or None when the report was only scheduled
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(handler.report(error, context, retry=retry))

    task = loop.create_task(handler.report(error, context, retry=retry))
    _background_reports.add(task)
    task.add_done_callback(_background_reports.discard)
    return None


_background_reports: set[asyncio.Task] = set()
