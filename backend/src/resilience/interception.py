"""
Funnels uncaught exceptions into the error handler.

Two entry points are hooked: ``sys.excepthook`` for exceptions that escape
the main thread, and the asyncio loop exception handler for task and future
exceptions nobody retrieved. Both chain to whatever was installed before.
"""
import asyncio
import logging
import sys
import weakref
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from .classification import ErrorKind, ErrorSeverity

logger = logging.getLogger(__name__)

ReportFunc = Callable[..., Awaitable[str]]


class GlobalFaultInterceptor:
    """Installs and removes the process-wide fault hooks."""

    def __init__(self, report: ReportFunc):
        self._report = report
        self._installed = False
        self._previous_excepthook: Optional[Callable] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_loop_handler: Optional[Callable] = None
        self._pending: set[asyncio.Task] = set()
        self._own_tasks: "weakref.WeakSet[asyncio.Task]" = weakref.WeakSet()
        self._handling = False

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def pending(self) -> int:
        return len(self._pending)

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Hook ``sys.excepthook`` and, if available, the event loop."""
        if self._installed:
            return

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None

        if loop is not None:
            self._loop = loop
            self._previous_loop_handler = loop.get_exception_handler()
            loop.set_exception_handler(self._loop_exception_handler)

        self._installed = True
        logger.debug(f"Global fault hooks installed (event loop hooked: {loop is not None})")

    def uninstall(self) -> None:
        """Restore the hooks that were active before ``install``."""
        if not self._installed:
            return

        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_excepthook or sys.__excepthook__

        if self._loop is not None and not self._loop.is_closed():
            if self._loop.get_exception_handler() == self._loop_exception_handler:
                self._loop.set_exception_handler(self._previous_loop_handler)

        self._loop = None
        self._previous_loop_handler = None
        self._previous_excepthook = None
        self._installed = False
        logger.debug("Global fault hooks removed")

    async def drain(self) -> None:
        """Wait for reports scheduled by the hooks to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _excepthook(self, exc_type, exc, tb) -> None:
        if not issubclass(exc_type, KeyboardInterrupt) and not self._handling:
            self._handling = True
            try:
                self._dispatch(self._report(
                    exc,
                    {"source": "uncaught_exception"},
                    kind=ErrorKind.UNKNOWN,
                    severity=ErrorSeverity.HIGH,
                ))
            except Exception as e:
                logger.error(f"Failed to report uncaught exception: {e}")
            finally:
                self._handling = False

        previous = self._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc, tb)

    def _loop_exception_handler(
        self,
        loop: asyncio.AbstractEventLoop,
        context: dict[str, Any]
    ) -> None:
        source = context.get("task") or context.get("future")
        if source is None or source not in self._own_tasks:
            exc = context.get("exception")
            message = context.get("message") or "Unhandled exception in event loop"
            try:
                task = loop.create_task(self._report(
                    exc if exc is not None else message,
                    {"source": "unhandled_rejection", "loop_message": message},
                    kind=ErrorKind.NETWORK,
                    severity=ErrorSeverity.MEDIUM,
                ))
                self._track(task)
            except Exception as e:
                logger.error(f"Failed to report unhandled async exception: {e}")
        else:
            logger.error(f"Error report task failed: {context.get('exception')}")

        if self._previous_loop_handler is not None:
            self._previous_loop_handler(loop, context)
        else:
            loop.default_exception_handler(context)

    def _dispatch(self, coro: Awaitable[str]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            asyncio.run(coro)
            return

        self._track(loop.create_task(coro))

    def _track(self, task: asyncio.Task) -> None:
        self._own_tasks.add(task)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
