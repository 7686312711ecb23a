"""
Process-wide listeners that route stray token errors into recovery.

Two hooks are installed once at application start:

- the event loop's exception handler, which sees exceptions from tasks that
  nobody awaited (context ``"unhandled-task"``)
- ``sys.excepthook``, which sees uncaught exceptions (context
  ``"global-error"``)

Errors that are not token errors are passed on to the previous handlers.
"""

import asyncio
import sys
from typing import Any, Callable, Dict, Optional, Set

from ..observability.logging import ComponentLogger
from ..reliability.token_errors import is_token_error
from .orchestrator import RecoveryOrchestrator

LoopExceptionHandler = Callable[[asyncio.AbstractEventLoop, Dict[str, Any]], Any]


class RecoveryMonitor:
    """Installs and removes the global token-error listeners."""

    def __init__(
        self,
        orchestrator: RecoveryOrchestrator,
        detector: Callable[[Any], bool] = is_token_error
    ):
        self.orchestrator = orchestrator
        self._detector = detector
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_loop_handler: Optional[LoopExceptionHandler] = None
        self._previous_excepthook: Optional[Callable[..., Any]] = None
        self._tasks: Set["asyncio.Task[None]"] = set()
        self._log = ComponentLogger("monitor")

    @property
    def installed(self) -> bool:
        return self._loop is not None

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> Callable[[], None]:
        """
        Install the listeners; a second call is a no-op.

        Args:
            loop: Event loop to hook (defaults to the running loop)

        Returns:
            A callable that uninstalls the listeners
        """
        if self._loop is not None:
            return self.uninstall

        loop = loop or asyncio.get_running_loop()
        self._loop = loop
        self._previous_loop_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._handle_loop_exception)

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._handle_uncaught

        self._log.debug("Token error monitoring installed")
        return self.uninstall

    def uninstall(self) -> None:
        loop = self._loop
        if loop is None:
            return

        if not loop.is_closed() and loop.get_exception_handler() == self._handle_loop_exception:
            loop.set_exception_handler(self._previous_loop_handler)
        if sys.excepthook == self._handle_uncaught:
            sys.excepthook = self._previous_excepthook or sys.__excepthook__

        self._loop = None
        self._previous_loop_handler = None
        self._previous_excepthook = None
        self._log.debug("Token error monitoring removed")

    def _spawn_recovery(self, loop: asyncio.AbstractEventLoop, error: BaseException,
                        context: str) -> None:
        task = loop.create_task(self.orchestrator.recover(error, context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop,
                               context: Dict[str, Any]) -> None:
        error = context.get("exception")
        if error is not None and self._detector(error):
            self._log.warning("Unhandled task error with token issue", error=error)
            self._spawn_recovery(loop, error, "unhandled-task")
            return

        if self._previous_loop_handler is not None:
            self._previous_loop_handler(loop, context)
        else:
            loop.default_exception_handler(context)

    def _handle_uncaught(self, exc_type, exc, tb) -> None:
        if exc is not None and self._detector(exc):
            self._log.warning("Uncaught error with token issue", error=exc)
            loop = self._loop
            try:
                if loop is not None and loop.is_running():
                    loop.call_soon_threadsafe(self._spawn_recovery, loop, exc, "global-error")
                else:
                    asyncio.run(self.orchestrator.recover(exc, "global-error"))
            except Exception as e:
                self._log.error("Could not run recovery for uncaught error", error=e)

        hook = self._previous_excepthook or sys.__excepthook__
        hook(exc_type, exc, tb)

    async def drain(self) -> None:
        """Wait for recoveries started by the listeners."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
