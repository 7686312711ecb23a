"""
Session recovery after credential corruption.

On a detected token error the orchestrator reads the stored session, wipes
stored credentials and revokes the captured session with a sign-out. It then
publishes one RecoveryEvent and, for bootstrap failures or when forced,
restarts the process through an injected callback.

Only one recovery sequence runs at a time. The in-flight task is stored before
the first await, so every caller arriving while it runs awaits that same task
instead of starting another.
"""

import asyncio
import functools
import inspect
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from ..client.registry import ClientRegistry
from ..config.constants import (
    DEFAULT_RESTART_DELAY,
    FALLBACK_RESTART_DELAY,
    RESTART_CONTEXTS,
)
from ..models.events import RecoveryAction, RecoveryEvent
from ..models.session import Session
from ..observability.logging import ComponentLogger, describe_error
from ..reliability.token_errors import is_token_error
from ..storage.store import PersistentKeyValueStore
from .events import RecoveryEventBus

F = TypeVar('F', bound=Callable[..., Awaitable[Any]])

RestartCallback = Callable[[], Any]


class RecoveryOrchestrator:
    """Runs the recovery sequence at most once at a time."""

    def __init__(
        self,
        registry: ClientRegistry,
        storage: PersistentKeyValueStore,
        events: RecoveryEventBus,
        restart: Optional[RestartCallback] = None,
        restart_delay: float = DEFAULT_RESTART_DELAY,
        fallback_restart_delay: float = FALLBACK_RESTART_DELAY,
        namespace: Optional[str] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            registry: Owner of the client handle used for sign-out
            storage: Store holding the session keys to clear
            events: Bus on which RecoveryEvents are published
            restart: Callback that restarts the process; may be async.
                Without one, restarts are skipped.
            restart_delay: Seconds between publishing and restarting
            fallback_restart_delay: Delay used when the sequence itself fails
            namespace: Storage namespace (defaults to the registry's)
        """
        self.registry = registry
        self.storage = storage
        self.events = events
        self.restart_delay = restart_delay
        self.fallback_restart_delay = fallback_restart_delay
        self.namespace = namespace or registry.config.storage_namespace
        self._restart = restart
        self._inflight: Optional["asyncio.Task[None]"] = None
        self._restart_task: Optional["asyncio.Task[None]"] = None
        self.runs = 0
        self._log = ComponentLogger("recovery")

    @property
    def in_progress(self) -> bool:
        return self._inflight is not None

    @property
    def restart_pending(self) -> bool:
        return self._restart_task is not None and not self._restart_task.done()

    async def recover(self, error: Any, context: str = "unknown",
                      force_restart: bool = False) -> None:
        """
        Recover from a token error. Never raises.

        If a recovery is already running (or waiting for its restart) this
        call joins it and returns when it completes.
        """
        inflight = self._inflight
        if inflight is None:
            inflight = asyncio.ensure_future(self._run(error, context, force_restart))
            self._inflight = inflight
        else:
            self._log.info("Recovery already in progress, joining", context=context)

        await asyncio.shield(inflight)

    async def _run(self, error: Any, context: str, force_restart: bool) -> None:
        message = describe_error(error)
        self.runs += 1
        restart_scheduled = False
        self._log.warning("Handling token error", context=context, error_msg=message)

        try:
            actions: List[RecoveryAction] = []

            session = self._capture_session(context)

            if self._clear_tokens(context):
                actions.append(RecoveryAction.TOKENS_CLEARED)

            if await self._sign_out(context, session):
                actions.append(RecoveryAction.SIGNED_OUT)

            will_restart = self._should_restart(context, force_restart)
            if will_restart:
                actions.append(RecoveryAction.RESTART_SCHEDULED)

            event = RecoveryEvent(
                context=context,
                original_error_message=message,
                actions_taken=tuple(actions)
            )
            self._publish(event)

            if will_restart:
                self._schedule_restart(self.restart_delay, context)
                restart_scheduled = True

            self._log.info(
                "Recovery complete",
                context=context,
                actions=",".join(action.value for action in actions) or "none"
            )

        except Exception as e:
            self._log.error("Recovery failed, forcing restart", context=context, error=e)
            if self._restart is not None and not restart_scheduled:
                self._schedule_restart(self.fallback_restart_delay, context)
                restart_scheduled = True

        finally:
            if not restart_scheduled:
                self._inflight = None

    def _clear_tokens(self, context: str) -> bool:
        try:
            cleared = self.storage.clear_session_keys(self.namespace)
        except Exception as e:
            self._log.error("Error clearing tokens", context=context, error=e)
            return False
        if not cleared:
            self._log.warning("Some session keys could not be cleared", context=context)
        return cleared

    def _capture_session(self, context: str) -> Optional[Session]:
        """Read the stored session before clearing so sign-out can revoke it."""
        try:
            return self.registry.get_client().load_session()
        except Exception as e:
            self._log.debug("No session to revoke", context=context, error_msg=describe_error(e))
            return None

    async def _sign_out(self, context: str, session: Optional[Session] = None) -> bool:
        try:
            await self.registry.get_client().sign_out(session)
        except Exception as e:
            # An invalid token usually fails sign-out as well
            self._log.info("Sign out failed", context=context, error_msg=describe_error(e))
            return False
        self._log.debug("Clean sign out completed", context=context)
        return True

    def _should_restart(self, context: str, force_restart: bool) -> bool:
        if not (force_restart or context in RESTART_CONTEXTS):
            return False
        if self._restart is None:
            self._log.warning("Restart requested but no restart callback configured",
                              context=context)
            return False
        return True

    def _publish(self, event: RecoveryEvent) -> None:
        try:
            delivered = self.events.publish(event)
        except Exception as e:
            self._log.error("Error publishing recovery event", context=event.context, error=e)
            return
        self._log.debug("Recovery event published", context=event.context, delivered=delivered)

    def _schedule_restart(self, delay: float, context: str) -> None:
        loop = asyncio.get_running_loop()
        self._restart_task = loop.create_task(self._restart_after(delay, context))

    async def _restart_after(self, delay: float, context: str) -> None:
        try:
            await asyncio.sleep(delay)
            self._log.warning("Restarting to complete token cleanup", context=context)
            result = self._restart()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._log.error("Restart callback failed", context=context, error=e)
        finally:
            self._inflight = None

    async def wait_for_restart(self) -> None:
        """Wait until a scheduled restart (if any) has run."""
        task = self._restart_task
        if task is not None:
            await asyncio.shield(task)

    def with_recovery(self, fn: F, context: str = "operation", force_restart: bool = False) -> F:
        """
        Wrap an async function so token errors trigger recovery.

        The original error is re-raised after recovery completes.
        """
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except Exception as e:
                if is_token_error(e):
                    await self.recover(e, context, force_restart)
                raise

        return wrapper  # type: ignore[return-value]
