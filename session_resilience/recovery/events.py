"""
In-process publish/subscribe channel for recovery notifications.

UI layers, loggers and metrics counters subscribe here to react when a
corrupted session has been remediated.
"""

import logging
from typing import Any, Callable, List

from ..models.events import RecoveryEvent

logger = logging.getLogger(__name__)

RecoveryHandler = Callable[[RecoveryEvent], Any]


class RecoveryEventBus:
    """Synchronous fan-out to independent subscribers."""

    def __init__(self) -> None:
        self._handlers: List[RecoveryHandler] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: RecoveryHandler) -> Callable[[], None]:
        """
        Register a handler.

        Returns:
            A callable that unsubscribes the handler; calling it twice is a no-op
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, event: RecoveryEvent) -> int:
        """
        Deliver an event to every current subscriber.

        A failing subscriber is logged and skipped.

        Returns:
            Number of subscribers that handled the event without raising
        """
        delivered = 0
        for handler in list(self._handlers):
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "Recovery subscriber %r failed for context=%s", handler, event.context
                )
        return delivered
