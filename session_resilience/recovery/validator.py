"""Current-session validation."""

import time
from typing import Callable

from ..client.registry import ClientRegistry
from ..config.constants import SESSION_EXPIRY_WARNING_SECONDS
from ..models.session import SessionState
from ..observability.logging import ComponentLogger
from ..reliability.token_errors import is_token_error


class SessionValidator:
    """
    Checks whether a session is present and not near expiry.

    "No session" is a normal result (``present=False``). A failure to fetch
    the session is raised unchanged so a token error can be routed to
    recovery instead of being mistaken for a signed-out user.
    """

    def __init__(
        self,
        registry: ClientRegistry,
        warning_seconds: int = SESSION_EXPIRY_WARNING_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        self.registry = registry
        self.warning_seconds = warning_seconds
        self._clock = clock
        self._log = ComponentLogger("validator")

    async def validate(self) -> SessionState:
        client = self.registry.get_client()
        try:
            session = await client.get_session()
        except Exception as e:
            if is_token_error(e):
                self._log.warning("Session fetch failed with a token error, recovery needed", error=e)
            else:
                self._log.warning("Session fetch failed", error=e)
            raise

        if session is None:
            self._log.debug("No active session")
            return SessionState.absent()

        state = SessionState.from_session(
            session,
            now=self._clock(),
            warning_seconds=self.warning_seconds
        )
        if state.expiring_soon:
            self._log.warning("Session expires soon", seconds_to_expiry=state.seconds_to_expiry)
        return state
