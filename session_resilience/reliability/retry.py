from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from ..observability.logging import ComponentLogger, describe_error
from .error_classifier import ErrorClassification, ErrorClassifier, ErrorKind

T = TypeVar('T')

_log = ComponentLogger("retry")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Immutable retry configuration.

    Delays are in seconds. An operation is attempted at most
    ``max_retries + 1`` times.
    """
    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    jitter: float = 1.0

    def __post_init__(self):
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int) \
                or self.max_retries < 0:
            raise ValueError(f"max_retries must be an int >= 0, got {self.max_retries!r}")
        if not self.initial_delay > 0:
            raise ValueError(f"initial_delay must be > 0, got {self.initial_delay!r}")
        if not self.backoff_factor > 1:
            raise ValueError(f"backoff_factor must be > 1, got {self.backoff_factor!r}")
        if not self.jitter >= 0:
            raise ValueError(f"jitter must be >= 0, got {self.jitter!r}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def base_delay(self, attempt: int) -> float:
        """Delay before retrying after failed ``attempt`` (0-based), without jitter."""
        return self.initial_delay * (self.backoff_factor ** attempt)


DEFAULT_RETRY_POLICY = RetryPolicy()


@dataclass
class RetryState:
    """Tracks attempts and delays for one ``execute`` call."""
    attempts: int = 0
    delays: List[float] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)

    @property
    def total_delay(self) -> float:
        return sum(self.delays)


class RequestRetrier:
    """
    Runs async operations under a RetryPolicy.

    This class handles:
    - Retry decisions driven only by the error taxonomy
    - Exponential backoff with uniform jitter
    - Re-raising the original error object when giving up
    """

    def __init__(
        self,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
        classifier: type = ErrorClassifier,
        on_retry: Optional[Callable[[int, Exception, float], None]] = None
    ):
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self._classifier = classifier
        self._on_retry = on_retry
        self.last_state: Optional[RetryState] = None

    def compute_delay(self, policy: RetryPolicy, attempt: int) -> float:
        # random() is in [0, 1), so the jitter never reaches policy.jitter
        return policy.base_delay(attempt) + self._rng.random() * policy.jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None
    ) -> T:
        """
        Execute an operation with retry logic.

        Args:
            operation: Zero-argument async callable
            policy: Retry policy (defaults to DEFAULT_RETRY_POLICY)

        Returns:
            Result from the first successful attempt

        Raises:
            The original exception when it is not retryable or attempts
            are exhausted
        """
        policy = policy or DEFAULT_RETRY_POLICY
        state = RetryState()
        self.last_state = state

        for attempt in range(policy.max_attempts):
            state.attempts = attempt + 1
            try:
                return await operation()
            except Exception as e:  # noqa: BLE001
                state.errors.append(e)
                try:
                    classification = self._classifier.classify(e)
                except Exception as classify_error:  # noqa: BLE001
                    # Unclassifiable errors are not retried; the original still propagates
                    _log.warning("Error classification failed", error=classify_error)
                    classification = ErrorClassification.for_kind(ErrorKind.UNKNOWN)
                _log.debug(
                    "Operation failed",
                    attempt=f"{attempt + 1}/{policy.max_attempts}",
                    kind=classification.kind.value,
                    status=classification.status,
                    error_msg=describe_error(e)
                )

                if not classification.retryable:
                    _log.debug("Not retrying", kind=classification.kind.value)
                    raise

                if attempt >= policy.max_retries:
                    _log.warning(
                        "Retries exhausted",
                        attempts=policy.max_attempts,
                        error=e
                    )
                    raise

                delay = self.compute_delay(policy, attempt)
                state.delays.append(delay)
                _log.info(
                    "Retrying after delay",
                    attempt=f"{attempt + 1}/{policy.max_retries}",
                    delay_ms=int(delay * 1000),
                    kind=classification.kind.value
                )
                if self._on_retry:
                    self._on_retry(attempt, e, delay)

                await self._sleep(delay)

        # range() above always returns or raises; unreachable for a valid policy
        raise RuntimeError("retry loop exited without a result")


_default_retrier = RequestRetrier()


async def retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None
) -> T:
    """Wrap any async call with bounded retry using the shared retrier."""
    return await _default_retrier.execute(operation, policy)
