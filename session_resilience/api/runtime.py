"""Composition root for the session resilience layer."""

from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

from ..client.handle import ClientHandle
from ..client.registry import ClientFactory, ClientRegistry
from ..config.constants import DEFAULT_RESTART_DELAY, session_storage_keys
from ..config.settings import ClientConfig
from ..errors import AuthApiError
from ..models.events import RecoveryEvent
from ..models.session import SessionState
from ..recovery.events import RecoveryEventBus
from ..recovery.monitoring import RecoveryMonitor
from ..recovery.orchestrator import RecoveryOrchestrator, RestartCallback
from ..recovery.validator import SessionValidator
from ..reliability.error_classifier import ErrorClassification, ErrorClassifier
from ..reliability.retry import DEFAULT_RETRY_POLICY, RequestRetrier, RetryPolicy
from ..reliability.token_errors import is_token_error
from ..storage.base import StorageBackend
from ..storage.store import PersistentKeyValueStore

T = TypeVar('T')


class SessionRuntime:
    """
    Builds every session component once and exposes them to the application.

    Construct one runtime at application start and pass it to consumers;
    tests construct an isolated runtime per case.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        storage: Optional[Union[StorageBackend, PersistentKeyValueStore]] = None,
        restart: Optional[RestartCallback] = None,
        retry_policy: Optional[RetryPolicy] = None,
        client_factory: Optional[ClientFactory] = None,
        retrier: Optional[RequestRetrier] = None,
        restart_delay: float = DEFAULT_RESTART_DELAY
    ):
        """
        Initialize the runtime.

        Args:
            config: Client configuration (read from the environment if omitted)
            storage: Store or backend for session material (in-memory if omitted)
            restart: Callback that restarts the process during recovery
            retry_policy: Default policy for ``retry``
            client_factory: Builds the ClientHandle (override in tests)
            retrier: Request retrier (override to inject sleep/random)
            restart_delay: Seconds between the recovery event and the restart
        """
        self.config = config or ClientConfig.from_env()
        if isinstance(storage, PersistentKeyValueStore):
            self.store = storage
        else:
            self.store = PersistentKeyValueStore(storage)

        self.registry = ClientRegistry(self.config, self.store, factory=client_factory)
        self.events = RecoveryEventBus()
        self.orchestrator = RecoveryOrchestrator(
            self.registry,
            self.store,
            self.events,
            restart=restart,
            restart_delay=restart_delay
        )
        self.validator = SessionValidator(self.registry)
        self.monitor = RecoveryMonitor(self.orchestrator)
        self.retrier = retrier or RequestRetrier()
        self.retry_policy = retry_policy or DEFAULT_RETRY_POLICY

    def get_client(self) -> ClientHandle:
        return self.registry.get_client()

    async def retry(self, operation: Callable[[], Awaitable[T]],
                    policy: Optional[RetryPolicy] = None) -> T:
        return await self.retrier.execute(operation, policy or self.retry_policy)

    def classify(self, error: Any) -> ErrorClassification:
        return ErrorClassifier.classify(error)

    def is_token_error(self, error: Any) -> bool:
        return is_token_error(error)

    async def recover(self, error: Any, context: str = "unknown",
                      force_restart: bool = False) -> None:
        await self.orchestrator.recover(error, context, force_restart)

    def subscribe(self, handler: Callable[[RecoveryEvent], Any]) -> Callable[[], None]:
        return self.events.subscribe(handler)

    def reset_client(self) -> None:
        self.registry.reset_client()

    def diagnostics(self) -> Dict[str, Any]:
        """Registry diagnostics plus recovery and storage status."""
        present = set(self.store.keys())
        info = self.registry.diagnostics()
        info.update({
            "recovery_in_progress": self.orchestrator.in_progress,
            "recovery_runs": self.orchestrator.runs,
            "restart_pending": self.orchestrator.restart_pending,
            "subscribers": self.events.subscriber_count,
            "monitoring_installed": self.monitor.installed,
            "session_keys_present": [
                key for key in session_storage_keys(self.config.storage_namespace)
                if key in present
            ],
        })
        return info

    async def validate_session(self) -> SessionState:
        return await self.validator.validate()

    async def guarded(
        self,
        operation: Callable[[], Awaitable[T]],
        context: str = "operation",
        policy: Optional[RetryPolicy] = None,
        force_restart: bool = False
    ) -> T:
        """
        Retry an operation and route a final token error into recovery.

        The original error is re-raised after recovery completes.
        """
        try:
            return await self.retry(operation, policy)
        except Exception as e:
            if is_token_error(e):
                await self.recover(e, context, force_restart)
            raise

    def with_recovery(self, fn, context: str = "operation", force_restart: bool = False):
        return self.orchestrator.with_recovery(fn, context, force_restart)

    def install_monitoring(self, loop=None) -> Callable[[], None]:
        return self.monitor.install(loop)

    async def simulate_token_error(self, context: str = "simulation") -> AuthApiError:
        """
        Corrupt the stored session and run recovery, for manual testing.

        Returns:
            The simulated error passed to recovery
        """
        namespace = self.config.storage_namespace
        self.store.set(self.config.storage_key, "corrupted-token")
        self.store.set(f"{namespace}_refresh_token", "invalid-token")

        error = AuthApiError(
            "Invalid Refresh Token: Refresh Token Not Found",
            status=400,
            error_type="refresh_token_not_found"
        )
        await self.recover(error, context)
        return error

    async def aclose(self) -> None:
        self.monitor.uninstall()
        await self.monitor.drain()
        await self.registry.aclose()

    async def __aenter__(self) -> "SessionRuntime":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
