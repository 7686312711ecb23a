"""Unit tests for the recovery orchestrator."""

import asyncio
from unittest.mock import Mock

import pytest

from session_resilience.client.handle import LOGOUT_PATH
from session_resilience.client.registry import ClientRegistry
from session_resilience.config.constants import session_storage_keys
from session_resilience.models.events import RecoveryAction
from session_resilience.recovery.events import RecoveryEventBus
from session_resilience.recovery.orchestrator import RecoveryOrchestrator
from session_resilience.storage.store import PersistentKeyValueStore
from tests.helpers.backend import FailingStorageBackend, handle_factory, stored_session
from tests.helpers.mock_exceptions import MockBackendError, MockRefreshTokenError


@pytest.fixture
def registry(client_config, store, fake_backend):
    return ClientRegistry(client_config, store, factory=handle_factory(fake_backend))


@pytest.fixture
def bus():
    return RecoveryEventBus()


@pytest.fixture
def received(bus):
    events = []
    bus.subscribe(events.append)
    return events


@pytest.fixture
def orchestrator(registry, store, bus, restarts):
    return RecoveryOrchestrator(
        registry,
        store,
        bus,
        restart=lambda: restarts.append(True),
        restart_delay=0,
        fallback_restart_delay=0
    )


def seed_session_keys(store, namespace):
    store.set(f"{namespace}-auth-token", stored_session(1))
    store.set(f"{namespace}_refresh_token", "refresh-1")
    store.set(f"{namespace}_user_data", "{}")
    store.set(f"{namespace}_theme", "dark")


class TestRecoveryOrchestrator:
    """Test the recovery sequence."""

    @pytest.mark.asyncio
    async def test_recover_clears_signs_out_and_publishes(
        self, orchestrator, store, memory_backend, namespace, received, restarts, fake_backend
    ):
        seed_session_keys(store, namespace)

        await orchestrator.recover(MockRefreshTokenError(), "data-load")

        assert memory_backend.snapshot() == {f"{namespace}_theme": "dark"}
        assert len(received) == 1
        event = received[0]
        assert event.context == "data-load"
        assert "Refresh Token Not Found" in event.original_error_message
        assert event.actions_taken == (RecoveryAction.TOKENS_CLEARED, RecoveryAction.SIGNED_OUT)
        logout = fake_backend.requests[-1]
        assert logout.url.path == LOGOUT_PATH
        assert logout.headers["Authorization"] == "Bearer access-1"
        assert orchestrator.in_progress is False
        assert orchestrator.restart_pending is False
        assert restarts == []
        await orchestrator.registry.aclose()

    @pytest.mark.asyncio
    async def test_corrupted_session_is_cleared_without_logout(
        self, orchestrator, store, memory_backend, namespace, received, fake_backend
    ):
        store.set(f"{namespace}-auth-token", "corrupted-token")

        await orchestrator.recover(MockRefreshTokenError(), "data-load")

        assert LOGOUT_PATH not in fake_backend.paths()
        assert f"{namespace}-auth-token" not in memory_backend
        assert received[0].has_action(RecoveryAction.TOKENS_CLEARED)
        await orchestrator.registry.aclose()

    @pytest.mark.asyncio
    async def test_initialization_context_restarts(self, orchestrator, received, restarts):
        """Bootstrap failures always restart after the event."""
        await orchestrator.recover(MockRefreshTokenError(), "initialization")

        assert received[0].has_action(RecoveryAction.RESTART_SCHEDULED)
        await orchestrator.wait_for_restart()
        assert restarts == [True]
        assert orchestrator.in_progress is False
        await orchestrator.registry.aclose()

    @pytest.mark.asyncio
    async def test_force_restart(self, orchestrator, received, restarts):
        await orchestrator.recover(MockRefreshTokenError(), "manual", force_restart=True)
        await orchestrator.wait_for_restart()
        assert received[0].has_action(RecoveryAction.RESTART_SCHEDULED)
        assert restarts == [True]
        await orchestrator.registry.aclose()

    @pytest.mark.asyncio
    async def test_no_restart_without_callback(self, registry, store, bus, received):
        orchestrator = RecoveryOrchestrator(registry, store, bus, restart=None)
        await orchestrator.recover(MockRefreshTokenError(), "initialization")
        assert not received[0].has_action(RecoveryAction.RESTART_SCHEDULED)
        assert orchestrator.restart_pending is False
        assert orchestrator.in_progress is False
        await registry.aclose()

    @pytest.mark.asyncio
    async def test_async_restart_callback_awaited(self, registry, store, bus):
        done = asyncio.Event()

        async def restart():
            done.set()

        orchestrator = RecoveryOrchestrator(registry, store, bus, restart=restart, restart_delay=0)
        await orchestrator.recover(MockRefreshTokenError(), "initialization")
        await orchestrator.wait_for_restart()
        assert done.is_set()
        await registry.aclose()

    @pytest.mark.asyncio
    async def test_concurrent_recoveries_run_once(self, orchestrator, received):
        """Simultaneous token errors produce exactly one recovery run."""
        await asyncio.gather(*(
            orchestrator.recover(MockRefreshTokenError(), f"caller-{i}") for i in range(5)
        ))
        assert orchestrator.runs == 1
        assert len(received) == 1
        assert received[0].context == "caller-0"
        await orchestrator.registry.aclose()

    @pytest.mark.asyncio
    async def test_joins_while_restart_pending(self, registry, store, bus, received, restarts):
        """No second run starts between the event and the restart."""
        orchestrator = RecoveryOrchestrator(
            registry, store, bus, restart=lambda: restarts.append(True), restart_delay=0.05
        )
        await orchestrator.recover(MockRefreshTokenError(), "initialization")
        assert orchestrator.in_progress is True

        await orchestrator.recover(MockRefreshTokenError(), "initialization")
        assert orchestrator.runs == 1

        await orchestrator.wait_for_restart()
        assert restarts == [True]
        assert orchestrator.in_progress is False

        await orchestrator.recover(MockRefreshTokenError(), "later")
        assert orchestrator.runs == 2
        assert len(received) == 2
        await orchestrator.registry.aclose()

    @pytest.mark.asyncio
    async def test_sequential_recoveries_each_run(self, orchestrator, received):
        await orchestrator.recover(MockRefreshTokenError(), "a")
        await orchestrator.recover(MockRefreshTokenError(), "b")
        assert orchestrator.runs == 2
        assert [event.context for event in received] == ["a", "b"]
        await orchestrator.registry.aclose()

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_abort(self, orchestrator, bus, received):
        def broken(event):
            raise RuntimeError("listener crashed")

        bus.subscribe(broken)
        await orchestrator.recover(MockRefreshTokenError(), "data-load")
        assert len(received) == 1
        assert orchestrator.in_progress is False
        await orchestrator.registry.aclose()

    @pytest.mark.asyncio
    async def test_storage_failure_still_notifies(self, client_config, fake_backend, bus, received):
        """Storage errors drop TOKENS_CLEARED but the event is still published."""
        store = PersistentKeyValueStore(FailingStorageBackend())
        registry = ClientRegistry(client_config, store, factory=handle_factory(fake_backend))
        orchestrator = RecoveryOrchestrator(registry, store, bus)

        await orchestrator.recover(MockRefreshTokenError(), "data-load")

        assert len(received) == 1
        assert not received[0].has_action(RecoveryAction.TOKENS_CLEARED)
        await registry.aclose()

    @pytest.mark.asyncio
    async def test_sign_out_failure_tolerated(self, client_config, store, bus, received):
        def broken_factory(config, storage, number):
            raise RuntimeError("client unavailable")

        registry = ClientRegistry(client_config, store, factory=broken_factory)
        orchestrator = RecoveryOrchestrator(registry, store, bus)

        await orchestrator.recover(MockRefreshTokenError(), "data-load")

        assert received[0].actions_taken == (RecoveryAction.TOKENS_CLEARED,)

    @pytest.mark.asyncio
    async def test_unexpected_failure_forces_fallback_restart(self, orchestrator, restarts):
        """If the sequence itself fails, a restart is still attempted."""
        orchestrator._publish = Mock(side_effect=RuntimeError("unexpected"))

        await orchestrator.recover(MockRefreshTokenError(), "data-load")
        await orchestrator.wait_for_restart()

        assert restarts == [True]
        assert orchestrator.in_progress is False
        await orchestrator.registry.aclose()

    @pytest.mark.asyncio
    async def test_recover_never_raises_on_odd_input(self, orchestrator, received):
        await orchestrator.recover(None)
        assert received[0].context == "unknown"
        await orchestrator.registry.aclose()

    @pytest.mark.asyncio
    async def test_clears_every_enumerated_key(self, orchestrator, store, namespace):
        for key in session_storage_keys(namespace):
            store.set(key, "x")
        await orchestrator.recover(MockRefreshTokenError())
        assert all(store.get(key) is None for key in session_storage_keys(namespace))
        await orchestrator.registry.aclose()


class TestWithRecovery:
    """Test the with_recovery decorator."""

    @pytest.mark.asyncio
    async def test_token_error_recovers_and_reraises(self, orchestrator, received):
        error = MockRefreshTokenError()

        async def load_profile():
            raise error

        wrapped = orchestrator.with_recovery(load_profile, "profile")
        with pytest.raises(MockRefreshTokenError) as exc_info:
            await wrapped()

        assert exc_info.value is error
        assert len(received) == 1
        assert received[0].context == "profile"
        await orchestrator.registry.aclose()

    @pytest.mark.asyncio
    async def test_other_errors_pass_through(self, orchestrator, received):
        async def load_profile():
            raise MockBackendError("Internal Server Error", 500)

        with pytest.raises(MockBackendError):
            await orchestrator.with_recovery(load_profile)()
        assert received == []

    @pytest.mark.asyncio
    async def test_success_passes_result(self, orchestrator):
        async def add(a, b):
            return a + b

        wrapped = orchestrator.with_recovery(add)
        assert await wrapped(2, 3) == 5
        assert wrapped.__name__ == "add"
