"""Shared pytest fixtures for session resilience tests."""

import itertools

import pytest
from dotenv import load_dotenv

# Load environment variables from .env file for tests
load_dotenv()

from session_resilience.api.runtime import SessionRuntime
from session_resilience.config.settings import ClientConfig
from session_resilience.reliability.retry import RequestRetrier, RetryPolicy
from session_resilience.storage.memory import MemoryStorageBackend
from session_resilience.storage.store import PersistentKeyValueStore
from tests.helpers.backend import FakeBackend, RecordingSleep, handle_factory

_namespaces = itertools.count(1)


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end recovery scenarios")


@pytest.fixture
def namespace():
    """Unique storage namespace so live registries never share one."""
    return f"testapp{next(_namespaces)}"


@pytest.fixture
def client_config(namespace):
    """Client configuration pointing at the fake backend."""
    return ClientConfig(
        endpoint="https://backend.test",
        api_key="anon-key",
        storage_namespace=namespace
    )


@pytest.fixture
def memory_backend():
    return MemoryStorageBackend()


@pytest.fixture
def store(memory_backend):
    return PersistentKeyValueStore(memory_backend)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def retrier(recording_sleep):
    """Retrier with no real waiting and no jitter randomness."""
    class ZeroRandom:
        def random(self):
            return 0.0

    return RequestRetrier(sleep=recording_sleep, rng=ZeroRandom())


@pytest.fixture
def fast_policy():
    return RetryPolicy(max_retries=3, initial_delay=0.01, backoff_factor=2.0, jitter=0.0)


@pytest.fixture
def restarts():
    """Records restart callback invocations."""
    return []


@pytest.fixture
def runtime(client_config, store, fake_backend, retrier, restarts):
    """Isolated runtime wired to the fake backend."""
    return SessionRuntime(
        config=client_config,
        storage=store,
        restart=lambda: restarts.append(True),
        client_factory=handle_factory(fake_backend),
        retrier=retrier,
        restart_delay=0
    )
