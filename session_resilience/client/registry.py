"""
Lifecycle manager for the single authenticated client.

The registry is constructed once at the composition root and injected into
every consumer. ``get_client`` is deliberately synchronous: the cached handle
is checked and set within one frame with no await in between, so interleaved
coroutines on the event loop can never construct two handles.
"""

import asyncio
import weakref
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from ..config.constants import client_storage_prefix
from ..config.settings import ClientConfig
from ..observability.logging import ComponentLogger
from ..storage.store import PersistentKeyValueStore
from .handle import ClientHandle

ClientFactory = Callable[[ClientConfig, PersistentKeyValueStore, int], ClientHandle]


class ClientRegistry:
    """Lazily constructs, caches and resets the one ClientHandle."""

    # Every registry alive in the process, to spot two sharing one namespace
    _registries: "weakref.WeakSet[ClientRegistry]" = weakref.WeakSet()

    def __init__(
        self,
        config: ClientConfig,
        storage: PersistentKeyValueStore,
        factory: Optional[ClientFactory] = None
    ):
        self.config = config
        self.storage = storage
        self._factory: ClientFactory = factory or ClientHandle
        self._handle: Optional[ClientHandle] = None
        self._instance_count = 0
        self._created_at: Optional[datetime] = None
        self._warnings: List[str] = []
        self._retired: List[ClientHandle] = []
        self._closing: Set["asyncio.Task[None]"] = set()
        self._log = ComponentLogger("registry")
        ClientRegistry._registries.add(self)

    @property
    def has_instance(self) -> bool:
        return self._handle is not None

    def get_client(self) -> ClientHandle:
        """Return the shared handle, constructing it on first access."""
        # Check and set without yielding to the event loop
        handle = self._handle
        if handle is None:
            handle = self._create()
            self._handle = handle
        return handle

    def _create(self) -> ClientHandle:
        self._instance_count += 1
        number = self._instance_count

        for other in list(ClientRegistry._registries):
            if other is not self and other.has_instance and \
                    other.config.storage_namespace == self.config.storage_namespace:
                warning = (
                    f"Another live client shares storage namespace "
                    f"'{self.config.storage_namespace}'; sessions may conflict"
                )
                self._warnings.append(warning)
                self._log.warning(warning, instance=number)
                break

        handle = self._factory(self.config, self.storage, number)
        if self._created_at is None:
            self._created_at = handle.created_at

        self._log.info(
            "Created backend client",
            instance=number,
            endpoint=self.config.endpoint
        )
        return handle

    def reset_client(self) -> None:
        """
        Drop the cached handle and its namespaced storage keys.

        The next ``get_client`` builds a fresh handle and the instance counter
        starts again at 1. The old handle is closed on the running loop when
        there is one, otherwise by ``aclose``.
        """
        handle, self._handle = self._handle, None
        self._instance_count = 0
        self._created_at = None
        self._warnings.clear()

        if handle is not None:
            self._retire(handle)

        prefix = client_storage_prefix(self.config.storage_namespace)
        if not self.storage.remove_prefix(prefix):
            self._log.warning("Some client storage keys could not be removed", prefix=prefix)

        self._log.info("Backend client reset")

    def _retire(self, handle: ClientHandle) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._retired.append(handle)
            return
        task = loop.create_task(handle.aclose())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    def diagnostics(self) -> Dict[str, Any]:
        """Snapshot of the registry state for debugging."""
        conflicting = bool(self._warnings)
        return {
            "has_instance": self._handle is not None,
            "instance_count": self._instance_count,
            "created_at": self._created_at.isoformat() if self._created_at else None,
            "endpoint": self.config.endpoint,
            "storage_key": self.config.storage_key,
            "warnings": list(self._warnings),
            "recommendations": [
                "Obtain the client through ClientRegistry.get_client only",
                "Construct one registry at the composition root and inject it",
            ] if conflicting else ["Single instance detected"],
        }

    async def aclose(self) -> None:
        """Close the live handle and any retired ones."""
        handles = list(self._retired)
        self._retired.clear()
        if self._handle is not None:
            handles.append(self._handle)
            self._handle = None

        for handle in handles:
            if not handle.is_closed:
                await handle.aclose()

        if self._closing:
            await asyncio.gather(*self._closing)
