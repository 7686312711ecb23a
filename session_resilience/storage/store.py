"""
Fault-tolerant key-value store for session material.

Wraps a StorageBackend so that no storage failure ever propagates: reads
degrade to None and writes/removals report False. Recovery relies on this to
always reach its notification step.
"""

from typing import Iterable, List, Optional

from ..config.constants import is_namespaced_session_key, session_storage_keys
from ..observability.logging import ComponentLogger
from .base import StorageBackend
from .memory import MemoryStorageBackend


class PersistentKeyValueStore:
    """Get/set/remove over a backend with internal fault tolerance."""

    def __init__(self, backend: Optional[StorageBackend] = None):
        self.backend = backend if backend is not None else MemoryStorageBackend()
        self._log = ComponentLogger("storage")

    def get(self, key: str) -> Optional[str]:
        try:
            return self.backend.get_item(key)
        except Exception as e:
            self._log.warning("Failed to get storage item", key=key, error=e)
            return None

    def set(self, key: str, value: str) -> bool:
        try:
            self.backend.set_item(key, value)
            return True
        except Exception as e:
            self._log.warning("Failed to set storage item", key=key, error=e)
            return False

    def remove(self, key: str) -> bool:
        try:
            self.backend.remove_item(key)
            return True
        except Exception as e:
            self._log.warning("Failed to remove storage item", key=key, error=e)
            return False

    def keys(self) -> List[str]:
        try:
            return list(self.backend.keys())
        except Exception as e:
            self._log.warning("Failed to list storage keys", error=e)
            return []

    def remove_many(self, keys: Iterable[str]) -> bool:
        """Remove every key; True only if all removals succeeded."""
        ok = True
        for key in keys:
            ok = self.remove(key) and ok
        return ok

    def remove_prefix(self, prefix: str) -> bool:
        return self.remove_many([key for key in self.keys() if key.startswith(prefix)])

    def clear_session_keys(self, namespace: str) -> bool:
        """
        Remove every session-related key for a namespace.

        Removes the enumerated keys from ``session_storage_keys`` and then
        sweeps any remaining namespaced key containing an auth, token or
        session marker.

        Returns:
            True if every removal succeeded
        """
        enumerated = session_storage_keys(namespace)
        ok = self.remove_many(enumerated)

        leftovers = [
            key for key in self.keys()
            if key not in enumerated and is_namespaced_session_key(key, namespace)
        ]
        if leftovers:
            self._log.debug("Sweeping extra session keys", count=len(leftovers))
            ok = self.remove_many(leftovers) and ok

        return ok
