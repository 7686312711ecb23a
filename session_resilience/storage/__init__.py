"""Storage for session material."""

from .base import StorageBackend
from .file import JsonFileStorageBackend
from .memory import MemoryStorageBackend
from .store import PersistentKeyValueStore

__all__ = [
    "StorageBackend",
    "JsonFileStorageBackend",
    "MemoryStorageBackend",
    "PersistentKeyValueStore",
]
