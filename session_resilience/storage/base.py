"""Base interface for key-value storage backends."""

from typing import Iterable, Optional, Protocol


class StorageBackend(Protocol):
    """
    Protocol for synchronous key-value storage holding session material.

    Backends may raise on any call; PersistentKeyValueStore contains the
    failures.
    """

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value or None."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store a value."""
        ...

    def remove_item(self, key: str) -> None:
        """Remove a key; missing keys are not an error."""
        ...

    def keys(self) -> Iterable[str]:
        """Iterate over stored keys."""
        ...
