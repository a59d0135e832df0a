"""Key-value persistence interface."""

from typing import Protocol


class KeyValueStore(Protocol):
    """Persistence interface for JSON-compatible values stored by key."""

    def get(self, key: str) -> object | None:
        """Return the decoded value for a key, or None when absent."""

    def set(self, key: str, value: object) -> None:
        """Store a JSON-compatible value under a key."""
