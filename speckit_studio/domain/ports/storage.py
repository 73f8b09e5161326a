"""Storage Port - key to JSON blob store (last write wins)."""

from typing import Any, Protocol


class BlobStorePort(Protocol):
    """Opaque key/value persistence used by the host around orchestrator turns."""

    def save(self, key: str, value: Any) -> bool:
        """Store a JSON-serialisable value. Returns False on failure."""
        ...

    def load(self, key: str) -> Any | None:
        """Load a value, or None when absent or unreadable."""
        ...

    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if something was deleted."""
        ...

    def list_keys(self, prefix: str = "") -> list[str]:
        """Keys starting with prefix."""
        ...
