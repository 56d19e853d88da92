"""Cache port shared by all protocol clients."""

import time
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class CacheItem:
    """One cache slot, as returned by ``CacheStore.get_item``.

    A miss is still a usable item: callers ``set`` a value, pick a TTL with
    ``expires_after`` and hand it back to ``CacheStore.save``.
    """

    key: str
    value: Any = None
    hit: bool = False
    ttl_seconds: int | None = None
    created_at: float = field(default_factory=time.time)

    @property
    def is_hit(self) -> bool:
        """Whether the item was found and has not expired."""
        return self.hit

    def get(self) -> Any:
        """Get the cached value (None on a miss)."""
        return self.value

    def set(self, value: Any) -> "CacheItem":
        """Set the value to be saved."""
        self.value = value
        return self

    def expires_after(self, seconds: int) -> "CacheItem":
        """Set the time to live applied when the item is saved."""
        self.ttl_seconds = seconds
        return self


class CacheStore(Protocol):
    """Key/value store with TTL based expiry and hit/miss lookup."""

    def get_item(self, key: str) -> CacheItem:
        """Look up a key.

        Args:
            key: Cache key.

        Returns:
            CacheItem; ``is_hit`` is False when absent or expired.
        """
        ...

    def save(self, item: CacheItem) -> None:
        """Persist an item with its TTL.

        Args:
            item: Item to store.
        """
        ...

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        ...

    def clear(self) -> None:
        """Remove every entry."""
        ...
