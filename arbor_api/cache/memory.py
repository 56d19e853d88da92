"""In-memory TTL cache store."""

import copy
import time
from collections.abc import Callable
from threading import Lock
from typing import Any

import structlog

from arbor_api.cache.base import CacheItem


logger = structlog.get_logger()


class MemoryCacheStore:
    """Process-local cache store with per-entry expiry.

    Values are deep-copied on the way in and out so callers cannot mutate
    cached aggregates. Safe to share between threads.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the store.

        Args:
            clock: Monotonic time source, injectable for tests.
        """
        self._clock = clock
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._lock = Lock()
        self._log = logger.bind(component="cache", backend="memory")

    def get_item(self, key: str) -> CacheItem:
        """Look up a key, evicting it when expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return CacheItem(key=key)
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                self._log.debug("cache_expired", key=key)
                return CacheItem(key=key)
            return CacheItem(key=key, value=copy.deepcopy(value), hit=True)

    def save(self, item: CacheItem) -> None:
        """Store an item; a missing TTL means no expiry."""
        expires_at = None
        if item.ttl_seconds is not None:
            expires_at = self._clock() + item.ttl_seconds
        with self._lock:
            self._entries[item.key] = (copy.deepcopy(item.value), expires_at)
        self._log.debug("cache_saved", key=item.key, ttl_seconds=item.ttl_seconds)

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get_item(key).is_hit
