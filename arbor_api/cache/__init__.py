"""Response caching for the Arbor API clients.

Provides the cache port (``CacheItem``/``CacheStore``), deterministic key
fingerprints, and two stores: in-memory and SQLite.
"""

from pathlib import Path

from arbor_api.cache.base import CacheItem, CacheStore
from arbor_api.cache.keys import cache_key, post_cache_key, text_cache_key
from arbor_api.cache.memory import MemoryCacheStore
from arbor_api.cache.sqlite import CacheStoreError, SqliteCacheStore


def create_cache_store(path: Path | None = None) -> CacheStore:
    """Create the configured cache store.

    Args:
        path: SQLite file; an in-memory store is used when None.

    Returns:
        A ready-to-use cache store.
    """
    if path is None:
        return MemoryCacheStore()
    store = SqliteCacheStore(path)
    store.connect()
    return store


__all__ = [
    "CacheItem",
    "CacheStore",
    "CacheStoreError",
    "MemoryCacheStore",
    "SqliteCacheStore",
    "cache_key",
    "create_cache_store",
    "post_cache_key",
    "text_cache_key",
]
