"""SQLite-backed TTL cache store.

Persists cached responses across processes. JSON-like values are stored as
JSON text; ``bytes`` (graph images) and ``str`` (XML documents) keep their
type through a ``kind`` column.
"""

import json
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from types import TracebackType
from typing import Any

import structlog

from arbor_api.cache.base import CacheItem


logger = structlog.get_logger()

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    value BLOB NOT NULL,
    expires_at REAL
);
CREATE INDEX IF NOT EXISTS idx_cache_entries_expires_at ON cache_entries(expires_at);
"""

KIND_JSON = "json"
KIND_TEXT = "text"
KIND_BYTES = "bytes"


class CacheStoreError(Exception):
    """Raised when the cache database is unusable."""


class SqliteCacheStore:
    """SQLite cache store with per-entry expiry.

    Uses WAL mode and a single connection guarded by a lock so one store can
    be shared by the page worker threads of a paginated fetch.
    """

    def __init__(
        self,
        db_path: Path | str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file.
            clock: Wall-clock time source, injectable for tests.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._clock = clock
        self._conn: sqlite3.Connection | None = None
        self._lock = Lock()
        self._log = logger.bind(
            component="cache",
            backend="sqlite",
            db_path=str(self._db_path),
        )

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open the database and create the schema if needed.

        Creates the database file and parent directories if they don't exist.
        """
        if self._conn is not None:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        version = self._conn.execute("PRAGMA user_version").fetchone()[0]
        if version < SCHEMA_VERSION:
            self._conn.executescript(SCHEMA_SQL)
            self._conn.execute(f"PRAGMA user_version={SCHEMA_VERSION}")
            self._conn.commit()

        self._log.info("cache_connected", schema_version=SCHEMA_VERSION)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.info("cache_closed")

    def __enter__(self) -> "SqliteCacheStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager exit."""
        self.close()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Serialize access to the connection and commit or roll back.

        Args:
            operation: Name of the operation for logging.

        Yields:
            The open connection.
        """
        if self._conn is None:
            raise CacheStoreError("Cache database not connected. Call connect() first.")
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                self._log.error("cache_transaction_failed", op=operation)
                raise

    def get_item(self, key: str) -> CacheItem:
        """Look up a key, evicting it when expired."""
        with self._transaction("get") as conn:
            row = conn.execute(
                "SELECT kind, value, expires_at FROM cache_entries WHERE key = ?",
                (key,),
            ).fetchone()
            if row is None:
                return CacheItem(key=key)
            kind, raw, expires_at = row
            if expires_at is not None and self._clock() >= expires_at:
                conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                self._log.debug("cache_expired", key=key)
                return CacheItem(key=key)
        return CacheItem(key=key, value=_decode(kind, raw), hit=True)

    def save(self, item: CacheItem) -> None:
        """Store an item; a missing TTL means no expiry."""
        kind, raw = _encode(item.value)
        expires_at = None
        if item.ttl_seconds is not None:
            expires_at = self._clock() + item.ttl_seconds
        with self._transaction("save") as conn:
            conn.execute(
                """
                INSERT INTO cache_entries (key, kind, value, expires_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    kind = excluded.kind,
                    value = excluded.value,
                    expires_at = excluded.expires_at
                """,
                (item.key, kind, raw, expires_at),
            )
        self._log.debug("cache_saved", key=item.key, ttl_seconds=item.ttl_seconds)

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        with self._transaction("delete") as conn:
            conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))

    def clear(self) -> None:
        """Remove every entry."""
        with self._transaction("clear") as conn:
            conn.execute("DELETE FROM cache_entries")

    def prune_expired(self) -> int:
        """Delete all expired entries.

        Returns:
            Number of entries removed.
        """
        with self._transaction("prune") as conn:
            cursor = conn.execute(
                "DELETE FROM cache_entries WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._clock(),),
            )
            removed = cursor.rowcount
        self._log.info("cache_pruned", removed=removed)
        return removed


def _encode(value: Any) -> tuple[str, bytes]:
    if isinstance(value, bytes):
        return KIND_BYTES, value
    if isinstance(value, str):
        return KIND_TEXT, value.encode("utf-8")
    return KIND_JSON, json.dumps(value, separators=(",", ":")).encode("utf-8")


def _decode(kind: str, raw: bytes) -> Any:
    if kind == KIND_BYTES:
        return bytes(raw)
    if kind == KIND_TEXT:
        return bytes(raw).decode("utf-8")
    return json.loads(bytes(raw).decode("utf-8"))
