"""Metrics collection for the fetch layer."""

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock

from arbor_api.errors import ArborErrorClass


# Module-level singleton state
_metrics_instance: "FetchMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class FetchMetrics:
    """Thread-safe metrics for client requests.

    Tracks request counts, cache activity, skipped pages and failures.
    Use get_instance() for singleton access.
    """

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    requests_by_status: Counter[int] = field(default_factory=Counter)
    failures_by_class: Counter[str] = field(default_factory=Counter)
    cache_hits_total: int = 0
    cache_misses_total: int = 0
    cache_writes_total: int = 0
    pages_fetched_total: int = 0
    pages_skipped_total: int = 0
    duration_ms_total: float = 0.0
    request_count: int = 0

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get the singleton instance (thread-safe).

        Returns:
            The shared FetchMetrics instance.
        """
        global _metrics_instance  # noqa: PLW0603
        if _metrics_instance is None:
            with _metrics_lock:
                if _metrics_instance is None:
                    _metrics_instance = cls()
        return _metrics_instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        global _metrics_instance  # noqa: PLW0603
        with _metrics_lock:
            _metrics_instance = None

    def record_request(self, status_code: int, duration_ms: float) -> None:
        """Record a completed HTTP request.

        Args:
            status_code: HTTP status code.
            duration_ms: Duration in milliseconds.
        """
        with self._lock:
            self.requests_by_status[status_code] += 1
            self.duration_ms_total += duration_ms
            self.request_count += 1

    def record_cache_hit(self) -> None:
        """Record a cache hit."""
        with self._lock:
            self.cache_hits_total += 1

    def record_cache_miss(self) -> None:
        """Record a cache miss."""
        with self._lock:
            self.cache_misses_total += 1

    def record_cache_write(self) -> None:
        """Record a cache write."""
        with self._lock:
            self.cache_writes_total += 1

    def record_page(self, skipped: bool = False) -> None:
        """Record the outcome of one page of a paginated fetch.

        Args:
            skipped: Whether the page failed and was left out.
        """
        with self._lock:
            if skipped:
                self.pages_skipped_total += 1
            else:
                self.pages_fetched_total += 1

    def record_failure(self, error_class: ArborErrorClass) -> None:
        """Record a request failure.

        Args:
            error_class: Classification of the failure.
        """
        with self._lock:
            self.failures_by_class[error_class.value] += 1

    @property
    def avg_duration_ms(self) -> float:
        """Average request duration in milliseconds."""
        if self.request_count == 0:
            return 0.0
        return self.duration_ms_total / self.request_count

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "requests_by_status": dict(self.requests_by_status),
                "failures_by_class": dict(self.failures_by_class),
                "cache_hits_total": self.cache_hits_total,
                "cache_misses_total": self.cache_misses_total,
                "cache_writes_total": self.cache_writes_total,
                "pages_fetched_total": self.pages_fetched_total,
                "pages_skipped_total": self.pages_skipped_total,
                "duration_ms_total": self.duration_ms_total,
                "request_count": self.request_count,
            }
