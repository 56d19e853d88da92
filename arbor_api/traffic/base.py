"""Traffic API interface and the caching shared by its implementations."""

from collections.abc import Callable
from typing import ClassVar, Protocol
from xml.etree.ElementTree import Element

import structlog

from arbor_api.cache import CacheItem, CacheStore
from arbor_api.errors import ArborApiError
from arbor_api.fetch.constants import DEFAULT_CACHE_TTL
from arbor_api.fetch.metrics import FetchMetrics
from arbor_api.traffic.xml import parse_traffic_xml, read_graph, serialize_xml


logger = structlog.get_logger()


class TrafficApi(Protocol):
    """Runs traffic queries against a leader."""

    def get_traffic_xml(self, query_xml: str, use_cache: bool | None = None) -> Element:
        """Run a traffic query.

        Args:
            query_xml: Query document, see ``build_query_xml``.
            use_cache: Cache this query; None uses the client default.

        Returns:
            Root element of the result document.
        """
        ...

    def get_traffic_graph(
        self, query_xml: str, graph_xml: str, use_cache: bool | None = None
    ) -> bytes:
        """Render a traffic query as a graph.

        Args:
            query_xml: Query document, see ``build_query_xml``.
            graph_xml: Graph format document, see ``build_graph_xml``.
            use_cache: Cache this graph; None uses the client default.

        Returns:
            PNG image bytes.
        """
        ...

    def close(self) -> None:
        """Release the underlying connection pool."""
        ...


class CachingTrafficApi:
    """Base for XML traffic clients.

    Successful XML results are cached in serialized form and parsed again on
    a hit; graphs are cached as raw PNG bytes. Failures are never cached.
    """

    key_prefix: ClassVar[str]
    component: ClassVar[str]

    def __init__(
        self,
        cache: CacheStore | None = None,
        cache_enabled: bool = False,
        cache_ttl: int = DEFAULT_CACHE_TTL,
    ) -> None:
        """Initialize caching.

        Args:
            cache: Cache store; caching is off without one.
            cache_enabled: Default for calls that do not pass ``use_cache``.
            cache_ttl: Time to live of cached results in seconds.
        """
        self._cache = cache
        self._cache_enabled = cache_enabled
        self._cache_ttl = cache_ttl
        self._metrics = FetchMetrics.get_instance()
        self._log = logger.bind(component=self.component)

    def _caching(self, use_cache: bool | None) -> bool:
        enabled = self._cache_enabled if use_cache is None else use_cache
        return enabled and self._cache is not None

    def _cached_xml(
        self,
        key: str,
        run: Callable[[], bytes | str],
        use_cache: bool | None,
        url: str | None = None,
    ) -> Element:
        item = None
        if self._caching(use_cache):
            item = self._get_item(key)
            if item.is_hit:
                self._metrics.record_cache_hit()
                return parse_traffic_xml(item.get(), url)
            self._metrics.record_cache_miss()

        try:
            root = parse_traffic_xml(run(), url)
        except ArborApiError as e:
            self._record_failure(e)
            raise

        if item is not None:
            self._save(item.set(serialize_xml(root)))
        return root

    def _cached_graph(
        self,
        key: str,
        run: Callable[[], bytes],
        use_cache: bool | None,
        url: str | None = None,
    ) -> bytes:
        item = None
        if self._caching(use_cache):
            item = self._get_item(key)
            if item.is_hit:
                self._metrics.record_cache_hit()
                return item.get()  # type: ignore[no-any-return]
            self._metrics.record_cache_miss()

        try:
            image = read_graph(run(), url)
        except ArborApiError as e:
            self._record_failure(e)
            raise

        if item is not None:
            self._save(item.set(image))
        return image

    def _record_failure(self, error: ArborApiError) -> None:
        self._metrics.record_failure(error.error_class)
        self._log.warning("traffic_query_failed", **error.to_dict())

    def _get_item(self, key: str) -> CacheItem:
        if self._cache is None:
            return CacheItem(key)
        return self._cache.get_item(key)

    def _save(self, item: CacheItem) -> None:
        if self._cache is None:
            return
        self._cache.save(item.expires_after(self._cache_ttl))
        self._metrics.record_cache_write()
