"""Traffic queries over the legacy web services API."""

from xml.etree.ElementTree import Element

import httpx

from arbor_api.cache import CacheStore, cache_key
from arbor_api.errors import HttpStatusError, NoDataError
from arbor_api.fetch.constants import DEFAULT_CACHE_TTL, HTTP_STATUS_BAD_REQUEST, PARAM_API_KEY
from arbor_api.fetch.redact import redact_url
from arbor_api.fetch.transport import HttpTransport, QueryParams
from arbor_api.settings import ArborSettings
from arbor_api.traffic.base import CachingTrafficApi


class WebServicesTrafficApi(CachingTrafficApi):
    """Traffic client for ``/arborws/traffic/``.

    Queries are sent as GET parameters together with the ``api_key``; the
    key never takes part in cache keys.
    """

    key_prefix = "arbor_ws"
    component = "ws"

    def __init__(  # noqa: PLR0913
        self,
        base_url: str,
        wskey: str,
        transport: HttpTransport,
        cache: CacheStore | None = None,
        cache_enabled: bool = False,
        cache_ttl: int = DEFAULT_CACHE_TTL,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Web services root, e.g. ``https://leader/arborws/``.
            wskey: Web services API key.
            transport: HTTP transport.
            cache: Cache store.
            cache_enabled: Default for calls that do not pass ``use_cache``.
            cache_ttl: Time to live of cached results in seconds.
        """
        super().__init__(cache, cache_enabled, cache_ttl)
        self._url = base_url.rstrip("/") + "/traffic/"
        self._wskey = wskey
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: ArborSettings,
        cache: CacheStore | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> "WebServicesTrafficApi":
        """Build a client from settings; ``wskey`` is required."""
        if settings.wskey is None:
            msg = "wskey is required for the web services API"
            raise ValueError(msg)
        return cls(
            base_url=settings.ws_url,
            wskey=settings.wskey.get_secret_value(),
            transport=HttpTransport(
                timeout_seconds=settings.timeout_seconds,
                verify_tls=settings.verify_tls,
                transport=transport,
            ),
            cache=cache,
            cache_enabled=settings.cache,
            cache_ttl=settings.cache_ttl,
        )

    def get_traffic_xml(self, query_xml: str, use_cache: bool | None = None) -> Element:
        """Run a traffic query and return the result document's root."""
        args: QueryParams = {"query": query_xml}
        return self._cached_xml(
            cache_key(self.key_prefix, self._url, args),
            lambda: self._request(args),
            use_cache,
            self._url,
        )

    def get_traffic_graph(
        self, query_xml: str, graph_xml: str, use_cache: bool | None = None
    ) -> bytes:
        """Render a traffic query as a PNG graph."""
        args: QueryParams = {"graph": graph_xml, "query": query_xml}
        return self._cached_graph(
            cache_key(self.key_prefix, self._url, args),
            lambda: self._request(args),
            use_cache,
            self._url,
        )

    def _request(self, args: QueryParams) -> bytes:
        response = self._transport.request(
            "GET", self._url, params={**args, PARAM_API_KEY: self._wskey}
        )
        url = redact_url(str(response.request.url))
        if response.status_code >= HTTP_STATUS_BAD_REQUEST:
            raise HttpStatusError(response.status_code, url=url)
        if not response.content:
            raise NoDataError(url=url)
        return response.content

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()
