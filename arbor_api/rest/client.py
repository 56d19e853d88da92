"""REST client with paginated fetching and aggregate-level caching."""

import json
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor, wait
from types import TracebackType
from typing import Any

import httpx
import structlog

from arbor_api.cache import CacheItem, CacheStore, cache_key, post_cache_key
from arbor_api.errors import (
    ArborApiError,
    DecodingError,
    ErrorRecord,
    FetchCancelledError,
    HttpStatusError,
    NoDataError,
)
from arbor_api.fetch.constants import (
    CONFIG_COMMITTED,
    DEFAULT_CACHE_TTL,
    DEFAULT_MAX_PAGE_WORKERS,
    DEFAULT_PER_PAGE,
    HTTP_STATUS_REDIRECT_MIN,
    PARAM_CONFIG,
    PARAM_PAGE,
    PARAM_PER_PAGE,
    REST_CONTENT_TYPE,
    REST_TOKEN_HEADER,
)
from arbor_api.fetch.metrics import FetchMetrics
from arbor_api.fetch.redact import redact_url
from arbor_api.fetch.transport import HttpTransport, QueryParams
from arbor_api.rest.filters import FilterSpec, encode_filters
from arbor_api.rest.models import AggregateResult
from arbor_api.rest.paging import parse_total_pages
from arbor_api.rest.state_machine import PagedFetchState, PagedFetchStateMachine
from arbor_api.settings import ArborSettings


logger = structlog.get_logger()

WRITE_METHODS = frozenset({"POST", "PATCH"})


def extract_error_messages(errors: list[Any]) -> list[str]:
    """Collect messages from a REST ``errors`` array.

    Each entry may carry ``id``, ``message``, ``title`` and ``detail``; a
    ``detail`` with a ``source.pointer`` is reported as ``detail : pointer``.

    Args:
        errors: The ``errors`` value of a response body.

    Returns:
        Messages in entry order, then field order.
    """
    messages: list[str] = []
    for error in errors:
        if not isinstance(error, Mapping):
            continue
        for key in ("id", "message", "title"):
            if error.get(key) is not None:
                messages.append(str(error[key]))
        if error.get("detail") is not None:
            source = error.get("source")
            pointer = source.get("pointer") if isinstance(source, Mapping) else None
            if pointer is not None:
                messages.append(f"{error['detail']} : {pointer}")
            else:
                messages.append(str(error["detail"]))
    return messages


class RestClient:
    """Client for the Sightline REST API.

    Provides:
    - Single page GETs with optional per-request caching
    - Paginated collection fetches with concurrent page requests and
      aggregate-level caching (partial results are never cached)
    - POST/PATCH writes, with opt-in response caching for replay

    Caching is decided per call: every read takes ``use_cache`` and falls
    back to the client default when it is None.
    """

    def __init__(  # noqa: PLR0913
        self,
        base_url: str,
        token: str,
        transport: HttpTransport,
        cache: CacheStore | None = None,
        cache_enabled: bool = False,
        cache_ttl: int = DEFAULT_CACHE_TTL,
        max_page_workers: int = DEFAULT_MAX_PAGE_WORKERS,
        key_prefix: str = "arbor_rest",
    ) -> None:
        """Initialize the REST client.

        Args:
            base_url: API root, e.g. ``https://leader/api/sp/``.
            token: REST API token.
            transport: HTTP transport.
            cache: Cache store; caching is off without one.
            cache_enabled: Default for calls that do not pass ``use_cache``.
            cache_ttl: Time to live of cached responses in seconds.
            max_page_workers: Concurrent page requests (1 = sequential).
            key_prefix: Namespace for cache keys.
        """
        if max_page_workers < 1:
            msg = f"max_page_workers must be >= 1, got {max_page_workers}"
            raise ValueError(msg)
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._token = token
        self._transport = transport
        self._cache = cache
        self._cache_enabled = cache_enabled
        self._cache_ttl = cache_ttl
        self._max_page_workers = max_page_workers
        self._key_prefix = key_prefix
        self._metrics = FetchMetrics.get_instance()
        self._log = logger.bind(component="rest")

    @classmethod
    def from_settings(
        cls,
        settings: ArborSettings,
        cache: CacheStore | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> "RestClient":
        """Build a client from settings.

        Args:
            settings: Client settings; ``rest_token`` is required.
            cache: Cache store to use when ``settings.cache`` is on.
            transport: Optional httpx transport (tests).

        Returns:
            Configured RestClient.
        """
        if settings.rest_token is None:
            msg = "rest_token is required for the REST API"
            raise ValueError(msg)
        return cls(
            base_url=settings.rest_url,
            token=settings.rest_token.get_secret_value(),
            transport=HttpTransport(
                timeout_seconds=settings.timeout_seconds,
                verify_tls=settings.verify_tls,
                transport=transport,
            ),
            cache=cache,
            cache_enabled=settings.cache,
            cache_ttl=settings.cache_ttl,
            max_page_workers=settings.max_page_workers,
        )

    def with_prefix(self, key_prefix: str) -> "RestClient":
        """Get a client sharing transport and cache under another key prefix."""
        return RestClient(
            base_url=self._base_url,
            token=self._token,
            transport=self._transport,
            cache=self._cache,
            cache_enabled=self._cache_enabled,
            cache_ttl=self._cache_ttl,
            max_page_workers=self._max_page_workers,
            key_prefix=key_prefix,
        )

    @property
    def base_url(self) -> str:
        """Get the API root URL."""
        return self._base_url

    @property
    def key_prefix(self) -> str:
        """Get the cache key namespace."""
        return self._key_prefix

    def url_for(self, endpoint: str, object_id: str | None = None) -> str:
        """Build the URL of a collection or of one object in it."""
        url = self._base_url + endpoint.strip("/") + "/"
        if object_id is not None:
            url += object_id
        return url

    def collection_url(self, endpoint: str, filters: FilterSpec | None = None) -> str:
        """Build a collection URL with its encoded filter query."""
        url = self.url_for(endpoint)
        query = encode_filters(filters)
        if query:
            url += "?" + query
        return url

    # ===== Reads =====

    def fetch_page(
        self,
        url: str,
        args: QueryParams | None = None,
        use_cache: bool | None = None,
    ) -> dict[str, Any]:
        """GET one page or object.

        Args:
            url: Request URL.
            args: Query arguments.
            use_cache: Cache this request; None uses the client default.

        Returns:
            The decoded response body.

        Raises:
            TransportError, DecodingError, NoDataError, HttpStatusError.
        """
        caching = self._caching(use_cache)
        item = None
        if caching:
            item = self._get_item(cache_key(self._key_prefix, url, args))
            if item.is_hit:
                self._metrics.record_cache_hit()
                self._log.debug("page_cache_hit", url=redact_url(url))
                return item.get()  # type: ignore[no-any-return]
            self._metrics.record_cache_miss()

        result = self._request("GET", url, params=args)

        if item is not None:
            self._save(item.set(result))
        return result

    def get_by_id(
        self, endpoint: str, object_id: str, use_cache: bool | None = None
    ) -> dict[str, Any]:
        """Get one object by its ID.

        Args:
            endpoint: Collection name, e.g. ``managed_objects``.
            object_id: Object ID.
            use_cache: Cache this request; None uses the client default.

        Returns:
            The decoded response body.
        """
        return self.fetch_page(self.url_for(endpoint, object_id), use_cache=use_cache)

    def fetch_all(  # noqa: PLR0913
        self,
        endpoint: str,
        filters: FilterSpec | None = None,
        per_page: int = DEFAULT_PER_PAGE,
        commit: bool = False,
        use_cache: bool | None = None,
        timeout: float | None = None,
    ) -> AggregateResult:
        """Fetch every page of a collection.

        Page 1 is fetched first and its ``links.last`` gives the page count.
        Pages 2..N are fetched concurrently and reassembled in page order.
        A failing page after page 1 is skipped and makes the result partial;
        only complete results are cached, as one entry for the whole set.

        Args:
            endpoint: Collection name, e.g. ``managed_objects``.
            filters: Filter or list of filters.
            per_page: Records per page.
            commit: Read committed configuration (``config=committed``).
            use_cache: Use the aggregate cache; None uses the client default.
            timeout: Seconds to wait for pages 2..N before giving up.

        Returns:
            AggregateResult with the pages in page order.

        Raises:
            ArborApiError: Page 1 failed (any subclass).
            PagingError: ``links.last`` could not be parsed.
            FetchCancelledError: ``timeout`` expired.
        """
        if per_page < 1:
            msg = f"per_page must be >= 1, got {per_page}"
            raise ValueError(msg)

        url = self.collection_url(endpoint, filters)
        base_args: QueryParams = {PARAM_PER_PAGE: per_page}
        if commit:
            base_args[PARAM_CONFIG] = CONFIG_COMMITTED

        machine = PagedFetchStateMachine(endpoint)
        log = self._log.bind(endpoint=endpoint, per_page=per_page, commit=commit)
        caching = self._caching(use_cache)

        machine.transition_to(PagedFetchState.CACHE_CHECK)
        item = None
        if caching:
            item = self._get_item(cache_key(self._key_prefix, url, base_args))
            if item.is_hit:
                self._metrics.record_cache_hit()
                machine.transition_to(PagedFetchState.RETURN)
                cached = item.get()
                log.info("aggregate_cache_hit", pages=len(cached["pages"]))
                return AggregateResult(
                    pages=cached["pages"],
                    total_pages=cached["total_pages"],
                    from_cache=True,
                )
            self._metrics.record_cache_miss()

        try:
            machine.transition_to(PagedFetchState.FETCH_FIRST_PAGE)
            first_page = self.fetch_page(url, {**base_args, PARAM_PAGE: 1}, use_cache=False)
            self._metrics.record_page()

            machine.transition_to(PagedFetchState.DETERMINE_PAGE_COUNT)
            total_pages = parse_total_pages(first_page)

            machine.transition_to(PagedFetchState.FETCH_REMAINING_PAGES)
            pages, failures = self._fetch_remaining(url, base_args, total_pages, timeout)
        except ArborApiError as e:
            failed_in = machine.state
            machine.abort()
            log.warning("fetch_aborted", state=failed_in.value, **e.to_dict())
            raise

        machine.transition_to(PagedFetchState.ASSEMBLE)
        ordered = [first_page] + [pages[page] for page in sorted(pages)]
        skipped = sorted(failures)
        result = AggregateResult(
            pages=ordered,
            total_pages=total_pages,
            skipped_pages=skipped,
            errors=[ErrorRecord.from_exception(failures[page], page=page) for page in skipped],
        )

        if item is not None and not result.is_partial:
            machine.transition_to(PagedFetchState.CACHE_WRITE)
            self._save(item.set({"pages": ordered, "total_pages": total_pages}))
            machine.transition_to(PagedFetchState.RETURN)
        else:
            machine.transition_to(PagedFetchState.RETURN_WITHOUT_CACHE)

        log.info(
            "fetch_complete",
            total_pages=total_pages,
            pages_fetched=len(ordered),
            skipped_pages=skipped,
            records=len(result.records),
            cached=machine.state == PagedFetchState.RETURN,
        )
        return result

    def find(
        self,
        endpoint: str,
        filters: FilterSpec | None = None,
        per_page: int = DEFAULT_PER_PAGE,
        commit: bool = False,
        use_cache: bool | None = None,
    ) -> list[Any]:
        """Find records of a collection.

        Args:
            endpoint: Collection name, e.g. ``managed_objects``.
            filters: Filter or list of filters.
            per_page: Records per page.
            commit: Read committed configuration.
            use_cache: Use the aggregate cache; None uses the client default.

        Returns:
            Records of every fetched page in order.
        """
        return self.fetch_all(endpoint, filters, per_page, commit, use_cache).records

    def _fetch_remaining(
        self,
        url: str,
        base_args: QueryParams,
        total_pages: int,
        timeout: float | None,
    ) -> tuple[dict[int, dict[str, Any]], dict[int, ArborApiError]]:
        """Fetch pages 2..total_pages.

        Returns:
            Bodies and errors, keyed by page number.
        """
        page_numbers = list(range(2, total_pages + 1))
        pages: dict[int, dict[str, Any]] = {}
        failures: dict[int, ArborApiError] = {}
        if not page_numbers:
            return pages, failures

        executor = ThreadPoolExecutor(
            max_workers=min(self._max_page_workers, len(page_numbers)),
            thread_name_prefix="arbor-page",
        )
        try:
            futures: dict[Future[dict[str, Any]], int] = {
                executor.submit(
                    self.fetch_page, url, {**base_args, PARAM_PAGE: page}, False
                ): page
                for page in page_numbers
            }
            done, not_done = wait(futures, timeout=timeout)
            if not_done:
                pending = sorted(futures[future] for future in not_done)
                raise FetchCancelledError(
                    f"Timed out after {timeout}s with {len(pending)} pages pending",
                    url=redact_url(url),
                    details={"pending_pages": ",".join(map(str, pending))},
                )
            for future in done:
                page = futures[future]
                try:
                    pages[page] = future.result()
                    self._metrics.record_page()
                except ArborApiError as e:
                    self._skip_page(page, e, failures)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return pages, failures

    def _skip_page(
        self, page: int, error: ArborApiError, failures: dict[int, ArborApiError]
    ) -> None:
        failures[page] = error
        self._metrics.record_page(skipped=True)
        self._log.warning("page_skipped", page=page, **error.to_dict())

    # ===== Writes =====

    def post(
        self,
        url: str,
        body: Mapping[str, Any] | str,
        method: str = "POST",
    ) -> dict[str, Any]:
        """Send a create or change request. Never cached.

        Args:
            url: Request URL.
            body: JSON body, as a mapping or pre-encoded string.
            method: POST or PATCH.

        Returns:
            The decoded response body.
        """
        method = _write_method(method)
        return self._request(method, url, content=_encode_body(body))

    def cached_post(
        self,
        url: str,
        body: Mapping[str, Any] | str,
        method: str = "POST",
        use_cache: bool | None = None,
    ) -> dict[str, Any]:
        """Send a write whose response may be replayed from the cache.

        Only for idempotent requests such as traffic queries; the key covers
        URL, method and body.

        Args:
            url: Request URL.
            body: JSON body, as a mapping or pre-encoded string.
            method: POST or PATCH.
            use_cache: Cache this request; None uses the client default.

        Returns:
            The decoded response body.
        """
        method = _write_method(method)
        content = _encode_body(body)
        if not self._caching(use_cache):
            return self._request(method, url, content=content)

        item = self._get_item(post_cache_key(self._key_prefix, url, method, content))
        if item.is_hit:
            self._metrics.record_cache_hit()
            return item.get()  # type: ignore[no-any-return]
        self._metrics.record_cache_miss()

        result = self._request(method, url, content=content)
        self._save(item.set(result))
        return result

    # ===== Internals =====

    def _caching(self, use_cache: bool | None) -> bool:
        enabled = self._cache_enabled if use_cache is None else use_cache
        return enabled and self._cache is not None

    def _get_item(self, key: str) -> CacheItem:
        if self._cache is None:
            return CacheItem(key)
        return self._cache.get_item(key)

    def _save(self, item: CacheItem) -> None:
        if self._cache is None:
            return
        self._cache.save(item.expires_after(self._cache_ttl))
        self._metrics.record_cache_write()

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": REST_CONTENT_TYPE,
            REST_TOKEN_HEADER: self._token,
        }

    def _request(
        self,
        method: str,
        url: str,
        params: QueryParams | None = None,
        content: str | None = None,
    ) -> dict[str, Any]:
        try:
            response = self._transport.request(
                method, url, params=params, content=content, headers=self._headers()
            )
            return _read_result(response, redact_url(url))
        except ArborApiError as e:
            self._metrics.record_failure(e.error_class)
            raise

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()

    def __enter__(self) -> "RestClient":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager exit."""
        self.close()


def _read_result(response: httpx.Response, url: str) -> dict[str, Any]:
    """Decode a REST response or raise the matching error.

    Decoding and the empty check come before the status check, so an error
    page without a JSON body is a ``DecodingError`` or ``NoDataError``.
    """
    if not response.content.strip():
        raise NoDataError(url=url)

    try:
        body = response.json()
    except ValueError as e:
        raise DecodingError(f"Invalid JSON response: {e}", url=url) from e

    if not body:
        raise NoDataError(url=url)

    status = response.status_code
    if status >= HTTP_STATUS_REDIRECT_MIN:
        errors = body.get("errors") if isinstance(body, dict) else None
        messages = extract_error_messages(errors) if isinstance(errors, list) else []
        raise HttpStatusError(status, messages, url=url)

    if not isinstance(body, dict):
        raise DecodingError("Expected a JSON object response", url=url)
    return body


def _write_method(method: str) -> str:
    method = method.upper()
    if method not in WRITE_METHODS:
        msg = f"Write method must be POST or PATCH, got '{method}'"
        raise ValueError(msg)
    return method


def _encode_body(body: Mapping[str, Any] | str) -> str:
    if isinstance(body, str):
        return body
    return json.dumps(body)
