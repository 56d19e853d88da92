"""Blocking HTTP transport shared by the REST, web services and SOAP clients."""

import time
from types import TracebackType
from urllib.parse import urlencode

import httpx
import structlog

from arbor_api.errors import DecodingError, TransportError
from arbor_api.fetch.metrics import FetchMetrics
from arbor_api.fetch.redact import redact_headers, redact_params, redact_url


logger = structlog.get_logger()

QueryParams = dict[str, str | int]


def merge_query(url: str, params: QueryParams | None) -> str:
    """Append query arguments to a URL, keeping the query it already has."""
    if not params:
        return url
    base, _, fragment = url.partition("#")
    separator = "&" if "?" in base else "?"
    if base.endswith(("?", "&")):
        separator = ""
    merged = f"{base}{separator}{urlencode(params)}"
    return f"{merged}#{fragment}" if fragment else merged


class HttpTransport:
    """Synchronous request/response primitive over httpx.

    Surfaces connection failures as ``TransportError`` and content decoding
    failures as ``DecodingError``. Status codes are returned untouched; the
    protocol clients decide what a failing status means. Nothing is retried.
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        verify_tls: bool = True,
        auth: httpx.Auth | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout_seconds: Per-request timeout.
            verify_tls: Whether to verify server certificates.
            auth: Optional httpx authentication (digest for SOAP).
            transport: Optional httpx transport, used to inject fakes in tests.
        """
        self._client = httpx.Client(
            timeout=timeout_seconds,
            verify=verify_tls,
            auth=auth,
            transport=transport,
            follow_redirects=True,
        )
        self._metrics = FetchMetrics.get_instance()
        self._log = logger.bind(component="transport")

    def request(
        self,
        method: str,
        url: str,
        params: QueryParams | None = None,
        content: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request and read the full response body.

        Args:
            method: HTTP method (GET, POST, PATCH).
            url: Absolute request URL, may already carry a query string.
            params: Query arguments appended to the URL.
            content: Raw request body.
            headers: Request headers.

        Returns:
            The httpx response with its body loaded.

        Raises:
            TransportError: The request could not be completed.
            DecodingError: The response content encoding was invalid.
        """
        headers = headers or {}
        log = self._log.bind(
            method=method,
            url=redact_url(url),
            params=redact_params(params),
        )
        log.debug("request_started", headers=redact_headers(headers))

        start_ns = time.perf_counter_ns()
        try:
            response = self._client.request(
                method,
                merge_query(url, params),
                content=content,
                headers=headers,
            )
        except httpx.DecodingError as e:
            log.warning("request_decoding_failed", error=str(e))
            raise DecodingError(f"Could not decode response: {e}", url=redact_url(url)) from e
        except httpx.TimeoutException as e:
            log.warning("request_timeout", error=str(e))
            raise TransportError(f"Request timed out: {e}", url=redact_url(url)) from e
        except httpx.RequestError as e:
            log.warning("request_failed", error=str(e))
            raise TransportError(f"Connection failed: {e}", url=redact_url(url)) from e

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_request(response.status_code, duration_ms)
        log.debug(
            "request_complete",
            status_code=response.status_code,
            bytes=len(response.content),
            duration_ms=round(duration_ms, 2),
        )
        return response

    def close(self) -> None:
        """Close the underlying connection pool."""
        self._client.close()

    def __enter__(self) -> "HttpTransport":
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
