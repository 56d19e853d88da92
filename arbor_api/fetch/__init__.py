"""HTTP fetch layer shared by all protocol clients.

This module provides:
- A blocking httpx transport with typed transport/decoding failures
- Header, parameter and URL redaction for logging
- Thread-safe metrics for requests, cache activity and skipped pages
"""

from arbor_api.fetch.constants import (
    DEFAULT_CACHE_TTL,
    DEFAULT_MAX_PAGE_WORKERS,
    DEFAULT_PER_PAGE,
    HTTP_STATUS_REDIRECT_MIN,
    PNG_SIGNATURE,
    REST_CONTENT_TYPE,
    REST_TOKEN_HEADER,
)
from arbor_api.fetch.metrics import FetchMetrics
from arbor_api.fetch.redact import redact_headers, redact_params, redact_url
from arbor_api.fetch.transport import HttpTransport, QueryParams


__all__ = [
    # Transport
    "HttpTransport",
    "QueryParams",
    # Constants
    "DEFAULT_CACHE_TTL",
    "DEFAULT_MAX_PAGE_WORKERS",
    "DEFAULT_PER_PAGE",
    "HTTP_STATUS_REDIRECT_MIN",
    "PNG_SIGNATURE",
    "REST_CONTENT_TYPE",
    "REST_TOKEN_HEADER",
    # Metrics
    "FetchMetrics",
    # Redaction
    "redact_headers",
    "redact_params",
    "redact_url",
]
