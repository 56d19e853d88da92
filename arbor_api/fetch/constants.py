"""HTTP constants for the fetch layer.

Centralizes all HTTP-related constants to avoid duplication across modules.
"""

# HTTP Status Code Ranges
HTTP_STATUS_REDIRECT_MIN = 300
HTTP_STATUS_BAD_REQUEST = 400

# REST request headers
REST_CONTENT_TYPE = "application/vnd.api+json"
REST_TOKEN_HEADER = "X-Arbux-APIToken"

# SOAP 1.2 content type
SOAP_CONTENT_TYPE = "application/soap+xml; charset=utf-8"

# Query parameter names
PARAM_PER_PAGE = "perPage"
PARAM_PAGE = "page"
PARAM_CONFIG = "config"
PARAM_API_KEY = "api_key"
CONFIG_COMMITTED = "committed"

# Paging defaults
DEFAULT_PER_PAGE = 50
DEFAULT_MAX_PAGE_WORKERS = 8

# Cache defaults (seconds)
DEFAULT_CACHE_TTL = 900

# PNG file signature
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
