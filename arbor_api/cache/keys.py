"""Deterministic cache key fingerprints."""

import hashlib
from collections.abc import Mapping
from urllib.parse import urlencode


def cache_key(prefix: str, url: str, args: Mapping[str, object] | None = None) -> str:
    """Fingerprint a read request.

    Arguments are sorted so the same request always maps to the same key
    whatever order the caller built its query mapping in.

    Args:
        prefix: Key namespace, e.g. ``arbor_rest``.
        url: Request URL, including any encoded filter query.
        args: Query arguments.

    Returns:
        Cache key string.
    """
    material = url
    if args:
        material += urlencode(sorted((k, str(v)) for k, v in args.items()))
    return f"{prefix}_{_digest(material)}"


def post_cache_key(prefix: str, url: str, method: str, body: str) -> str:
    """Fingerprint a write request for opt-in replay caching.

    Args:
        prefix: Key namespace.
        url: Request URL.
        method: HTTP method.
        body: Encoded request body.

    Returns:
        Cache key string.
    """
    return f"{prefix}_{_digest(url + method.upper() + body)}"


def text_cache_key(prefix: str, *parts: str) -> str:
    """Fingerprint free-form text such as SOAP query documents.

    Args:
        prefix: Key namespace.
        *parts: Text fragments, concatenated in order.

    Returns:
        Cache key string.
    """
    return f"{prefix}_{_digest(''.join(parts))}"


def _digest(material: str) -> str:
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
