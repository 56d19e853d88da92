"""Pagination metadata parsing and record extraction."""

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import parse_qs, urlsplit

from arbor_api.errors import PagingError
from arbor_api.fetch.constants import PARAM_PAGE


def parse_total_pages(first_page: Mapping[str, Any]) -> int:
    """Read the total page count from a first page response.

    The count is the ``page`` query parameter of the ``links.last`` URL. A
    response without that link (or with a null one) is a single page.

    Args:
        first_page: Decoded body of page 1.

    Returns:
        Total number of pages, at least 1.

    Raises:
        PagingError: If ``links.last`` is present but unparsable.
    """
    links = first_page.get("links")
    if not isinstance(links, Mapping):
        return 1
    last = links.get("last")
    if last is None:
        return 1

    if not isinstance(last, str) or not last:
        raise PagingError("links.last is not a URL", last_link=last)

    values = parse_qs(urlsplit(last).query).get(PARAM_PAGE)
    if not values:
        raise PagingError("links.last has no page parameter", last_link=last)

    try:
        total = int(values[-1])
    except ValueError as e:
        msg = f"links.last page is not an integer: {values[-1]!r}"
        raise PagingError(msg, last_link=last) from e

    if total < 1:
        raise PagingError(f"links.last page must be positive, got {total}", last_link=last)
    return total


def extract_records(pages: Iterable[Mapping[str, Any]]) -> list[Any]:
    """Flatten page responses into one ordered record list.

    Records keep page order, then their order within the page. Pages
    without a ``data`` list contribute nothing.

    Args:
        pages: Page responses in page order.

    Returns:
        All records; empty when there are no pages.
    """
    records: list[Any] = []
    for page in pages:
        data = page.get("data")
        if isinstance(data, list):
            records.extend(data)
    return records
