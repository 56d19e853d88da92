"""Fake Sightline leader served through httpx.MockTransport."""

from collections.abc import Callable
from threading import Lock
from typing import Any

import httpx

from arbor_api.cache import CacheStore
from arbor_api.fetch.transport import HttpTransport
from arbor_api.rest.client import RestClient


BASE_URL = "https://leader.example.net/api/sp/"
TOKEN = "test-token"

PageHandler = Callable[[httpx.Request], httpx.Response]


def page_body(records: list[Any], last_page: int | None = None) -> dict[str, Any]:
    """Build a REST collection page, with ``links.last`` when given."""
    body: dict[str, Any] = {"data": records}
    if last_page is not None:
        body["links"] = {
            "self": f"{BASE_URL}managed_objects/?page=1",
            "last": f"{BASE_URL}managed_objects/?perPage=25&page={last_page}",
        }
    return body


def records_for(page: int, count: int = 2) -> list[dict[str, Any]]:
    """Distinct records for one page."""
    return [{"id": f"{page}-{i}", "type": "managed_object"} for i in range(count)]


class FakeRestLeader:
    """Serves collection pages by page number and records every request.

    ``pages`` maps a page number to a JSON body, an ``httpx.Response`` or a
    handler; a handler may raise an httpx error to simulate a transport
    failure.
    """

    def __init__(self, pages: dict[int, Any]) -> None:
        self.pages = pages
        self.requests: list[httpx.Request] = []
        self._lock = Lock()

    def handle(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        page = int(request.url.params.get("page", "1"))
        entry = self.pages.get(page)
        if entry is None:
            return httpx.Response(404, json={"errors": [{"title": "Not Found"}]})
        if callable(entry):
            return entry(request)  # type: ignore[no-any-return]
        if isinstance(entry, httpx.Response):
            return entry
        return httpx.Response(200, json=entry)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def requested_pages(self) -> list[int]:
        with self._lock:
            return sorted(int(r.url.params.get("page", "1")) for r in self.requests)


def make_rest_client(
    transport: httpx.BaseTransport,
    cache: CacheStore | None = None,
    cache_enabled: bool = False,
    max_page_workers: int = 4,
) -> RestClient:
    """Build a RestClient against the fake leader."""
    return RestClient(
        base_url=BASE_URL,
        token=TOKEN,
        transport=HttpTransport(transport=transport),
        cache=cache,
        cache_enabled=cache_enabled,
        max_page_workers=max_page_workers,
    )
