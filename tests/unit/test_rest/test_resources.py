"""Unit tests for the REST resource helpers."""

import json
from collections.abc import Generator
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest

from arbor_api.cache import MemoryCacheStore
from arbor_api.errors import HttpStatusError
from arbor_api.fetch.metrics import FetchMetrics
from arbor_api.rest.filters import Filter
from arbor_api.rest.resources import (
    ManagedObjects,
    Mitigations,
    MitigationTemplates,
    NotificationGroups,
    TrafficQueries,
    build_traffic_query,
    traffic_filter,
)
from tests.helpers.leader import make_rest_client


START = datetime(2024, 3, 1, tzinfo=UTC)
END = datetime(2024, 3, 8, tzinfo=UTC)


@pytest.fixture(autouse=True)
def reset_metrics() -> Generator[None, None, None]:
    """Reset fetch metrics around each test."""
    FetchMetrics.reset()
    yield
    FetchMetrics.reset()


class FakeApi:
    """Routes (method, path) to canned JSON bodies and records requests."""

    def __init__(self, routes: dict[tuple[str, str], httpx.Response]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"errors": [{"title": "Not Found"}]})
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def sent_json(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[index].content)  # type: ignore[no-any-return]


CREATED = httpx.Response(201, json={"data": {"id": "100"}})


class TestManagedObjects:
    """Tests for managed object helpers."""

    def test_create_turns_off_host_detection_by_default(self) -> None:
        """Without relationships the shared host detection setting 0 is used."""
        api = FakeApi({("POST", "/api/sp/managed_objects/"): CREATED})
        objects = ManagedObjects(make_rest_client(api.transport))

        objects.create("cust-1", "customer", ["core"], "cidr_blocks", "192.0.2.0/24")

        data = api.sent_json()["data"]
        assert data["attributes"] == {
            "name": "cust-1",
            "family": "customer",
            "tags": ["core"],
            "match": "192.0.2.0/24",
            "match_type": "cidr_blocks",
        }
        assert data["relationships"] == {
            "shared_host_detection_settings": {
                "data": {"type": "shared_host_detection_setting", "id": "0"},
            },
        }

    def test_create_merges_extra_attributes(self) -> None:
        """Extra attributes are added to and may override the required ones."""
        api = FakeApi({("POST", "/api/sp/managed_objects/"): CREATED})
        objects = ManagedObjects(make_rest_client(api.transport))

        objects.create(
            "peer-1",
            "peer",
            [],
            "asn",
            "64500",
            relationships={},
            extra_attributes={"description": "transit", "tags": ["edge"]},
        )

        data = api.sent_json()["data"]
        assert data["attributes"]["description"] == "transit"
        assert data["attributes"]["tags"] == ["edge"]
        assert data["relationships"] == {}

    def test_change_patches_object(self) -> None:
        """change() PATCHes the object with only the given parts."""
        api = FakeApi({("PATCH", "/api/sp/managed_objects/42"): CREATED})
        objects = ManagedObjects(make_rest_client(api.transport))

        objects.change("42", {"name": "renamed"})

        assert api.requests[0].method == "PATCH"
        assert api.sent_json() == {"data": {"attributes": {"name": "renamed"}}}

    def test_find_caches_under_its_own_prefix(self) -> None:
        """Managed object lookups are cached with their own key prefix."""
        page = httpx.Response(200, json={"data": [{"id": "1"}]})
        api = FakeApi({("GET", "/api/sp/managed_objects/"): page})
        cache = MemoryCacheStore()
        objects = ManagedObjects(make_rest_client(api.transport, cache, cache_enabled=True))

        records = objects.find()
        objects.find()

        assert records == [{"id": "1"}]
        assert len(api.requests) == 1
        assert objects.client.key_prefix == "arbor_rest_managed_object"


class TestMitigations:
    """Tests for the mitigations collection."""

    def test_find_reads_mitigations_with_filter(self) -> None:
        """Mitigations are found by filter on their own collection."""
        body = {"data": [{"id": "7", "type": "mitigation"}], "links": {}}
        api = FakeApi({("GET", "/api/sp/mitigations/"): httpx.Response(200, json=body)})
        mitigations = Mitigations(make_rest_client(api.transport))

        records = mitigations.find(filters=Filter.attribute("ongoing", "true"))

        assert records == [{"id": "7", "type": "mitigation"}]
        assert api.requests[0].url.params["filter"] == "a/ongoing.eq.true"

    def test_results_are_cached(self) -> None:
        """A repeated lookup is served from the cache."""
        body = {"data": {"id": "7", "type": "mitigation"}}
        api = FakeApi({("GET", "/api/sp/mitigations/7"): httpx.Response(200, json=body)})
        client = make_rest_client(api.transport, cache=MemoryCacheStore(), cache_enabled=True)
        mitigations = Mitigations(client)

        mitigations.get("7")
        assert mitigations.get("7") == body

        assert len(api.requests) == 1


class TestMitigationTemplates:
    """Tests for mitigation template helpers."""

    SOURCE = {
        "data": {
            "id": "7",
            "attributes": {
                "name": "base",
                "ip_version": 4,
                "subtype": "tms",
                "subobject": {"protection_prefixes": ["192.0.2.0/24"]},
            },
            "relationships": {"mitigation_template_group": {"data": {"id": "1"}}},
        }
    }

    def test_copy_creates_from_existing_template(self) -> None:
        """copy() reuses the source template's settings under a new name."""
        api = FakeApi(
            {
                ("GET", "/api/sp/mitigation_templates/7"): httpx.Response(200, json=self.SOURCE),
                ("POST", "/api/sp/mitigation_templates/"): CREATED,
            }
        )
        templates = MitigationTemplates(make_rest_client(api.transport))

        templates.copy("7", "copy", "copied template")

        data = api.sent_json()["data"]
        assert data["type"] == "mitigation_template"
        assert data["attributes"] == {
            "name": "copy",
            "ip_version": 4,
            "description": "copied template",
            "subtype": "tms",
            "subobject": {"protection_prefixes": ["192.0.2.0/24"]},
        }
        assert data["relationships"] == self.SOURCE["data"]["relationships"]

    def test_copy_of_missing_template_creates_nothing(self) -> None:
        """A failed lookup raises before anything is posted."""
        api = FakeApi({("POST", "/api/sp/mitigation_templates/"): CREATED})
        templates = MitigationTemplates(make_rest_client(api.transport))

        with pytest.raises(HttpStatusError):
            templates.copy("404", "copy", "nope")

        assert [r.method for r in api.requests] == ["GET"]


class TestNotificationGroups:
    """Tests for notification group helpers."""

    def test_create_joins_email_addresses(self) -> None:
        """Email addresses are sent as one comma separated string."""
        api = FakeApi({("POST", "/api/sp/notification_groups/"): CREATED})
        groups = NotificationGroups(make_rest_client(api.transport))

        groups.create("noc", ["noc@example.net", "oncall@example.net"])

        attributes = api.sent_json()["data"]["attributes"]
        assert attributes == {
            "name": "noc",
            "smtp_email_addresses": "noc@example.net,oncall@example.net",
        }

    def test_create_without_addresses(self) -> None:
        """Without addresses only the name is sent."""
        api = FakeApi({("POST", "/api/sp/notification_groups/"): CREATED})
        groups = NotificationGroups(make_rest_client(api.transport))

        groups.create("noc")

        assert api.sent_json()["data"]["attributes"] == {"name": "noc"}


class TestTrafficQueries:
    """Tests for traffic query helpers."""

    def test_build_traffic_query(self) -> None:
        """The query document carries times, unit, limit and filters."""
        query = build_traffic_query([traffic_filter("AS_Path", ["_64500_"], True)], START, END)

        assert query == {
            "data": {
                "attributes": {
                    "query_start_time": "2024-03-01T00:00:00+00:00",
                    "query_end_time": "2024-03-08T00:00:00+00:00",
                    "unit": "bps",
                    "limit": 100,
                    "traffic_classes": ["in", "out"],
                    "filters": [{"facet": "AS_Path", "values": ["_64500_"], "groupby": True}],
                }
            }
        }

    def test_default_window_is_seven_days(self) -> None:
        """Without a start the query covers the seven days before end."""
        query = build_traffic_query([], end=END)

        assert query["data"]["attributes"]["query_start_time"] == "2024-03-01T00:00:00+00:00"

    def test_asn_intf_traffic_sorts_interfaces(self) -> None:
        """Interface IDs are sent in numeric order."""
        api = FakeApi({("POST", "/api/sp/traffic_queries/"): CREATED})
        queries = TrafficQueries(make_rest_client(api.transport))

        queries.asn_intf_traffic(64500, [30, 4, 12], START, END)

        filters = api.sent_json()["data"]["attributes"]["filters"]
        assert filters == [
            {"facet": "Interface", "values": [4, 12, 30], "groupby": True},
            {"facet": "AS_Path", "values": ["_64500_"], "groupby": False},
        ]

    def test_intf_asn_traffic_groups_by_origin(self) -> None:
        """Interface traffic is broken down by origin ASN."""
        api = FakeApi({("POST", "/api/sp/traffic_queries/"): CREATED})
        queries = TrafficQueries(make_rest_client(api.transport))

        queries.intf_asn_traffic(9, START, END)

        filters = api.sent_json()["data"]["attributes"]["filters"]
        assert filters[1] == {"facet": "AS_Origin", "values": [], "groupby": True}

    def test_identical_queries_are_replayed_from_cache(self) -> None:
        """Traffic queries are cached by their full body."""
        api = FakeApi({("POST", "/api/sp/traffic_queries/"): CREATED})
        cache = MemoryCacheStore()
        queries = TrafficQueries(make_rest_client(api.transport, cache, cache_enabled=True))

        queries.asn_traffic(64500, START, END)
        queries.asn_traffic(64500, START, END)

        assert len(api.requests) == 1
