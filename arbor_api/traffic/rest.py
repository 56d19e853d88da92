"""Traffic queries over the REST API."""

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any
from xml.etree.ElementTree import Element

from arbor_api.errors import UnsupportedOperationError
from arbor_api.rest.client import RestClient
from arbor_api.rest.resources import TrafficQueries, build_traffic_query


class RestTrafficApi:
    """Traffic client backed by REST traffic queries.

    REST returns JSON traffic data only; the XML and graph operations of
    the other protocols raise ``UnsupportedOperationError``.
    """

    def __init__(self, client: RestClient) -> None:
        """Initialize the client.

        Args:
            client: REST client to post traffic queries with.
        """
        self._queries = TrafficQueries(client)

    @property
    def queries(self) -> TrafficQueries:
        """Get the traffic query resource."""
        return self._queries

    def get_traffic_xml(self, query_xml: str, use_cache: bool | None = None) -> Element:
        """Not offered over REST."""
        raise UnsupportedOperationError("XML traffic queries are not available over REST")

    def get_traffic_graph(
        self, query_xml: str, graph_xml: str, use_cache: bool | None = None
    ) -> bytes:
        """Not offered over REST."""
        raise UnsupportedOperationError("Traffic graphs are not available over REST")

    def get_traffic_data(  # noqa: PLR0913
        self,
        filters: Sequence[Mapping[str, Any]],
        start: datetime | None = None,
        end: datetime | None = None,
        unit: str = "bps",
        limit: int = 100,
        traffic_classes: Sequence[str] = ("in", "out"),
        use_cache: bool | None = None,
    ) -> dict[str, Any]:
        """Run a REST traffic query.

        Args:
            filters: Filter entries, see ``traffic_filter``.
            start: Query start; defaults to seven days before ``end``.
            end: Query end; defaults to now.
            unit: ``bps`` or ``pps``.
            limit: Maximum rows per group.
            traffic_classes: Traffic classes to report.
            use_cache: Replay a cached response; None uses the client default.

        Returns:
            The traffic query response.
        """
        query = build_traffic_query(filters, start, end, unit, limit, traffic_classes)
        return self._queries.run(query, use_cache)

    def close(self) -> None:
        """Close the underlying client."""
        self._queries.client.close()
