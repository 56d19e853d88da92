"""Ready-made traffic queries for peers, interfaces and ASNs.

Each helper builds the query (and graph) documents and runs them on any
``TrafficApi``. Interface IDs are sorted numerically so equivalent queries
share a cache entry.
"""

from collections.abc import Sequence
from xml.etree.ElementTree import Element

from arbor_api.traffic.base import TrafficApi
from arbor_api.traffic.xml import (
    DEFAULT_END,
    DEFAULT_START,
    QueryFilter,
    build_graph_xml,
    build_query_xml,
)


WIDE_GRAPH_HEIGHT = 270
IN_OUT_LABEL = "bps (-In / +Out)"


def _aspath(asn: int) -> str:
    return f"_{asn}_"


def get_peer_traffic_graph(
    api: TrafficApi, peer_id: int, title: str, start: str = DEFAULT_START, end: str = DEFAULT_END
) -> bytes:
    """Detail graph of in, out and total traffic of a peer managed object."""
    filters = [QueryFilter(type="peer", value=peer_id)]
    query_xml = build_query_xml(filters, start, end, "bps", ["in", "out", "total"])
    return api.get_traffic_graph(query_xml, build_graph_xml(title, "bps", detail=True))


def get_asn_traffic_graph(
    api: TrafficApi, asn: int, start: str = DEFAULT_START, end: str = DEFAULT_END
) -> bytes:
    """Graph of traffic exchanged with an ASN."""
    filters = [QueryFilter(type="aspath", value=_aspath(asn), binby=True)]
    query_xml = build_query_xml(filters, start, end)
    graph_xml = build_graph_xml(
        f"Traffic with AS{asn}", "bps [+ to / - from ]", height=WIDE_GRAPH_HEIGHT
    )
    return api.get_traffic_graph(query_xml, graph_xml)


def get_asn_traffic_xml(
    api: TrafficApi, asn: int, start: str = DEFAULT_START, end: str = DEFAULT_END
) -> Element:
    """Traffic exchanged with an ASN."""
    filters = [QueryFilter(type="aspath", value=_aspath(asn), binby=True)]
    query_xml = build_query_xml(filters, start, end)
    return api.get_traffic_xml(query_xml)


def get_intf_traffic_graph(
    api: TrafficApi,
    interface_id: int,
    title: str,
    start: str = DEFAULT_START,
    end: str = DEFAULT_END,
) -> bytes:
    """Detail graph of an interface, including dropped and backbone traffic."""
    filters = [QueryFilter(type="interface", value=interface_id)]
    query_xml = build_query_xml(
        filters, start, end, "bps", ["in", "out", "total", "dropped", "backbone"]
    )
    return api.get_traffic_graph(query_xml, build_graph_xml(title, "bps", detail=True))


def get_asn_intf_traffic_graph(  # noqa: PLR0913
    api: TrafficApi,
    asn: int,
    interface_ids: Sequence[int],
    title: str,
    start: str = DEFAULT_START,
    end: str = DEFAULT_END,
) -> bytes:
    """Graph of an ASN's traffic over a set of interfaces, split per interface."""
    filters = [
        QueryFilter(type="interface", value=sorted(interface_ids), binby=True),
        QueryFilter(type="aspath", value=_aspath(asn)),
    ]
    query_xml = build_query_xml(filters, start, end)
    graph_xml = build_graph_xml(title, IN_OUT_LABEL, height=WIDE_GRAPH_HEIGHT)
    return api.get_traffic_graph(query_xml, graph_xml)


def get_asn_intf_traffic_xml(
    api: TrafficApi,
    asn: int,
    interface_ids: Sequence[int],
    start: str = DEFAULT_START,
    end: str = DEFAULT_END,
) -> Element:
    """An ASN's traffic over a set of interfaces, split per interface and path."""
    filters = [
        QueryFilter(type="interface", value=sorted(interface_ids), binby=True),
        QueryFilter(type="aspath", value=_aspath(asn), binby=True),
    ]
    return api.get_traffic_xml(build_query_xml(filters, start, end))


def get_intf_asn_traffic_graph(
    api: TrafficApi,
    interface_id: int,
    title: str,
    start: str = DEFAULT_START,
    end: str = DEFAULT_END,
) -> bytes:
    """Graph of an interface's traffic split by origin ASN."""
    filters = [
        QueryFilter(type="interface", value=interface_id),
        QueryFilter(type="as_origin", binby=True),
    ]
    query_xml = build_query_xml(filters, start, end)
    graph_xml = build_graph_xml(title, IN_OUT_LABEL, height=WIDE_GRAPH_HEIGHT)
    return api.get_traffic_graph(query_xml, graph_xml)


def get_intf_asn_traffic_xml(
    api: TrafficApi, interface_id: int, start: str = DEFAULT_START, end: str = DEFAULT_END
) -> Element:
    """An interface's traffic split by origin ASN."""
    filters = [
        QueryFilter(type="interface", value=interface_id),
        QueryFilter(type="as_origin", binby=True),
    ]
    return api.get_traffic_xml(build_query_xml(filters, start, end))
