"""Traffic queries over the web services, SOAP and REST APIs."""

from arbor_api.traffic.base import CachingTrafficApi, TrafficApi
from arbor_api.traffic.factory import create_traffic_api
from arbor_api.traffic.helpers import (
    get_asn_intf_traffic_graph,
    get_asn_intf_traffic_xml,
    get_asn_traffic_graph,
    get_asn_traffic_xml,
    get_intf_asn_traffic_graph,
    get_intf_asn_traffic_xml,
    get_intf_traffic_graph,
    get_peer_traffic_graph,
)
from arbor_api.traffic.rest import RestTrafficApi
from arbor_api.traffic.soap import SoapTrafficApi
from arbor_api.traffic.ws import WebServicesTrafficApi
from arbor_api.traffic.xml import (
    QueryFilter,
    build_graph_xml,
    build_query_xml,
    error_lines,
    parse_traffic_xml,
    read_graph,
)


__all__ = [
    # Clients
    "CachingTrafficApi",
    "RestTrafficApi",
    "SoapTrafficApi",
    "TrafficApi",
    "WebServicesTrafficApi",
    "create_traffic_api",
    # XML documents
    "QueryFilter",
    "build_graph_xml",
    "build_query_xml",
    "error_lines",
    "parse_traffic_xml",
    "read_graph",
    # Helpers
    "get_asn_intf_traffic_graph",
    "get_asn_intf_traffic_xml",
    "get_asn_traffic_graph",
    "get_asn_traffic_xml",
    "get_intf_asn_traffic_graph",
    "get_intf_asn_traffic_xml",
    "get_intf_traffic_graph",
    "get_peer_traffic_graph",
]
