"""Client for the Arbor Sightline REST, web services and SOAP APIs."""

from arbor_api.errors import (
    ArborApiError,
    ArborErrorClass,
    DecodingError,
    ErrorRecord,
    FetchCancelledError,
    GraphError,
    HttpStatusError,
    NoDataError,
    PagingError,
    QueryError,
    SoapFaultError,
    TransportError,
    UnsupportedOperationError,
)
from arbor_api.rest import AggregateResult, Filter, RestClient
from arbor_api.settings import ArborSettings, TrafficProtocol
from arbor_api.traffic import TrafficApi, create_traffic_api


__version__ = "0.1.0"

__all__ = [
    # Clients
    "RestClient",
    "TrafficApi",
    "create_traffic_api",
    # Models
    "AggregateResult",
    "ArborSettings",
    "Filter",
    "TrafficProtocol",
    # Errors
    "ArborApiError",
    "ArborErrorClass",
    "DecodingError",
    "ErrorRecord",
    "FetchCancelledError",
    "GraphError",
    "HttpStatusError",
    "NoDataError",
    "PagingError",
    "QueryError",
    "SoapFaultError",
    "TransportError",
    "UnsupportedOperationError",
]
