"""Sightline REST API client.

This module provides:
- Filter encoding for collection queries
- Single page and paginated fetching with aggregate caching
- POST/PATCH writes and cached traffic queries
- Resource helpers for managed objects, mitigations, mitigation
  templates, notification groups and traffic queries
"""

from arbor_api.rest.client import RestClient, extract_error_messages
from arbor_api.rest.filters import (
    Filter,
    FilterKind,
    FilterOperator,
    FilterSpec,
    encode_filters,
)
from arbor_api.rest.models import AggregateResult
from arbor_api.rest.paging import extract_records, parse_total_pages
from arbor_api.rest.resources import (
    ManagedObjects,
    Mitigations,
    MitigationTemplates,
    NotificationGroups,
    Resource,
    TrafficQueries,
    build_traffic_query,
    traffic_filter,
)
from arbor_api.rest.state_machine import (
    PagedFetchState,
    PagedFetchStateMachine,
    PagedFetchTransitionError,
)


__all__ = [
    # Client
    "RestClient",
    "extract_error_messages",
    # Filters
    "Filter",
    "FilterKind",
    "FilterOperator",
    "FilterSpec",
    "encode_filters",
    # Results
    "AggregateResult",
    "extract_records",
    "parse_total_pages",
    # State machine
    "PagedFetchState",
    "PagedFetchStateMachine",
    "PagedFetchTransitionError",
    # Resources
    "ManagedObjects",
    "Mitigations",
    "MitigationTemplates",
    "NotificationGroups",
    "Resource",
    "TrafficQueries",
    "build_traffic_query",
    "traffic_filter",
]
