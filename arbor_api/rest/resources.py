"""Typed helpers for the REST collections the client works with."""

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, ClassVar

from arbor_api.fetch.constants import DEFAULT_PER_PAGE
from arbor_api.rest.client import RestClient
from arbor_api.rest.filters import FilterSpec


JsonObject = dict[str, Any]

DEFAULT_QUERY_WINDOW = timedelta(days=7)


class Resource:
    """One REST collection, e.g. ``managed_objects``.

    Wraps a ``RestClient`` that shares the caller's transport and cache but
    keys its cache entries under the resource's own prefix.
    """

    endpoint: ClassVar[str]
    key_prefix: ClassVar[str] = "arbor_rest"

    def __init__(self, client: RestClient) -> None:
        """Initialize the resource.

        Args:
            client: REST client to send requests with.
        """
        self._client = client.with_prefix(self.key_prefix)

    @property
    def client(self) -> RestClient:
        """Get the prefixed client."""
        return self._client

    def find(
        self,
        filters: FilterSpec | None = None,
        per_page: int = DEFAULT_PER_PAGE,
        commit: bool = False,
        use_cache: bool | None = None,
    ) -> list[Any]:
        """Find records of this collection across all pages."""
        return self._client.find(self.endpoint, filters, per_page, commit, use_cache)

    def get(self, object_id: str, use_cache: bool | None = None) -> JsonObject:
        """Get one object by ID."""
        return self._client.get_by_id(self.endpoint, object_id, use_cache)

    def change(
        self,
        object_id: str,
        attributes: Mapping[str, Any],
        relationships: Mapping[str, Any] | None = None,
    ) -> JsonObject:
        """PATCH an object's attributes and, optionally, its relationships."""
        data: JsonObject = {"attributes": dict(attributes)}
        if relationships is not None:
            data["relationships"] = dict(relationships)
        return self._client.post(
            self._client.url_for(self.endpoint, object_id), {"data": data}, method="PATCH"
        )

    def _create(self, data: JsonObject) -> JsonObject:
        return self._client.post(self._client.url_for(self.endpoint), {"data": data})


class ManagedObjects(Resource):
    """Managed objects (customers, peers, profiled networks)."""

    endpoint = "managed_objects"
    key_prefix = "arbor_rest_managed_object"

    def create(  # noqa: PLR0913
        self,
        name: str,
        family: str,
        tags: Sequence[str],
        match_type: str,
        match: str,
        relationships: Mapping[str, Any] | None = None,
        extra_attributes: Mapping[str, Any] | None = None,
    ) -> JsonObject:
        """Create a managed object.

        Host detection is turned off (shared host detection setting ``0``)
        unless ``relationships`` is given.

        Args:
            name: Object name.
            family: Object family, e.g. ``customer`` or ``peer``.
            tags: Tags to attach.
            match_type: How ``match`` is interpreted, e.g. ``cidr_blocks``.
            match: Match value.
            relationships: Relationships replacing the default.
            extra_attributes: Attributes merged over the required ones.

        Returns:
            The created object.
        """
        if relationships is None:
            relationships = {
                "shared_host_detection_settings": {
                    "data": {"type": "shared_host_detection_setting", "id": "0"},
                },
            }
        attributes: JsonObject = {
            "name": name,
            "family": family,
            "tags": list(tags),
            "match": match,
            "match_type": match_type,
        }
        attributes.update(extra_attributes or {})
        return self._create({"attributes": attributes, "relationships": dict(relationships)})


class Mitigations(Resource):
    """Ongoing and past mitigations. Read only."""

    endpoint = "mitigations"
    key_prefix = "arbor_rest_mitigation"


class MitigationTemplates(Resource):
    """Mitigation templates."""

    endpoint = "mitigation_templates"

    def create(  # noqa: PLR0913
        self,
        name: str,
        ip_version: str | int,
        description: str,
        countermeasures: Mapping[str, Any],
        relationships: Mapping[str, Any] | None = None,
        subtype: str = "tms",
    ) -> JsonObject:
        """Create a mitigation template.

        Args:
            name: Template name.
            ip_version: IP version, 4 or 6.
            description: Template description.
            countermeasures: Countermeasure settings (``subobject``).
            relationships: Template relationships.
            subtype: Mitigation subtype.

        Returns:
            The created template.
        """
        attributes = {
            "name": name,
            "ip_version": ip_version,
            "description": description,
            "subtype": subtype,
            "subobject": dict(countermeasures),
        }
        return self._create(
            {
                "attributes": attributes,
                "relationships": dict(relationships or {}),
                "type": "mitigation_template",
            }
        )

    def copy(self, template_id: str, name: str, description: str) -> JsonObject:
        """Create a new template from an existing one's settings.

        Args:
            template_id: ID of the template to copy.
            name: Name of the new template.
            description: Description of the new template.

        Returns:
            The created template.

        Raises:
            ArborApiError: Fetching the source template failed; nothing is created.
        """
        source = self.get(template_id)["data"]
        attributes = source["attributes"]
        return self.create(
            name,
            attributes["ip_version"],
            description,
            attributes["subobject"],
            source.get("relationships"),
            attributes["subtype"],
        )


class NotificationGroups(Resource):
    """Notification groups."""

    endpoint = "notification_groups"
    key_prefix = "arbor_rest_ng"

    def create(
        self,
        name: str,
        email_addresses: Sequence[str] | None = None,
        extra_attributes: Mapping[str, Any] | None = None,
    ) -> JsonObject:
        """Create a notification group; addresses are sent comma-joined."""
        attributes: JsonObject = {"name": name}
        if email_addresses is not None:
            attributes["smtp_email_addresses"] = ",".join(email_addresses)
        attributes.update(extra_attributes or {})
        return self._create({"attributes": attributes})


def traffic_filter(facet: str, values: Sequence[str | int], groupby: bool) -> JsonObject:
    """Build one traffic query filter entry."""
    return {"facet": facet, "values": list(values), "groupby": groupby}


def build_traffic_query(  # noqa: PLR0913
    filters: Sequence[Mapping[str, Any]],
    start: datetime | None = None,
    end: datetime | None = None,
    unit: str = "bps",
    limit: int = 100,
    traffic_classes: Sequence[str] = ("in", "out"),
) -> JsonObject:
    """Build a traffic query document.

    Args:
        filters: Filter entries, see ``traffic_filter``.
        start: Query start; defaults to seven days before ``end``.
        end: Query end; defaults to now (UTC).
        unit: ``bps`` or ``pps``.
        limit: Maximum rows per group.
        traffic_classes: Traffic classes to report.

    Returns:
        JSON-ready traffic query.
    """
    end = end or datetime.now(UTC)
    start = start or end - DEFAULT_QUERY_WINDOW
    return {
        "data": {
            "attributes": {
                "query_start_time": start.isoformat(timespec="seconds"),
                "query_end_time": end.isoformat(timespec="seconds"),
                "unit": unit,
                "limit": limit,
                "traffic_classes": list(traffic_classes),
                "filters": [dict(f) for f in filters],
            },
        },
    }


def as_path_value(asn: int) -> str:
    """AS path expression matching paths through an ASN."""
    return f"_{asn}_"


class TrafficQueries(Resource):
    """Traffic queries. Results are replayable from the cache."""

    endpoint = "traffic_queries"
    key_prefix = "arbor_rest_tquery"

    def run(
        self, query: Mapping[str, Any], use_cache: bool | None = None
    ) -> JsonObject:
        """Post a traffic query document."""
        return self._client.cached_post(
            self._client.url_for(self.endpoint), query, use_cache=use_cache
        )

    def asn_traffic(
        self,
        asn: int,
        start: datetime | None = None,
        end: datetime | None = None,
        use_cache: bool | None = None,
    ) -> JsonObject:
        """Traffic through an ASN, grouped by AS path."""
        filters = [traffic_filter("AS_Path", [as_path_value(asn)], groupby=True)]
        return self.run(build_traffic_query(filters, start, end), use_cache)

    def asn_intf_traffic(
        self,
        asn: int,
        interfaces: Sequence[int],
        start: datetime | None = None,
        end: datetime | None = None,
        use_cache: bool | None = None,
    ) -> JsonObject:
        """Traffic through an ASN on the given interfaces, grouped by interface."""
        filters = [
            traffic_filter("Interface", sorted(interfaces), groupby=True),
            traffic_filter("AS_Path", [as_path_value(asn)], groupby=False),
        ]
        return self.run(build_traffic_query(filters, start, end), use_cache)

    def intf_asn_traffic(
        self,
        interface_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        use_cache: bool | None = None,
    ) -> JsonObject:
        """Traffic on one interface, grouped by origin ASN."""
        filters = [
            traffic_filter("Interface", [interface_id], groupby=False),
            traffic_filter("AS_Origin", [], groupby=True),
        ]
        return self.run(build_traffic_query(filters, start, end), use_cache)
