"""Traffic query and graph XML documents.

Builds the ``<peakflow version="2.0">`` documents understood by the web
services and SOAP traffic endpoints, and reads their responses.
"""

from collections.abc import Iterable, Mapping, Sequence
from xml.etree.ElementTree import Element, ParseError, SubElement, tostring

import defusedxml.ElementTree as DefusedET
from pydantic import BaseModel, ConfigDict, Field

from arbor_api.errors import DecodingError, GraphError, QueryError
from arbor_api.fetch.constants import PNG_SIGNATURE


XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'
PEAKFLOW_VERSION = "2.0"
ERROR_LINE_TAG = "error-line"

DEFAULT_START = "7 days ago"
DEFAULT_END = "now"
SEARCH_TIMEOUT = 30
SEARCH_LIMIT = 200
GRAPH_WIDTH = 986
GRAPH_HEIGHT = 180


class QueryFilter(BaseModel):
    """A ``<filter>`` of a traffic query.

    ``value`` may be a single instance, a list of instances, or None for a
    filter that only bins (e.g. ``as_origin``).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = Field(min_length=1, description="Filter type, e.g. peer or aspath")
    value: str | int | list[str | int] | None = Field(default=None, description="Instances")
    binby: bool = Field(default=False, description="Break results down by this filter")


def build_query_xml(
    filters: Iterable[QueryFilter | Mapping[str, object]],
    start: str = DEFAULT_START,
    end: str = DEFAULT_END,
    unit: str = "bps",
    classes: Sequence[str] = (),
) -> str:
    """Build a traffic query document.

    Args:
        filters: Query filters; mappings without a ``type`` are skipped.
        start: Start time in the leader's free-form syntax.
        end: End time in the leader's free-form syntax.
        unit: ``bps`` or ``pps``.
        classes: Traffic classes, e.g. ``in``, ``out``, ``total``.

    Returns:
        The query XML document.
    """
    root = _peakflow()
    query = SubElement(root, "query", type="traffic")
    SubElement(query, "time", end_ascii=end, start_ascii=start)
    SubElement(query, "unit", type=unit)
    SubElement(query, "search", timeout=str(SEARCH_TIMEOUT), limit=str(SEARCH_LIMIT))
    for traffic_class in classes:
        SubElement(query, "class").text = traffic_class

    for entry in filters:
        if isinstance(entry, Mapping):
            if not entry.get("type"):
                continue
            entry = QueryFilter.model_validate(dict(entry))
        query.append(_filter_element(entry))

    return _serialize_document(root)


def build_graph_xml(
    title: str,
    ylabel: str,
    detail: bool = False,
    width: int = GRAPH_WIDTH,
    height: int = GRAPH_HEIGHT,
) -> str:
    """Build a graph format document.

    Args:
        title: Graph title.
        ylabel: Y axis label.
        detail: Draw a detail graph.
        width: Width in pixels.
        height: Height in pixels.

    Returns:
        The graph XML document.
    """
    root = _peakflow()
    graph = SubElement(root, "graph", id="graph1")
    SubElement(graph, "title").text = title
    SubElement(graph, "ylabel").text = ylabel
    SubElement(graph, "width").text = str(width)
    SubElement(graph, "height").text = str(height)
    SubElement(graph, "legend").text = "1"
    if detail:
        SubElement(graph, "type").text = "detail"
    return _serialize_document(root)


def parse_traffic_xml(body: bytes | str, url: str | None = None) -> Element:
    """Parse a traffic XML response.

    Args:
        body: Response document.
        url: Request URL for error reporting.

    Returns:
        Root element of the document.

    Raises:
        DecodingError: The body is not well-formed XML.
        QueryError: The document carries ``error-line`` entries.
    """
    try:
        root = DefusedET.fromstring(body)
    except ParseError as e:
        raise DecodingError(f"Invalid traffic XML: {e}", url=url) from e
    _raise_for_error_lines(root, url)
    return root


def read_graph(body: bytes, url: str | None = None) -> bytes:
    """Check a graph response.

    Args:
        body: Response bytes.
        url: Request URL for error reporting.

    Returns:
        The PNG image.

    Raises:
        QueryError: The body is an XML error report.
        GraphError: The body is neither a PNG image nor an error report.
    """
    if body.startswith(PNG_SIGNATURE):
        return body
    try:
        root = DefusedET.fromstring(body)
    except ParseError as e:
        raise GraphError("Graph response is neither a PNG image nor XML", url=url) from e
    _raise_for_error_lines(root, url)
    raise GraphError("Graph response is not a PNG image", url=url)


def error_lines(root: Element) -> list[str]:
    """Text of each ``error-line`` child of a response."""
    return [(line.text or "").strip() for line in root.findall(ERROR_LINE_TAG)]


def serialize_xml(root: Element) -> str:
    """Serialize an element for caching."""
    return tostring(root, encoding="unicode")


def _raise_for_error_lines(root: Element, url: str | None) -> None:
    lines = error_lines(root)
    if lines:
        raise QueryError(lines, url=url)


def _peakflow() -> Element:
    return Element("peakflow", version=PEAKFLOW_VERSION)


def _filter_element(query_filter: QueryFilter) -> Element:
    element = Element("filter", type=query_filter.type)
    if query_filter.binby:
        element.set("binby", "1")
    if query_filter.value is not None:
        value = query_filter.value
        values = value if isinstance(value, list) else [value]
        for instance in values:
            SubElement(element, "instance", value=str(instance))
    return element


def _serialize_document(root: Element) -> str:
    return XML_DECLARATION + serialize_xml(root)
