"""Unit tests for the SOAP traffic client."""

import base64
from collections.abc import Generator
from pathlib import Path
from xml.etree.ElementTree import Element, SubElement, tostring

import defusedxml.ElementTree as DefusedET
import httpx
import pytest

from arbor_api.cache import MemoryCacheStore
from arbor_api.errors import (
    DecodingError,
    HttpStatusError,
    NoDataError,
    QueryError,
    SoapFaultError,
)
from arbor_api.fetch.constants import PNG_SIGNATURE, SOAP_CONTENT_TYPE
from arbor_api.fetch.metrics import FetchMetrics
from arbor_api.fetch.transport import HttpTransport
from arbor_api.settings import ArborSettings
from arbor_api.traffic.soap import (
    SOAP_ENV_NS,
    SoapTrafficApi,
    build_envelope,
    load_target_namespace,
    read_soap_result,
)


NAMESPACE = "urn:arbor"
SOAP_URL = "https://leader.example.net/soap/sp"
QUERY = "<peakflow><query/></peakflow>"
GRAPH = "<peakflow><graph/></peakflow>"
RESULT = "<peakflow><query-reply><datum>5</datum></query-reply></peakflow>"
PNG = PNG_SIGNATURE + b"image"
WSDL = f'<definitions xmlns="http://schemas.xmlsoap.org/wsdl/" targetNamespace="{NAMESPACE}"/>'


@pytest.fixture(autouse=True)
def reset_metrics() -> Generator[None, None, None]:
    """Reset fetch metrics around each test."""
    FetchMetrics.reset()
    yield
    FetchMetrics.reset()


def soap_response(operation: str, text: str, status: int = 200) -> httpx.Response:
    envelope = Element(f"{{{SOAP_ENV_NS}}}Envelope")
    body = SubElement(envelope, f"{{{SOAP_ENV_NS}}}Body")
    wrapper = SubElement(body, f"{{{NAMESPACE}}}{operation}Response")
    SubElement(wrapper, "return").text = text
    return httpx.Response(status, content=tostring(envelope))


def fault_response(code: str, reason: str) -> httpx.Response:
    envelope = Element(f"{{{SOAP_ENV_NS}}}Envelope")
    body = SubElement(envelope, f"{{{SOAP_ENV_NS}}}Body")
    fault = SubElement(body, f"{{{SOAP_ENV_NS}}}Fault")
    code_element = SubElement(fault, f"{{{SOAP_ENV_NS}}}Code")
    SubElement(code_element, f"{{{SOAP_ENV_NS}}}Value").text = code
    reason_element = SubElement(fault, f"{{{SOAP_ENV_NS}}}Reason")
    SubElement(reason_element, f"{{{SOAP_ENV_NS}}}Text").text = reason
    return httpx.Response(500, content=tostring(envelope))


class Recorder:
    """Answers every request with one response and keeps the requests."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response

    def call(self, index: int = 0) -> Element:
        """Operation element of a recorded request."""
        root = DefusedET.fromstring(self.requests[index].content)
        return root.find(f"{{{SOAP_ENV_NS}}}Body")[0]  # type: ignore[index]


def make_api(recorder: Recorder, cache: MemoryCacheStore | None = None) -> SoapTrafficApi:
    return SoapTrafficApi(
        url=SOAP_URL,
        namespace=NAMESPACE,
        transport=HttpTransport(transport=httpx.MockTransport(recorder)),
        cache=cache,
        cache_enabled=cache is not None,
    )


class TestBuildEnvelope:
    """Tests for request envelopes."""

    def test_operation_and_parameters(self) -> None:
        """Parameters are child elements of the namespaced operation."""
        envelope = build_envelope(NAMESPACE, "runXmlQuery", [("query", QUERY), ("format", "xml")])

        root = DefusedET.fromstring(envelope)
        assert root.tag == f"{{{SOAP_ENV_NS}}}Envelope"
        call = root.find(f"{{{SOAP_ENV_NS}}}Body/{{{NAMESPACE}}}runXmlQuery")
        assert call is not None
        assert [(child.tag, child.text) for child in call] == [
            ("query", QUERY),
            ("format", "xml"),
        ]


class TestReadSoapResult:
    """Tests for reading RPC responses."""

    def test_returns_return_text(self) -> None:
        """The text of the return element is the result."""
        response = soap_response("runXmlQuery", RESULT)

        assert read_soap_result(response, "runXmlQuery", SOAP_URL) == RESULT

    def test_fault_is_reported_before_status(self) -> None:
        """A fault with a failing status raises SoapFaultError."""
        with pytest.raises(SoapFaultError) as exc_info:
            read_soap_result(fault_response("env:Sender", "Bad query"), "runXmlQuery", SOAP_URL)

        error = exc_info.value
        assert error.message == "SOAP Fault: (faultcode: (env:Sender), faultstring: (Bad query))"
        assert error.operation == "runXmlQuery"
        assert error.fault_code == "env:Sender"
        assert error.fault_reason == "Bad query"

    def test_failing_status_without_fault(self) -> None:
        """A failing status without a SOAP body raises HttpStatusError."""
        response = httpx.Response(401, content=b"Unauthorized")

        with pytest.raises(HttpStatusError) as exc_info:
            read_soap_result(response, "runXmlQuery", SOAP_URL)

        assert exc_info.value.code == 401

    def test_not_xml_is_decoding_error(self) -> None:
        """A successful non-XML response raises DecodingError."""
        with pytest.raises(DecodingError):
            read_soap_result(httpx.Response(200, content=b"hello"), "runXmlQuery", SOAP_URL)

    def test_empty_return_is_no_data(self) -> None:
        """An empty return value raises NoDataError."""
        with pytest.raises(NoDataError):
            read_soap_result(soap_response("runXmlQuery", ""), "runXmlQuery", SOAP_URL)


class TestGetTrafficXml:
    """Tests for runXmlQuery."""

    def test_runs_xml_query(self) -> None:
        """runXmlQuery is called with the query and xml format."""
        recorder = Recorder(soap_response("runXmlQuery", RESULT))
        api = make_api(recorder)

        root = api.get_traffic_xml(QUERY)

        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.headers["Content-Type"] == SOAP_CONTENT_TYPE
        call = recorder.call()
        assert call.tag == f"{{{NAMESPACE}}}runXmlQuery"
        assert call.findtext("query") == QUERY
        assert call.findtext("format") == "xml"
        assert root.findtext("query-reply/datum") == "5"

    def test_error_lines_raise_query_error(self) -> None:
        """error-line entries of the result raise QueryError."""
        body = "<peakflow><error-line>bad filter</error-line></peakflow>"
        api = make_api(Recorder(soap_response("runXmlQuery", body)))

        with pytest.raises(QueryError):
            api.get_traffic_xml(QUERY)

    def test_fault_counts_failure(self) -> None:
        """A fault is raised and counted."""
        api = make_api(Recorder(fault_response("env:Receiver", "down")))

        with pytest.raises(SoapFaultError):
            api.get_traffic_xml(QUERY)

        assert FetchMetrics.get_instance().failures_by_class["SOAP_FAULT"] == 1

    def test_cached_by_query_text(self) -> None:
        """The same query is answered from the cache."""
        recorder = Recorder(soap_response("runXmlQuery", RESULT))
        api = make_api(recorder, cache=MemoryCacheStore())

        api.get_traffic_xml(QUERY)
        root = api.get_traffic_xml(QUERY)

        assert len(recorder.requests) == 1
        assert root.findtext("query-reply/datum") == "5"


class TestGetTrafficGraph:
    """Tests for getTrafficGraph."""

    def test_decodes_base64_image(self) -> None:
        """The base64 return value is decoded, line breaks included."""
        encoded = base64.encodebytes(PNG).decode("ascii")
        recorder = Recorder(soap_response("getTrafficGraph", encoded))
        api = make_api(recorder)

        image = api.get_traffic_graph(QUERY, GRAPH)

        assert image == PNG
        call = recorder.call()
        assert call.tag == f"{{{NAMESPACE}}}getTrafficGraph"
        assert call.findtext("query") == QUERY
        assert call.findtext("graph") == GRAPH

    def test_error_report_raises_query_error(self) -> None:
        """An XML error report in place of an image raises QueryError."""
        body = "<peakflow><error-line>no data</error-line></peakflow>"
        api = make_api(Recorder(soap_response("getTrafficGraph", body)))

        with pytest.raises(QueryError) as exc_info:
            api.get_traffic_graph(QUERY, GRAPH)

        assert exc_info.value.messages == ["no data"]

    def test_graph_cache_depends_on_both_documents(self) -> None:
        """Different graph formats of one query are cached apart."""
        encoded = base64.b64encode(PNG).decode("ascii")
        recorder = Recorder(soap_response("getTrafficGraph", encoded))
        api = make_api(recorder, cache=MemoryCacheStore())

        api.get_traffic_graph(QUERY, GRAPH)
        api.get_traffic_graph(QUERY, GRAPH)
        api.get_traffic_graph(QUERY, "<peakflow><graph id='2'/></peakflow>")

        assert len(recorder.requests) == 2


class TestConstruction:
    """Tests for building the SOAP client."""

    def test_requires_credentials(self) -> None:
        """username and password are required."""
        settings = ArborSettings(hostname="leader.example.net", wsdl="sp.wsdl")

        with pytest.raises(ValueError, match="username and password"):
            SoapTrafficApi.from_settings(settings)

    def test_requires_wsdl_without_namespace(self) -> None:
        """The namespace comes from the WSDL unless given."""
        settings = ArborSettings(hostname="leader.example.net", username="u", password="p")

        with pytest.raises(ValueError, match="wsdl"):
            SoapTrafficApi.from_settings(settings)

    def test_namespace_from_wsdl_file(self, tmp_path: Path) -> None:
        """A WSDL file provides the service namespace."""
        wsdl = tmp_path / "sp.wsdl"
        wsdl.write_text(WSDL, encoding="utf-8")
        recorder = Recorder(soap_response("runXmlQuery", RESULT))
        settings = ArborSettings(
            hostname="leader.example.net", username="u", password="p", wsdl=str(wsdl)
        )

        api = SoapTrafficApi.from_settings(settings, transport=httpx.MockTransport(recorder))
        api.get_traffic_xml(QUERY)

        assert str(recorder.requests[0].url) == SOAP_URL
        assert recorder.call().tag == f"{{{NAMESPACE}}}runXmlQuery"
        api.close()

    def test_namespace_from_wsdl_url(self) -> None:
        """A WSDL URL is fetched through the transport."""
        recorder = Recorder(httpx.Response(200, content=WSDL.encode("utf-8")))
        transport = HttpTransport(transport=httpx.MockTransport(recorder))

        namespace = load_target_namespace(SOAP_URL + "?wsdl", transport)

        assert namespace == NAMESPACE
        assert recorder.requests[0].method == "GET"

    def test_wsdl_without_namespace(self, tmp_path: Path) -> None:
        """A WSDL without targetNamespace raises DecodingError."""
        wsdl = tmp_path / "sp.wsdl"
        wsdl.write_text("<definitions/>", encoding="utf-8")

        with HttpTransport() as transport, pytest.raises(DecodingError):
            load_target_namespace(str(wsdl), transport)
