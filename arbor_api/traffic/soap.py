"""Traffic queries over the SOAP API.

Speaks SOAP 1.2 directly over httpx with digest authentication. Each
operation is an RPC call whose parameters are plain string elements::

    <env:Envelope xmlns:env="http://www.w3.org/2003/05/soap-envelope">
      <env:Body>
        <ns0:runXmlQuery xmlns:ns0="...">
          <query>...</query><format>xml</format>
        </ns0:runXmlQuery>
      </env:Body>
    </env:Envelope>
"""

import base64
import binascii
from collections.abc import Sequence
from pathlib import Path
from xml.etree.ElementTree import Element, ParseError, SubElement, tostring

import defusedxml.ElementTree as DefusedET
import httpx

from arbor_api.cache import CacheStore, text_cache_key
from arbor_api.errors import (
    ArborApiError,
    DecodingError,
    HttpStatusError,
    NoDataError,
    SoapFaultError,
)
from arbor_api.fetch.constants import (
    DEFAULT_CACHE_TTL,
    HTTP_STATUS_BAD_REQUEST,
    SOAP_CONTENT_TYPE,
)
from arbor_api.fetch.transport import HttpTransport
from arbor_api.settings import ArborSettings
from arbor_api.traffic.base import CachingTrafficApi


SOAP_ENV_NS = "http://www.w3.org/2003/05/soap-envelope"

OP_TRAFFIC_GRAPH = "getTrafficGraph"
OP_XML_QUERY = "runXmlQuery"


def build_envelope(namespace: str, operation: str, params: Sequence[tuple[str, str]]) -> str:
    """Build a SOAP 1.2 request envelope.

    Args:
        namespace: Service namespace of the operation element.
        operation: Operation name.
        params: Parameter names and values, in call order.

    Returns:
        The envelope document.
    """
    envelope = Element(f"{{{SOAP_ENV_NS}}}Envelope")
    body = SubElement(envelope, f"{{{SOAP_ENV_NS}}}Body")
    call = SubElement(body, f"{{{namespace}}}{operation}")
    for name, value in params:
        SubElement(call, name).text = value
    return tostring(envelope, encoding="unicode")


def read_soap_result(response: httpx.Response, operation: str, url: str) -> str:
    """Extract the return value of an RPC response.

    Args:
        response: HTTP response to the call.
        operation: Operation that was called.
        url: Endpoint URL for error reporting.

    Returns:
        Text of the operation's return element.

    Raises:
        SoapFaultError: The response is a SOAP fault.
        HttpStatusError: Failing status without a fault.
        DecodingError: The response is not a SOAP envelope.
        NoDataError: The call returned nothing.
    """
    failed = response.status_code >= HTTP_STATUS_BAD_REQUEST
    if not response.content.strip():
        if failed:
            raise HttpStatusError(response.status_code, url=url)
        raise NoDataError(url=url)

    try:
        root = DefusedET.fromstring(response.content)
    except ParseError as e:
        if failed:
            raise HttpStatusError(response.status_code, url=url) from e
        raise DecodingError(f"Invalid SOAP response: {e}", url=url) from e

    body = root.find(f"{{{SOAP_ENV_NS}}}Body")
    if body is None:
        if failed:
            raise HttpStatusError(response.status_code, url=url)
        raise DecodingError("SOAP response has no Body", url=url)

    fault = body.find(f"{{{SOAP_ENV_NS}}}Fault")
    if fault is not None:
        code = fault.findtext(f"{{{SOAP_ENV_NS}}}Code/{{{SOAP_ENV_NS}}}Value")
        reason = fault.findtext(f"{{{SOAP_ENV_NS}}}Reason/{{{SOAP_ENV_NS}}}Text")
        raise SoapFaultError(
            f"SOAP Fault: (faultcode: ({code}), faultstring: ({reason}))",
            operation,
            fault_code=code,
            fault_reason=reason,
        )

    if failed:
        raise HttpStatusError(response.status_code, url=url)

    wrapper = next(iter(body), None)
    if wrapper is None:
        raise NoDataError(url=url)
    result = wrapper[0] if len(wrapper) else wrapper
    text = result.text or ""
    if not text.strip():
        raise NoDataError(url=url)
    return text


def load_target_namespace(wsdl: str, transport: HttpTransport) -> str:
    """Read the target namespace of a WSDL document.

    Args:
        wsdl: URL or file path of the WSDL.
        transport: Transport used when ``wsdl`` is a URL.

    Returns:
        The ``targetNamespace`` of the WSDL definitions.

    Raises:
        ArborApiError: The WSDL could not be fetched or parsed.
    """
    if wsdl.startswith(("http://", "https://")):
        response = transport.request("GET", wsdl)
        if response.status_code >= HTTP_STATUS_BAD_REQUEST:
            raise HttpStatusError(response.status_code, url=wsdl)
        document = response.content
    else:
        document = Path(wsdl).read_bytes()

    try:
        root = DefusedET.fromstring(document)
    except ParseError as e:
        raise DecodingError(f"Invalid WSDL: {e}", url=wsdl) from e
    namespace = root.get("targetNamespace")
    if not namespace:
        raise DecodingError("WSDL has no targetNamespace", url=wsdl)
    return namespace


class SoapTrafficApi(CachingTrafficApi):
    """Traffic client for the SOAP endpoint ``/soap/sp``."""

    key_prefix = "arbor_soap"
    component = "soap"

    def __init__(  # noqa: PLR0913
        self,
        url: str,
        namespace: str,
        transport: HttpTransport,
        cache: CacheStore | None = None,
        cache_enabled: bool = False,
        cache_ttl: int = DEFAULT_CACHE_TTL,
    ) -> None:
        """Initialize the client.

        Args:
            url: SOAP endpoint, e.g. ``https://leader/soap/sp``.
            namespace: Service namespace from the WSDL.
            transport: HTTP transport carrying digest credentials.
            cache: Cache store.
            cache_enabled: Default for calls that do not pass ``use_cache``.
            cache_ttl: Time to live of cached results in seconds.
        """
        super().__init__(cache, cache_enabled, cache_ttl)
        self._url = url
        self._namespace = namespace
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: ArborSettings,
        cache: CacheStore | None = None,
        transport: httpx.BaseTransport | None = None,
        namespace: str | None = None,
    ) -> "SoapTrafficApi":
        """Build a client from settings.

        ``username`` and ``password`` are required. The service namespace
        is read from ``settings.wsdl`` unless given.
        """
        if settings.username is None or settings.password is None:
            msg = "username and password are required for the SOAP API"
            raise ValueError(msg)
        http = HttpTransport(
            timeout_seconds=settings.timeout_seconds,
            verify_tls=settings.verify_tls,
            auth=httpx.DigestAuth(settings.username, settings.password.get_secret_value()),
            transport=transport,
        )
        if namespace is None:
            if settings.wsdl is None:
                http.close()
                msg = "wsdl is required for the SOAP API"
                raise ValueError(msg)
            try:
                namespace = load_target_namespace(settings.wsdl, http)
            except (ArborApiError, OSError):
                http.close()
                raise
        return cls(
            url=settings.soap_url,
            namespace=namespace,
            transport=http,
            cache=cache,
            cache_enabled=settings.cache,
            cache_ttl=settings.cache_ttl,
        )

    def get_traffic_xml(self, query_xml: str, use_cache: bool | None = None) -> Element:
        """Run a traffic query (``runXmlQuery``) and return the result root."""
        return self._cached_xml(
            text_cache_key(self.key_prefix, query_xml),
            lambda: self._call(OP_XML_QUERY, [("query", query_xml), ("format", "xml")]),
            use_cache,
            self._url,
        )

    def get_traffic_graph(
        self, query_xml: str, graph_xml: str, use_cache: bool | None = None
    ) -> bytes:
        """Render a traffic query as a PNG graph (``getTrafficGraph``)."""
        return self._cached_graph(
            text_cache_key(self.key_prefix, query_xml, graph_xml),
            lambda: self._graph(query_xml, graph_xml),
            use_cache,
            self._url,
        )

    def _graph(self, query_xml: str, graph_xml: str) -> bytes:
        text = self._call(OP_TRAFFIC_GRAPH, [("query", query_xml), ("graph", graph_xml)])
        try:
            return base64.b64decode("".join(text.split()), validate=True)
        except (binascii.Error, ValueError):
            # Error reports come back as plain XML text.
            return text.encode("utf-8")

    def _call(self, operation: str, params: Sequence[tuple[str, str]]) -> str:
        self._log.debug("soap_call", operation=operation)
        response = self._transport.request(
            "POST",
            self._url,
            content=build_envelope(self._namespace, operation, params),
            headers={"Content-Type": SOAP_CONTENT_TYPE},
        )
        return read_soap_result(response, operation, self._url)

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()
