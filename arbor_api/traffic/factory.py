"""Traffic API selection."""

import httpx

from arbor_api.cache import CacheStore
from arbor_api.rest.client import RestClient
from arbor_api.settings import ArborSettings, TrafficProtocol
from arbor_api.traffic.base import TrafficApi
from arbor_api.traffic.rest import RestTrafficApi
from arbor_api.traffic.soap import SoapTrafficApi
from arbor_api.traffic.ws import WebServicesTrafficApi


def create_traffic_api(
    settings: ArborSettings,
    cache: CacheStore | None = None,
    transport: httpx.BaseTransport | None = None,
) -> TrafficApi:
    """Create the traffic client for ``settings.traffic_protocol``.

    Args:
        settings: Client settings.
        cache: Cache store shared with other clients.
        transport: Optional httpx transport (tests).

    Returns:
        A web services, SOAP or REST traffic client.

    Raises:
        ValueError: The protocol's credentials are not configured.
    """
    protocol = settings.traffic_protocol
    if protocol == TrafficProtocol.SOAP:
        return SoapTrafficApi.from_settings(settings, cache, transport)
    if protocol == TrafficProtocol.REST:
        return RestTrafficApi(RestClient.from_settings(settings, cache, transport))
    return WebServicesTrafficApi.from_settings(settings, cache, transport)
