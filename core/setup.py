# =============================================================================
# core/setup.py  —  First-run bootstrap: find a bridge, get an API token
# =============================================================================
#
# These two calls run before the server has a configured bridge, so they do
# not go through HueClient or its request queue:
#
#   discover_bridges()   GET the public discovery service, which lists the
#                        bridges that phoned home from this network.
#   create_auth_token()  POST {"devicetype": "app#device"} to the bridge's
#                        unauthenticated /api endpoint.  The bridge only
#                        accepts it within ~30 s of its link button being
#                        pressed; otherwise it answers with error type 101.
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from core.config import DEFAULT_DISCOVERY_URL, DEFAULT_REQUEST_TIMEOUT, should_verify_tls
from core.hue_client import (
    ERROR_LINK_BUTTON_NOT_PRESSED,
    HueApiError,
    HueConnectionError,
    HueError,
    find_error,
)

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "philips-hue-mcp"
DEFAULT_DEVICE_NAME = "claude-agent"


class LinkButtonNotPressed(HueApiError):
    """The bridge refused pairing because its link button was not pressed."""


@dataclass
class DiscoveredBridge:
    """One entry from the discovery service."""

    id: str
    internalipaddress: str
    port: Optional[int] = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "DiscoveredBridge":
        return cls(
            id=str(data.get("id", "")),
            internalipaddress=str(data.get("internalipaddress", "")),
            port=data.get("port"),
        )


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        raise HueConnectionError(
            f"{response.request.url} returned HTTP {response.status_code} with a non-JSON body"
        ) from None


async def discover_bridges(
    url: str = DEFAULT_DISCOVERY_URL,
    *,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[DiscoveredBridge]:
    """List the bridges the discovery service knows for this network."""
    logger.info("Looking up bridges at %s", url)
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url)
    except httpx.HTTPError as err:
        raise HueConnectionError(f"Bridge discovery failed: {str(err) or type(err).__name__}") from err

    payload = _decode(response)
    if response.is_error:
        raise HueConnectionError(f"Bridge discovery returned HTTP {response.status_code}")
    if not isinstance(payload, list):
        raise HueConnectionError(f"Unexpected discovery response: {payload!r}")
    return [DiscoveredBridge.from_payload(entry) for entry in payload if isinstance(entry, dict)]


async def create_auth_token(
    bridge_ip: str,
    *,
    app_name: str = DEFAULT_APP_NAME,
    device_name: str = DEFAULT_DEVICE_NAME,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    verify_tls: Optional[bool] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """Pair with a bridge and return the new API username.

    Raises:
        LinkButtonNotPressed: the link button was not pressed in the last ~30 s.
        HueApiError: any other error reported by the bridge.
        HueConnectionError: the bridge could not be reached.
    """
    body = {"devicetype": f"{app_name}#{device_name}"}
    logger.info("Requesting auth token from bridge %s as %s", bridge_ip, body["devicetype"])
    try:
        async with httpx.AsyncClient(
            base_url=f"https://{bridge_ip}",
            timeout=timeout,
            verify=should_verify_tls(bridge_ip, verify_tls),
            transport=transport,
        ) as client:
            response = await client.post("/api", json=body)
    except httpx.HTTPError as err:
        raise HueConnectionError(f"Could not reach bridge {bridge_ip}: {str(err) or type(err).__name__}") from err

    payload = _decode(response)
    error = find_error(payload)
    if error is not None:
        api_error = HueApiError.from_payload(error)
        if api_error.error_type == ERROR_LINK_BUTTON_NOT_PRESSED:
            raise LinkButtonNotPressed(api_error.error_type, api_error.description, api_error.address)
        raise api_error

    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        username = (payload[0].get("success") or {}).get("username")
        if username:
            return username
    raise HueError(f"Unexpected response: {payload!r}")
