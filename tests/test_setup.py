"""Tests for bridge discovery and pairing."""

import json

import httpx
import pytest

from core.hue_client import HueApiError, HueConnectionError
from core.setup import (
    DiscoveredBridge,
    LinkButtonNotPressed,
    create_auth_token,
    discover_bridges,
)

DISCOVERY_URL = "https://discovery.meethue.com/"


async def test_discover_bridges():
    def discovery(request):
        assert str(request.url) == DISCOVERY_URL
        return httpx.Response(
            200,
            json=[
                {"id": "001788fffe123456", "internalipaddress": "192.168.1.2", "port": 443},
                {"id": "001788fffe654321", "internalipaddress": "192.168.1.3"},
            ],
        )

    bridges = await discover_bridges(DISCOVERY_URL, transport=httpx.MockTransport(discovery))

    assert bridges == [
        DiscoveredBridge(id="001788fffe123456", internalipaddress="192.168.1.2", port=443),
        DiscoveredBridge(id="001788fffe654321", internalipaddress="192.168.1.3"),
    ]


async def test_discover_no_bridges():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[]))

    assert await discover_bridges(DISCOVERY_URL, transport=transport) == []


async def test_discovery_rate_limited():
    transport = httpx.MockTransport(lambda request: httpx.Response(429, json={"error": "too many requests"}))

    with pytest.raises(HueConnectionError, match="HTTP 429"):
        await discover_bridges(DISCOVERY_URL, transport=transport)


async def test_discovery_unreachable():
    def offline(request):
        raise httpx.ConnectError("name resolution failed", request=request)

    with pytest.raises(HueConnectionError, match="Bridge discovery failed"):
        await discover_bridges(DISCOVERY_URL, transport=httpx.MockTransport(offline))


async def test_create_auth_token():
    seen = []

    def bridge(request):
        seen.append((request.method, str(request.url), json.loads(request.content)))
        return httpx.Response(200, json=[{"success": {"username": "new-token"}}])

    username = await create_auth_token(
        "192.168.1.2", app_name="my-app", device_name="desk", transport=httpx.MockTransport(bridge)
    )

    assert username == "new-token"
    assert seen == [("POST", "https://192.168.1.2/api", {"devicetype": "my-app#desk"})]


async def test_link_button_not_pressed():
    def bridge(request):
        return httpx.Response(
            200,
            json=[{"error": {"type": 101, "address": "", "description": "link button not pressed"}}],
        )

    with pytest.raises(LinkButtonNotPressed) as excinfo:
        await create_auth_token("192.168.1.2", transport=httpx.MockTransport(bridge))
    assert excinfo.value.error_type == 101


async def test_other_pairing_errors_are_api_errors():
    def bridge(request):
        return httpx.Response(
            200,
            json=[{"error": {"type": 7, "address": "/devicetype", "description": "invalid value"}}],
        )

    with pytest.raises(HueApiError) as excinfo:
        await create_auth_token("192.168.1.2", transport=httpx.MockTransport(bridge))
    assert not isinstance(excinfo.value, LinkButtonNotPressed)
    assert excinfo.value.error_type == 7
