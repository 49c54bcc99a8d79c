"""Shared fixtures: a recording fake bridge behind httpx.MockTransport."""

import json

import httpx
import pytest

from core.config import Settings
from core.hue_client import HueClient

BRIDGE_IP = "192.168.1.2"
USERNAME = "test-user"
API = f"/api/{USERNAME}"

LIGHTS = {
    "1": {
        "name": "Living Room",
        "type": "Extended color light",
        "state": {"on": True, "bri": 254, "hue": 8402, "sat": 140, "colormode": "hs", "reachable": True},
    },
    "2": {
        "name": "Hallway",
        "type": "Dimmable light",
        "state": {"on": False, "bri": 1, "reachable": False},
    },
}

GROUPS = {
    "1": {"name": "Living Room", "type": "Room", "lights": ["1"], "action": {"on": True, "bri": 200}},
    "2": {"name": "Upstairs", "type": "Zone", "lights": ["1", "2"], "action": {"on": False}},
    "3": {"name": "TV Area", "type": "Entertainment", "lights": ["1"], "action": {"on": True}},
}

SCENES = {
    "abc123": {"name": "Relax", "type": "GroupScene", "group": "1"},
    "def456": {"name": "Everything", "type": "LightScene", "lights": ["1", "2"]},
}


class FakeBridge:
    """Answers the v1 API paths the client uses and records every request."""

    def __init__(self):
        self.requests: list[httpx.Request] = []

    @property
    def calls(self) -> list[tuple[str, str, object]]:
        return [
            (r.method, r.url.path, json.loads(r.content) if r.content else None)
            for r in self.requests
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len(API):]
        if request.method == "GET":
            if path == "/lights":
                return httpx.Response(200, json=LIGHTS)
            if path.startswith("/lights/"):
                light_id = path.split("/")[2]
                if light_id in LIGHTS:
                    return httpx.Response(200, json=LIGHTS[light_id])
                return httpx.Response(
                    200,
                    json=[{"error": {"type": 3, "address": path, "description": f"resource, {path}, not available"}}],
                )
            if path == "/groups":
                return httpx.Response(200, json=GROUPS)
            if path.startswith("/groups/"):
                return httpx.Response(200, json=GROUPS[path.split("/")[2]])
            if path == "/scenes":
                return httpx.Response(200, json=SCENES)
        if request.method == "PUT":
            body = json.loads(request.content)
            return httpx.Response(
                200, json=[{"success": {f"{path}/{key}": value}} for key, value in body.items()]
            )
        if request.method == "POST" and path == "/scenes":
            return httpx.Response(200, json=[{"success": {"id": "new789"}}])
        if request.method == "DELETE":
            return httpx.Response(200, json=[{"success": f"{path} deleted"}])
        return httpx.Response(404, text="not found")


@pytest.fixture
def bridge():
    return FakeBridge()


@pytest.fixture
def settings():
    return Settings(bridge_ip=BRIDGE_IP, username=USERNAME)


@pytest.fixture
async def make_client():
    """Factory for HueClients backed by a MockTransport handler; closed on teardown."""
    clients = []

    def factory(handler, **kwargs) -> HueClient:
        client = HueClient(BRIDGE_IP, USERNAME, transport=httpx.MockTransport(handler), **kwargs)
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.aclose()


@pytest.fixture
async def client(make_client, bridge):
    return make_client(bridge)
