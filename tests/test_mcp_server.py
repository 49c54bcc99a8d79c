"""Tests for the Hue tool catalogue through FastMCP's in-memory client."""

import json

import httpx
import pytest
from fastmcp import Client

from core.config import Settings
from tools.mcp_server import NOT_CONFIGURED, build_server

from conftest import API

EXPECTED_TOOLS = {
    "list_lights",
    "get_light",
    "turn_light_on",
    "turn_light_off",
    "set_light_brightness",
    "set_light_color",
    "set_light_color_temp",
    "set_light_state",
    "list_rooms",
    "list_groups",
    "get_room",
    "turn_room_on",
    "turn_room_off",
    "set_room_brightness",
    "set_room_color",
    "set_room_color_temp",
    "set_room_state",
    "list_scenes",
    "activate_scene",
    "create_scene",
    "delete_scene",
    "turn_all_lights_off",
    "turn_all_lights_on",
    "set_all_lights_color",
    "discover_bridges",
    "create_auth_token",
    "test_connection",
}


@pytest.fixture
def server(settings, client):
    return build_server(settings, client)


async def call(server, name, arguments=None):
    async with Client(server) as mcp_client:
        result = await mcp_client.call_tool(name, arguments or {}, raise_on_error=False)
    return result, result.content[0].text


async def test_catalogue(server):
    async with Client(server) as mcp_client:
        tools = {tool.name: tool for tool in await mcp_client.list_tools()}

    assert set(tools) == EXPECTED_TOOLS
    assert tools["list_lights"].annotations.read_only_hint is True
    assert tools["delete_scene"].annotations.destructive_hint is True
    brightness = tools["set_light_brightness"].input_schema["properties"]["brightness"]
    assert brightness["minimum"] == 0
    assert brightness["maximum"] == 1


async def test_not_configured_is_informational():
    server = build_server(Settings(), None)

    result, text = await call(server, "turn_light_on", {"light_id": "1"})

    assert not result.is_error
    assert text == NOT_CONFIGURED


async def test_test_connection_lists_missing_variables():
    server = build_server(Settings(bridge_ip="192.168.1.2"), None)

    result, text = await call(server, "test_connection")

    assert not result.is_error
    assert "HUE_USERNAME" in text
    assert "HUE_BRIDGE_IP" not in text


async def test_test_connection_counts_lights(server):
    result, text = await call(server, "test_connection")

    assert "Connection successful" in text
    assert "Found 2 lights" in text


async def test_list_lights_returns_json(server):
    result, text = await call(server, "list_lights")

    assert not result.is_error
    assert [light["id"] for light in json.loads(text)] == ["1", "2"]


async def test_turn_light_on(server, bridge):
    result, text = await call(server, "turn_light_on", {"light_id": "1"})

    assert text == "Light 1 turned on"
    assert bridge.calls == [("PUT", f"{API}/lights/1/state", {"on": True})]


async def test_set_light_color_uses_alpha_for_brightness(server, bridge):
    result, text = await call(server, "set_light_color", {"light_id": "1", "color": "rgba(255,0,0,0.5)"})

    assert text == "Light 1 set to rgba(255,0,0,0.5)"
    assert bridge.calls == [("PUT", f"{API}/lights/1/state", {"on": True, "hue": 0, "sat": 254, "bri": 127})]


async def test_invalid_color_is_a_tool_error(server, bridge):
    result, text = await call(server, "set_light_color", {"light_id": "1", "color": "notacolor"})

    assert result.is_error
    assert 'Invalid color: "notacolor"' in text
    assert bridge.requests == []


@pytest.mark.parametrize(
    "name, arguments",
    [
        ("set_light_brightness", {"light_id": "1", "brightness": 2}),
        ("set_light_brightness", {"light_id": "1"}),
        ("set_light_color_temp", {"light_id": "1", "color_temp": 100}),
        ("set_room_state", {"room_id": "1", "brightness": -0.5}),
    ],
)
async def test_invalid_arguments_are_rejected_before_the_bridge(server, bridge, name, arguments):
    result, _ = await call(server, name, arguments)

    assert result.is_error
    assert bridge.requests == []


async def test_set_room_brightness_maps_fraction(server, bridge):
    await call(server, "set_room_brightness", {"room_id": "1", "brightness": 0})

    assert bridge.calls == [("PUT", f"{API}/groups/1/action", {"on": True, "bri": 1})]


async def test_set_room_state_with_transition(server, bridge):
    result, text = await call(
        server,
        "set_room_state",
        {"room_id": "2", "on": True, "color": "blue", "brightness": 0.5, "transition_time": 20},
    )

    assert text == "Room 2 state updated"
    assert bridge.calls == [
        (
            "PUT",
            f"{API}/groups/2/action",
            {"on": True, "hue": 43690, "sat": 254, "bri": 127, "transitiontime": 20},
        )
    ]


async def test_set_light_state_needs_something_to_change(server, bridge):
    result, text = await call(server, "set_light_state", {"light_id": "1"})

    assert result.is_error
    assert "Nothing to change" in text
    assert bridge.requests == []


async def test_turn_all_lights_off(server, bridge):
    result, text = await call(server, "turn_all_lights_off")

    assert text == "All lights turned off"
    assert bridge.calls == [("PUT", f"{API}/groups/0/action", {"on": False})]


async def test_activate_scene_reports_target_group(server):
    result, text = await call(server, "activate_scene", {"scene_id": "abc123"})

    assert text == "Scene abc123 activated in group 1"


async def test_create_scene_from_room(server, bridge):
    result, text = await call(server, "create_scene", {"name": "Movie Night", "room_id": "2"})

    assert text == 'Scene "Movie Night" created with ID: new789'
    assert bridge.calls == [
        ("GET", f"{API}/groups/2", None),
        (
            "POST",
            f"{API}/scenes",
            {"name": "Movie Night", "recycle": False, "type": "LightScene", "lights": ["1", "2"], "group": "2"},
        ),
    ]


async def test_create_scene_keeps_room_with_explicit_lights(server, bridge):
    await call(server, "create_scene", {"name": "Reading", "room_id": "1", "light_ids": ["2"]})

    assert bridge.calls == [
        (
            "POST",
            f"{API}/scenes",
            {"name": "Reading", "recycle": False, "type": "LightScene", "lights": ["2"], "group": "1"},
        )
    ]


async def test_create_scene_defaults_to_every_light(server, bridge):
    await call(server, "create_scene", {"name": "All"})

    assert bridge.calls[0] == ("GET", f"{API}/lights", None)
    assert bridge.calls[1][2]["lights"] == ["1", "2"]


async def test_bridge_errors_become_tool_errors(server):
    result, text = await call(server, "get_light", {"light_id": "99"})

    assert result.is_error
    assert text.startswith("Error: ")
    assert "not available" in text


def setup_server(handler):
    return build_server(Settings(), None, setup_transport=httpx.MockTransport(handler))


async def test_discover_bridges_lists_found_bridges():
    server = setup_server(
        lambda request: httpx.Response(200, json=[{"id": "001788fffe123456", "internalipaddress": "192.168.1.2"}])
    )

    result, text = await call(server, "discover_bridges")

    assert not result.is_error
    assert text.startswith("Found 1 Hue bridge(s):")
    assert '"internalipaddress": "192.168.1.2"' in text
    assert "create_auth_token" in text


async def test_discover_bridges_when_none_found():
    server = setup_server(lambda request: httpx.Response(200, json=[]))

    result, text = await call(server, "discover_bridges")

    assert not result.is_error
    assert text.startswith("No Hue bridges found")


async def test_create_auth_token_reports_new_credentials():
    seen = []

    def bridge(request):
        seen.append((request.url.host, json.loads(request.content)))
        return httpx.Response(200, json=[{"success": {"username": "new-token"}}])

    result, text = await call(setup_server(bridge), "create_auth_token", {"bridge_ip": "192.168.1.2"})

    assert not result.is_error
    assert "HUE_BRIDGE_IP=192.168.1.2" in text
    assert "HUE_USERNAME=new-token" in text
    assert seen == [("192.168.1.2", {"devicetype": "philips-hue-mcp#claude-agent"})]


async def test_link_button_not_pressed_is_guidance_not_an_error():
    def bridge(request):
        return httpx.Response(
            200,
            json=[{"error": {"type": 101, "address": "", "description": "link button not pressed"}}],
        )

    result, text = await call(setup_server(bridge), "create_auth_token", {"bridge_ip": "192.168.1.2"})

    assert not result.is_error
    assert text.startswith("Link button not pressed!")
    assert "within 30 seconds" in text


async def test_other_pairing_errors_are_tool_errors():
    def bridge(request):
        return httpx.Response(
            200,
            json=[{"error": {"type": 7, "address": "/devicetype", "description": "invalid value"}}],
        )

    result, text = await call(setup_server(bridge), "create_auth_token", {"bridge_ip": "192.168.1.2"})

    assert result.is_error
    assert "invalid value" in text
