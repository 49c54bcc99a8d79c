# =============================================================================
# tools/mcp_server.py  —  FastMCP Tool Server (ALL Hue tools in one place)
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Builds the FastMCP server and registers every tool the agent can call.
#   Each tool is a thin wrapper around core/: it converts agent-friendly
#   inputs (0..1 brightness, CSS colours) into native bridge values, calls
#   the HueClient, and formats a text or pretty-printed JSON answer.
#
# HOW A CALL FLOWS:
#   1. The agent calls a tool by name (e.g. "set_light_color")
#   2. FastMCP validates the arguments against the schema it derived from
#      the function signature (types + Field constraints)
#   3. The _tool() wrapper checks the bridge is configured, runs the
#      handler and turns any exception into an error result
#   4. The agent receives a short text answer
#
# TOOL GROUPS:
#   - lights   list_lights, get_light, turn_light_on/off, set_light_*
#   - rooms    list_rooms, list_groups, get_room, turn_room_on/off, set_room_*
#   - scenes   list_scenes, activate_scene, create_scene, delete_scene
#   - global   turn_all_lights_on/off, set_all_lights_color
#   - setup    discover_bridges, create_auth_token, test_connection
#
# CONFIGURATION:
#   build_server() receives the Settings value and the HueClient.  Handlers
#   never look at the environment.  Without a bridge address and username
#   every bridge tool answers with a "Not configured" hint instead of an
#   error, pointing the agent at the setup tools.
# =============================================================================

import functools
import json
import logging
import sys
from dataclasses import asdict
from typing import Annotated, Any, Awaitable, Callable, Optional

import httpx
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from mcp.types import ToolAnnotations
from pydantic import Field

from core.color import brightness_to_native, parse_color
from core.config import Settings
from core.hue_client import HueClient
from core.models import ALL_LIGHTS_GROUP, LightState
from core.setup import (
    DEFAULT_APP_NAME,
    DEFAULT_DEVICE_NAME,
    LinkButtonNotPressed,
    create_auth_token,
    discover_bridges,
)

SERVER_NAME = "philips-hue-mcp"

INSTRUCTIONS = (
    "Controls Philips Hue lights, rooms and scenes through the local Hue bridge. "
    "Call list_lights or list_rooms first to learn IDs. If a tool answers \"Not configured\", "
    "run discover_bridges, then create_auth_token after the user presses the bridge button."
)

NOT_CONFIGURED = (
    "Not configured. Set HUE_BRIDGE_IP and HUE_USERNAME environment variables, "
    "or use discover_bridges and create_auth_token tools."
)

COLOR_HINT = 'Use CSS colors like "red", "#ff0000", "rgb(255,0,0)", or "hsl(0,100%,50%)"'

# =============================================================================
# Logging Setup
# =============================================================================
# Logs go to STDERR.  ANSI colours make tool traffic easy to scan:
#   CYAN   incoming tool call + parameters
#   YELLOW intermediate status
#   GREEN  the answer sent back
# =============================================================================

_CYAN = "\033[36m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_RESET = "\033[0m"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Send log lines to stderr with the server's timestamped format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [MCP] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _log_request(tool_name: str, **params) -> None:
    """Log an incoming tool call with its parameters in CYAN."""
    param_str = ", ".join(f"{k}={v!r}" for k, v in params.items())
    logger.info(f"{_CYAN}{tool_name} called with: {param_str}{_RESET}")


def _log_status(message: str) -> None:
    """Log an intermediate status message in YELLOW."""
    logger.info(f"{_YELLOW}  → {message}{_RESET}")


def _log_response(tool_name: str, result: str) -> str:
    """Log the tool answer (first line only) in GREEN, then return it."""
    first_line = result.splitlines()[0] if result else ""
    logger.info(f"{_GREEN}  ← {tool_name} response: {first_line}{_RESET}")
    return result


def _as_json(data: Any) -> str:
    return json.dumps(data, indent=2)


def _native_color(color: str) -> dict[str, int]:
    native = parse_color(color)
    if native is None:
        raise ValueError(f'Invalid color: "{color}". {COLOR_HINT}')
    return native.as_state()


def _build_state(
    on: Optional[bool],
    color: Optional[str],
    brightness: Optional[float],
    color_temp: Optional[float],
    transition_time: Optional[int],
) -> LightState:
    fields: dict[str, Any] = {}
    if color:
        fields.update(_native_color(color))
    if brightness is not None:
        fields["bri"] = brightness_to_native(brightness)
    if color_temp is not None:
        fields["ct"] = round(color_temp)
    state = LightState(on=on, transitiontime=transition_time, **fields)
    if state.is_empty():
        raise ValueError("Nothing to change. Pass at least one of on, color, brightness, color_temp.")
    return state


# =============================================================================
# Parameter types
# =============================================================================
# FastMCP turns these Annotated types into the JSON schema the agent sees,
# and pydantic enforces the numeric bounds before a handler runs.
# =============================================================================
LightId = Annotated[
    str, Field(min_length=1, description='Numeric light ID as a string, e.g. "1". Get IDs from list_lights.')
]
RoomId = Annotated[
    str, Field(min_length=1, description='Numeric room/group ID as a string, e.g. "1". Get IDs from list_rooms.')
]
SceneId = Annotated[
    str, Field(min_length=1, description="Scene ID (alphanumeric string). Get IDs from list_scenes.")
]
Brightness = Annotated[
    float, Field(ge=0, le=1, description="Brightness from 0 to 1. Examples: 1, 0.5, 0.25, 0.1")
]
Color = Annotated[
    str,
    Field(
        min_length=1,
        description=(
            'Any CSS color. Use alpha (0-1) to control brightness. Examples: "red", "#ff0000", '
            '"rgb(255,0,0)", "rgba(255,0,0,0.5)", "hsl(0,100%,50%)", "hsla(240,100%,50%,0.75)"'
        ),
    ),
]
ColorTemp = Annotated[
    float, Field(ge=153, le=500, description="Color temperature in mireds: 153=cool daylight, 500=warm candlelight")
]
OptionalOn = Annotated[Optional[bool], Field(description="Optional. true=on, false=off")]
OptionalColor = Annotated[
    Optional[str], Field(description='Optional. Any CSS color: "red", "#ff0000", "rgb(255,0,0)", "hsl(0,100%,50%)"')
]
OptionalBrightness = Annotated[
    Optional[Annotated[float, Field(ge=0, le=1)]], Field(description="Optional. Brightness from 0 to 1")
]
OptionalColorTemp = Annotated[
    Optional[Annotated[float, Field(ge=153, le=500)]],
    Field(description="Optional. Color temperature 153-500. Cool=153, warm=500"),
]
TransitionTime = Annotated[
    Optional[Annotated[int, Field(ge=0)]], Field(description="Optional. Transition time in 100ms units (10=1sec)")
]


def _read_only(title: str) -> ToolAnnotations:
    return ToolAnnotations(title=title, readOnlyHint=True, openWorldHint=False)


def _control(title: str, *, destructive: bool = False) -> ToolAnnotations:
    return ToolAnnotations(
        title=title,
        readOnlyHint=False,
        destructiveHint=destructive,
        idempotentHint=not destructive,
        openWorldHint=False,
    )


def build_server(
    settings: Settings,
    client: Optional[HueClient],
    *,
    setup_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastMCP:
    """Create the FastMCP server with the full Hue tool catalogue.

    Args:
        settings: Runtime configuration (bridge address, credential, ...).
        client: Bridge client, or None when the bridge is not configured yet.
            The caller owns it and closes it on shutdown.
        setup_transport: httpx transport for discovery and pairing calls;
            None uses the network.

    Returns:
        A FastMCP instance ready to be served.
    """
    mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS)

    def _tool(name: str, *, needs_bridge: bool = True):
        """Wrap a handler with logging, the configured check and error mapping."""

        def decorator(fn: Callable[..., Awaitable[str]]):
            @functools.wraps(fn)
            async def wrapper(*args, **kwargs) -> str:
                _log_request(name, **kwargs)
                if needs_bridge and (client is None or not settings.is_configured):
                    _log_status("bridge not configured")
                    return _log_response(name, NOT_CONFIGURED)
                try:
                    result = await fn(*args, **kwargs)
                except ToolError:
                    raise
                except Exception as err:
                    _log_status(f"{type(err).__name__}: {err}")
                    raise ToolError(f"Error: {err}") from err
                return _log_response(name, result)

            return wrapper

        return decorator

    # =========================================================================
    # LIGHT TOOLS
    # =========================================================================
    @mcp.tool(annotations=_read_only("List Lights"))
    @_tool("list_lights")
    async def list_lights() -> str:
        """Returns a JSON array of all Philips Hue lights with their IDs, names, and
        current state (on/off, brightness, color).

        IMPORTANT: Call this first before using any other light control tool;
        the other tools need the light ID numbers from this response.

        Example response: [{"id": "1", "name": "Living Room", "on": true, "brightness": 254}]
        """
        lights = await client.list_lights()
        _log_status(f"Got {len(lights)} lights")
        return _as_json([light.to_dict() for light in lights])

    @mcp.tool(annotations=_read_only("Get Light"))
    @_tool("get_light")
    async def get_light(light_id: LightId) -> str:
        """Get details of a specific light by its ID."""
        light = await client.get_light(light_id)
        return _as_json(light.to_dict())

    @mcp.tool(annotations=_control("Turn Light On"))
    @_tool("turn_light_on")
    async def turn_light_on(light_id: LightId) -> str:
        """Turn on a specific light."""
        await client.turn_light_on(light_id)
        return f"Light {light_id} turned on"

    @mcp.tool(annotations=_control("Turn Light Off"))
    @_tool("turn_light_off")
    async def turn_light_off(light_id: LightId) -> str:
        """Turn off a specific light."""
        await client.turn_light_off(light_id)
        return f"Light {light_id} turned off"

    @mcp.tool(annotations=_control("Set Light Brightness"))
    @_tool("set_light_brightness")
    async def set_light_brightness(light_id: LightId, brightness: Brightness) -> str:
        """Set the brightness of a specific light without changing its color.

        Brightness is a value from 0 to 1, where 0 is minimum brightness and 1
        is maximum brightness.  It never turns the light off.

        <example>Set light 1 to full brightness: light_id="1", brightness=1</example>
        <example>Set light 2 to 50% brightness: light_id="2", brightness=0.5</example>
        <example>Set light 3 to dim (25%): light_id="3", brightness=0.25</example>
        """
        await client.set_brightness(light_id, brightness_to_native(brightness))
        return f"Light {light_id} brightness set to {brightness}"

    @mcp.tool(annotations=_control("Set Light Color"))
    @_tool("set_light_color")
    async def set_light_color(light_id: LightId, color: Color) -> str:
        """Changes the color of ONE specific light.  Use set_all_lights_color
        to change ALL lights.

        Accepts any CSS color format.  The alpha channel (0-1) controls
        brightness: use rgba() or hsla() to set color and brightness at once.

        <example>Red at full brightness: light_id="1", color="red"</example>
        <example>Blue: light_id="2", color="#0000ff"</example>
        <example>Green at 50% brightness: light_id="1", color="rgba(0,255,0,0.5)"</example>
        <example>Cyan at 75% brightness: light_id="2", color="hsla(180,100%,50%,0.75)"</example>
        """
        native = _native_color(color)
        await client.set_color(light_id, **native)
        return f"Light {light_id} set to {color}"

    @mcp.tool(annotations=_control("Set Light Color Temperature"))
    @_tool("set_light_color_temp")
    async def set_light_color_temp(light_id: LightId, color_temp: ColorTemp) -> str:
        """Set the color temperature of a specific light (153=cool daylight, 500=warm candlelight)."""
        await client.set_color_temp(light_id, round(color_temp))
        return f"Light {light_id} color temperature set to {round(color_temp)} mireds"

    @mcp.tool(annotations=_control("Set Light State"))
    @_tool("set_light_state")
    async def set_light_state(
        light_id: LightId,
        on: OptionalOn = None,
        color: OptionalColor = None,
        brightness: OptionalBrightness = None,
        color_temp: OptionalColorTemp = None,
        transition_time: TransitionTime = None,
    ) -> str:
        """Set multiple properties of a light at once.  Use this for advanced
        control with transitions.  Fields left out are not changed.
        """
        state = _build_state(on, color, brightness, color_temp, transition_time)
        await client.set_light_state(light_id, state)
        return f"Light {light_id} state updated"

    # =========================================================================
    # ROOM TOOLS
    # =========================================================================
    @mcp.tool(annotations=_read_only("List Rooms"))
    @_tool("list_rooms")
    async def list_rooms() -> str:
        """Get a list of all rooms and zones.  Call this first to get room IDs
        before controlling rooms.
        """
        rooms = await client.list_rooms()
        _log_status(f"Got {len(rooms)} rooms/zones")
        return _as_json([room.to_dict() for room in rooms])

    @mcp.tool(annotations=_read_only("List All Groups"))
    @_tool("list_groups")
    async def list_groups() -> str:
        """Get a list of all groups including rooms, zones, and entertainment areas."""
        groups = await client.list_all_groups()
        return _as_json([group.to_dict() for group in groups])

    @mcp.tool(annotations=_read_only("Get Room"))
    @_tool("get_room")
    async def get_room(room_id: RoomId) -> str:
        """Get details of a specific room by its ID."""
        room = await client.get_room(room_id)
        return _as_json(room.to_dict())

    @mcp.tool(annotations=_control("Turn Room On"))
    @_tool("turn_room_on")
    async def turn_room_on(room_id: RoomId) -> str:
        """Turn on all lights in a room."""
        await client.turn_room_on(room_id)
        return f"Room {room_id} turned on"

    @mcp.tool(annotations=_control("Turn Room Off"))
    @_tool("turn_room_off")
    async def turn_room_off(room_id: RoomId) -> str:
        """Turn off all lights in a room."""
        await client.turn_room_off(room_id)
        return f"Room {room_id} turned off"

    @mcp.tool(annotations=_control("Set Room Brightness"))
    @_tool("set_room_brightness")
    async def set_room_brightness(room_id: RoomId, brightness: Brightness) -> str:
        """Set the brightness of all lights in a room without changing their color.

        Brightness is a value from 0 to 1, where 0 is minimum brightness and 1
        is maximum brightness.

        <example>Living room to full brightness: room_id="1", brightness=1</example>
        <example>Bedroom to 50% brightness: room_id="2", brightness=0.5</example>
        """
        await client.set_room_brightness(room_id, brightness_to_native(brightness))
        return f"Room {room_id} brightness set to {brightness}"

    @mcp.tool(annotations=_control("Set Room Color"))
    @_tool("set_room_color")
    async def set_room_color(room_id: RoomId, color: Color) -> str:
        """Set the color of ALL lights in a room at once.

        Accepts any CSS color format.  The alpha channel (0-1) controls
        brightness.

        <example>Living room red: room_id="1", color="red"</example>
        <example>Bedroom blue at 50%: room_id="2", color="rgba(0,0,255,0.5)"</example>
        <example>Office warm white: room_id="3", color="rgb(255,244,229)"</example>
        """
        native = _native_color(color)
        await client.set_room_color(room_id, **native)
        return f"Room {room_id} set to {color}"

    @mcp.tool(annotations=_control("Set Room Color Temperature"))
    @_tool("set_room_color_temp")
    async def set_room_color_temp(room_id: RoomId, color_temp: ColorTemp) -> str:
        """Set the color temperature of all lights in a room (153=cool daylight, 500=warm candlelight)."""
        await client.set_room_color_temp(room_id, round(color_temp))
        return f"Room {room_id} color temperature set to {round(color_temp)} mireds"

    @mcp.tool(annotations=_control("Set Room State"))
    @_tool("set_room_state")
    async def set_room_state(
        room_id: RoomId,
        on: OptionalOn = None,
        color: OptionalColor = None,
        brightness: OptionalBrightness = None,
        color_temp: OptionalColorTemp = None,
        transition_time: TransitionTime = None,
    ) -> str:
        """Set multiple properties of all lights in a room at once.  Use this
        for advanced control with transitions.
        """
        state = _build_state(on, color, brightness, color_temp, transition_time)
        await client.set_room_state(room_id, state)
        return f"Room {room_id} state updated"

    # =========================================================================
    # SCENE TOOLS
    # =========================================================================
    @mcp.tool(annotations=_read_only("List Scenes"))
    @_tool("list_scenes")
    async def list_scenes() -> str:
        """Get a list of all available scenes.  Call this first to get scene IDs
        before activating scenes.
        """
        scenes = await client.list_scenes()
        return _as_json([scene.to_dict() for scene in scenes])

    @mcp.tool(annotations=_control("Activate Scene"))
    @_tool("activate_scene")
    async def activate_scene(
        scene_id: SceneId,
        group_id: Annotated[
            Optional[str],
            Field(description="Optional group ID to apply the scene to. Get IDs from list_groups."),
        ] = None,
    ) -> str:
        """Activate a specific scene.  Without group_id the scene is recalled on
        its own group, or on all lights when it has none.
        """
        target = await client.activate_scene(scene_id, group_id)
        return f"Scene {scene_id} activated in group {target}"

    @mcp.tool(annotations=_control("Create Scene"))
    @_tool("create_scene")
    async def create_scene(
        name: Annotated[str, Field(min_length=1, description='Name for the scene, e.g. "Movie Night"')],
        room_id: Annotated[
            Optional[str], Field(description="Create the scene from all lights in this room. Get IDs from list_rooms.")
        ] = None,
        light_ids: Annotated[
            Optional[list[str]], Field(description='Create the scene from specific lights, e.g. ["1", "2", "3"]')
        ] = None,
    ) -> str:
        """Create a new scene that captures the current state of specified lights.

        The scene saves the current color, brightness, and on/off state of the
        lights.  Activate it later to restore those settings.  Without
        room_id or light_ids the scene captures every light.

        <example>All lights in room 1: name="Movie Night", room_id="1"</example>
        <example>Specific lights: name="Reading", light_ids=["1", "3", "5"]</example>
        """
        if light_ids:
            lights = list(light_ids)
        elif room_id:
            lights = (await client.get_room(room_id)).lights
        else:
            lights = [light.id for light in await client.list_lights()]
        scene_id = await client.create_scene(name, lights, group_id=room_id)
        return f'Scene "{name}" created with ID: {scene_id}'

    @mcp.tool(annotations=_control("Delete Scene", destructive=True))
    @_tool("delete_scene")
    async def delete_scene(scene_id: SceneId) -> str:
        """Permanently delete a scene from the Hue bridge.  This cannot be undone."""
        await client.delete_scene(scene_id)
        return f"Scene {scene_id} deleted successfully"

    # =========================================================================
    # GLOBAL TOOLS
    # =========================================================================
    @mcp.tool(annotations=_control("Turn All Lights Off"))
    @_tool("turn_all_lights_off")
    async def turn_all_lights_off() -> str:
        """Turn off all lights in the house."""
        await client.turn_room_off(ALL_LIGHTS_GROUP)
        return "All lights turned off"

    @mcp.tool(annotations=_control("Turn All Lights On"))
    @_tool("turn_all_lights_on")
    async def turn_all_lights_on() -> str:
        """Turn on all lights in the house."""
        await client.turn_room_on(ALL_LIGHTS_GROUP)
        return "All lights turned on"

    @mcp.tool(annotations=_control("Set All Lights Color"))
    @_tool("set_all_lights_color")
    async def set_all_lights_color(color: Color) -> str:
        """Set the color of ALL lights in the entire house at once.  This is the
        easiest way to change all lights to one color.

        Accepts any CSS color format.  The alpha channel (0-1) controls
        brightness.

        <example>All lights red: color="red"</example>
        <example>All lights green at 50%: color="rgba(0,255,0,0.5)"</example>
        <example>Dim red for movie night: color="rgba(255,0,0,0.2)"</example>
        """
        native = _native_color(color)
        await client.set_room_color(ALL_LIGHTS_GROUP, **native)
        return f"All lights set to {color}"

    # =========================================================================
    # SETUP & AUTHENTICATION TOOLS
    # =========================================================================
    @mcp.tool(
        name="discover_bridges",
        annotations=ToolAnnotations(title="Discover Bridges", readOnlyHint=True, openWorldHint=True),
    )
    @_tool("discover_bridges", needs_bridge=False)
    async def discover_bridges_tool() -> str:
        """Discover Philips Hue bridges on your local network using the Hue
        discovery service.
        """
        bridges = await discover_bridges(
            settings.discovery_url, timeout=settings.request_timeout, transport=setup_transport
        )
        if not bridges:
            return (
                "No Hue bridges found on the network. Make sure your bridge is powered on "
                "and connected to the same network."
            )
        listing = _as_json([asdict(bridge) for bridge in bridges])
        return (
            f"Found {len(bridges)} Hue bridge(s):\n\n{listing}\n\n"
            "Use the bridge IP address with the create_auth_token tool to authenticate."
        )

    @mcp.tool(
        name="create_auth_token",
        annotations=ToolAnnotations(title="Create Auth Token", readOnlyHint=False, openWorldHint=False),
    )
    @_tool("create_auth_token", needs_bridge=False)
    async def create_auth_token_tool(
        bridge_ip: Annotated[str, Field(min_length=1, description="The IP address of the Hue bridge")],
        app_name: Annotated[str, Field(description="Application name")] = DEFAULT_APP_NAME,
        device_name: Annotated[str, Field(description="Device name")] = DEFAULT_DEVICE_NAME,
    ) -> str:
        """Create a new auth token for the Hue bridge.

        IMPORTANT: Press the button on the Hue bridge first, then call this
        within 30 seconds!
        """
        try:
            username = await create_auth_token(
                bridge_ip,
                app_name=app_name,
                device_name=device_name,
                timeout=settings.request_timeout,
                verify_tls=settings.verify_tls,
                transport=setup_transport,
            )
        except LinkButtonNotPressed:
            _log_status("link button not pressed")
            return (
                "Link button not pressed!\n\nPlease:\n"
                "1. Press the button on top of your Hue bridge\n"
                "2. Run this tool again within 30 seconds"
            )
        return (
            f"Auth token created successfully!\n\nYour new auth token: {username}\n\n"
            f"Set these environment variables:\n  HUE_BRIDGE_IP={bridge_ip}\n  HUE_USERNAME={username}"
        )

    @mcp.tool(annotations=_read_only("Test Connection"))
    @_tool("test_connection", needs_bridge=False)
    async def test_connection() -> str:
        """Test the connection to the Hue bridge with the current credentials."""
        if client is None or not settings.is_configured:
            missing = "".join(f"- {name}\n" for name in settings.missing)
            return (
                f"Not configured!\n\nMissing environment variables:\n{missing}\n"
                "Use discover_bridges and create_auth_token to set up."
            )
        lights = await client.list_lights()
        return f"Connection successful!\n\nBridge IP: {settings.bridge_ip}\nFound {len(lights)} lights."

    return mcp
