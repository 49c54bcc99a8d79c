# =============================================================================
# core/hue_client.py  —  Async client for the Hue bridge v1 REST API
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Talks to https://<bridge>/api/<username>/... and maps the raw JSON into
#   Light / Room / Scene records.  Every call goes through one RequestQueue,
#   so the bridge never sees two requests from this client at once.
#
# RETRY POLICY:
#   GET, PUT and DELETE are retried on any transport failure or timeout.
#   The v1 PUT bodies carry absolute values, so applying one twice leaves the
#   light in the same state.  POST (scene creation) is retried only when the
#   request never reached the bridge (connection refused, connect timeout);
#   a second POST after a read timeout could create a duplicate scene.
#   Errors the bridge reports in its response body are never retried.
#
# ERROR SHAPE ON THE WIRE:
#   The bridge answers 200 OK with a list of result objects.  Failures look
#   like  [{"error": {"type": 3, "address": "/lights/99", "description": "..."}}]
#   and become HueApiError.
# =============================================================================

import logging
from typing import Any, Optional

import httpx

from core.config import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_REQUEST_TIMEOUT,
    Settings,
    should_verify_tls,
)
from core.models import (
    ALL_LIGHTS_GROUP,
    Light,
    LightState,
    Room,
    Scene,
)
from core.queue import RequestQueue

logger = logging.getLogger(__name__)

_IDEMPOTENT_METHODS = frozenset({"GET", "PUT", "DELETE"})

# Bridge error types that matter to callers.
ERROR_UNAUTHORIZED_USER = 1
ERROR_RESOURCE_NOT_AVAILABLE = 3
ERROR_LINK_BUTTON_NOT_PRESSED = 101


class HueError(Exception):
    """Base class for bridge failures."""


class HueConnectionError(HueError):
    """The bridge could not be reached or answered with garbage."""


class HueApiError(HueError):
    """The bridge understood the request and reported an error."""

    def __init__(self, error_type: int, description: str, address: str = "") -> None:
        self.error_type = error_type
        self.description = description
        self.address = address
        super().__init__(description)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "HueApiError":
        error = payload.get("error") or {}
        return cls(
            error_type=int(error.get("type", 0)),
            description=error.get("description") or "Unknown bridge error",
            address=error.get("address", ""),
        )


def find_error(payload: Any) -> Optional[dict[str, Any]]:
    """Return the first {"error": ...} entry of a bridge response, if any."""
    if isinstance(payload, list):
        for entry in payload:
            if isinstance(entry, dict) and "error" in entry:
                return entry
    return None


def _is_transient(method: str, err: BaseException) -> bool:
    if isinstance(err, HueApiError):
        return False
    if method in _IDEMPOTENT_METHODS:
        return isinstance(err, (httpx.TransportError, HueConnectionError, TimeoutError))
    return isinstance(err, (httpx.ConnectError, httpx.ConnectTimeout))


class HueClient:
    """Client for one bridge and one API username."""

    def __init__(
        self,
        bridge_ip: str,
        username: str,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        verify_tls: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.bridge_ip = bridge_ip
        self.base_path = f"/api/{username}"
        self._queue = RequestQueue(max_attempts=max_attempts, timeout=timeout)
        self._http = httpx.AsyncClient(
            base_url=f"https://{bridge_ip}",
            verify=should_verify_tls(bridge_ip, verify_tls),
            transport=transport,
            timeout=timeout,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "HueClient":
        return cls(
            settings.bridge_ip,
            settings.username,
            timeout=settings.request_timeout,
            max_attempts=settings.max_attempts,
            verify_tls=settings.verify_tls,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._queue.stop()
        await self._http.aclose()

    async def __aenter__(self) -> "HueClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------
    async def _exchange(self, method: str, path: str, body: Optional[dict[str, Any]]) -> Any:
        response = await self._http.request(method, self.base_path + path, json=body)
        try:
            payload = response.json()
        except ValueError:
            raise HueConnectionError(
                f"Bridge returned HTTP {response.status_code} with a non-JSON body"
            ) from None
        error = find_error(payload)
        if error is not None:
            raise HueApiError.from_payload(error)
        if response.is_error:
            raise HueConnectionError(f"Bridge returned HTTP {response.status_code}")
        return payload

    async def _request(self, method: str, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        label = f"{method} {path}"
        logger.debug("Bridge %s body=%s", label, body)
        try:
            return await self._queue.submit(
                lambda: self._exchange(method, path, body),
                label=label,
                should_retry=lambda err: _is_transient(method, err),
            )
        except TimeoutError as err:
            raise HueConnectionError(str(err)) from err
        except httpx.HTTPError as err:
            raise HueConnectionError(f"{label} failed: {str(err) or type(err).__name__}") from err

    async def _get(self, path: str) -> dict[str, Any]:
        """GET a resource or collection; the bridge answers both with an object."""
        data = await self._request("GET", path)
        if not isinstance(data, dict):
            raise HueConnectionError(f"Unexpected response to GET {path}: {data!r}")
        return data

    async def _put(self, path: str, body: dict[str, Any]) -> Any:
        return await self._request("PUT", path, body)

    async def _post(self, path: str, body: dict[str, Any]) -> Any:
        return await self._request("POST", path, body)

    async def _delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    # -------------------------------------------------------------------------
    # Lights
    # -------------------------------------------------------------------------
    async def list_lights(self) -> list[Light]:
        data = await self._get("/lights")
        return [Light.from_bridge(light_id, raw) for light_id, raw in data.items()]

    async def get_light(self, light_id: str) -> Light:
        data = await self._get(f"/lights/{light_id}")
        return Light.from_bridge(light_id, data)

    async def set_light_state(self, light_id: str, state: LightState) -> Any:
        """Send only the fields set on ``state`` to one light."""
        return await self._put(f"/lights/{light_id}/state", state.to_payload())

    async def turn_light_on(self, light_id: str) -> Any:
        return await self.set_light_state(light_id, LightState(on=True))

    async def turn_light_off(self, light_id: str) -> Any:
        return await self.set_light_state(light_id, LightState(on=False))

    async def set_brightness(self, light_id: str, bri: int) -> Any:
        return await self.set_light_state(light_id, LightState(on=True, bri=bri))

    async def set_color(self, light_id: str, hue: int, sat: int, bri: int) -> Any:
        return await self.set_light_state(light_id, LightState(on=True, hue=hue, sat=sat, bri=bri))

    async def set_color_temp(self, light_id: str, ct: int) -> Any:
        return await self.set_light_state(light_id, LightState(on=True, ct=ct))

    # -------------------------------------------------------------------------
    # Rooms and groups
    # -------------------------------------------------------------------------
    async def list_all_groups(self) -> list[Room]:
        data = await self._get("/groups")
        return [Room.from_bridge(group_id, raw) for group_id, raw in data.items()]

    async def list_rooms(self) -> list[Room]:
        """Rooms and zones only; entertainment areas and light groups are skipped."""
        return [room for room in await self.list_all_groups() if room.is_room]

    async def get_room(self, room_id: str) -> Room:
        data = await self._get(f"/groups/{room_id}")
        return Room.from_bridge(room_id, data)

    async def set_room_state(self, room_id: str, state: LightState) -> Any:
        """Apply a partial update to every light in a group ("0" = all lights)."""
        return await self._put(f"/groups/{room_id}/action", state.to_payload())

    async def turn_room_on(self, room_id: str) -> Any:
        return await self.set_room_state(room_id, LightState(on=True))

    async def turn_room_off(self, room_id: str) -> Any:
        return await self.set_room_state(room_id, LightState(on=False))

    async def set_room_brightness(self, room_id: str, bri: int) -> Any:
        return await self.set_room_state(room_id, LightState(on=True, bri=bri))

    async def set_room_color(self, room_id: str, hue: int, sat: int, bri: int) -> Any:
        return await self.set_room_state(room_id, LightState(on=True, hue=hue, sat=sat, bri=bri))

    async def set_room_color_temp(self, room_id: str, ct: int) -> Any:
        return await self.set_room_state(room_id, LightState(on=True, ct=ct))

    # -------------------------------------------------------------------------
    # Scenes
    # -------------------------------------------------------------------------
    async def list_scenes(self) -> list[Scene]:
        data = await self._get("/scenes")
        return [Scene.from_bridge(scene_id, raw) for scene_id, raw in data.items()]

    async def resolve_scene_group(self, scene_id: str) -> str:
        """The scene's own group, or the all-lights group when it has none."""
        for scene in await self.list_scenes():
            if scene.id == scene_id and scene.group:
                return scene.group
        return ALL_LIGHTS_GROUP

    async def activate_scene(self, scene_id: str, group_id: Optional[str] = None) -> str:
        """Recall a scene and return the group it was recalled on."""
        target = group_id or await self.resolve_scene_group(scene_id)
        await self.set_room_state(target, LightState(scene=scene_id))
        return target

    async def create_scene(
        self, name: str, light_ids: list[str], group_id: Optional[str] = None
    ) -> str:
        """Capture the current state of ``light_ids`` as a new scene.

        ``group_id`` records the room the scene belongs to, so a later
        activation without an explicit group recalls it there.
        """
        body: dict[str, Any] = {
            "name": name,
            "recycle": False,
            "type": "LightScene",
            "lights": list(light_ids),
        }
        if group_id:
            body["group"] = group_id
        result = await self._post("/scenes", body)
        if isinstance(result, list) and result:
            scene_id = (result[0].get("success") or {}).get("id")
            if scene_id:
                return scene_id
        raise HueError("Failed to create scene")

    async def delete_scene(self, scene_id: str) -> Any:
        return await self._delete(f"/scenes/{scene_id}")
