# =============================================================================
# core/models.py  —  Data Models (lights, rooms, scenes, state updates)
# =============================================================================
#
# These dataclasses are the typed projection of the bridge's v1 REST
# resources.  Nothing here is persisted: every record is rebuilt from a fresh
# bridge response on each query.
#
# NATIVE RANGES (what the bridge accepts on the wire):
#   - bri  : 1..254     (0 is not "dark", the bridge rejects it; use on=false)
#   - hue  : 0..65535   (wraps: 0 and 65535 are both red)
#   - sat  : 0..254
#   - ct   : 153..500 mireds (153 = cool daylight, 500 = warm candlelight)
# =============================================================================

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


MIN_BRIGHTNESS = 1
MAX_BRIGHTNESS = 254
MAX_HUE = 65535
MAX_SATURATION = 254
MIN_COLOR_TEMP = 153
MAX_COLOR_TEMP = 500

# The bridge's pseudo-group that always contains every light.
ALL_LIGHTS_GROUP = "0"

# Group types that count as "rooms" for list_rooms.
ROOM_GROUP_TYPES = ("Room", "Zone")


def clamp_brightness(bri: int) -> int:
    """Clamp a native brightness into [1, 254]."""
    return max(MIN_BRIGHTNESS, min(MAX_BRIGHTNESS, int(bri)))


def wrap_hue(hue: int) -> int:
    """Wrap a native hue into [0, 65535]."""
    return int(hue) % (MAX_HUE + 1)


def clamp_color_temp(ct: int) -> int:
    """Clamp a colour temperature (mireds) into [153, 500]."""
    return max(MIN_COLOR_TEMP, min(MAX_COLOR_TEMP, int(ct)))


# -----------------------------------------------------------------------------
# Light: one bulb/strip as reported by GET /lights
# -----------------------------------------------------------------------------
@dataclass
class Light:
    """Current state of a single light."""

    id: str
    name: str
    type: str                          # e.g. "Extended color light"
    on: bool
    brightness: int                    # native 1..254
    reachable: bool
    color_mode: Optional[str] = None   # "hs", "xy" or "ct"; absent on dimmables
    hue: Optional[int] = None
    saturation: Optional[int] = None
    color_temp: Optional[int] = None   # mireds

    @classmethod
    def from_bridge(cls, light_id: str, data: dict[str, Any]) -> "Light":
        state = data.get("state", {})
        return cls(
            id=str(light_id),
            name=data.get("name", ""),
            type=data.get("type", ""),
            on=bool(state.get("on", False)),
            brightness=state.get("bri", 0),
            reachable=bool(state.get("reachable", False)),
            color_mode=state.get("colormode"),
            hue=state.get("hue"),
            saturation=state.get("sat"),
            color_temp=state.get("ct"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# -----------------------------------------------------------------------------
# Room: any bridge group (room, zone, entertainment area, "0" = everything)
# -----------------------------------------------------------------------------
@dataclass
class Room:
    """A bridge group and the aggregate state of its last action."""

    id: str
    name: str
    type: str
    lights: list[str] = field(default_factory=list)
    on: bool = False
    brightness: int = 0

    @classmethod
    def from_bridge(cls, group_id: str, data: dict[str, Any]) -> "Room":
        action = data.get("action") or {}
        return cls(
            id=str(group_id),
            name=data.get("name", ""),
            type=data.get("type", ""),
            lights=[str(light_id) for light_id in data.get("lights", [])],
            on=bool(action.get("on", False)),
            brightness=action.get("bri", 0),
        )

    @property
    def is_room(self) -> bool:
        return self.type in ROOM_GROUP_TYPES

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# -----------------------------------------------------------------------------
# Scene: a stored snapshot of light states
# -----------------------------------------------------------------------------
@dataclass
class Scene:
    """A scene stored on the bridge."""

    id: str
    name: str
    type: str
    group: Optional[str] = None        # only set for GroupScene

    @classmethod
    def from_bridge(cls, scene_id: str, data: dict[str, Any]) -> "Scene":
        group = data.get("group")
        return cls(
            id=str(scene_id),
            name=data.get("name", ""),
            type=data.get("type", ""),
            group=str(group) if group else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# -----------------------------------------------------------------------------
# LightState: a partial state update (PUT body)
# -----------------------------------------------------------------------------
# Every field is optional.  Only the fields that are set end up in the PUT
# body, so anything the caller leaves out stays untouched on the bridge.
# The same body shape works for /lights/{id}/state and /groups/{id}/action.
# -----------------------------------------------------------------------------
@dataclass
class LightState:
    """Partial state update for a light or a group."""

    on: Optional[bool] = None
    bri: Optional[int] = None
    hue: Optional[int] = None
    sat: Optional[int] = None
    ct: Optional[int] = None
    transitiontime: Optional[int] = None   # 100 ms units (10 = 1 second)
    scene: Optional[str] = None            # groups only

    def __post_init__(self) -> None:
        if self.bri is not None:
            self.bri = clamp_brightness(self.bri)
        if self.hue is not None:
            self.hue = wrap_hue(self.hue)
        if self.sat is not None:
            self.sat = max(0, min(MAX_SATURATION, int(self.sat)))
        if self.ct is not None:
            self.ct = clamp_color_temp(self.ct)
        if self.transitiontime is not None:
            self.transitiontime = max(0, int(self.transitiontime))

    def to_payload(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    def is_empty(self) -> bool:
        return not self.to_payload()
