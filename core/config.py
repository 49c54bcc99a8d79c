# =============================================================================
# core/config.py  —  Process-wide settings, loaded once at startup
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Reads the bridge address, credential, listen port and client knobs from
#   the environment (a .env file is loaded first by main.py) into a frozen
#   Settings value.  Everything else receives that value explicitly: the
#   bridge client gets it at construction, the tool catalogue gets it at
#   registration.  Nothing reads os.environ after startup.
#
# ENVIRONMENT VARIABLES:
#   HUE_BRIDGE_IP        bridge address (empty = not configured)
#   HUE_USERNAME         bridge API token from create_auth_token
#   HOST / PORT          listen address for the MCP endpoint (0.0.0.0:3200)
#   HUE_VERIFY_TLS       true/false; unset = skip verification for local bridges
#   HUE_REQUEST_TIMEOUT  per-attempt timeout in seconds (10)
#   HUE_MAX_ATTEMPTS     attempts per bridge call (3)
#   HUE_DISCOVERY_URL    public discovery service
#   LOG_LEVEL            logging level name (INFO)
# =============================================================================

import ipaddress
import os
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_PORT = 3200
DEFAULT_HOST = "0.0.0.0"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DISCOVERY_URL = "https://discovery.meethue.com/"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration."""

    bridge_ip: str = ""
    username: str = ""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    verify_tls: Optional[bool] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    discovery_url: str = DEFAULT_DISCOVERY_URL
    log_level: str = "INFO"

    @property
    def is_configured(self) -> bool:
        return bool(self.bridge_ip and self.username)

    @property
    def missing(self) -> list[str]:
        """Names of the bridge variables that are still empty."""
        names = []
        if not self.bridge_ip:
            names.append("HUE_BRIDGE_IP")
        if not self.username:
            names.append("HUE_USERNAME")
        return names


def is_local_address(host: str) -> bool:
    """True for private, loopback and link-local IPs and mDNS (.local) names."""
    host = host.strip().strip("[]")
    if host.endswith(".local") or host == "localhost":
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


def should_verify_tls(bridge_ip: str, verify_tls: Optional[bool]) -> bool:
    """Resolve the TLS verification flag for a bridge address.

    The bridge serves a self-signed certificate, so verification is skipped
    for bridges on the local network unless HUE_VERIFY_TLS says otherwise.
    """
    if verify_tls is not None:
        return verify_tls
    return not is_local_address(bridge_ip)


def _parse_bool(name: str, raw: Optional[str]) -> Optional[bool]:
    if raw is None or not raw.strip():
        return None
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be true or false, got {raw!r}")


def _parse_number(name: str, raw: Optional[str], cast, default):
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment (or the given mapping)."""
    env = os.environ if environ is None else environ
    return Settings(
        bridge_ip=env.get("HUE_BRIDGE_IP", "").strip(),
        username=env.get("HUE_USERNAME", "").strip(),
        host=env.get("HOST", DEFAULT_HOST).strip() or DEFAULT_HOST,
        port=_parse_number("PORT", env.get("PORT"), int, DEFAULT_PORT),
        verify_tls=_parse_bool("HUE_VERIFY_TLS", env.get("HUE_VERIFY_TLS")),
        request_timeout=_parse_number(
            "HUE_REQUEST_TIMEOUT", env.get("HUE_REQUEST_TIMEOUT"), float, DEFAULT_REQUEST_TIMEOUT
        ),
        max_attempts=_parse_number(
            "HUE_MAX_ATTEMPTS", env.get("HUE_MAX_ATTEMPTS"), int, DEFAULT_MAX_ATTEMPTS
        ),
        discovery_url=env.get("HUE_DISCOVERY_URL", DEFAULT_DISCOVERY_URL).strip() or DEFAULT_DISCOVERY_URL,
        log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
