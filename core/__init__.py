# =============================================================================
# core/__init__.py
# =============================================================================
# This package holds the bridge-facing logic of the Hue MCP server:
#   models.py     Light / Room / Scene records and the LightState payload
#   color.py      CSS colour expressions -> native hue/sat/bri
#   config.py     Settings loaded once from the environment
#   queue.py      serialized request queue with retries
#   hue_client.py async client for the bridge v1 REST API
#   setup.py      bridge discovery and pairing
#
# ARCHITECTURAL RULE:
#   Nothing in this package imports FastMCP, Starlette or the MCP SDK.
#   The tool layer and the HTTP layer sit on top; core/ can be driven from a
#   plain asyncio script.
# =============================================================================
