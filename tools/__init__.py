# =============================================================================
# tools/__init__.py
# =============================================================================
# FastMCP tool wrappers for the Hue bridge.
#
# ARCHITECTURAL ROLE:
#   tools/ translates between the agent and core/.  Each tool:
#     1. Takes agent-friendly arguments (0..1 brightness, CSS colours)
#     2. Converts them into native bridge values with core/color.py
#     3. Calls one HueClient operation
#     4. Answers with short text or pretty-printed JSON
#
# WHAT TOOLS DO NOT DO:
#   - They do NOT talk HTTP to the bridge themselves (that's core/hue_client.py)
#   - They do NOT know how they are transported (that's transport/)
#
# TOOL CONTRACT QUALITY:
#   The agent only sees a tool's name, docstring and parameter schema, so
#   every tool carries a precise docstring, typed and bounded parameters and
#   <example> lines showing real calls.
# =============================================================================
