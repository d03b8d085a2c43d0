"""MCP application instance.

This module exists to avoid circular import issues when running with `python -m`.
All tool modules should import `mcp` from here, not from server.py.
"""

from mcp.server.fastmcp import FastMCP

# Initialize the MCP server
mcp = FastMCP(
    "Bus Arrival Proxy",
    instructions="Cached Singapore bus arrivals from LTA DataMall - single stop, batch, and stop lookup",
)
