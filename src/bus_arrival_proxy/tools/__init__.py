"""MCP tools. Importing this package registers every tool on the app."""

from bus_arrival_proxy.tools import arrival_tools, stop_tools

__all__ = ["arrival_tools", "stop_tools"]
