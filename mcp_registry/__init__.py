"""MCP server registry and invocation proxy."""

__version__ = "0.1.0"
