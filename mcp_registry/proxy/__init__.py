"""Invocation proxy for registered MCP servers."""

from mcp_registry.proxy.invoker import InvocationProxy

__all__ = ["InvocationProxy"]
