"""Transports used by the invocation proxy to reach MCP servers."""

import httpx

from mcp_registry.transport.base import BaseTransport, TransportKind, detect_transport
from mcp_registry.transport.http import HttpTransport
from mcp_registry.transport.sse import SseTransport
from mcp_registry.transport.stdio import StdioTransport


def default_transports(client: httpx.AsyncClient | None = None) -> dict[TransportKind, BaseTransport]:
    """One transport per kind, sharing `client` for the network-backed ones."""
    return {
        TransportKind.HTTP: HttpTransport(client),
        TransportKind.SSE: SseTransport(client),
        TransportKind.STDIO: StdioTransport(),
    }


__all__ = [
    "BaseTransport",
    "HttpTransport",
    "SseTransport",
    "StdioTransport",
    "TransportKind",
    "default_transports",
    "detect_transport",
]
