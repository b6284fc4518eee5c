"""Placeholder transport for stdio servers, which cannot be proxied."""

from typing import Any

from mcp_registry.models.proxy import AuthCredentials, TransportResult
from mcp_registry.transport.base import DEFAULT_TIMEOUT_SECONDS, BaseTransport, TransportKind


class StdioTransport(BaseTransport):
    """Always fails without spawning anything."""

    kind = TransportKind.STDIO

    async def invoke(
        self,
        endpoint_url: str,
        tool_name: str,
        arguments: dict[str, Any],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        auth: AuthCredentials | None = None,
    ) -> TransportResult:
        return TransportResult.fail(
            f"Endpoint '{endpoint_url}' uses stdio transport and cannot be invoked via HTTP proxy. "
            "Connect directly using stdio transport."
        )
