"""Transport classification and the abstract transport interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from mcp_registry.models.proxy import AuthCredentials, TransportResult

DEFAULT_TIMEOUT_SECONDS = 10.0

# Substrings that mark an endpoint as a locally launched stdio server
STDIO_INDICATORS = ("stdio://", "npx ", "node ", "python ", "uvx ")

SSE_PATH_SEGMENT = "sse"


class TransportKind(str, Enum):
    STDIO = "stdio"
    SSE = "sse"
    HTTP = "http"


def detect_transport(endpoint_url: str) -> TransportKind:
    """
    Classify an endpoint URL by transport.

    Checked in priority order: stdio indicators anywhere in the URL, then an
    `sse` path segment, then plain HTTP.
    """
    lowered = endpoint_url.lower()
    if any(indicator in lowered for indicator in STDIO_INDICATORS):
        return TransportKind.STDIO

    try:
        path = urlsplit(lowered).path
    except ValueError:
        # Unparseable URLs are left for the HTTP transport to reject
        return TransportKind.HTTP
    if SSE_PATH_SEGMENT in (segment for segment in path.split("/") if segment):
        return TransportKind.SSE

    return TransportKind.HTTP


class BaseTransport(ABC):
    """
    Abstract Base Class for MCP transports.

    A transport performs exactly one `tools/call` round trip and reports the
    outcome as a `TransportResult`. Implementations never raise for remote or
    network failures; those come back as failed results.
    """

    kind: TransportKind

    @abstractmethod
    async def invoke(
        self,
        endpoint_url: str,
        tool_name: str,
        arguments: dict[str, Any],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        auth: AuthCredentials | None = None,
    ) -> TransportResult:
        """
        Invoke a tool on the server behind `endpoint_url`.

        Args:
            endpoint_url: The server's registered endpoint.
            tool_name: Name of the tool to call.
            arguments: JSON object passed as the tool's arguments.
            timeout: Upper bound in seconds for the whole round trip.
            auth: Decrypted credentials, or None for an unauthenticated call.
        """
        raise NotImplementedError
