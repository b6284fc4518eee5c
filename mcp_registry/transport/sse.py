"""SSE endpoint transport. Only non-streaming replies are supported."""

import httpx

from mcp_registry.models.proxy import TransportResult
from mcp_registry.transport.base import TransportKind
from mcp_registry.transport.http import HttpTransport
from mcp_registry.transport.jsonrpc import interpret_response

EVENT_STREAM = "text/event-stream"
JSON_CONTENT = "application/json"


class SseTransport(HttpTransport):
    """
    Sends the same JSON-RPC POST as `HttpTransport` to an SSE endpoint.

    A JSON reply is interpreted as JSON-RPC. An event-stream reply is
    reported as unsupported. Any other reply is parsed as JSON when possible
    and otherwise returned as raw text.
    """

    kind = TransportKind.SSE

    def handle_response(self, response: httpx.Response) -> TransportResult:
        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()

        if content_type == JSON_CONTENT:
            return super().handle_response(response)

        if content_type == EVENT_STREAM:
            return TransportResult.fail(
                "SSE streaming not supported: the server replied with an event stream. "
                "Use an HTTP endpoint or connect to the server directly."
            )

        try:
            payload = response.json()
        except ValueError:
            return TransportResult.ok(response.text)
        return interpret_response(payload)
