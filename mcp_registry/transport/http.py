"""Streamable-HTTP style transport: one JSON-RPC POST per invocation."""

import asyncio
import itertools
from typing import Any

import httpx

from mcp_registry.models.proxy import AuthCredentials, TransportResult
from mcp_registry.transport.auth import build_auth_headers
from mcp_registry.transport.base import DEFAULT_TIMEOUT_SECONDS, BaseTransport, TransportKind
from mcp_registry.transport.jsonrpc import build_tools_call, interpret_response
from mcp_registry.utils.logging import get_logger

logger = get_logger(__name__)


class HttpTransport(BaseTransport):
    """
    POSTs a JSON-RPC `tools/call` request to the endpoint URL itself.

    Request ids come from a counter owned by this instance. An
    `httpx.AsyncClient` may be shared across calls; without one a client is
    opened per call.
    """

    kind = TransportKind.HTTP

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client
        self._ids = itertools.count(1)

    def next_request_id(self) -> int:
        return next(self._ids)

    async def invoke(
        self,
        endpoint_url: str,
        tool_name: str,
        arguments: dict[str, Any],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        auth: AuthCredentials | None = None,
    ) -> TransportResult:
        request_id = self.next_request_id()
        body = build_tools_call(request_id, tool_name, arguments)
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            **build_auth_headers(auth),
        }

        logger.debug(
            "transport_request",
            transport=self.kind.value,
            endpoint_url=endpoint_url,
            tool_name=tool_name,
            request_id=request_id,
        )

        try:
            response = await asyncio.wait_for(
                self._post(endpoint_url, body, headers, timeout), timeout=timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(
                "transport_timeout", transport=self.kind.value, endpoint_url=endpoint_url, timeout=timeout
            )
            return TransportResult.fail(f"Request timeout after {int(timeout * 1000)}ms")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(
                "transport_request_failed",
                transport=self.kind.value,
                endpoint_url=endpoint_url,
                error=str(e),
            )
            return TransportResult.fail(str(e) or type(e).__name__)

        if not response.is_success:
            return TransportResult.fail(f"HTTP {response.status_code}: {response.text or 'Unknown error'}")

        return self.handle_response(response)

    async def _post(
        self, url: str, body: dict[str, Any], headers: dict[str, str], timeout: float
    ) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=body, headers=headers, timeout=timeout)
        async with httpx.AsyncClient() as client:
            return await client.post(url, json=body, headers=headers, timeout=timeout)

    def handle_response(self, response: httpx.Response) -> TransportResult:
        """Parse a 2xx response body as a JSON-RPC response."""
        try:
            payload = response.json()
        except ValueError as e:
            return TransportResult.fail(f"Invalid JSON-RPC response: {e}")
        return interpret_response(payload)
