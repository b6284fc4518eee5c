"""
Invocation proxy: forwards `tools/call` requests to registered MCP servers.

For each call the proxy:
1. Looks up the server and the tool in the registry
2. Picks a transport from the server's endpoint URL
3. Decrypts stored credentials (falling back to no auth if that fails)
4. Invokes the tool through the transport
5. Records the attempt in the tool_invocations metrics table
"""

import time
from typing import Any
from uuid import uuid4

from mcp_registry.models.errors import ConfigurationError, DecryptionError, ErrorCode
from mcp_registry.models.proxy import AuthCredentials, ProxyResult
from mcp_registry.models.registry import AuthType, Server, ToolInvocation
from mcp_registry.security.vault import CredentialVault
from mcp_registry.storage.base import MetricsStore, RegistryStore
from mcp_registry.transport import BaseTransport, TransportKind, default_transports, detect_transport
from mcp_registry.transport.base import DEFAULT_TIMEOUT_SECONDS
from mcp_registry.utils.logging import get_logger

logger = get_logger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class InvocationProxy:
    """
    Stateless per call: server and tool rows are re-read on every invocation.

    The only state held here is configuration (stores, vault, transports,
    timeout); concurrent `invoke` calls do not coordinate.
    """

    def __init__(
        self,
        registry: RegistryStore,
        metrics: MetricsStore,
        vault: CredentialVault,
        transports: dict[TransportKind, BaseTransport] | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.registry = registry
        self.metrics = metrics
        self.vault = vault
        self.transports = transports or default_transports()
        self.timeout = timeout

    async def invoke(self, server_id: int, tool_name: str, arguments: dict[str, Any]) -> ProxyResult:
        """
        Invoke `tool_name` on server `server_id`.

        Never raises: every failure, including unexpected ones, is returned
        as an unsuccessful ProxyResult with an error code.
        """
        start = time.monotonic()
        bound_logger = logger.bind(
            correlation_id=str(uuid4()), server_id=server_id, tool_name=tool_name
        )
        bound_logger.info("proxy_invocation_requested")

        try:
            server = await self.registry.get_server_by_id(server_id)
            if server is None:
                bound_logger.warning("proxy_server_not_found")
                return ProxyResult(
                    success=False,
                    error="Server not found",
                    error_code=ErrorCode.SERVER_NOT_FOUND,
                    duration_ms=_elapsed_ms(start),
                )

            tool = await self.registry.get_tool_by_server_and_name(server_id, tool_name)
            if tool is None:
                bound_logger.warning("proxy_tool_not_found", server_name=server.name)
                return ProxyResult(
                    success=False,
                    error=f"Tool '{tool_name}' not found on server '{server.name}'",
                    error_code=ErrorCode.TOOL_NOT_FOUND,
                    server_name=server.name,
                    duration_ms=_elapsed_ms(start),
                )

            kind = detect_transport(server.endpoint_url)
            transport = self.transports[kind]

            if kind == TransportKind.STDIO:
                outcome = await transport.invoke(server.endpoint_url, tool.name, arguments, self.timeout)
                duration_ms = _elapsed_ms(start)
                await self._record_invocation(server.id, tool.id, duration_ms, False)
                bound_logger.info("proxy_stdio_rejected", server_name=server.name)
                return ProxyResult(
                    success=False,
                    error=outcome.error,
                    error_code=ErrorCode.INVOCATION_ERROR,
                    server_name=server.name,
                    tool_name=tool.name,
                    duration_ms=duration_ms,
                )

            auth = self._resolve_auth(server)
            outcome = await transport.invoke(
                server.endpoint_url, tool.name, arguments, timeout=self.timeout, auth=auth
            )

            duration_ms = _elapsed_ms(start)
            await self._record_invocation(server.id, tool.id, duration_ms, outcome.success)

            if not outcome.success:
                bound_logger.warning(
                    "proxy_invocation_failed",
                    transport=kind.value,
                    error=outcome.error,
                    duration_ms=duration_ms,
                )
                return ProxyResult(
                    success=False,
                    error=outcome.error,
                    error_code=ErrorCode.INVOCATION_ERROR,
                    server_name=server.name,
                    tool_name=tool.name,
                    duration_ms=duration_ms,
                )

            bound_logger.info(
                "proxy_invocation_succeeded",
                server_name=server.name,
                transport=kind.value,
                duration_ms=duration_ms,
            )
            return ProxyResult(
                success=True,
                result=outcome.result,
                server_name=server.name,
                tool_name=tool.name,
                duration_ms=duration_ms,
            )

        except Exception as e:
            duration_ms = _elapsed_ms(start)
            bound_logger.error("proxy_invocation_error", error=str(e), exc_info=True)
            return ProxyResult(
                success=False,
                error=str(e) or "Unknown error",
                error_code=ErrorCode.INTERNAL_ERROR,
                duration_ms=duration_ms,
            )

    def _resolve_auth(self, server: Server) -> AuthCredentials | None:
        """
        Decrypt the server's stored credentials.

        A vault failure is logged and downgrades the call to unauthenticated.
        """
        if not server.requires_auth:
            return None

        try:
            if server.auth_type == AuthType.BASIC:
                return AuthCredentials(
                    auth_type=AuthType.BASIC,
                    username=server.auth_username,
                    password=self.vault.decrypt(server.auth_password),
                )
            return AuthCredentials(auth_type=server.auth_type, token=self.vault.decrypt(server.auth_token))
        except (DecryptionError, ConfigurationError) as e:
            logger.warning(
                "proxy_credentials_unavailable",
                server_id=server.id,
                auth_type=server.auth_type.value if server.auth_type else None,
                error=e.message,
            )
            return None

    async def _record_invocation(self, server_id: int, tool_id: int, duration_ms: int, success: bool) -> None:
        try:
            await self.metrics.insert_tool_invocation(
                ToolInvocation(server_id=server_id, tool_id=tool_id, duration_ms=duration_ms, success=success)
            )
            logger.debug(
                "proxy_invocation_recorded", server_id=server_id, tool_id=tool_id, success=success
            )
        except Exception as e:
            logger.error("proxy_invocation_record_failed", server_id=server_id, tool_id=tool_id, error=str(e))
