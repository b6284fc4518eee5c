"""
Server registry operations behind the /api/registry endpoints.

Registration is the only place plaintext credentials exist: they are
encrypted with the vault before the store ever sees them. Every read path
returns the public view of a server, without credential fields.
"""

from typing import Any

from mcp_registry.models.errors import ErrorCode, RegistryError
from mcp_registry.models.registry import AuthType, Server, ServerRegistration, ServerStatus, ServerType
from mcp_registry.security.vault import CredentialVault
from mcp_registry.storage.base import RegistryStore
from mcp_registry.utils.logging import get_logger

logger = get_logger(__name__)

SEARCH_RESULT_LIMIT = 20
MIN_QUERY_LENGTH = 2


class ServerRegistry:
    def __init__(self, store: RegistryStore, vault: CredentialVault) -> None:
        self.store = store
        self.vault = vault

    async def register(self, registration: ServerRegistration) -> Server:
        """
        Register a server with its tools and metadata.

        Raises:
            DuplicateServerError: If a server with the same name exists.
            ConfigurationError: If credentials were supplied but the vault has no usable key.
        """
        sealed = self._seal_credentials(registration)
        server = await self.store.create_server(sealed)
        logger.info(
            "server_registered",
            server_id=server.id,
            name=server.name,
            tool_count=len(registration.tools),
            auth_type=server.auth_type.value if server.auth_type else None,
        )
        return server

    def _seal_credentials(self, registration: ServerRegistration) -> ServerRegistration:
        if registration.auth_type in (None, AuthType.NONE):
            return registration
        return registration.model_copy(
            update={
                "auth_password": self.vault.encrypt(registration.auth_password) or None,
                "auth_token": self.vault.encrypt(registration.auth_token) or None,
            }
        )

    async def list_servers(
        self,
        status: ServerStatus | None = None,
        server_type: ServerType | None = None,
        search: str | None = None,
    ) -> list[dict[str, Any]]:
        servers = await self.store.list_servers(status=status, server_type=server_type, search=search)
        tool_counts = await self.store.count_tools_by_server()
        return [
            {
                "id": server.id,
                "name": server.name,
                "display_name": server.display_name,
                "server_type": server.server_type.value,
                "status": server.status.value,
                "version": server.version,
                "last_health_check": server.last_health_check.isoformat() if server.last_health_check else None,
                "tools_count": tool_counts.get(server.id, 0),
            }
            for server in servers
        ]

    async def get_server_detail(self, server_id: int) -> dict[str, Any] | None:
        server = await self.store.get_server_by_id(server_id)
        if server is None:
            return None

        metadata = await self.store.get_server_metadata(server_id)
        tools = await self.store.list_tools(server_id)
        return {
            **server.public_dict(),
            "metadata": metadata.model_dump(mode="json") if metadata else None,
            "tools": [tool.model_dump(mode="json") for tool in tools],
        }

    async def search(self, query: str) -> dict[str, Any]:
        """Case-insensitive substring search over servers and tools."""
        if len(query) < MIN_QUERY_LENGTH:
            raise RegistryError(
                code=ErrorCode.VALIDATION_ERROR,
                message=f"Query parameter 'q' is required and must be at least {MIN_QUERY_LENGTH} characters",
            )

        servers = await self.store.search_servers(query, limit=SEARCH_RESULT_LIMIT)
        tool_matches = await self.store.search_tools(query, limit=SEARCH_RESULT_LIMIT)

        server_results = [
            {
                "id": s.id,
                "name": s.name,
                "display_name": s.display_name,
                "description": s.description,
                "server_type": s.server_type.value,
                "status": s.status.value,
            }
            for s in servers
        ]
        tool_results = [
            {
                "tool_id": tool.id,
                "tool_name": tool.name,
                "tool_description": tool.description,
                "tool_category": tool.category,
                "server_id": server.id,
                "server_name": server.name,
            }
            for tool, server in tool_matches
        ]
        return {
            "query": query,
            "servers": server_results,
            "tools": tool_results,
            "total_results": len(server_results) + len(tool_results),
        }

    async def list_categories(self) -> dict[str, Any]:
        categories = [
            {"name": name, "tool_count": count} for name, count in await self.store.list_categories()
        ]
        return {"categories": categories, "total": len(categories)}

    async def list_category_tools(self, category: str) -> dict[str, Any]:
        matches = await self.store.list_tools_by_category(category)
        tools = [
            {
                "id": tool.id,
                "name": tool.name,
                "description": tool.description,
                "category": tool.category,
                "server_id": server.id,
                "server_name": server.name,
                "server_status": server.status.value,
            }
            for tool, server in matches
        ]
        return {"category": category, "tools": tools, "total": len(tools)}
