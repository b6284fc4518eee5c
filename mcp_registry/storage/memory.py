"""In-memory store (not persistent across restarts)."""

from collections import Counter
from datetime import datetime

from mcp_registry.models.errors import DuplicateServerError
from mcp_registry.models.registry import (
    HealthMetric,
    Server,
    ServerMetadata,
    ServerRegistration,
    ServerStatus,
    ServerType,
    Tool,
    ToolInvocation,
    utcnow,
)
from mcp_registry.storage.base import Store
from mcp_registry.utils.logging import get_logger

logger = get_logger(__name__)


def _contains(value: str | None, needle: str) -> bool:
    return value is not None and needle in value.lower()


class MemoryStore(Store):
    """Dictionary-backed store, used for tests and local experiments."""

    def __init__(self) -> None:
        self.servers: dict[int, Server] = {}
        self.tools: dict[int, Tool] = {}
        self.metadata: dict[int, ServerMetadata] = {}
        self.health_metrics: list[HealthMetric] = []
        self.tool_invocations: list[ToolInvocation] = []
        self._next_ids: Counter[str] = Counter()

    def _next_id(self, table: str) -> int:
        self._next_ids[table] += 1
        return self._next_ids[table]

    # --- registry ---

    async def get_server_by_id(self, server_id: int) -> Server | None:
        server = self.servers.get(server_id)
        return server.model_copy() if server else None

    async def get_tool_by_server_and_name(self, server_id: int, name: str) -> Tool | None:
        for tool in self.tools.values():
            if tool.server_id == server_id and tool.name == name:
                return tool.model_copy()
        return None

    async def get_tool_by_id(self, tool_id: int) -> Tool | None:
        tool = self.tools.get(tool_id)
        return tool.model_copy() if tool else None

    async def get_active_servers(self) -> list[Server]:
        return [s.model_copy() for s in self.servers.values() if s.status == ServerStatus.ACTIVE]

    async def update_server_status(self, server_id: int, status: ServerStatus, checked_at: datetime) -> None:
        server = self.servers.get(server_id)
        if server is None:
            return
        self.servers[server_id] = server.model_copy(
            update={"status": status, "last_health_check": checked_at, "updated_at": utcnow()}
        )

    async def create_server(self, registration: ServerRegistration) -> Server:
        if any(s.name == registration.name for s in self.servers.values()):
            raise DuplicateServerError(registration.name)

        server = Server(
            id=self._next_id("servers"),
            name=registration.name,
            display_name=registration.display_name,
            description=registration.description,
            server_type=registration.server_type,
            endpoint_url=registration.endpoint_url,
            status=ServerStatus.ACTIVE,
            version=registration.version,
            auth_type=registration.auth_type,
            auth_username=registration.auth_username,
            auth_password=registration.auth_password,
            auth_token=registration.auth_token,
        )
        self.servers[server.id] = server

        if registration.metadata is not None:
            meta = registration.metadata
            self.metadata[server.id] = ServerMetadata(
                server_id=server.id,
                author=meta.author,
                repository_url=str(meta.repository_url) if meta.repository_url else None,
                documentation_url=str(meta.documentation_url) if meta.documentation_url else None,
                tags=meta.tags,
            )

        for tool in registration.tools:
            tool_id = self._next_id("tools")
            self.tools[tool_id] = Tool(
                id=tool_id,
                server_id=server.id,
                name=tool.name,
                description=tool.description,
                input_schema=tool.input_schema,
                category=tool.category,
            )

        logger.debug("memory_store_server_created", server_id=server.id, name=server.name)
        return server.model_copy()

    async def list_servers(
        self,
        status: ServerStatus | None = None,
        server_type: ServerType | None = None,
        search: str | None = None,
    ) -> list[Server]:
        needle = search.lower() if search else None
        servers = []
        for server in sorted(self.servers.values(), key=lambda s: (s.created_at, s.id)):
            if status is not None and server.status != status:
                continue
            if server_type is not None and server.server_type != server_type:
                continue
            if needle and not (_contains(server.name, needle) or _contains(server.display_name, needle)):
                continue
            servers.append(server.model_copy())
        return servers

    async def list_tools(self, server_id: int) -> list[Tool]:
        return [t.model_copy() for t in self.tools.values() if t.server_id == server_id]

    async def count_tools_by_server(self) -> dict[int, int]:
        return dict(Counter(tool.server_id for tool in self.tools.values()))

    async def get_server_metadata(self, server_id: int) -> ServerMetadata | None:
        meta = self.metadata.get(server_id)
        return meta.model_copy() if meta else None

    async def search_servers(self, query: str, limit: int = 20) -> list[Server]:
        needle = query.lower()
        matches = [
            s.model_copy()
            for s in self.servers.values()
            if _contains(s.name, needle) or _contains(s.display_name, needle) or _contains(s.description, needle)
        ]
        return matches[:limit]

    async def search_tools(self, query: str, limit: int = 20) -> list[tuple[Tool, Server]]:
        needle = query.lower()
        matches = [
            (t.model_copy(), self.servers[t.server_id].model_copy())
            for t in self.tools.values()
            if _contains(t.name, needle) or _contains(t.description, needle) or _contains(t.category, needle)
        ]
        return matches[:limit]

    async def list_categories(self) -> list[tuple[str, int]]:
        counts = Counter(t.category for t in self.tools.values() if t.category is not None)
        return counts.most_common()

    async def list_tools_by_category(self, category: str) -> list[tuple[Tool, Server]]:
        return [
            (t.model_copy(), self.servers[t.server_id].model_copy())
            for t in self.tools.values()
            if t.category == category
        ]

    # --- metrics ---

    async def insert_health_metric(self, metric: HealthMetric) -> HealthMetric:
        stored = metric.model_copy(update={"id": self._next_id("health_metrics")})
        self.health_metrics.append(stored)
        return stored

    async def insert_tool_invocation(self, invocation: ToolInvocation) -> ToolInvocation:
        stored = invocation.model_copy(update={"id": self._next_id("tool_invocations")})
        self.tool_invocations.append(stored)
        return stored

    async def list_health_metrics(self, since: datetime, server_id: int | None = None) -> list[HealthMetric]:
        rows = [
            m
            for m in self.health_metrics
            if m.checked_at >= since and (server_id is None or m.server_id == server_id)
        ]
        return sorted(rows, key=lambda m: m.checked_at)

    async def list_tool_invocations(
        self, since: datetime, server_id: int | None = None
    ) -> list[ToolInvocation]:
        rows = [
            i
            for i in self.tool_invocations
            if i.invoked_at >= since and (server_id is None or i.server_id == server_id)
        ]
        return sorted(rows, key=lambda i: i.invoked_at)
