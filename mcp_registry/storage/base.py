"""Storage interfaces the registry core talks to."""

from abc import ABC, abstractmethod
from datetime import datetime

from mcp_registry.models.registry import (
    HealthMetric,
    Server,
    ServerMetadata,
    ServerRegistration,
    ServerStatus,
    ServerType,
    Tool,
    ToolInvocation,
)


class RegistryStore(ABC):
    """
    CRUD access to registered servers and their tools.

    Every read returns a fresh snapshot; callers must not cache results
    across operations.
    """

    @abstractmethod
    async def get_server_by_id(self, server_id: int) -> Server | None:
        raise NotImplementedError

    @abstractmethod
    async def get_tool_by_server_and_name(self, server_id: int, name: str) -> Tool | None:
        raise NotImplementedError

    @abstractmethod
    async def get_tool_by_id(self, tool_id: int) -> Tool | None:
        raise NotImplementedError

    @abstractmethod
    async def get_active_servers(self) -> list[Server]:
        raise NotImplementedError

    @abstractmethod
    async def update_server_status(self, server_id: int, status: ServerStatus, checked_at: datetime) -> None:
        """Set `status` and `last_health_check`, bumping `updated_at`."""
        raise NotImplementedError

    @abstractmethod
    async def create_server(self, registration: ServerRegistration) -> Server:
        """
        Insert a server with its tools and metadata.

        Credential fields on `registration` must already be vault ciphertext.

        Raises:
            DuplicateServerError: If a server with the same name exists.
        """
        raise NotImplementedError

    @abstractmethod
    async def list_servers(
        self,
        status: ServerStatus | None = None,
        server_type: ServerType | None = None,
        search: str | None = None,
    ) -> list[Server]:
        """Servers in registration order; `search` matches name or display name."""
        raise NotImplementedError

    @abstractmethod
    async def list_tools(self, server_id: int) -> list[Tool]:
        raise NotImplementedError

    @abstractmethod
    async def count_tools_by_server(self) -> dict[int, int]:
        raise NotImplementedError

    @abstractmethod
    async def get_server_metadata(self, server_id: int) -> ServerMetadata | None:
        raise NotImplementedError

    @abstractmethod
    async def search_servers(self, query: str, limit: int = 20) -> list[Server]:
        """Case-insensitive match on name, display name or description."""
        raise NotImplementedError

    @abstractmethod
    async def search_tools(self, query: str, limit: int = 20) -> list[tuple[Tool, Server]]:
        """Case-insensitive match on name, description or category."""
        raise NotImplementedError

    @abstractmethod
    async def list_categories(self) -> list[tuple[str, int]]:
        """(category, tool count) pairs, most populated first; uncategorized tools excluded."""
        raise NotImplementedError

    @abstractmethod
    async def list_tools_by_category(self, category: str) -> list[tuple[Tool, Server]]:
        raise NotImplementedError


class MetricsStore(ABC):
    """Append-only storage for health probes and tool invocations."""

    @abstractmethod
    async def insert_health_metric(self, metric: HealthMetric) -> HealthMetric:
        raise NotImplementedError

    @abstractmethod
    async def insert_tool_invocation(self, invocation: ToolInvocation) -> ToolInvocation:
        raise NotImplementedError

    @abstractmethod
    async def list_health_metrics(self, since: datetime, server_id: int | None = None) -> list[HealthMetric]:
        """Rows checked at or after `since`, oldest first."""
        raise NotImplementedError

    @abstractmethod
    async def list_tool_invocations(
        self, since: datetime, server_id: int | None = None
    ) -> list[ToolInvocation]:
        """Rows invoked at or after `since`, oldest first."""
        raise NotImplementedError


class Store(RegistryStore, MetricsStore):
    """A backend that serves both the registry and the metrics tables."""

    async def close(self) -> None:
        """Release backend resources."""
