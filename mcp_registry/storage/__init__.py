"""Storage backends for the registry and its metrics."""

from mcp_registry.storage.base import MetricsStore, RegistryStore, Store
from mcp_registry.storage.memory import MemoryStore
from mcp_registry.storage.sql import SqlStore

__all__ = ["MemoryStore", "MetricsStore", "RegistryStore", "SqlStore", "Store"]
