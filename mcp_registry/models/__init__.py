"""Data models for the MCP registry."""

from mcp_registry.models.errors import (
    ConfigurationError,
    DecryptionError,
    DuplicateServerError,
    ErrorCode,
    ErrorDetail,
    RegistryError,
)
from mcp_registry.models.proxy import AuthCredentials, ProxyRequest, ProxyResult, TransportResult
from mcp_registry.models.registry import (
    AuthType,
    HealthMetric,
    Server,
    ServerMetadata,
    ServerRegistration,
    ServerStatus,
    ServerType,
    Tool,
    ToolInvocation,
)

__all__ = [
    "AuthCredentials",
    "AuthType",
    "ConfigurationError",
    "DecryptionError",
    "DuplicateServerError",
    "ErrorCode",
    "ErrorDetail",
    "HealthMetric",
    "ProxyRequest",
    "ProxyResult",
    "RegistryError",
    "Server",
    "ServerMetadata",
    "ServerRegistration",
    "ServerStatus",
    "ServerType",
    "Tool",
    "ToolInvocation",
    "TransportResult",
]
