"""Models for the invocation proxy and its transports."""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from mcp_registry.models.errors import ErrorCode
from mcp_registry.models.registry import AuthType


class ProxyRequest(BaseModel):
    """Request body for POST /api/proxy/invoke."""

    server_id: int = Field(..., gt=0)
    tool_name: str = Field(..., min_length=1, max_length=255)
    arguments: dict[str, Any] = Field(default_factory=dict)


class ProxyResult(BaseModel):
    """
    Outcome of one proxied invocation.

    Always carries the elapsed time, including for lookups that failed
    before any network traffic happened.
    """

    success: bool
    result: Any = None
    error: str | None = None
    error_code: ErrorCode | None = None
    duration_ms: int
    server_name: str | None = None
    tool_name: str | None = None


@dataclass(frozen=True)
class AuthCredentials:
    """Decrypted credentials for one outbound call. Never persisted."""

    auth_type: AuthType
    username: str | None = None
    password: str | None = None
    token: str | None = None


@dataclass
class TransportResult:
    """Uniform result of a single transport round trip."""

    success: bool
    result: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, result: Any) -> "TransportResult":
        return cls(success=True, result=result)

    @classmethod
    def fail(cls, error: str) -> "TransportResult":
        return cls(success=False, error=error)
