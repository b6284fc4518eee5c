"""Registry data models: servers, tools and the metric facts recorded against them."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from jsonschema import SchemaError
from jsonschema.validators import validator_for
from pydantic import BaseModel, Field, HttpUrl, field_validator, model_validator


class ServerType(str, Enum):
    OFFICIAL = "official"
    COMMUNITY = "community"
    MOCK = "mock"


class ServerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class AuthType(str, Enum):
    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"
    API_KEY = "api_key"


def utcnow() -> datetime:
    return datetime.now(UTC)


class Server(BaseModel):
    """
    A registered MCP server.

    `auth_password` and `auth_token` hold vault ciphertext, never plaintext.
    """

    id: int
    name: str
    display_name: str
    description: str | None = None
    server_type: ServerType
    endpoint_url: str
    status: ServerStatus = ServerStatus.ACTIVE
    version: str | None = None
    last_health_check: datetime | None = None
    auth_type: AuthType | None = None
    auth_username: str | None = None
    auth_password: str | None = None
    auth_token: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def requires_auth(self) -> bool:
        return self.auth_type is not None and self.auth_type != AuthType.NONE

    def public_dict(self) -> dict[str, Any]:
        """Serializable view without credential fields."""
        return self.model_dump(
            mode="json", exclude={"auth_username", "auth_password", "auth_token"}
        )


class Tool(BaseModel):
    """A tool exposed by exactly one server."""

    id: int
    server_id: int
    name: str
    description: str | None = None
    input_schema: dict[str, Any] | None = None
    category: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class ServerMetadata(BaseModel):
    server_id: int
    author: str | None = None
    repository_url: str | None = None
    documentation_url: str | None = None
    tags: list[str] | None = None


class HealthMetric(BaseModel):
    """One row per health probe. Append-only."""

    id: int | None = None
    server_id: int
    response_time_ms: int | None = None
    status_code: int | None = None
    error_message: str | None = None
    checked_at: datetime = Field(default_factory=utcnow)


class ToolInvocation(BaseModel):
    """One row per proxied invocation attempt. Append-only."""

    id: int | None = None
    server_id: int
    tool_id: int
    duration_ms: int
    success: bool
    invoked_at: datetime = Field(default_factory=utcnow)


# --- Registration payloads ---


class ToolRegistration(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str
    input_schema: dict[str, Any]
    category: str | None = Field(None, max_length=100)

    @field_validator("input_schema")
    @classmethod
    def _check_input_schema(cls, value: dict[str, Any]) -> dict[str, Any]:
        """The schema must itself be a well-formed JSON Schema document."""
        try:
            validator_for(value).check_schema(value)
        except SchemaError as e:
            raise ValueError(f"invalid input_schema: {e.message}") from e
        return value


class MetadataRegistration(BaseModel):
    author: str | None = None
    repository_url: HttpUrl | None = None
    documentation_url: HttpUrl | None = None
    tags: list[str] | None = None


class ServerRegistration(BaseModel):
    """
    Payload for registering a server and its tools.

    Credentials arrive in plaintext and are encrypted before storage. The
    credential fields must match `auth_type`: basic takes a username and
    password, bearer and api_key take a token only, none (or no auth_type)
    takes nothing.
    """

    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    server_type: ServerType
    endpoint_url: str = Field(..., min_length=1, max_length=512)
    version: str | None = Field(None, max_length=50)
    metadata: MetadataRegistration | None = None
    tools: list[ToolRegistration] = Field(default_factory=list)
    auth_type: AuthType | None = None
    auth_username: str | None = None
    auth_password: str | None = None
    auth_token: str | None = None

    @model_validator(mode="after")
    def _check_credentials(self) -> "ServerRegistration":
        supplied = {
            field
            for field in ("auth_username", "auth_password", "auth_token")
            if getattr(self, field)
        }
        expected: set[str]
        if self.auth_type in (None, AuthType.NONE):
            expected = set()
        elif self.auth_type == AuthType.BASIC:
            expected = {"auth_username", "auth_password"}
        else:
            expected = {"auth_token"}

        if supplied != expected:
            auth_type = self.auth_type.value if self.auth_type else "none"
            raise ValueError(
                f"auth_type '{auth_type}' requires exactly {sorted(expected) or 'no credential fields'}, "
                f"got {sorted(supplied) or 'none'}"
            )
        return self

    @model_validator(mode="after")
    def _check_unique_tool_names(self) -> "ServerRegistration":
        names = [tool.name for tool in self.tools]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate tool names: {duplicates}")
        return self
