"""Error handling data models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Standardized error codes."""

    # Lookup
    SERVER_NOT_FOUND = "SERVER_NOT_FOUND"
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"

    # Caller input
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_SERVER = "DUPLICATE_SERVER"

    # Authentication
    UNAUTHORIZED = "UNAUTHORIZED"

    # Remote server / transport
    INVOCATION_ERROR = "INVOCATION_ERROR"

    # System Errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    """Error body returned by the registry API."""

    error: str = Field(..., description="Human-readable error message")
    code: ErrorCode = Field(..., description="Error code")
    details: Any | None = Field(None, description="Additional error context")


class RegistryError(Exception):
    """Base exception for registry errors."""

    def __init__(self, code: ErrorCode, message: str, details: dict[str, Any] | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigurationError(RegistryError):
    """Required configuration is missing or malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INTERNAL_ERROR, message)


class DecryptionError(RegistryError):
    """Ciphertext could not be authenticated or decoded."""

    def __init__(self, message: str = "Decryption failed") -> None:
        super().__init__(ErrorCode.INTERNAL_ERROR, message)


class DuplicateServerError(RegistryError):
    """A server with the same name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(ErrorCode.DUPLICATE_SERVER, "Server with this name already exists", {"name": name})
