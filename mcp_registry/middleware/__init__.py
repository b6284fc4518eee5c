"""Middleware components."""

from mcp_registry.middleware.basic_auth import BasicAuthMiddleware

__all__ = ["BasicAuthMiddleware"]
