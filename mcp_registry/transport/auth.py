"""Outbound authentication headers for protected MCP servers."""

import base64

from mcp_registry.models.proxy import AuthCredentials
from mcp_registry.models.registry import AuthType


def build_auth_headers(auth: AuthCredentials | None) -> dict[str, str]:
    """Return the HTTP headers that carry `auth`, or an empty dict."""
    if auth is None:
        return {}

    if auth.auth_type == AuthType.BASIC:
        raw = f"{auth.username or ''}:{auth.password or ''}".encode("utf-8")
        return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}
    if auth.auth_type == AuthType.BEARER and auth.token:
        return {"Authorization": f"Bearer {auth.token}"}
    if auth.auth_type == AuthType.API_KEY and auth.token:
        return {"X-API-Key": auth.token}
    return {}
