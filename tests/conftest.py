import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from mcp_registry.config import Config
from mcp_registry.models.registry import ServerRegistration
from mcp_registry.registry.service import ServerRegistry
from mcp_registry.security.vault import CredentialVault
from mcp_registry.storage.memory import MemoryStore

TEST_ENCRYPTION_KEY = "0123456789abcdef" * 4
TEST_USERNAME = "admin"
TEST_PASSWORD = "s3cret-pass"


def pytest_configure(config):
    """Load a local .env (if any) so integration runs can pick up DATABASE_URL and friends."""
    from dotenv import load_dotenv

    load_dotenv()


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(TEST_ENCRYPTION_KEY)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def registry(store: MemoryStore, vault: CredentialVault) -> ServerRegistry:
    return ServerRegistry(store, vault)


@pytest.fixture
def test_config() -> Config:
    """Isolated settings: no .env, auth on, no background scheduler."""
    return Config(
        _env_file=None,
        encryption_key=TEST_ENCRYPTION_KEY,
        registry_username=TEST_USERNAME,
        registry_password=TEST_PASSWORD,
        use_auth=True,
        health_check_enabled=False,
        proxy_timeout_seconds=1.0,
        health_check_timeout_seconds=1.0,
    )


def make_registration(**overrides: Any) -> ServerRegistration:
    """A valid registration for a server exposing one `echo` tool."""
    payload: dict[str, Any] = {
        "name": "echo-server",
        "display_name": "Echo Server",
        "description": "Repeats its input",
        "server_type": "mock",
        "endpoint_url": "http://test/rpc",
        "tools": [
            {
                "name": "echo",
                "description": "Echo the message back",
                "input_schema": {"type": "object", "properties": {"message": {"type": "string"}}},
                "category": "utility",
            }
        ],
    }
    payload.update(overrides)
    return ServerRegistration.model_validate(payload)


def jsonrpc_result(text: str, request: httpx.Request) -> httpx.Response:
    """Reply to a tools/call request with a single text content block."""
    body = json.loads(request.content)
    return httpx.Response(
        200,
        json={"jsonrpc": "2.0", "id": body["id"], "result": {"content": [{"type": "text", "text": text}]}},
    )


def mock_client(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
    """An AsyncClient whose every request is answered by `handler`."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
