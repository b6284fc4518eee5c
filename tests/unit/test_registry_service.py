import pytest

from mcp_registry.models.errors import ConfigurationError, DuplicateServerError, ErrorCode, RegistryError
from mcp_registry.models.registry import ServerStatus, ServerType
from mcp_registry.registry.service import ServerRegistry
from mcp_registry.security.vault import CredentialVault
from mcp_registry.storage.memory import MemoryStore
from tests.conftest import make_registration


@pytest.mark.asyncio
async def test_register_encrypts_secrets(store: MemoryStore, vault: CredentialVault, registry: ServerRegistry) -> None:
    server = await registry.register(
        make_registration(auth_type="basic", auth_username="alice", auth_password="pw")
    )

    stored = store.servers[server.id]
    assert stored.auth_username == "alice"
    assert stored.auth_password != "pw"
    assert vault.decrypt(stored.auth_password) == "pw"
    assert stored.auth_token is None
    assert stored.status == ServerStatus.ACTIVE


@pytest.mark.asyncio
async def test_register_without_key_fails_only_when_secrets_present(store: MemoryStore) -> None:
    registry = ServerRegistry(store, CredentialVault(None))

    await registry.register(make_registration(name="open"))
    with pytest.raises(ConfigurationError):
        await registry.register(make_registration(name="locked", auth_type="bearer", auth_token="t"))


@pytest.mark.asyncio
async def test_duplicate_names_are_rejected(registry: ServerRegistry) -> None:
    await registry.register(make_registration())
    with pytest.raises(DuplicateServerError):
        await registry.register(make_registration())


@pytest.mark.asyncio
async def test_list_servers_filters_and_counts_tools(store: MemoryStore, registry: ServerRegistry) -> None:
    a = await registry.register(make_registration(name="alpha", display_name="Alpha"))
    await registry.register(make_registration(name="beta", display_name="Beta", server_type="official", tools=[]))
    await store.update_server_status(a.id, ServerStatus.ERROR, a.created_at)

    everything = await registry.list_servers()
    assert [(s["name"], s["tools_count"]) for s in everything] == [("alpha", 1), ("beta", 0)]

    assert [s["name"] for s in await registry.list_servers(status=ServerStatus.ERROR)] == ["alpha"]
    assert [s["name"] for s in await registry.list_servers(server_type=ServerType.OFFICIAL)] == ["beta"]
    assert [s["name"] for s in await registry.list_servers(search="BET")] == ["beta"]


@pytest.mark.asyncio
async def test_server_detail_hides_credentials(registry: ServerRegistry) -> None:
    server = await registry.register(
        make_registration(
            auth_type="api_key",
            auth_token="secret",
            metadata={"author": "me", "tags": ["demo"], "repository_url": "https://github.com/x/y"},
        )
    )

    detail = await registry.get_server_detail(server.id)

    assert detail["name"] == "echo-server"
    assert "auth_token" not in detail
    assert detail["metadata"]["author"] == "me"
    assert detail["metadata"]["tags"] == ["demo"]
    assert [t["name"] for t in detail["tools"]] == ["echo"]
    assert await registry.get_server_detail(999) is None


@pytest.mark.asyncio
async def test_search(registry: ServerRegistry) -> None:
    await registry.register(make_registration(description="Weather lookups"))

    results = await registry.search("weather")
    assert [s["name"] for s in results["servers"]] == ["echo-server"]
    assert results["tools"] == []

    tool_hits = await registry.search("util")
    assert [t["tool_name"] for t in tool_hits["tools"]] == ["echo"]
    assert tool_hits["total_results"] == 1


@pytest.mark.asyncio
async def test_search_requires_two_characters(registry: ServerRegistry) -> None:
    with pytest.raises(RegistryError) as excinfo:
        await registry.search("a")
    assert excinfo.value.code == ErrorCode.VALIDATION_ERROR


@pytest.mark.asyncio
async def test_categories(registry: ServerRegistry) -> None:
    await registry.register(
        make_registration(
            tools=[
                {"name": "a", "description": "d", "input_schema": {}, "category": "files"},
                {"name": "b", "description": "d", "input_schema": {}, "category": "files"},
                {"name": "c", "description": "d", "input_schema": {}, "category": "web"},
                {"name": "d", "description": "d", "input_schema": {}},
            ]
        )
    )

    categories = await registry.list_categories()
    assert categories == {
        "categories": [{"name": "files", "tool_count": 2}, {"name": "web", "tool_count": 1}],
        "total": 2,
    }

    files = await registry.list_category_tools("files")
    assert files["total"] == 2
    assert {t["name"] for t in files["tools"]} == {"a", "b"}
    assert files["tools"][0]["server_status"] == "active"
