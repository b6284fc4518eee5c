"""SqlStore against a throwaway SQLite database file."""

from datetime import timedelta
from pathlib import Path

import httpx
import pytest

from mcp_registry.jobs.health_check import HealthChecker
from mcp_registry.metrics import aggregation
from mcp_registry.models.errors import DuplicateServerError
from mcp_registry.models.metrics import MetricsPeriod
from mcp_registry.models.registry import HealthMetric, ServerStatus, ToolInvocation, utcnow
from mcp_registry.proxy.invoker import InvocationProxy
from mcp_registry.registry.service import ServerRegistry
from mcp_registry.security.vault import CredentialVault
from mcp_registry.storage.sql import SqlStore
from mcp_registry.transport import default_transports
from tests.conftest import jsonrpc_result, make_registration, mock_client


async def open_store(tmp_path: Path) -> SqlStore:
    store = SqlStore(f"sqlite+aiosqlite:///{tmp_path / 'registry.db'}")
    await store.init_schema()
    return store


@pytest.mark.asyncio
async def test_create_and_read_back(tmp_path: Path, vault: CredentialVault) -> None:
    store = await open_store(tmp_path)
    try:
        registry = ServerRegistry(store, vault)
        server = await registry.register(
            make_registration(
                auth_type="basic",
                auth_username="alice",
                auth_password="pw",
                metadata={"author": "me", "tags": ["a", "b"]},
            )
        )

        loaded = await store.get_server_by_id(server.id)
        assert loaded.name == "echo-server"
        assert loaded.status == ServerStatus.ACTIVE
        assert loaded.created_at.tzinfo is not None
        assert vault.decrypt(loaded.auth_password) == "pw"

        tool = await store.get_tool_by_server_and_name(server.id, "echo")
        assert tool.input_schema["type"] == "object"
        assert (await store.get_tool_by_id(tool.id)).name == "echo"
        assert await store.get_tool_by_server_and_name(server.id, "nope") is None

        metadata = await store.get_server_metadata(server.id)
        assert metadata.tags == ["a", "b"]
        assert await store.count_tools_by_server() == {server.id: 1}
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_duplicate_name(tmp_path: Path) -> None:
    store = await open_store(tmp_path)
    try:
        await store.create_server(make_registration())
        with pytest.raises(DuplicateServerError):
            await store.create_server(make_registration())
        assert len(await store.list_servers()) == 1
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_status_updates_and_active_listing(tmp_path: Path) -> None:
    store = await open_store(tmp_path)
    try:
        up = await store.create_server(make_registration(name="up"))
        down = await store.create_server(make_registration(name="down"))
        checked_at = utcnow()
        await store.update_server_status(down.id, ServerStatus.ERROR, checked_at)

        assert [s.name for s in await store.get_active_servers()] == ["up"]
        refreshed = await store.get_server_by_id(down.id)
        assert refreshed.status == ServerStatus.ERROR
        assert refreshed.last_health_check == checked_at
        assert (await store.get_server_by_id(up.id)).last_health_check is None
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_search_and_categories(tmp_path: Path) -> None:
    store = await open_store(tmp_path)
    try:
        server = await store.create_server(
            make_registration(
                description="Weather service",
                tools=[
                    {"name": "forecast", "description": "d", "input_schema": {}, "category": "weather"},
                    {"name": "alerts", "description": "d", "input_schema": {}, "category": "weather"},
                    {"name": "ping", "description": "d", "input_schema": {}, "category": "ops"},
                ],
            )
        )

        assert [s.id for s in await store.search_servers("WEATHER")] == [server.id]
        assert [t.name for t, _ in await store.search_tools("weather")] == ["forecast", "alerts"]
        assert await store.list_categories() == [("weather", 2), ("ops", 1)]
        [(tool, owner)] = await store.list_tools_by_category("ops")
        assert tool.name == "ping"
        assert owner.id == server.id
        assert [s.name for s in await store.list_servers(search="echo")] == ["echo-server"]
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_metric_windows(tmp_path: Path) -> None:
    store = await open_store(tmp_path)
    try:
        server = await store.create_server(make_registration())
        tool = await store.get_tool_by_server_and_name(server.id, "echo")
        now = utcnow()

        await store.insert_health_metric(HealthMetric(server_id=server.id, status_code=200, checked_at=now))
        await store.insert_health_metric(
            HealthMetric(server_id=server.id, status_code=500, checked_at=now - timedelta(days=2))
        )
        stored = await store.insert_tool_invocation(
            ToolInvocation(server_id=server.id, tool_id=tool.id, duration_ms=12, success=True, invoked_at=now)
        )
        assert stored.id is not None

        recent = await store.list_health_metrics(now - timedelta(hours=24))
        assert [m.status_code for m in recent] == [200]
        assert len(await store.list_health_metrics(now - timedelta(days=7), server_id=server.id)) == 2
        assert len(await store.list_health_metrics(now - timedelta(days=7), server_id=server.id + 1)) == 0

        [invocation] = await store.list_tool_invocations(now - timedelta(hours=1))
        assert invocation.duration_ms == 12
        assert invocation.invoked_at.tzinfo is not None

        usage = await aggregation.usage_metrics(store, MetricsPeriod.DAY)
        assert usage.top_tools[0].tool_name == "echo"
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_proxy_and_health_check_against_sql(tmp_path: Path, vault: CredentialVault) -> None:
    store = await open_store(tmp_path)
    try:
        server = await ServerRegistry(store, vault).register(make_registration())

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200)
            return jsonrpc_result("pong", request)

        async with mock_client(handler) as client:
            proxy = InvocationProxy(store, store, vault, transports=default_transports(client))
            result = await proxy.invoke(server.id, "echo", {"message": "ping"})
            await HealthChecker(store, store, client=client).run_health_checks()

        assert result.success
        assert result.result == "pong"
        assert len(await store.list_tool_invocations(utcnow() - timedelta(minutes=5))) == 1

        [metric] = await store.list_health_metrics(utcnow() - timedelta(minutes=5))
        assert metric.status_code == 200
        assert (await store.get_server_by_id(server.id)).last_health_check is not None
    finally:
        await store.close()
