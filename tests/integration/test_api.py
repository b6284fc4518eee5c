"""End-to-end tests of the HTTP API against an in-memory store and a mocked MCP server."""

import base64
import json
from collections.abc import Iterator

import httpx
import pytest
from pydantic import SecretStr
from starlette.testclient import TestClient

from mcp_registry.config import Config
from mcp_registry.models.registry import HealthMetric, ServerStatus
from mcp_registry.server import create_app
from mcp_registry.storage.memory import MemoryStore
from tests.conftest import TEST_PASSWORD, TEST_USERNAME, jsonrpc_result, mock_client

AUTH = {"Authorization": "Basic " + base64.b64encode(f"{TEST_USERNAME}:{TEST_PASSWORD}".encode()).decode()}

REGISTRATION = {
    "name": "calculator",
    "display_name": "Calculator",
    "description": "Adds numbers",
    "server_type": "community",
    "endpoint_url": "http://test/rpc",
    "metadata": {"author": "ops", "tags": ["math"]},
    "tools": [
        {
            "name": "add",
            "description": "Add two numbers",
            "input_schema": {
                "type": "object",
                "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
            },
            "category": "math",
        }
    ],
    "auth_type": "bearer",
    "auth_token": "backend-token",
}


def mcp_server(request: httpx.Request) -> httpx.Response:
    """A fake remote MCP server: GET /rpc/health and POST /rpc tools/call."""
    if request.method == "GET" and request.url.path == "/rpc/health":
        return httpx.Response(200, json={"status": "ok"})
    if request.method == "POST" and request.url.path == "/rpc":
        if request.headers.get("authorization") != "Bearer backend-token":
            return httpx.Response(401, text="missing token")
        params = json.loads(request.content)["params"]
        if params["name"] == "add":
            return jsonrpc_result(str(params["arguments"]["a"] + params["arguments"]["b"]), request)
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "not found"}}
        )
    return httpx.Response(404)


@pytest.fixture
def client(test_config: Config, store: MemoryStore) -> Iterator[TestClient]:
    app = create_app(config=test_config, store=store, http_client=mock_client(mcp_server))
    with TestClient(app) as test_client:
        yield test_client


def register(client: TestClient, **overrides) -> dict:
    response = client.post("/api/registry/register", json={**REGISTRATION, **overrides}, headers=AUTH)
    assert response.status_code == 201, response.text
    return response.json()


def test_service_health_is_public(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["health_check_scheduler"] is False


def test_api_requires_auth(client: TestClient) -> None:
    response = client.get("/api/registry/categories")
    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"


def test_register_and_inspect(client: TestClient, store: MemoryStore) -> None:
    created = register(client)
    assert created["name"] == "calculator"
    assert created["status"] == "active"

    # Secrets are stored encrypted and never returned
    assert store.servers[created["id"]].auth_token != "backend-token"
    detail = client.get(f"/api/registry/servers/{created['id']}", headers=AUTH).json()
    assert "auth_token" not in detail
    assert detail["auth_type"] == "bearer"
    assert detail["metadata"]["tags"] == ["math"]
    assert detail["tools"][0]["name"] == "add"

    listing = client.get("/api/registry/servers", headers=AUTH).json()
    assert listing["total"] == 1
    assert listing["servers"][0]["tools_count"] == 1


def test_register_duplicate_name(client: TestClient) -> None:
    register(client)
    response = client.post("/api/registry/register", json=REGISTRATION, headers=AUTH)
    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_SERVER"


def test_register_validation_error(client: TestClient) -> None:
    response = client.post(
        "/api/registry/register", json={**REGISTRATION, "auth_token": None}, headers=AUTH
    )
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["details"]


def test_unknown_server_detail(client: TestClient) -> None:
    response = client.get("/api/registry/servers/404", headers=AUTH)
    assert response.status_code == 404
    assert response.json() == {"error": "Server not found", "code": "SERVER_NOT_FOUND"}


def test_listing_filters(client: TestClient) -> None:
    register(client)
    register(client, name="other", display_name="Other", server_type="official", tools=[])

    official = client.get("/api/registry/servers", params={"type": "official"}, headers=AUTH).json()
    assert [s["name"] for s in official["servers"]] == ["other"]

    bad = client.get("/api/registry/servers", params={"status": "sleeping"}, headers=AUTH)
    assert bad.status_code == 400


def test_search_and_categories(client: TestClient) -> None:
    register(client)

    assert client.get("/api/registry/search", params={"q": "a"}, headers=AUTH).status_code == 400

    found = client.get("/api/registry/search", params={"q": "add"}, headers=AUTH).json()
    assert found["query"] == "add"
    assert [t["tool_name"] for t in found["tools"]] == ["add"]

    categories = client.get("/api/registry/categories", headers=AUTH).json()
    assert categories["categories"] == [{"name": "math", "tool_count": 1}]

    math_tools = client.get("/api/registry/categories/math/tools", headers=AUTH).json()
    assert math_tools["total"] == 1
    assert math_tools["tools"][0]["server_name"] == "calculator"


def test_proxy_invocation_round_trip(client: TestClient, store: MemoryStore) -> None:
    server = register(client)

    response = client.post(
        "/api/proxy/invoke",
        json={"server_id": server["id"], "tool_name": "add", "arguments": {"a": 40, "b": 2}},
        headers=AUTH,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["result"] == "42"
    assert body["server_name"] == "calculator"
    assert body["tool_name"] == "add"
    assert [i.success for i in store.tool_invocations] == [True]


def test_proxy_error_status_codes(client: TestClient) -> None:
    server = register(client)

    missing_server = client.post(
        "/api/proxy/invoke", json={"server_id": 999, "tool_name": "add"}, headers=AUTH
    )
    assert missing_server.status_code == 404
    assert missing_server.json() == {"success": False, "error": "Server not found", "code": "SERVER_NOT_FOUND"}

    missing_tool = client.post(
        "/api/proxy/invoke", json={"server_id": server["id"], "tool_name": "mul"}, headers=AUTH
    )
    assert missing_tool.status_code == 404
    assert missing_tool.json()["code"] == "TOOL_NOT_FOUND"

    invalid = client.post("/api/proxy/invoke", json={"server_id": 0, "tool_name": ""}, headers=AUTH)
    assert invalid.status_code == 400
    assert invalid.json()["success"] is False
    assert invalid.json()["code"] == "VALIDATION_ERROR"


def test_proxy_upstream_failure_is_bad_gateway(client: TestClient) -> None:
    server = register(client, name="stdio-server", endpoint_url="stdio://local")

    response = client.post(
        "/api/proxy/invoke", json={"server_id": server["id"], "tool_name": "add"}, headers=AUTH
    )

    assert response.status_code == 502
    assert response.json()["code"] == "INVOCATION_ERROR"


def test_manual_health_check_and_metrics(client: TestClient, store: MemoryStore) -> None:
    server = register(client)

    triggered = client.post("/api/jobs/health-check")
    assert triggered.status_code == 200
    assert triggered.json()["success"] is True

    [metric] = store.health_metrics
    assert metric.status_code == 200

    health = client.get("/api/metrics/health", headers=AUTH).json()
    assert health["total_servers"] == 1
    assert health["active_servers"] == 1
    assert health["uptime_percent"] == 100.0

    stats = client.get(f"/api/metrics/servers/{server['id']}/stats", headers=AUTH).json()
    assert stats["server_id"] == server["id"]
    assert stats["error_count"] == 0
    assert len(stats["response_times"]) == 1


def test_cron_secret_guards_manual_trigger(test_config: Config, store: MemoryStore) -> None:
    config = test_config.model_copy(update={"cron_secret": SecretStr("cron-token")})
    app = create_app(config=config, store=store, http_client=mock_client(mcp_server))

    with TestClient(app) as client:
        assert client.post("/api/jobs/health-check").status_code == 401
        assert client.post(
            "/api/jobs/health-check", headers={"x-cron-secret": "wrong"}
        ).status_code == 401
        assert client.post(
            "/api/jobs/health-check", headers={"x-cron-secret": "cron-token"}
        ).status_code == 200


def test_usage_metrics_period_validation(client: TestClient) -> None:
    assert client.get("/api/metrics/usage", params={"period": "7d"}, headers=AUTH).status_code == 200
    bad = client.get("/api/metrics/usage", params={"period": "1y"}, headers=AUTH)
    assert bad.status_code == 400
    assert bad.json()["code"] == "VALIDATION_ERROR"


def test_usage_metrics_after_invocations(client: TestClient) -> None:
    server = register(client)
    for _ in range(3):
        client.post(
            "/api/proxy/invoke",
            json={"server_id": server["id"], "tool_name": "add", "arguments": {"a": 1, "b": 1}},
            headers=AUTH,
        )

    usage = client.get("/api/metrics/usage", headers=AUTH).json()
    assert usage["total_invocations"] == 3
    assert usage["success_rate"] == 100.0
    assert usage["top_tools"][0]["invocation_count"] == 3


def test_server_stats_unknown_server(client: TestClient) -> None:
    response = client.get("/api/metrics/servers/77/stats", headers=AUTH)
    assert response.status_code == 404
    assert response.json()["code"] == "SERVER_NOT_FOUND"


def test_error_log_in_server_stats(client: TestClient, store: MemoryStore) -> None:
    server = register(client)
    store.health_metrics.append(
        HealthMetric(id=99, server_id=server["id"], status_code=503, error_message="HTTP 503")
    )
    store.servers[server["id"]] = store.servers[server["id"]].model_copy(
        update={"status": ServerStatus.ERROR}
    )

    stats = client.get(f"/api/metrics/servers/{server['id']}/stats", headers=AUTH).json()
    assert stats["error_count"] == 1
    assert stats["error_log"][0]["status_code"] == 503
    assert stats["uptime_percent"] == 0.0
