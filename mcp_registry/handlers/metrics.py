"""Dashboard metrics endpoints."""

from fastapi import APIRouter, Request

from mcp_registry.metrics import aggregation
from mcp_registry.models.errors import ErrorCode, RegistryError
from mcp_registry.models.metrics import HealthMetricsSummary, MetricsPeriod, ServerStats, UsageMetrics
from mcp_registry.storage.base import Store

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


def _store(request: Request) -> Store:
    return request.app.state.store


@router.get("/health")
async def health_metrics(request: Request) -> HealthMetricsSummary:
    """Server counts by status with response-time and uptime figures for the last 24h."""
    return await aggregation.health_summary(_store(request))


@router.get("/usage")
async def usage_metrics(request: Request, period: MetricsPeriod = MetricsPeriod.DAY) -> UsageMetrics:
    return await aggregation.usage_metrics(_store(request), period)


@router.get("/servers/{server_id}/stats")
async def server_stats(
    server_id: int, request: Request, period: MetricsPeriod = MetricsPeriod.DAY
) -> ServerStats:
    store = _store(request)
    if await store.get_server_by_id(server_id) is None:
        raise RegistryError(ErrorCode.SERVER_NOT_FOUND, "Server not found")
    return await aggregation.server_stats(store, server_id, period)
