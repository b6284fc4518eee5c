"""
Dashboard statistics computed from the append-only metric tables.

The pure helpers at the top take rows and return numbers; the async
functions below them read rows from a store and build the response models.
"""

import math
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from mcp_registry.models.metrics import (
    ErrorLogEntry,
    HealthMetricsSummary,
    InvocationBucket,
    MetricsPeriod,
    ResponseTimeEntry,
    ServerStats,
    TopTool,
    UsageMetrics,
)
from mcp_registry.models.registry import HealthMetric, ServerStatus, ToolInvocation, utcnow
from mcp_registry.storage.base import Store

PERIOD_LENGTHS = {
    MetricsPeriod.DAY: timedelta(hours=24),
    MetricsPeriod.WEEK: timedelta(days=7),
    MetricsPeriod.MONTH: timedelta(days=30),
}

TOP_TOOLS_LIMIT = 10
RESPONSE_TIMES_LIMIT = 100
ERROR_LOG_LIMIT = 20


def period_start(period: MetricsPeriod, now: datetime | None = None) -> datetime:
    return (now or utcnow()) - PERIOD_LENGTHS[period]


def percentile(values: Sequence[float], fraction: float) -> float:
    """Continuous percentile with linear interpolation; 0 for no values."""
    if not values:
        return 0.0
    ordered = sorted(values)
    rank = fraction * (len(ordered) - 1)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return float(ordered[lower])
    return ordered[lower] + (ordered[upper] - ordered[lower]) * (rank - lower)


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def is_successful_check(metric: HealthMetric) -> bool:
    return metric.status_code is not None and 200 <= metric.status_code < 300


def is_error_check(metric: HealthMetric) -> bool:
    # A non-2xx code or any recorded error message; a row with neither is not an error.
    if metric.error_message is not None:
        return True
    return metric.status_code is not None and not 200 <= metric.status_code < 300


def uptime_percent(metrics: Iterable[HealthMetric]) -> float:
    """Share of 2xx checks; 100 when there were no checks at all."""
    metrics = list(metrics)
    if not metrics:
        return 100.0
    successful = sum(1 for m in metrics if is_successful_check(m))
    return successful / len(metrics) * 100


def success_rate(invocations: Sequence[ToolInvocation]) -> float:
    if not invocations:
        return 100.0
    return sum(1 for i in invocations if i.success) / len(invocations) * 100


def hourly_buckets(invocations: Iterable[ToolInvocation]) -> list[InvocationBucket]:
    counts = Counter(i.invoked_at.replace(minute=0, second=0, microsecond=0) for i in invocations)
    return [InvocationBucket(timestamp=hour, count=count) for hour, count in sorted(counts.items())]


async def health_summary(store: Store, now: datetime | None = None) -> HealthMetricsSummary:
    """Server counts by status plus response-time and uptime figures for the last 24h."""
    now = now or utcnow()
    servers = await store.list_servers()
    by_status = Counter(server.status for server in servers)

    recent = await store.list_health_metrics(period_start(MetricsPeriod.DAY, now))
    response_times = [m.response_time_ms for m in recent if m.response_time_ms is not None]

    return HealthMetricsSummary(
        total_servers=len(servers),
        active_servers=by_status[ServerStatus.ACTIVE],
        inactive_servers=by_status[ServerStatus.INACTIVE],
        error_servers=by_status[ServerStatus.ERROR],
        avg_response_time_ms=round(mean(response_times), 2),
        p95_response_time_ms=round(percentile(response_times, 0.95), 2),
        p99_response_time_ms=round(percentile(response_times, 0.99), 2),
        uptime_percent=round(uptime_percent(recent), 2),
        last_updated=now,
    )


async def usage_metrics(store: Store, period: MetricsPeriod, now: datetime | None = None) -> UsageMetrics:
    invocations = await store.list_tool_invocations(period_start(period, now))

    durations: defaultdict[int, list[int]] = defaultdict(list)
    for invocation in invocations:
        durations[invocation.tool_id].append(invocation.duration_ms)

    top_tools: list[TopTool] = []
    for tool_id, tool_durations in sorted(durations.items(), key=lambda item: len(item[1]), reverse=True):
        if len(top_tools) == TOP_TOOLS_LIMIT:
            break
        tool = await store.get_tool_by_id(tool_id)
        if tool is None:
            continue
        server = await store.get_server_by_id(tool.server_id)
        if server is None:
            continue
        top_tools.append(
            TopTool(
                tool_id=tool.id,
                tool_name=tool.name,
                server_name=server.name,
                invocation_count=len(tool_durations),
                avg_duration_ms=round(mean(tool_durations), 2),
            )
        )

    return UsageMetrics(
        total_invocations=len(invocations),
        success_rate=round(success_rate(invocations), 2),
        top_tools=top_tools,
        invocations_over_time=hourly_buckets(invocations),
    )


async def server_stats(
    store: Store, server_id: int, period: MetricsPeriod, now: datetime | None = None
) -> ServerStats:
    """Per-server figures. The caller checks that the server exists."""
    since = period_start(period, now)
    checks = await store.list_health_metrics(since, server_id=server_id)
    invocations = await store.list_tool_invocations(since, server_id=server_id)

    newest_first = sorted(checks, key=lambda m: m.checked_at, reverse=True)
    timed = [m for m in newest_first if m.response_time_ms is not None]
    errors = [m for m in newest_first if is_error_check(m)]

    return ServerStats(
        server_id=server_id,
        uptime_percent=round(uptime_percent(checks), 2),
        avg_response_time_ms=round(mean([m.response_time_ms for m in timed]), 2),
        error_count=len(errors),
        total_invocations=len(invocations),
        response_times=[
            ResponseTimeEntry(timestamp=m.checked_at, response_time_ms=m.response_time_ms)
            for m in timed[:RESPONSE_TIMES_LIMIT]
        ],
        error_log=[
            ErrorLogEntry(timestamp=m.checked_at, error_message=m.error_message, status_code=m.status_code)
            for m in errors[:ERROR_LOG_LIMIT]
        ],
    )
