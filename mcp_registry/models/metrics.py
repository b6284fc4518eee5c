"""Response models for the metrics endpoints."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class MetricsPeriod(str, Enum):
    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"


class HealthMetricsSummary(BaseModel):
    total_servers: int
    active_servers: int
    inactive_servers: int
    error_servers: int
    avg_response_time_ms: float
    p95_response_time_ms: float
    p99_response_time_ms: float
    uptime_percent: float
    last_updated: datetime


class TopTool(BaseModel):
    tool_id: int
    tool_name: str
    server_name: str
    invocation_count: int
    avg_duration_ms: float


class InvocationBucket(BaseModel):
    timestamp: datetime
    count: int


class UsageMetrics(BaseModel):
    total_invocations: int
    success_rate: float
    top_tools: list[TopTool] = Field(default_factory=list)
    invocations_over_time: list[InvocationBucket] = Field(default_factory=list)


class ResponseTimeEntry(BaseModel):
    timestamp: datetime
    response_time_ms: int


class ErrorLogEntry(BaseModel):
    timestamp: datetime
    error_message: str | None
    status_code: int | None


class ServerStats(BaseModel):
    server_id: int
    uptime_percent: float
    avg_response_time_ms: float
    error_count: int
    total_invocations: int
    response_times: list[ResponseTimeEntry] = Field(default_factory=list)
    error_log: list[ErrorLogEntry] = Field(default_factory=list)
