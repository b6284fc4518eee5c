"""Metrics aggregation for the dashboard endpoints."""

from mcp_registry.metrics.aggregation import health_summary, server_stats, usage_metrics

__all__ = ["health_summary", "server_stats", "usage_metrics"]
