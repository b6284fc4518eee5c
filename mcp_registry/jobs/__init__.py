"""Background jobs."""

from mcp_registry.jobs.health_check import HealthChecker, HealthCheckScheduler

__all__ = ["HealthCheckScheduler", "HealthChecker"]
