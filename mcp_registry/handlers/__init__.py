"""HTTP route handlers."""

from mcp_registry.handlers import health, jobs, metrics, proxy, registry

routers = [health.router, proxy.router, jobs.router, registry.router, metrics.router]

__all__ = ["routers"]
