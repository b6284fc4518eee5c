"""
Health Check Background Job

Monitors all active MCP servers by:
- Querying all servers with status='active'
- Fetching {endpoint_url}/health for each server, one at a time
- Recording response time and status in the server_health_metrics table
- Updating each server's last_health_check timestamp and status

Servers marked inactive or error are never probed, so they are never
reactivated automatically.
"""

import asyncio
import contextlib
import time
from dataclasses import dataclass

import httpx

from mcp_registry.models.registry import HealthMetric, Server, ServerStatus, utcnow
from mcp_registry.storage.base import MetricsStore, RegistryStore
from mcp_registry.utils.logging import get_logger

logger = get_logger(__name__)

HEALTH_CHECK_TIMEOUT_SECONDS = 5.0
HEALTH_CHECK_INTERVAL_SECONDS = 30.0


@dataclass
class ProbeOutcome:
    """What a single GET /health produced."""

    status: ServerStatus
    response_time_ms: int | None = None
    status_code: int | None = None
    error_message: str | None = None


class HealthChecker:
    """Probes servers and writes the results back to the registry."""

    def __init__(
        self,
        registry: RegistryStore,
        metrics: MetricsStore,
        timeout: float = HEALTH_CHECK_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.registry = registry
        self.metrics = metrics
        self.timeout = timeout
        self._client = client

    async def run_health_checks(self) -> None:
        """Run one cycle over every active server. Never raises."""
        logger.info("health_check_cycle_started")

        try:
            servers = await self.registry.get_active_servers()
        except Exception as e:
            logger.error("health_check_cycle_failed", error=str(e), exc_info=True)
            return

        logger.info("health_check_servers_found", count=len(servers))

        for server in servers:
            await self.check_server_health(server)

        logger.info("health_check_cycle_completed", count=len(servers))

    async def check_server_health(self, server: Server) -> None:
        """Probe one server, then record a metric row and its new status."""
        start = time.monotonic()
        outcome = await self.probe(server)

        try:
            await self.metrics.insert_health_metric(
                HealthMetric(
                    server_id=server.id,
                    response_time_ms=outcome.response_time_ms,
                    status_code=outcome.status_code,
                    error_message=outcome.error_message,
                )
            )
            await self.registry.update_server_status(server.id, outcome.status, utcnow())
            logger.debug(
                "health_check_recorded",
                server_name=server.name,
                status=outcome.status.value,
                response_time_ms=outcome.response_time_ms,
            )
        except Exception as e:
            logger.error("health_check_record_failed", server_name=server.name, error=str(e))
            try:
                await self.metrics.insert_health_metric(
                    HealthMetric(
                        server_id=server.id,
                        response_time_ms=int((time.monotonic() - start) * 1000),
                        error_message=str(e) or "Unknown error during health check",
                    )
                )
            except Exception as insert_error:
                logger.error(
                    "health_metric_insert_failed", server_name=server.name, error=str(insert_error)
                )

    async def probe(self, server: Server) -> ProbeOutcome:
        """GET {endpoint_url}/health within the probe timeout."""
        health_url = f"{server.endpoint_url.rstrip('/')}/health"
        start = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        logger.debug("health_check_probe", server_name=server.name, url=health_url)

        try:
            response = await asyncio.wait_for(self._get(health_url), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("health_check_timeout", server_name=server.name)
            return ProbeOutcome(
                status=ServerStatus.ERROR,
                response_time_ms=elapsed_ms(),
                error_message=f"Request timeout ({self.timeout:g}s)",
            )
        except Exception as e:
            logger.warning("health_check_failed", server_name=server.name, error=str(e))
            return ProbeOutcome(
                status=ServerStatus.ERROR,
                response_time_ms=elapsed_ms(),
                error_message=str(e) or type(e).__name__,
            )

        if response.is_success:
            return ProbeOutcome(
                status=ServerStatus.ACTIVE,
                response_time_ms=elapsed_ms(),
                status_code=response.status_code,
            )

        logger.warning("health_check_error_status", server_name=server.name, status_code=response.status_code)
        return ProbeOutcome(
            status=ServerStatus.ERROR,
            response_time_ms=elapsed_ms(),
            status_code=response.status_code,
            error_message=f"HTTP {response.status_code}",
        )

    async def _get(self, url: str) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if self._client is not None:
            return await self._client.get(url, headers=headers, timeout=self.timeout)
        async with httpx.AsyncClient() as client:
            return await client.get(url, headers=headers, timeout=self.timeout)


class HealthCheckScheduler:
    """Runs `HealthChecker.run_health_checks` now and then on a fixed interval."""

    def __init__(self, checker: HealthChecker, interval: float = HEALTH_CHECK_INTERVAL_SECONDS) -> None:
        self.checker = checker
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.warning("health_check_scheduler_already_running")
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("health_check_scheduler_started", interval_seconds=self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("health_check_scheduler_stopped")

    async def _loop(self) -> None:
        while True:
            started = time.monotonic()
            try:
                await self.checker.run_health_checks()
            except Exception as e:
                logger.error("health_check_scheduled_run_failed", error=str(e))
            await asyncio.sleep(self.next_delay(time.monotonic() - started))

    def next_delay(self, elapsed: float) -> float:
        """Seconds until the next cycle, keeping cycle starts `interval` apart."""
        return max(0.0, self.interval - elapsed)
