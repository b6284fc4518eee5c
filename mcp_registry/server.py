"""
Main ASGI server.

Serves the registry REST API: registration and discovery, the invocation
proxy, dashboard metrics and the manual health-check trigger. The lifespan
wires the store, vault, transports, proxy and health-check scheduler into
`app.state`, where the route handlers pick them up.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mcp_registry import __version__
from mcp_registry.config import Config, get_config
from mcp_registry.handlers import routers
from mcp_registry.handlers.errors import register_error_handlers
from mcp_registry.jobs.health_check import HealthChecker, HealthCheckScheduler
from mcp_registry.middleware.basic_auth import BasicAuthMiddleware
from mcp_registry.proxy.invoker import InvocationProxy
from mcp_registry.registry.service import ServerRegistry
from mcp_registry.security.vault import CredentialVault, get_vault
from mcp_registry.storage.base import Store
from mcp_registry.storage.sql import SqlStore
from mcp_registry.transport import default_transports
from mcp_registry.utils.logging import get_logger

logger = get_logger(__name__)

# Reachable without Basic auth. The job trigger is guarded by CRON_SECRET instead.
PUBLIC_PATHS = ["/health", "/api/jobs/health-check", "/docs", "/openapi.json"]


def create_app(
    config: Config | None = None,
    store: Store | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings to use; defaults to the cached environment config.
        store: Pre-built store. When omitted a SqlStore is opened on
            `config.database_url` during startup and closed on shutdown.
        http_client: Shared client for outbound calls to MCP servers. When
            omitted one is created for the application's lifetime.
    """
    if config is None:
        config = get_config()
        vault = get_vault()
    else:
        vault = _vault_from(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("registry_starting", version=__version__, environment=config.environment)

        owned_store: SqlStore | None = None
        if store is None:
            owned_store = SqlStore(config.database_url)
            await owned_store.init_schema()
        active_store: Store = store or owned_store  # type: ignore[assignment]

        client = http_client or httpx.AsyncClient()

        app.state.config = config
        app.state.store = active_store
        app.state.vault = vault
        app.state.registry = ServerRegistry(active_store, vault)
        app.state.proxy = InvocationProxy(
            active_store,
            active_store,
            vault,
            transports=default_transports(client),
            timeout=config.proxy_timeout_seconds,
        )
        app.state.health_checker = HealthChecker(
            active_store, active_store, timeout=config.health_check_timeout_seconds, client=client
        )
        app.state.scheduler = None

        if config.health_check_enabled:
            scheduler = HealthCheckScheduler(
                app.state.health_checker, interval=config.health_check_interval_seconds
            )
            scheduler.start()
            app.state.scheduler = scheduler
        else:
            logger.info("health_check_scheduler_disabled")

        try:
            yield
        finally:
            logger.info("registry_shutting_down")
            if app.state.scheduler is not None:
                await app.state.scheduler.stop()
            if http_client is None:
                await client.aclose()
            if owned_store is not None:
                await owned_store.close()

    app = FastAPI(
        title="MCP Registry",
        description="Registry, health monitoring and invocation proxy for MCP servers.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    for router in routers:
        app.include_router(router)
    register_error_handlers(app)

    if config.use_auth:
        logger.info("basic_auth_enabled")
        app.add_middleware(BasicAuthMiddleware, exclude_paths=PUBLIC_PATHS, config=config)
    else:
        logger.warning("basic_auth_disabled", note="not safe for production")

    if config.cors_origins:
        logger.info("cors_enabled", allowed_origins=config.cors_origins)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    return app


def _vault_from(config: Config) -> CredentialVault:
    key = config.encryption_key
    return CredentialVault(key.get_secret_value() if key else None)


app = create_app()
