"""Health check endpoint handler."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from mcp_registry import __version__
from mcp_registry.models.health import HealthCheckResponse

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """
    Liveness of the registry service itself.

    This endpoint is excluded from Basic auth so load balancers can poll it.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    response_model = HealthCheckResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(UTC),
        environment=request.app.state.config.environment,
        health_check_scheduler=scheduler is not None and scheduler.is_running,
    )
    return JSONResponse(content=response_model.model_dump(mode="json"))
