"""Manual trigger for the health-check job, meant for external cron services."""

import secrets

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from mcp_registry.handlers.errors import error_response
from mcp_registry.jobs.health_check import HealthChecker
from mcp_registry.models.errors import ErrorCode
from mcp_registry.utils.logging import get_logger

router = APIRouter(prefix="/api/jobs", tags=["jobs"])
logger = get_logger(__name__)

CRON_SECRET_HEADER = "x-cron-secret"


@router.post("/health-check")
async def trigger_health_check(request: Request) -> JSONResponse:
    """
    Run one health-check cycle now.

    When CRON_SECRET is configured the caller must send it in x-cron-secret.
    """
    cron_secret = request.app.state.config.cron_secret
    if cron_secret is not None:
        supplied = request.headers.get(CRON_SECRET_HEADER, "")
        if not secrets.compare_digest(supplied.encode(), cron_secret.get_secret_value().encode()):
            logger.warning("health_check_trigger_rejected")
            return error_response(ErrorCode.UNAUTHORIZED, "Unauthorized")

    logger.info("health_check_triggered_manually")
    checker: HealthChecker = request.app.state.health_checker
    await checker.run_health_checks()

    return JSONResponse({"success": True, "message": "Health checks completed successfully"})
