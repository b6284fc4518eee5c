"""Response model for this service's own liveness endpoint."""

from datetime import datetime

from pydantic import BaseModel, Field


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="Status of the service")
    version: str = Field(..., description="Version of the service")
    timestamp: datetime = Field(..., description="Current server timestamp in ISO 8601 format")
    environment: str = Field(..., description="Deployment environment name")
    health_check_scheduler: bool = Field(
        ..., description="Whether the background health-check scheduler is running"
    )
