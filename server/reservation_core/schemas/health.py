"""Liveness and readiness response schemas."""

from datetime import datetime
from enum import Enum
from typing import Dict

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    HEALTHY = "healthy"


class PingResponse(BaseModel):
    """Answer to the RPC-style ping."""

    status: HealthStatus = Field(HealthStatus.HEALTHY, description="Service status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    environment: str = Field(..., description="Deployment environment")
    timestamp: datetime = Field(..., description="Current server time (ISO 8601)")
    uptime_seconds: float = Field(..., ge=0, description="Seconds since the process loaded")


class ReadinessResponse(BaseModel):
    """Readiness check response schema."""

    status: str = Field(..., description="ready or not_ready")
    service: str
    checks: Dict[str, str] = Field(default_factory=dict, description="Result per dependency")
