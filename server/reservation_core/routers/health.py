"""RPC-style ping for load balancers and uptime probes."""

import time

from fastapi import APIRouter, Depends

from ..core.config import Settings
from ..core.database import utcnow
from ..core.dependencies import get_settings
from ..core.observability import SERVICE_NAME, SERVICE_VERSION
from ..schemas.health import PingResponse

router = APIRouter(prefix="/v1/health", tags=["health"])

_STARTED = time.monotonic()


@router.post("/ping", response_model=PingResponse)
async def ping(config: Settings = Depends(get_settings)) -> PingResponse:
    """Answer with the service identity, server time and uptime; touches no storage."""
    return PingResponse(
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        environment=config.environment,
        timestamp=utcnow(),
        uptime_seconds=round(time.monotonic() - _STARTED, 3),
    )
