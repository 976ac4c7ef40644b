"""Prometheus scrape endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST

from ..core.observability import get_prometheus_metrics

router = APIRouter(tags=["Observability"])


@router.get("/metrics", response_class=Response, summary="Prometheus Metrics")
async def metrics() -> Response:
    """Text exposition of the reservation registry (booking counters and HTTP timings)."""
    return Response(content=get_prometheus_metrics(), media_type=CONTENT_TYPE_LATEST)
