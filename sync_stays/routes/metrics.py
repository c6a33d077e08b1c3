"""
Prometheus metrics endpoint for monitoring and observability.

Example:
    GET /metrics

    Response:
        # HELP stays_feed_syncs_total Total calendar feed sync attempts
        # TYPE stays_feed_syncs_total counter
        stays_feed_syncs_total{status="success"} 42.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """
    Prometheus metrics endpoint.

    Returns:
        Response: Metrics in Prometheus text format
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
