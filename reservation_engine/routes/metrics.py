"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP reservation_transitions_total Total reservation status transitions attempted
        # TYPE reservation_transitions_total counter
        reservation_transitions_total{from_status="pending",outcome="committed",...} 42.0
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Metrics in Prometheus text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
