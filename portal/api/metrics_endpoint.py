"""Prometheus metrics endpoint.

Scraped by Prometheus; returns the text exposition format, not JSON:

  # HELP access_gate_decisions_total Access gate decisions by resource class and outcome
  # TYPE access_gate_decisions_total counter
  access_gate_decisions_total{outcome="deny",resource_class="content"} 3.0

Restrict access in production (scraper IP allow-list or an internal
port): request rates and denial counts reveal usage patterns.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose all Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
