"""
Metrics endpoint for Prometheus scraping.
"""

from fastapi import APIRouter, Response

from shared.infrastructure.metrics import generate_prometheus_metrics

router = APIRouter(tags=["metrics"])


@router.get("/metrics", include_in_schema=False)
def prometheus_metrics() -> Response:
    return Response(
        content=generate_prometheus_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
