"""
Prometheus metrics endpoint.

Exposes store, query and access-decision metrics in Prometheus text format.
"""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST

from sensor_metrics.observability.metrics import get_metrics

router = APIRouter(
    prefix="/metrics",
    tags=["Monitoring"],
)


@router.get("", response_class=Response)
async def prometheus_metrics():
    """
    Expose Prometheus metrics.

    Example metrics exposed:
        - series_queries_total{metric_kind="SENSOR_VALUES_PER_MINUTE",outcome="ok"} 42
        - access_decisions_total{decision="denied"} 3
        - store_retries_total{operation="range_scan"} 1
    """
    return Response(
        content=get_metrics(),
        media_type=CONTENT_TYPE_LATEST,
    )
