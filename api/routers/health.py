"""
Health check endpoints for monitoring API and store status.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from api import __version__
from api.dependencies import get_store_client
from api.schemas.common import HealthCheckResponse


router = APIRouter(prefix="/health", tags=["Health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get(
    "",
    response_model=Dict[str, Any],
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Quick health check endpoint that always returns 200 OK if API is running.",
)
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Does not check dependencies; suitable for load balancer health checks.
    """
    return {
        "status": "healthy",
        "timestamp": _now(),
    }


@router.get(
    "/detailed",
    response_model=HealthCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
    description="Health check including the Redis store.",
    responses={503: {"model": HealthCheckResponse}},
)
async def detailed_health_check(store=Depends(get_store_client)):
    """
    Detailed health check.

    Pings Redis; answers 503 when the store is unreachable.
    """
    services_status = {
        "redis": store is not None and await store.ping(),
    }

    all_healthy = all(services_status.values())
    response = HealthCheckResponse(
        status="healthy" if all_healthy else "degraded",
        version=__version__,
        timestamp=_now(),
        services=services_status,
    )

    if not all_healthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )
    return response


@router.get(
    "/version",
    response_model=Dict[str, str],
    status_code=status.HTTP_200_OK,
    summary="Get API version",
)
async def get_version() -> Dict[str, str]:
    """Get API version information."""
    return {
        "name": "Sensor Metrics API",
        "version": __version__,
    }
