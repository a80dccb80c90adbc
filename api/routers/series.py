"""
Metric series endpoints.

Serves the ordered values of one user's metric series over a half-open
window. A denied request answers 401/403, which callers can always tell apart
from a permitted request without data (200 with an empty `values` list).
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import get_caller_identity, get_query_service
from api.schemas.common import ErrorResponse
from api.schemas.series import SeriesResponse
from sensor_metrics.services.series_query import SeriesQueryService
from sensor_metrics.types import Denied, TimeWindow


router = APIRouter(prefix="/users", tags=["Metrics"])


@router.get(
    "/{owner_id}/metrics/{metric_kind}",
    response_model=SeriesResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a metric series",
    description="Get the values of a user's metric series within [start, end).",
    responses={
        400: {"model": ErrorResponse, "description": "Unknown metric kind or invalid timestamp"},
        401: {"model": ErrorResponse, "description": "Caller is not authenticated"},
        403: {"model": ErrorResponse, "description": "Caller may not read this series"},
        503: {"model": ErrorResponse, "description": "Store unavailable"},
    },
)
async def get_metric_series(
    owner_id: str,
    metric_kind: str,
    start: str = Query(..., description="Window start, inclusive (unix seconds or ISO 8601)"),
    end: str = Query(..., description="Window end, exclusive (unix seconds or ISO 8601)"),
    fill: bool = Query(False, description="Report every bucket of the window, 0 where empty"),
    caller: Optional[str] = Depends(get_caller_identity),
    service: SeriesQueryService = Depends(get_query_service),
) -> SeriesResponse:
    """
    Get a user's metric series.

    Args:
        owner_id: Owner of the series
        metric_kind: Metric kind name (e.g. SENSOR_VALUES_PER_MINUTE)
        start: Window start
        end: Window end
        fill: Zero-fill missing buckets

    Returns:
        SeriesResponse with values in ascending time order

    Raises:
        HTTPException: 401/403 if the caller may not read the series
    """
    window = TimeWindow.between(start, end)

    result = await service.get_series_for_caller(
        caller, owner_id, metric_kind, window, fill_missing=fill
    )

    if isinstance(result, Denied):
        if caller is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )

    return SeriesResponse.from_series(result)
