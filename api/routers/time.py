"""
Time oracle endpoint.

Devices and dashboards read the server clock here to build "now"-relative
windows.
"""

from fastapi import APIRouter, status

from api.schemas.series import UnixTimeResponse
from sensor_metrics.clock import current_unix_time


router = APIRouter(prefix="/time", tags=["Time"])


@router.get(
    "",
    response_model=UnixTimeResponse,
    status_code=status.HTTP_200_OK,
    summary="Current server time",
    description="Returns the current time as whole seconds since the Unix epoch.",
)
async def get_time() -> UnixTimeResponse:
    return UnixTimeResponse(unix_time=current_unix_time())
