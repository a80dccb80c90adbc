"""
API schemas for request and response models.

This module defines Pydantic models used for API serialization.
"""

from api.schemas.common import (
    ErrorResponse,
    HealthCheckResponse,
)
from api.schemas.series import (
    SamplePoint,
    SeriesResponse,
    UnixTimeResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthCheckResponse",
    "SamplePoint",
    "SeriesResponse",
    "UnixTimeResponse",
]
