"""
API schemas for metric series and the time oracle.
"""

from datetime import datetime
from typing import List
from pydantic import BaseModel, Field

from sensor_metrics.types import Series


class SamplePoint(BaseModel):
    """One (timestamp, value) pair of a series."""

    timestamp: datetime = Field(..., description="Sample instant (UTC)")
    value: float = Field(..., description="Sample value")


class SeriesResponse(BaseModel):
    """Ordered values of one metric series inside [start, end)."""

    owner_id: str = Field(..., description="Owner of the series")
    metric_kind: str = Field(..., description="Metric kind")
    start: datetime = Field(..., description="Window start, inclusive")
    end: datetime = Field(..., description="Window end, exclusive")
    values: List[SamplePoint] = Field(default_factory=list, description="Samples in ascending time order")

    class Config:
        json_schema_extra = {
            "example": {
                "owner_id": "user_1",
                "metric_kind": "SENSOR_VALUES_PER_MINUTE",
                "start": "2024-01-15T10:00:00Z",
                "end": "2024-01-15T10:02:00Z",
                "values": [
                    {"timestamp": "2024-01-15T10:00:00Z", "value": 5.0},
                    {"timestamp": "2024-01-15T10:01:00Z", "value": 7.0},
                ],
            }
        }

    @classmethod
    def from_series(cls, series: Series) -> "SeriesResponse":
        return cls(
            owner_id=series.owner,
            metric_kind=series.kind.value,
            start=series.window.start,
            end=series.window.end,
            values=[SamplePoint(timestamp=s.timestamp, value=s.value) for s in series.samples],
        )


class UnixTimeResponse(BaseModel):
    """Current server time."""

    unix_time: int = Field(..., description="Seconds since the Unix epoch")
