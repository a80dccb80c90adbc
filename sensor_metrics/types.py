"""
Shared type definitions for the sensor metrics engine.

This module contains the data model used across all layers: the closed set of
metric kinds, samples, half-open time windows, series and the authorization
outcome. Timestamp normalization lives here as well so every layer agrees on
what a valid instant is.
"""

import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator

from sensor_metrics.clock import current_unix_time


# Earliest instant the engine can store. Scores are seconds since this epoch.
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_ONE_SECOND = timedelta(seconds=1)


# ============================================================================
# Request Errors
# ============================================================================


class MetricRequestError(ValueError):
    """Base class for caller mistakes detected before any store access."""

    pass


class InvalidTimestamp(MetricRequestError):
    """Timestamp is before the epoch or not a usable instant."""

    pass


class UnknownMetricKind(MetricRequestError):
    """Metric kind is not part of the closed enumeration."""

    pass


class InvalidOwner(MetricRequestError):
    """Owner id is empty or not a string."""

    pass


class WindowTooLarge(MetricRequestError):
    """Window holds more buckets than a zero-filled query may report."""

    pass


# ============================================================================
# Timestamp Helpers
# ============================================================================


def to_utc_datetime(value: Any) -> datetime:
    """
    Normalize an instant to a timezone-aware UTC datetime at second resolution.

    Naive datetimes are interpreted as UTC. Integers and floats are seconds
    since the Unix epoch. Strings hold either of those (numeric or ISO 8601).
    Sub-second precision is truncated.

    Args:
        value: datetime, int, float or str

    Returns:
        UTC datetime with microsecond=0

    Raises:
        InvalidTimestamp: If the value is before the epoch or not an instant
    """
    if isinstance(value, bool):
        raise InvalidTimestamp(f"Not a timestamp: {value!r}")

    try:
        if isinstance(value, str):
            text = value.strip()
            try:
                value = float(text)
            except ValueError:
                value = datetime.fromisoformat(text)

        if isinstance(value, datetime):
            ts = value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
            ts = ts.astimezone(timezone.utc)
        elif isinstance(value, (int, float)):
            if value < 0:
                raise InvalidTimestamp(f"Timestamp {value!r} is before the epoch")
            ts = EPOCH + timedelta(seconds=value)
        else:
            raise InvalidTimestamp(f"Not a timestamp: {value!r}")
    except (OverflowError, ValueError) as e:
        if isinstance(e, InvalidTimestamp):
            raise
        raise InvalidTimestamp(f"Timestamp out of range: {value!r}") from e

    if ts < EPOCH:
        raise InvalidTimestamp(f"Timestamp {ts.isoformat()} is before the epoch")

    return ts.replace(microsecond=0)


def to_epoch_seconds(value: Any) -> int:
    """Convert an instant to whole seconds since the epoch."""
    return (to_utc_datetime(value) - EPOCH) // _ONE_SECOND


def from_epoch_seconds(seconds: int) -> datetime:
    """Convert whole seconds since the epoch back to a UTC datetime."""
    if seconds < 0:
        raise InvalidTimestamp(f"Timestamp {seconds} is before the epoch")
    return EPOCH + timedelta(seconds=seconds)


# ============================================================================
# Enums
# ============================================================================


class MetricKind(str, Enum):
    """What is being measured, and at which bucket granularity."""

    SENSOR_VALUES_PER_MINUTE = "SENSOR_VALUES_PER_MINUTE"
    SENSOR_VALUES_PER_HOUR = "SENSOR_VALUES_PER_HOUR"
    SENSOR_VALUES_PER_DAY = "SENSOR_VALUES_PER_DAY"

    @property
    def granularity_seconds(self) -> int:
        """Width of one bucket in seconds."""
        if self.value.endswith("PER_MINUTE"):
            return 60
        if self.value.endswith("PER_HOUR"):
            return 3600
        return 86400

    def bucket_start(self, timestamp: Any) -> datetime:
        """Align a timestamp to the start of its bucket (UTC)."""
        seconds = to_epoch_seconds(timestamp)
        return from_epoch_seconds(seconds - seconds % self.granularity_seconds)

    @classmethod
    def parse(cls, value: Any) -> "MetricKind":
        """
        Resolve a metric kind from its name.

        Args:
            value: MetricKind member or its string name (case-insensitive)

        Returns:
            The matching MetricKind

        Raises:
            UnknownMetricKind: If the name is not part of the enumeration
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise UnknownMetricKind(f"Unknown metric kind: {value!r}")


# ============================================================================
# Core Data Models
# ============================================================================


class Sample(BaseModel):
    """One value of a series at one instant."""

    timestamp: datetime
    value: float

    class Config:
        frozen = True

    @field_validator("timestamp", mode="before")
    @classmethod
    def _normalize_timestamp(cls, value: Any) -> datetime:
        return to_utc_datetime(value)

    @field_validator("value")
    @classmethod
    def _finite_value(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError(f"Sample value must be finite: {value!r}")
        return value

    def as_pair(self) -> Tuple[datetime, float]:
        return (self.timestamp, self.value)


class TimeWindow(BaseModel):
    """Half-open time interval [start, end)."""

    start: datetime
    end: datetime

    class Config:
        frozen = True

    @field_validator("start", "end", mode="before")
    @classmethod
    def _normalize_bound(cls, value: Any) -> datetime:
        return to_utc_datetime(value)

    @property
    def is_empty(self) -> bool:
        """Windows with start >= end contain nothing."""
        return self.start >= self.end

    def contains(self, timestamp: Any) -> bool:
        ts = to_utc_datetime(timestamp)
        return self.start <= ts < self.end

    @classmethod
    def between(cls, start: Any, end: Any) -> "TimeWindow":
        """
        Build a window from raw bounds.

        Raises:
            InvalidTimestamp: If either bound is not a valid instant
        """
        return cls(start=to_utc_datetime(start), end=to_utc_datetime(end))

    @classmethod
    def last(cls, seconds: int, now: Optional[int] = None) -> "TimeWindow":
        """
        Build the window covering the last `seconds` seconds.

        Args:
            seconds: Window length
            now: Current unix time; read from the time oracle if omitted

        Returns:
            TimeWindow [now - seconds, now)
        """
        if now is None:
            now = current_unix_time()
        return cls(start=max(now - seconds, 0), end=now)


class Series(BaseModel):
    """Ordered samples of one (metric kind, owner) pair inside a window."""

    kind: MetricKind
    owner: str
    window: TimeWindow
    samples: List[Sample] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.samples

    def pairs(self) -> List[Tuple[datetime, float]]:
        return [sample.as_pair() for sample in self.samples]


class AuthorizationDecision(BaseModel):
    """Outcome of an access check. Produced per request, never persisted."""

    permitted: bool
    owner: Optional[str] = None

    class Config:
        frozen = True

    @classmethod
    def permit(cls, owner: str) -> "AuthorizationDecision":
        return cls(permitted=True, owner=owner)

    @classmethod
    def deny(cls) -> "AuthorizationDecision":
        return cls(permitted=False)


class Denied(BaseModel):
    """Query result returned when the caller may not read the series."""

    requested_owner: str
    reason: str = "Access denied"

    class Config:
        frozen = True


SeriesResult = Union[Series, Denied]
