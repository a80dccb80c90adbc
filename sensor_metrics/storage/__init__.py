"""
Storage layer for the sensor metrics engine.

This package provides the store client contract and its Redis implementation,
the metric key codec and the time-series repository built on both.
"""

# Interface exports
from sensor_metrics.storage.interfaces import (
    StorageError,
    StoreClient,
    StoreKey,
    StoreRequestRejected,
    StoreUnavailable,
    TimeSeriesRepository,
)

# Concrete implementations
from sensor_metrics.storage.keys import KeyFormatError, MetricKeyCodec
from sensor_metrics.storage.redis import RedisStoreClient
from sensor_metrics.storage.timeseries import RedisTimeSeriesRepository

__all__ = [
    # Interfaces
    "StoreClient",
    "StoreKey",
    "TimeSeriesRepository",
    # Exceptions
    "StorageError",
    "StoreUnavailable",
    "StoreRequestRejected",
    "KeyFormatError",
    # Implementations
    "MetricKeyCodec",
    "RedisStoreClient",
    "RedisTimeSeriesRepository",
]
