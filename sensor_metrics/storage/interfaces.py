"""
Storage layer interface contracts.

This module defines the store key type, the Protocol classes that store
clients and time-series repositories implement, and the storage exceptions.
Test doubles implement the same Protocols.
"""

from abc import ABC, abstractmethod
from typing import List, NamedTuple, Optional, Protocol, Tuple

from sensor_metrics.types import MetricKind, Sample, TimeWindow


class StoreKey(NamedTuple):
    """
    Store-native position of one sample.

    `series_key` names the sorted set holding a whole series, `score` is the
    sample timestamp in seconds since the epoch. Keys order as tuples, which is
    the order a range scan returns them in.
    """

    series_key: str
    score: int


# ============================================================================
# Store Client Interface
# ============================================================================


class StoreClient(Protocol):
    """Interface for the key-value store connection."""

    async def get(self, key: StoreKey) -> Optional[str]:
        """
        Get the entry stored at a key.

        Returns:
            The stored member, or None if absent

        Raises:
            StoreUnavailable: If the store stays unreachable after retries
            StoreRequestRejected: If the store rejects the request
        """
        ...

    async def range_scan(self, lower: StoreKey, upper: StoreKey) -> List[Tuple[StoreKey, str]]:
        """
        Scan every entry with lower <= key < upper, in key order.

        Both bounds must share the same series key.
        """
        ...

    async def put(self, key: StoreKey, value: str) -> None:
        """Store a value, replacing any entry at the same key."""
        ...

    async def increment(self, key: StoreKey, amount: float) -> float:
        """Atomically add `amount` to the numeric entry at a key."""
        ...

    async def ping(self) -> bool:
        """Check the store is reachable."""
        ...

    async def close(self) -> None:
        """Release the connection."""
        ...


# ============================================================================
# Repository Interface
# ============================================================================


class TimeSeriesRepository(ABC):
    """Abstract interface for per-owner metric series storage."""

    @abstractmethod
    async def range_query(
        self,
        kind: MetricKind,
        owner: str,
        window: TimeWindow,
    ) -> List[Sample]:
        """Return the samples inside the window, ascending by timestamp."""
        pass

    @abstractmethod
    async def range_query_filled(
        self,
        kind: MetricKind,
        owner: str,
        window: TimeWindow,
    ) -> List[Sample]:
        """Like range_query, with every bucket of the window present (0 when missing)."""
        pass

    @abstractmethod
    async def append(self, kind: MetricKind, owner: str, sample: Sample) -> Sample:
        """Write one sample; last write wins for a repeated timestamp."""
        pass


# ============================================================================
# Storage Exceptions
# ============================================================================


class StorageError(Exception):
    """Base exception for storage errors."""

    def __init__(self, message: str, series: Optional[str] = None):
        super().__init__(message)
        self.series = series


class StoreUnavailable(StorageError):
    """Store unreachable or too slow after exhausting the retry budget."""

    pass


class StoreRequestRejected(StorageError):
    """Store refused the request as malformed. Never retried."""

    pass
