"""
Test fixtures and sample data.

Minute numbers are counted from the Unix epoch, so `minute(10)` is
1970-01-01T00:10:00Z.
"""

from datetime import datetime
from typing import Iterable, List, Tuple

from sensor_metrics.storage.keys import MetricKeyCodec
from sensor_metrics.types import MetricKind, Sample, TimeWindow, from_epoch_seconds
from tests.mocks.storage import MockStoreClient


PER_MINUTE = MetricKind.SENSOR_VALUES_PER_MINUTE

# A realistic instant: 2024-01-15T10:00:00Z
BASE_SECONDS = 1705312800


def minute(n: int) -> datetime:
    """Start of the n-th minute after the epoch."""
    return from_epoch_seconds(n * 60)


def minute_window(start: int, end: int) -> TimeWindow:
    return TimeWindow(start=minute(start), end=minute(end))


def create_samples(points: Iterable[Tuple[int, float]]) -> List[Sample]:
    """Samples from (minute number, value) pairs."""
    return [Sample(timestamp=minute(m), value=v) for m, v in points]


def seed_series(
    store: MockStoreClient,
    owner: str,
    points: Iterable[Tuple[int, float]],
    kind: MetricKind = PER_MINUTE,
    codec: MetricKeyCodec = None,
):
    """Preload samples into a mock store without counting store calls."""
    codec = codec or MetricKeyCodec()
    for sample in create_samples(points):
        store.preload(
            codec.encode(kind, owner, sample.timestamp),
            codec.encode_member(sample.timestamp, sample.value),
        )
