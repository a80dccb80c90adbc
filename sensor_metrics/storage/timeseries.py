"""
Redis time-series repository.

Reads and writes the samples of one (metric kind, owner) series through a
store client, using MetricKeyCodec for every key. A range query is exactly
one range scan.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Union

from sensor_metrics.clock import current_unix_time
from sensor_metrics.config import MAX_FILL_BUCKETS
from sensor_metrics.observability.metrics import record_samples_written
from sensor_metrics.storage.interfaces import (
    StorageError,
    StoreClient,
    TimeSeriesRepository,
)
from sensor_metrics.storage.keys import MetricKeyCodec
from sensor_metrics.types import (
    MetricKind,
    Sample,
    TimeWindow,
    WindowTooLarge,
    from_epoch_seconds,
    to_epoch_seconds,
)

logger = logging.getLogger(__name__)


class RedisTimeSeriesRepository(TimeSeriesRepository):
    """
    Time-series repository backed by one sorted set per series.

    Written timestamps are aligned to the start of their bucket (minute, hour
    or day depending on the metric kind), so two writes inside one bucket are
    the same logical sample and the last one wins.
    """

    def __init__(
        self,
        store: StoreClient,
        codec: Optional[MetricKeyCodec] = None,
        max_fill_buckets: int = MAX_FILL_BUCKETS,
    ):
        """
        Initialize the repository.

        Args:
            store: Store client, shared between repositories and requests
            codec: Key codec (defaults to the configured key prefix)
            max_fill_buckets: Largest window, in buckets, a filled query accepts
        """
        self.store = store
        self.codec = codec or MetricKeyCodec()
        self.max_fill_buckets = max_fill_buckets

    @staticmethod
    def _with_series(error: StorageError, series_key: str) -> StorageError:
        """Same error type, annotated with the series it concerns."""
        return type(error)(f"{series_key}: {error}", series=series_key)

    async def range_query(
        self,
        kind: Union[MetricKind, str],
        owner: str,
        window: TimeWindow,
    ) -> List[Sample]:
        """
        Get the samples of a series inside [window.start, window.end).

        Args:
            kind: Metric kind
            owner: Owner id
            window: Half-open time window

        Returns:
            Samples in ascending timestamp order; empty for an empty window or
            a window without data

        Raises:
            UnknownMetricKind: If the kind is not in the enumeration
            InvalidOwner: If the owner id is empty
            StoreUnavailable: If the store cannot be reached
            StoreRequestRejected: If the store refuses the scan
        """
        kind = MetricKind.parse(kind)
        lower, upper = self.codec.decode_range(kind, owner, window)

        if window.is_empty:
            return []

        try:
            rows = await self.store.range_scan(lower, upper)
        except StorageError as e:
            raise self._with_series(e, lower.series_key) from e

        samples = [self.codec.decode_member(member) for _, member in rows]

        # Redis already returns score order; sort only if a store did not.
        if any(a.timestamp > b.timestamp for a, b in zip(samples, samples[1:])):
            samples.sort(key=lambda sample: sample.timestamp)

        logger.debug(f"Range query {lower.series_key} [{lower.score}, {upper.score}) -> {len(samples)} samples")
        return samples

    async def range_query_filled(
        self,
        kind: Union[MetricKind, str],
        owner: str,
        window: TimeWindow,
    ) -> List[Sample]:
        """
        Range query with one sample per bucket, missing buckets reported as 0.

        Every bucket start b with window.start <= b < window.end is present.
        Charts consume this form directly.

        Raises:
            WindowTooLarge: If the window holds more than `max_fill_buckets`
                buckets; checked before the store is read
        """
        kind = MetricKind.parse(kind)
        if window.is_empty:
            return await self.range_query(kind, owner, window)

        step = kind.granularity_seconds
        start = to_epoch_seconds(window.start)
        end = to_epoch_seconds(window.end)
        first = start if start % step == 0 else start - start % step + step
        buckets = range(first, end, step)

        if len(buckets) > self.max_fill_buckets:
            raise WindowTooLarge(
                f"Window holds {len(buckets)} {kind.value} buckets, "
                f"at most {self.max_fill_buckets} can be filled"
            )

        samples = await self.range_query(kind, owner, window)
        values: Dict[datetime, float] = {}
        for sample in samples:
            values[kind.bucket_start(sample.timestamp)] = sample.value

        filled = []
        for seconds in buckets:
            bucket = from_epoch_seconds(seconds)
            filled.append(Sample(timestamp=bucket, value=values.get(bucket, 0.0)))
        return filled

    async def append(
        self,
        kind: Union[MetricKind, str],
        owner: str,
        sample: Sample,
    ) -> Sample:
        """
        Write one sample; a repeated bucket keeps the last value written.

        Args:
            kind: Metric kind
            owner: Owner id
            sample: Sample to store

        Returns:
            The sample as stored (timestamp aligned to its bucket)
        """
        kind = MetricKind.parse(kind)
        stored = Sample(timestamp=kind.bucket_start(sample.timestamp), value=sample.value)
        key = self.codec.encode(kind, owner, stored.timestamp)

        try:
            await self.store.put(key, self.codec.encode_member(stored.timestamp, stored.value))
        except StorageError as e:
            raise self._with_series(e, key.series_key) from e

        record_samples_written(kind.value)
        return stored

    async def append_many(
        self,
        kind: Union[MetricKind, str],
        owner: str,
        samples: Iterable[Sample],
    ) -> List[Sample]:
        """Write samples in order; later samples win over earlier ones in the same bucket."""
        return [await self.append(kind, owner, sample) for sample in samples]

    async def increment(
        self,
        kind: Union[MetricKind, str],
        owner: str,
        amount: float = 1.0,
        at: Optional[Union[datetime, int]] = None,
    ) -> Sample:
        """
        Add to the counter of the bucket containing `at` (now if omitted).

        Args:
            kind: Metric kind
            owner: Owner id
            amount: Amount to add
            at: Instant whose bucket is incremented

        Returns:
            The bucket sample after the increment
        """
        kind = MetricKind.parse(kind)
        bucket = kind.bucket_start(at if at is not None else current_unix_time())
        key = self.codec.encode(kind, owner, bucket)

        try:
            total = await self.store.increment(key, amount)
        except StorageError as e:
            raise self._with_series(e, key.series_key) from e

        record_samples_written(kind.value)
        logger.debug(f"Incremented {key.series_key}@{key.score} by {amount} to {total}")
        return Sample(timestamp=bucket, value=total)
