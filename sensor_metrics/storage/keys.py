"""
Metric key codec.

Maps (metric kind, owner, timestamp) triples onto the Redis layout and back.

Layout:
    series key  {prefix}:{KIND}:{owner}     one sorted set per series
    score       seconds since the epoch     orders samples by time
    member      "{seconds}|{value}"         unique per timestamp

Kind names never contain the separator, so the owner is everything after the
second one and distinct (kind, owner) pairs always land in distinct sorted
sets. Inside a set, scores grow with time, so a score range is a time range.
"""

from datetime import datetime
from typing import Any, Tuple, Union

from sensor_metrics.config import METRICS_KEY_PREFIX
from sensor_metrics.storage.interfaces import StoreKey
from sensor_metrics.types import (
    InvalidOwner,
    MetricKind,
    Sample,
    TimeWindow,
    from_epoch_seconds,
    to_epoch_seconds,
)


class KeyFormatError(ValueError):
    """A store key or member does not follow the metric layout."""

    pass


class MetricKeyCodec:
    """Deterministic, collision-free and time-monotonic key encoding."""

    SEPARATOR = ":"
    MEMBER_SEPARATOR = "|"

    def __init__(self, prefix: str = METRICS_KEY_PREFIX):
        if not prefix or self.SEPARATOR in prefix:
            raise ValueError(f"Key prefix must be non-empty and free of '{self.SEPARATOR}': {prefix!r}")
        self.prefix = prefix

    def series_key(self, kind: Union[MetricKind, str], owner: str) -> str:
        """
        Name of the sorted set holding one series.

        Raises:
            UnknownMetricKind: If the kind is not in the enumeration
            InvalidOwner: If the owner id is empty
        """
        kind = MetricKind.parse(kind)
        owner = self._check_owner(owner)
        return f"{self.prefix}{self.SEPARATOR}{kind.value}{self.SEPARATOR}{owner}"

    def encode(self, kind: Union[MetricKind, str], owner: str, timestamp: Any) -> StoreKey:
        """
        Encode the store position of one sample.

        Raises:
            InvalidTimestamp: If the timestamp is before the epoch
            UnknownMetricKind: If the kind is not in the enumeration
        """
        series_key = self.series_key(kind, owner)
        return StoreKey(series_key, to_epoch_seconds(timestamp))

    def decode(self, key: StoreKey) -> Tuple[MetricKind, str, datetime]:
        """Recover (kind, owner, timestamp) from a store key."""
        prefix, sep, rest = key.series_key.partition(self.SEPARATOR)
        if prefix != self.prefix or not sep:
            raise KeyFormatError(f"Not a metric series key: {key.series_key!r}")

        kind_name, sep, owner = rest.partition(self.SEPARATOR)
        if not sep or not owner:
            raise KeyFormatError(f"Series key has no owner: {key.series_key!r}")

        return MetricKind.parse(kind_name), owner, from_epoch_seconds(int(key.score))

    def decode_range(
        self,
        kind: Union[MetricKind, str],
        owner: str,
        window: TimeWindow,
    ) -> Tuple[StoreKey, StoreKey]:
        """
        Store bounds for a window.

        Scanning lower <= key < upper yields exactly the samples whose
        timestamp lies in [window.start, window.end). For an empty window the
        upper bound does not exceed the lower one.
        """
        series_key = self.series_key(kind, owner)
        return (
            StoreKey(series_key, to_epoch_seconds(window.start)),
            StoreKey(series_key, to_epoch_seconds(window.end)),
        )

    def encode_member(self, timestamp: Any, value: float) -> str:
        return f"{to_epoch_seconds(timestamp)}{self.MEMBER_SEPARATOR}{float(value)!r}"

    def decode_member(self, member: Union[str, bytes]) -> Sample:
        if isinstance(member, bytes):
            member = member.decode("utf-8")

        seconds, sep, value = member.partition(self.MEMBER_SEPARATOR)
        if not sep:
            raise KeyFormatError(f"Malformed series member: {member!r}")
        try:
            return Sample(timestamp=int(seconds), value=float(value))
        except ValueError as e:
            raise KeyFormatError(f"Malformed series member: {member!r}") from e

    def _check_owner(self, owner: str) -> str:
        if not isinstance(owner, str) or not owner:
            raise InvalidOwner(f"Owner id must be a non-empty string: {owner!r}")
        return owner
