"""
Unit tests for the Redis time-series repository using the mock store client.

Run with: pytest tests/test_timeseries_repository.py -v
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from sensor_metrics.storage.interfaces import StoreRequestRejected, StoreUnavailable
from sensor_metrics.storage.keys import KeyFormatError, MetricKeyCodec
from sensor_metrics.storage.redis import RedisStoreClient
from sensor_metrics.storage.timeseries import RedisTimeSeriesRepository
from sensor_metrics.types import (
    InvalidOwner,
    MetricKind,
    Sample,
    TimeWindow,
    UnknownMetricKind,
    WindowTooLarge,
)
from tests.fixtures import PER_MINUTE, create_samples, minute, minute_window, seed_series
from tests.mocks.storage import MockStoreClient


@pytest.fixture
def store():
    return MockStoreClient()


@pytest.fixture
def repo(store):
    return RedisTimeSeriesRepository(store, MetricKeyCodec(prefix="metrics"))


def values(samples):
    return [(int(s.timestamp.timestamp()) // 60, s.value) for s in samples]


# ============================================================================
# Range Queries
# ============================================================================


@pytest.mark.asyncio
async def test_range_query_returns_samples_inside_window(store, repo):
    seed_series(store, "u1", [(9, 1.0), (10, 5.0), (11, 7.0), (12, 9.0)])

    samples = await repo.range_query(PER_MINUTE, "u1", minute_window(10, 12))

    assert values(samples) == [(10, 5.0), (11, 7.0)]
    assert store.calls == ["range_scan"]


@pytest.mark.asyncio
async def test_range_query_window_without_data_is_empty(store, repo):
    seed_series(store, "u1", [(10, 5.0), (11, 7.0)])

    assert await repo.range_query(PER_MINUTE, "u1", minute_window(0, 5)) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("start,end", [(12, 12), (12, 10)])
async def test_empty_window_makes_no_store_call(store, repo, start, end):
    seed_series(store, "u1", [(10, 5.0), (11, 7.0)])

    assert await repo.range_query(PER_MINUTE, "u1", minute_window(start, end)) == []
    assert store.call_count == 0


@pytest.mark.asyncio
async def test_range_query_orders_by_timestamp():
    store = MockStoreClient(reverse_scans=True)
    repo = RedisTimeSeriesRepository(store)
    seed_series(store, "u1", [(10, 5.0), (11, 7.0), (12, 9.0)])

    samples = await repo.range_query(PER_MINUTE, "u1", minute_window(0, 60))

    assert values(samples) == [(10, 5.0), (11, 7.0), (12, 9.0)]


@pytest.mark.asyncio
async def test_range_query_isolates_owners_and_kinds(store, repo):
    seed_series(store, "u1", [(10, 5.0)])
    seed_series(store, "u2", [(10, 99.0)])
    seed_series(store, "u1", [(10, 42.0)], kind=MetricKind.SENSOR_VALUES_PER_HOUR)

    samples = await repo.range_query(PER_MINUTE, "u1", minute_window(0, 60))

    assert values(samples) == [(10, 5.0)]


@pytest.mark.asyncio
async def test_range_query_unknown_kind(store, repo):
    with pytest.raises(UnknownMetricKind):
        await repo.range_query("SENSOR_VALUES_PER_FORTNIGHT", "u1", minute_window(0, 60))
    assert store.call_count == 0


@pytest.mark.asyncio
async def test_range_query_invalid_owner(store, repo):
    with pytest.raises(InvalidOwner):
        await repo.range_query(PER_MINUTE, "", minute_window(0, 60))
    assert store.call_count == 0


@pytest.mark.asyncio
async def test_range_query_rejects_corrupt_members(store, repo):
    store.preload(repo.codec.encode(PER_MINUTE, "u1", minute(10)), "garbage")

    with pytest.raises(KeyFormatError):
        await repo.range_query(PER_MINUTE, "u1", minute_window(0, 60))


@pytest.mark.asyncio
async def test_store_errors_name_the_series(store, repo):
    store.fail_next(StoreUnavailable("down"))

    with pytest.raises(StoreUnavailable) as exc_info:
        await repo.range_query(PER_MINUTE, "u1", minute_window(0, 60))

    assert exc_info.value.series == "metrics:SENSOR_VALUES_PER_MINUTE:u1"


@pytest.mark.asyncio
async def test_rejected_store_errors_keep_their_type(store, repo):
    store.fail_next(StoreRequestRejected("WRONGTYPE"))

    with pytest.raises(StoreRequestRejected):
        await repo.range_query(PER_MINUTE, "u1", minute_window(0, 60))


# ============================================================================
# Filled Range Queries
# ============================================================================


@pytest.mark.asyncio
async def test_filled_query_reports_every_bucket(store, repo):
    seed_series(store, "u1", [(10, 5.0), (12, 9.0)])

    samples = await repo.range_query_filled(PER_MINUTE, "u1", minute_window(10, 14))

    assert values(samples) == [(10, 5.0), (11, 0.0), (12, 9.0), (13, 0.0)]
    assert store.call_count == 1


@pytest.mark.asyncio
async def test_filled_query_starts_at_first_full_bucket(store, repo):
    seed_series(store, "u1", [(11, 7.0)])
    samples = await repo.range_query_filled(PER_MINUTE, "u1", TimeWindow(start=10 * 60 + 30, end=13 * 60))

    assert values(samples) == [(11, 7.0), (12, 0.0)]


@pytest.mark.asyncio
async def test_filled_query_rejects_oversized_window_before_reading(store):
    repo = RedisTimeSeriesRepository(store, MetricKeyCodec(prefix="metrics"), max_fill_buckets=3)

    with pytest.raises(WindowTooLarge):
        await repo.range_query_filled(PER_MINUTE, "u1", minute_window(10, 14))
    assert store.call_count == 0

    samples = await repo.range_query_filled(PER_MINUTE, "u1", minute_window(10, 13))
    assert len(samples) == 3


@pytest.mark.asyncio
async def test_filled_query_limit_counts_buckets_of_the_kind(store):
    repo = RedisTimeSeriesRepository(store, MetricKeyCodec(prefix="metrics"), max_fill_buckets=24)
    day = TimeWindow(start=0, end=86400)

    assert len(await repo.range_query_filled(MetricKind.SENSOR_VALUES_PER_HOUR, "u1", day)) == 24
    with pytest.raises(WindowTooLarge):
        await repo.range_query_filled(PER_MINUTE, "u1", day)


@pytest.mark.asyncio
async def test_filled_query_of_empty_window(store, repo):
    assert await repo.range_query_filled(PER_MINUTE, "u1", minute_window(5, 5)) == []
    assert store.call_count == 0


# ============================================================================
# Writes
# ============================================================================


@pytest.mark.asyncio
async def test_append_then_query(store, repo):
    for sample in create_samples([(10, 5.0), (11, 7.0)]):
        await repo.append(PER_MINUTE, "u1", sample)

    samples = await repo.range_query(PER_MINUTE, "u1", minute_window(10, 12))

    assert [s.as_pair() for s in samples] == [(minute(10), 5.0), (minute(11), 7.0)]


@pytest.mark.asyncio
async def test_append_aligns_to_bucket_and_last_write_wins(store, repo):
    first = await repo.append(PER_MINUTE, "u1", Sample(timestamp=10 * 60 + 5, value=1.0))
    second = await repo.append(PER_MINUTE, "u1", Sample(timestamp=10 * 60 + 45, value=2.0))

    assert first.timestamp == second.timestamp == minute(10)
    assert store.members("metrics:SENSOR_VALUES_PER_MINUTE:u1") == {600: "600|2.0"}


@pytest.mark.asyncio
async def test_append_is_idempotent(store, repo):
    sample = Sample(timestamp=minute(10), value=5.0)

    await repo.append(PER_MINUTE, "u1", sample)
    await repo.append(PER_MINUTE, "u1", sample)

    assert values(await repo.range_query(PER_MINUTE, "u1", minute_window(0, 60))) == [(10, 5.0)]


@pytest.mark.asyncio
async def test_append_many_writes_in_order(store, repo):
    stored = await repo.append_many(
        MetricKind.SENSOR_VALUES_PER_HOUR,
        "u1",
        [Sample(timestamp=3600, value=1.0), Sample(timestamp=3700, value=3.0), Sample(timestamp=7200, value=4.0)],
    )

    assert [s.value for s in stored] == [1.0, 3.0, 4.0]
    assert store.members("metrics:SENSOR_VALUES_PER_HOUR:u1") == {3600: "3600|3.0", 7200: "7200|4.0"}


@pytest.mark.asyncio
async def test_append_wraps_store_errors(store, repo):
    store.fail_next(StoreUnavailable("down"))

    with pytest.raises(StoreUnavailable) as exc_info:
        await repo.append(PER_MINUTE, "u1", Sample(timestamp=minute(10), value=5.0))

    assert exc_info.value.series == "metrics:SENSOR_VALUES_PER_MINUTE:u1"


@pytest.mark.asyncio
async def test_increment_adds_to_bucket(store, repo):
    await repo.increment(PER_MINUTE, "u1", at=10 * 60 + 1)
    result = await repo.increment(PER_MINUTE, "u1", amount=2.5, at=10 * 60 + 59)

    assert result == Sample(timestamp=minute(10), value=3.5)
    assert values(await repo.range_query(PER_MINUTE, "u1", minute_window(10, 11))) == [(10, 3.5)]


@pytest.mark.asyncio
async def test_increment_defaults_to_current_bucket(store, repo):
    with patch("sensor_metrics.storage.timeseries.current_unix_time", return_value=11 * 60 + 30):
        result = await repo.increment(PER_MINUTE, "u1")

    assert result.timestamp == minute(11)
    assert result.value == 1.0


@pytest.mark.asyncio
async def test_repository_surfaces_exhausted_client_retries():
    client = MagicMock()
    client.zrangebyscore = AsyncMock(side_effect=RedisConnectionError("connection refused"))
    client.aclose = AsyncMock()
    store = RedisStoreClient(max_attempts=2, backoff_base=0, client_factory=lambda: client)
    repo = RedisTimeSeriesRepository(store)

    with pytest.raises(StoreUnavailable):
        await repo.range_query(PER_MINUTE, "u1", minute_window(0, 60))
