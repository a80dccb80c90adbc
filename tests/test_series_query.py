"""
Tests for the series query service: authorization first, then one range query.

Run with: pytest tests/test_series_query.py -v
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from sensor_metrics.observability.metrics import metrics_registry
from sensor_metrics.services.series_query import SeriesQueryService
from sensor_metrics.storage.interfaces import StoreUnavailable
from sensor_metrics.storage.keys import MetricKeyCodec
from sensor_metrics.storage.redis import RedisStoreClient
from sensor_metrics.storage.timeseries import RedisTimeSeriesRepository
from sensor_metrics.types import Denied, MetricKind, Series, UnknownMetricKind
from tests.fixtures import PER_MINUTE, minute, minute_window, seed_series
from tests.mocks.storage import MockStoreClient


@pytest.fixture
def store():
    store = MockStoreClient()
    seed_series(store, "u1", [(10, 5.0), (11, 7.0)])
    return store


@pytest.fixture
def service(store):
    return SeriesQueryService(RedisTimeSeriesRepository(store, MetricKeyCodec()))


def query_count(outcome):
    labels = {"metric_kind": PER_MINUTE.value, "outcome": outcome}
    return metrics_registry.get_sample_value("series_queries_total", labels) or 0.0


# ============================================================================
# Permitted Queries
# ============================================================================


@pytest.mark.asyncio
async def test_owner_reads_own_series(store, service):
    result = await service.get_series_for_caller("u1", "u1", PER_MINUTE, minute_window(10, 12))

    assert isinstance(result, Series)
    assert result.owner == "u1"
    assert result.kind is PER_MINUTE
    assert result.pairs() == [(minute(10), 5.0), (minute(11), 7.0)]
    assert store.call_count == 1


@pytest.mark.asyncio
async def test_kind_may_be_given_by_name(service):
    result = await service.get_series_for_caller("u1", "u1", "sensor_values_per_minute", minute_window(10, 11))
    assert result.pairs() == [(minute(10), 5.0)]


@pytest.mark.asyncio
async def test_window_before_any_data_is_empty_series(service):
    result = await service.get_series_for_caller("u1", "u1", PER_MINUTE, minute_window(0, 5))

    assert isinstance(result, Series)
    assert result.is_empty


@pytest.mark.asyncio
async def test_fill_missing_reports_every_bucket(service):
    result = await service.get_series_for_caller(
        "u1", "u1", PER_MINUTE, minute_window(9, 13), fill_missing=True
    )

    assert [value for _, value in result.pairs()] == [0.0, 5.0, 7.0, 0.0]


@pytest.mark.asyncio
async def test_transient_store_failures_are_invisible():
    client = MagicMock()
    client.zrangebyscore = AsyncMock(
        side_effect=[
            RedisConnectionError("connection reset"),
            RedisConnectionError("connection reset"),
            [("600|5.0", 600.0), ("660|7.0", 660.0)],
        ]
    )
    client.aclose = AsyncMock()
    store = RedisStoreClient(max_attempts=3, backoff_base=0, client_factory=lambda: client)
    service = SeriesQueryService(RedisTimeSeriesRepository(store, MetricKeyCodec()))
    before = query_count("ok")

    result = await service.get_series_for_caller("u1", "u1", PER_MINUTE, minute_window(10, 12))

    assert result.pairs() == [(minute(10), 5.0), (minute(11), 7.0)]
    assert query_count("ok") == before + 1


# ============================================================================
# Denied Queries
# ============================================================================


@pytest.mark.asyncio
async def test_other_caller_is_denied_without_store_access(store, service):
    before = query_count("denied")

    result = await service.get_series_for_caller("u2", "u1", PER_MINUTE, minute_window(10, 12))

    assert result == Denied(requested_owner="u1")
    assert store.call_count == 0
    assert query_count("denied") == before + 1


@pytest.mark.asyncio
async def test_unauthenticated_caller_is_denied(store, service):
    result = await service.get_series_for_caller(None, "u1", PER_MINUTE, minute_window(10, 12))

    assert isinstance(result, Denied)
    assert store.call_count == 0


@pytest.mark.asyncio
async def test_denial_does_not_depend_on_data(store, service):
    with_data = await service.get_series_for_caller("u2", "u1", PER_MINUTE, minute_window(10, 12))
    without_data = await service.get_series_for_caller("u2", "u3", PER_MINUTE, minute_window(10, 12))

    assert type(with_data) is type(without_data) is Denied
    assert with_data.reason == without_data.reason


@pytest.mark.asyncio
async def test_denial_precedes_kind_validation(store, service):
    result = await service.get_series_for_caller("u2", "u1", "NOT_A_KIND", minute_window(10, 12))

    assert isinstance(result, Denied)
    assert store.call_count == 0


# ============================================================================
# Errors
# ============================================================================


@pytest.mark.asyncio
async def test_unknown_kind_for_permitted_caller(store, service):
    with pytest.raises(UnknownMetricKind):
        await service.get_series_for_caller("u1", "u1", "NOT_A_KIND", minute_window(10, 12))
    assert store.call_count == 0


@pytest.mark.asyncio
async def test_store_unavailable_propagates(store, service):
    store.fail_next(StoreUnavailable("down"))
    before = query_count("error")

    with pytest.raises(StoreUnavailable):
        await service.get_series_for_caller("u1", "u1", PER_MINUTE, minute_window(10, 12))

    assert query_count("error") == before + 1


@pytest.mark.asyncio
async def test_other_kinds_are_separate_series(store, service):
    result = await service.get_series_for_caller(
        "u1", "u1", MetricKind.SENSOR_VALUES_PER_HOUR, minute_window(0, 60)
    )
    assert result.is_empty
