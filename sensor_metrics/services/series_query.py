"""
Series query service.

The single entry point for reading a metric series on behalf of a caller.
Authorization always runs first; a denied request returns before any key is
encoded or any store round trip happens, so a denial looks the same whether
or not the owner has data.
"""

import logging
from typing import Optional, Union

from sensor_metrics.observability.logging import audit_logger, log_context
from sensor_metrics.observability.metrics import (
    record_access_decision,
    record_series_query,
)
from sensor_metrics.security.access import AccessGate
from sensor_metrics.storage.interfaces import StorageError, TimeSeriesRepository
from sensor_metrics.types import (
    Denied,
    MetricKind,
    MetricRequestError,
    Series,
    SeriesResult,
    TimeWindow,
    UnknownMetricKind,
)

logger = logging.getLogger(__name__)


def _kind_label(kind: Union[MetricKind, str]) -> str:
    """Metric label with bounded cardinality."""
    try:
        return MetricKind.parse(kind).value
    except UnknownMetricKind:
        return "unknown"


class SeriesQueryService:
    """Composes the access gate and the time-series repository."""

    def __init__(self, repository: TimeSeriesRepository, gate: Optional[AccessGate] = None):
        """
        Initialize the query service.

        Args:
            repository: Time-series repository to read from
            gate: Access gate (defaults to self-access-only)
        """
        self.repository = repository
        self.gate = gate or AccessGate()

    async def get_series_for_caller(
        self,
        caller_identity: Optional[str],
        requested_owner: str,
        kind: Union[MetricKind, str],
        window: TimeWindow,
        fill_missing: bool = False,
    ) -> SeriesResult:
        """
        Read a series for a caller, or deny.

        Args:
            caller_identity: Identity resolved by the identity oracle, None if
                unauthenticated
            requested_owner: Owner whose series is requested
            kind: Metric kind (member or name)
            window: Half-open time window
            fill_missing: Report every bucket of the window, 0 where empty

        Returns:
            Series on success (possibly without samples), Denied otherwise

        Raises:
            UnknownMetricKind: If the kind is not in the enumeration
            StoreUnavailable: If the store cannot be reached
            StoreRequestRejected: If the store refuses the request
        """
        label = _kind_label(kind)
        decision = self.gate.authorize(caller_identity, requested_owner)

        audit_logger.log_access_decision(caller_identity, requested_owner, label, decision.permitted)
        record_access_decision(decision.permitted)

        if not decision.permitted:
            record_series_query(label, "denied")
            return Denied(requested_owner=requested_owner or "")

        with log_context(owner_id=decision.owner, metric_kind=label):
            try:
                kind = MetricKind.parse(kind)
                if fill_missing:
                    samples = await self.repository.range_query_filled(kind, decision.owner, window)
                else:
                    samples = await self.repository.range_query(kind, decision.owner, window)

            except MetricRequestError as e:
                logger.info(f"Rejected series request: {e}")
                record_series_query(label, "error")
                raise

            except StorageError as e:
                logger.error(f"Series query failed: {e}")
                record_series_query(label, "error")
                raise

            record_series_query(label, "ok")
            audit_logger.log_series_read(decision.owner, label, len(samples))

        return Series(kind=kind, owner=decision.owner, window=window, samples=samples)
