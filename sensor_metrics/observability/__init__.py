"""
Observability module for monitoring, metrics, and logging.

- Prometheus metrics for store round trips, queries and access decisions
- Structured logging and audit events
"""

from sensor_metrics.observability.metrics import (
    metrics_registry,
    get_metrics,
    series_query_counter,
    access_decision_counter,
    store_operation_duration,
    store_retry_counter,
)

from sensor_metrics.observability.logging import (
    setup_logging,
    get_logger,
    log_context,
    audit_logger,
)

__all__ = [
    # Metrics
    "metrics_registry",
    "get_metrics",
    "series_query_counter",
    "access_decision_counter",
    "store_operation_duration",
    "store_retry_counter",
    # Logging
    "setup_logging",
    "get_logger",
    "log_context",
    "audit_logger",
]
