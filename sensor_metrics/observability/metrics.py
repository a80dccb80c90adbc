"""
Prometheus metrics for the sensor metrics engine.

This module defines and exports Prometheus metrics for monitoring:
- Store round trips, retries and failures
- Series queries and access decisions
- Samples written
- HTTP requests served by the API
"""

import time
from functools import wraps
from typing import Callable

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    CollectorRegistry,
    generate_latest,
)


# Create a custom registry for this application
metrics_registry = CollectorRegistry()


# ============================================================================
# Store Metrics
# ============================================================================

store_operation_duration = Histogram(
    "store_operation_duration_seconds",
    "Store round trip duration in seconds",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
    registry=metrics_registry,
)

store_retry_counter = Counter(
    "store_retries_total",
    "Total number of store operation retries after a transient failure",
    ["operation"],
    registry=metrics_registry,
)

store_failure_counter = Counter(
    "store_failures_total",
    "Total number of store operations that failed for good",
    ["operation", "reason"],  # reason: unavailable, rejected
    registry=metrics_registry,
)

# ============================================================================
# Query Metrics
# ============================================================================

series_query_counter = Counter(
    "series_queries_total",
    "Total number of series queries",
    ["metric_kind", "outcome"],  # outcome: ok, denied, error
    registry=metrics_registry,
)

access_decision_counter = Counter(
    "access_decisions_total",
    "Total number of access decisions",
    ["decision"],  # permitted, denied
    registry=metrics_registry,
)

samples_written_counter = Counter(
    "samples_written_total",
    "Total number of samples written",
    ["metric_kind"],
    registry=metrics_registry,
)

# ============================================================================
# API Metrics
# ============================================================================

api_request_counter = Counter(
    "api_requests_total",
    "Total number of API requests",
    ["method", "endpoint", "status_code"],
    registry=metrics_registry,
)

api_request_duration = Histogram(
    "api_request_duration_seconds",
    "API request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=metrics_registry,
)

# ============================================================================
# Application Info
# ============================================================================

app_info = Info(
    "app",
    "Application information",
    registry=metrics_registry,
)

app_info.info({
    "name": "Sensor Metrics",
    "version": "1.0.0",
})


# ============================================================================
# Decorator Functions for Auto-Instrumentation
# ============================================================================

def track_store_operation(operation: str):
    """
    Decorator to time a store operation.

    Args:
        operation: Operation name (get, range_scan, put, increment)

    Example:
        @track_store_operation("range_scan")
        async def range_scan(self, lower, upper):
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return await func(*args, **kwargs)
            finally:
                duration = time.time() - start_time
                store_operation_duration.labels(operation=operation).observe(duration)

        return wrapper
    return decorator


# ============================================================================
# Metrics Endpoint Handler
# ============================================================================

def get_metrics() -> bytes:
    """Get Prometheus metrics in text format."""
    return generate_latest(metrics_registry)


# ============================================================================
# Helper Functions
# ============================================================================

def record_store_retry(operation: str):
    store_retry_counter.labels(operation=operation).inc()


def record_store_failure(operation: str, reason: str):
    store_failure_counter.labels(operation=operation, reason=reason).inc()


def record_series_query(metric_kind: str, outcome: str):
    series_query_counter.labels(metric_kind=metric_kind, outcome=outcome).inc()


def record_access_decision(permitted: bool):
    access_decision_counter.labels(decision="permitted" if permitted else "denied").inc()


def record_samples_written(metric_kind: str, count: int = 1):
    samples_written_counter.labels(metric_kind=metric_kind).inc(count)
