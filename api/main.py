"""
FastAPI main application for the sensor metrics API.

This module initializes the FastAPI app, configures middleware, error handlers,
and includes all API routers.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import __version__
from api.routers import health, metrics, series
from api.routers import time as time_router
from api.schemas.common import ErrorResponse
from sensor_metrics import config
from sensor_metrics.observability.logging import setup_logging
from sensor_metrics.observability.metrics import api_request_counter, api_request_duration
from sensor_metrics.security.identity import IdentityOracle, TokenIdentityOracle
from sensor_metrics.services.series_query import SeriesQueryService
from sensor_metrics.storage.interfaces import StoreRequestRejected, StoreUnavailable
from sensor_metrics.storage.keys import MetricKeyCodec
from sensor_metrics.storage.redis import RedisStoreClient
from sensor_metrics.storage.timeseries import RedisTimeSeriesRepository
from sensor_metrics.types import MetricRequestError

logger = logging.getLogger(__name__)


# Application state
class AppState:
    """Application state container."""

    def __init__(self):
        self.store_client: Optional[RedisStoreClient] = None
        self.repository: Optional[RedisTimeSeriesRepository] = None
        self.query_service: Optional[SeriesQueryService] = None
        self.identity_oracle: Optional[IdentityOracle] = None
        self.started_at: Optional[datetime] = None


app_state = AppState()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown events.

    The store client connects lazily, so startup succeeds even when Redis is
    down; queries then answer 503 until it comes back.
    """
    setup_logging(level=config.LOG_LEVEL, log_file=config.LOG_FILE, json_format=config.LOG_JSON)
    logger.info("Starting Sensor Metrics API...")
    app_state.started_at = datetime.now(timezone.utc)

    app_state.store_client = RedisStoreClient(**config.get_store_settings())
    app_state.repository = RedisTimeSeriesRepository(
        app_state.store_client,
        MetricKeyCodec(prefix=config.METRICS_KEY_PREFIX),
        max_fill_buckets=config.MAX_FILL_BUCKETS,
    )
    app_state.query_service = SeriesQueryService(app_state.repository)
    app_state.identity_oracle = TokenIdentityOracle()

    if await app_state.store_client.ping():
        logger.info(f"Redis reachable at {app_state.store_client.display_url}")
    else:
        logger.warning("Redis not reachable at startup; series queries will fail until it is")

    logger.info("API startup complete")

    yield

    logger.info("Shutting down Sensor Metrics API...")
    await app_state.store_client.close()
    logger.info("API shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Sensor Metrics API",
    description="""
    ## Sensor Metrics

    Per-user metric time series (e.g. sensor values per minute) stored in Redis.

    ### Authentication

    Pass a token as `Authorization: Bearer <token>` or in the `X-API-Key`
    header. Callers can only read their own series.
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def track_requests(request: Request, call_next):
    """Record request count and latency per route."""
    start_time = time.time()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")
        api_request_duration.labels(method=request.method, endpoint=endpoint).observe(
            time.time() - start_time
        )
        api_request_counter.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=status_code,
        ).inc()


# Exception handlers

def _error(status_code: int, error: str, detail: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=detail,
            code=code,
            timestamp=_now(),
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with consistent error response format."""
    response = _error(exc.status_code, str(exc.detail), str(exc.detail), f"HTTP_{exc.status_code}")
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error", str(exc), "VALIDATION_ERROR")


@app.exception_handler(MetricRequestError)
async def metric_request_exception_handler(request: Request, exc: MetricRequestError):
    """Unknown metric kinds and invalid timestamps are caller errors."""
    return _error(status.HTTP_400_BAD_REQUEST, "Bad Request", str(exc), type(exc).__name__.upper())


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    """The store stayed unreachable after retries."""
    return _error(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Service Unavailable",
        "Metric store temporarily unavailable",
        "STORE_UNAVAILABLE",
    )


@app.exception_handler(StoreRequestRejected)
async def store_rejected_handler(request: Request, exc: StoreRequestRejected):
    """The store refused a request the engine built; an internal defect."""
    logger.error(f"Store rejected request: {exc}", exc_info=exc)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred",
        "STORE_REQUEST_REJECTED",
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred",
        "INTERNAL_ERROR",
    )


# Root endpoint
@app.get("/", tags=["Root"])
async def root() -> Dict[str, Any]:
    """API root endpoint providing basic information."""
    return {
        "name": "Sensor Metrics API",
        "version": __version__,
        "status": "operational",
        "docs": "/docs",
        "endpoints": {
            "series": "/api/v1/users/{owner_id}/metrics/{metric_kind}",
            "time": "/api/v1/time",
            "health": "/api/v1/health",
            "metrics": "/metrics",
        },
    }


# Include routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(series.router, prefix="/api/v1")
app.include_router(time_router.router, prefix="/api/v1")
app.include_router(metrics.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        log_level="info",
    )
