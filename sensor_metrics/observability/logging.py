"""
Structured logging for the sensor metrics engine.

Log records are rendered as one JSON document per line. Fields bound with
`log_context` (owner, metric kind) follow every record emitted inside the
block, including records from the store client several calls down. The audit
logger records each access decision taken before a series read.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional


SERVICE_NAME = "sensor-metrics"

# Fields bound for the current request or task
request_context: ContextVar[Dict[str, Any]] = ContextVar("request_context", default={})

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("asyncio", "uvicorn.access", "redis")

PLAIN_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s:%(lineno)s] %(message)s"


# ============================================================================
# JSON Formatter
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    Render a log record as a single-line JSON document.

    Keys: timestamp (UTC, `Z` suffix), service, level, logger, message,
    module, function, line; `exception` when exc_info is set, `context` when
    fields are bound, plus anything passed as `extra={"extra_fields": {...}}`.
    """

    # output key -> LogRecord attribute
    RECORD_FIELDS = (
        ("level", "levelname"),
        ("logger", "name"),
        ("module", "module"),
        ("function", "funcName"),
        ("line", "lineno"),
    )

    def format(self, record: logging.LogRecord) -> str:
        document: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "service": SERVICE_NAME,
            "message": record.getMessage(),
        }
        for key, attribute in self.RECORD_FIELDS:
            document[key] = getattr(record, attribute)

        if record.exc_info:
            document["exception"] = self._describe_exception(record)

        bound = request_context.get()
        if bound:
            document["context"] = bound

        document.update(getattr(record, "extra_fields", {}))
        return json.dumps(document, default=str)

    def _describe_exception(self, record: logging.LogRecord) -> Dict[str, str]:
        exc_type, exc_value, _ = record.exc_info
        return {
            "type": exc_type.__name__,
            "message": str(exc_value),
            "traceback": self.formatException(record.exc_info),
        }


# ============================================================================
# Logging Setup
# ============================================================================

def _build_handlers(log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    return handlers


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = True,
):
    """
    Configure the root logger for the API process.

    Replaces any handlers already installed, so calling it twice does not
    duplicate output.

    Args:
        level: Level name; unknown names fall back to INFO
        log_file: Also write to this file when set
        json_format: JSON lines (True) or the plain text format (False)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = JSONFormatter() if json_format else logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []
    for handler in _build_handlers(log_file):
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging configured: level={logging.getLevelName(log_level)}, json={json_format}, file={log_file}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# ============================================================================
# Bound Context
# ============================================================================

@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """
    Bind fields to every record logged inside the block.

    Blocks nest; inner fields are added to the outer ones and dropped again
    on exit.

    Example:
        with log_context(owner_id="u1", metric_kind="SENSOR_VALUES_PER_MINUTE"):
            logger.info("Reading series")
    """
    bound = {**request_context.get(), **fields}
    token = request_context.set(bound)
    try:
        yield bound
    finally:
        request_context.reset(token)


# ============================================================================
# Audit Logging
# ============================================================================

class AuditLogger:
    """
    Logger for access decisions and the reads they allow.

    A denial records who asked and for whose series, never whether that
    series holds any data.
    """

    def __init__(self):
        self.logger = get_logger("audit")
        self.logger.setLevel(logging.INFO)

    def _emit(self, message: str, event_type: str, **fields: Any):
        self.logger.info(message, extra={"extra_fields": {"event_type": event_type, **fields}})

    def log_access_decision(
        self,
        caller: Optional[str],
        requested_owner: str,
        metric_kind: str,
        permitted: bool,
    ):
        """Log the outcome of an access check."""
        self._emit(
            "Access decision",
            "access_decision",
            caller=caller,
            requested_owner=requested_owner,
            metric_kind=metric_kind,
            permitted=permitted,
        )

    def log_series_read(self, owner: str, metric_kind: str, sample_count: int):
        self._emit(
            "Series read",
            "series_read",
            owner=owner,
            metric_kind=metric_kind,
            sample_count=sample_count,
        )


audit_logger = AuditLogger()
