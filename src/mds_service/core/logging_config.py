"""Logging configuration for the MDS service."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from opentelemetry import trace

DEFAULT_LOG_FORMAT = (
    "%(asctime)s - %(levelname)s - [%(service_name)s] - [%(name)s] - "
    "[%(module)s.%(funcName)s:%(lineno)d] - %(message)s"
)

LOG_OFF_LEVEL = "OFF"

# Loggers that are noisy at INFO
QUIET_LOGGERS = ("aiohttp.access", "sqlalchemy.engine", "uvicorn.access")


class ServiceNameFilter(logging.Filter):
    """Stamps every record with the service name."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        return True


class TraceContextFilter(logging.Filter):
    """Stamps records with the active OpenTelemetry trace and span ids."""

    def filter(self, record: logging.LogRecord) -> bool:
        span = trace.get_current_span()
        if span.is_recording():
            span_context = span.get_span_context()
            record.trace_id = format(span_context.trace_id, "032x")
            record.span_id = format(span_context.span_id, "016x")
        else:
            record.trace_id = None
            record.span_id = None
        return True


class MdsJSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Records logged with ``extra={"mds_source": ...}`` carry the feed source,
    so a run can be followed across the pipeline stages.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service_name", None),
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in ("mds_source", "trace_id", "span_id"):
            value = getattr(record, key, None)
            if value:
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def _resolve_level(log_level: str) -> int:
    level = logging.getLevelName(log_level.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    service_name: str = "mds-service",
    log_level: str = "INFO",
    log_format: str = "text",
) -> None:
    """
    Configure root logging for the service.

    Args:
        service_name: Name stamped on every record
        log_level: Level name, or "OFF" to silence logging
        log_format: "json", "text", or a custom logging format string
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if log_level.upper() == LOG_OFF_LEVEL:
        root_logger.setLevel(logging.CRITICAL + 1)
        return

    root_logger.setLevel(_resolve_level(log_level))

    if log_format.lower() == "json":
        formatter: logging.Formatter = MdsJSONFormatter()
    elif log_format.lower() == "text":
        formatter = logging.Formatter(DEFAULT_LOG_FORMAT)
    else:
        formatter = logging.Formatter(log_format)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(ServiceNameFilter(service_name))
    handler.addFilter(TraceContextFilter())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging configured for %s at %s", service_name, log_level.upper())
