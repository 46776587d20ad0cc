"""
Unified logging for the topology compiler and the demonstration services.

Records carry the emitting service's name, the active OpenTelemetry trace and
span ids, and a correlation id. Output is one JSON object per line, or a
plain text line when ``LOG_FORMAT=text``.
"""

import json
import logging
import os
import sys
import uuid
from datetime import datetime, timezone
from typing import IO, Any

from opentelemetry import trace

TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(service_name)s] %(name)s: %(message)s"
TEXT_TRACE_FORMAT = (
    "%(asctime)s %(levelname)-8s [%(service_name)s] "
    "[trace=%(trace_id)s span=%(span_id)s] %(name)s: %(message)s"
)

DEFAULT_LOG_LEVEL = "INFO"
LOG_OFF_LEVEL = "OFF"

NO_TRACE_ID = "0" * 32
NO_SPAN_ID = "0" * 16

# Attributes every LogRecord has; anything else on a record came in via ``extra``.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
    "service_name",
    "trace_id",
    "span_id",
    "correlation_id",
}


def resolve_level(name: str) -> int:
    """Map a level name to a stdlib level; ``OFF`` silences the logger."""
    name = name.strip().upper()
    if name == LOG_OFF_LEVEL:
        return logging.CRITICAL + 1
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


class ServiceNameFilter(logging.Filter):
    """Stamps records with the name of the emitting service."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        return True


class TraceContextFilter(logging.Filter):
    """Stamps records with the ids of the current OpenTelemetry span."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            record.trace_id = trace.format_trace_id(context.trace_id)
            record.span_id = trace.format_span_id(context.span_id)
        else:
            record.trace_id = NO_TRACE_ID
            record.span_id = NO_SPAN_ID
        return True


class CorrelationFilter(logging.Filter):
    """Stamps records with a correlation id that can be rebound per request."""

    def __init__(self, correlation_id: str | None = None) -> None:
        super().__init__()
        self.correlation_id = correlation_id or uuid.uuid4().hex

    def bind(self, correlation_id: str) -> None:
        self.correlation_id = correlation_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = self.correlation_id
        return True


class UnifiedJSONFormatter(logging.Formatter):
    """Renders a record as a single JSON line."""

    def __init__(self, include_trace: bool = True, include_correlation: bool = True):
        super().__init__()
        self.include_trace = include_trace
        self.include_correlation = include_correlation

    def format(self, record: logging.LogRecord) -> str:
        entry = self._base_fields(record)
        entry.update(self._context_fields(record))
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }
        for key, value in vars(record).items():
            if key not in _STANDARD_ATTRS:
                entry.setdefault(key, value)
        return json.dumps(entry, default=str, ensure_ascii=False)

    def _base_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        return {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service_name", "unknown"),
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

    def _context_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if self.include_trace and hasattr(record, "trace_id"):
            fields["trace_id"] = record.trace_id
            fields["span_id"] = getattr(record, "span_id", NO_SPAN_ID)
        if self.include_correlation and hasattr(record, "correlation_id"):
            fields["correlation_id"] = record.correlation_id
        return fields


class UnifiedServiceLogger:
    """Logger bound to one service, writing through a single stream handler.

    Keyword arguments passed to the logging methods are attached to the
    record as structured context::

        service_logger.info("Call failed", backend="serviceb", status=503)

    Args:
        service_name: Service the records are attributed to
        logger_name: Name of the underlying stdlib logger, defaults to the service name
        json_output: JSON lines when true, text lines otherwise
        trace_context: Attach OpenTelemetry trace and span ids
        correlation: Attach a correlation id
        correlation_id: Initial correlation id, generated when omitted
        level: Level name, or ``OFF``
        stream: Output stream, defaults to stdout
    """

    def __init__(
        self,
        service_name: str,
        logger_name: str | None = None,
        json_output: bool = True,
        trace_context: bool = True,
        correlation: bool = True,
        correlation_id: str | None = None,
        level: str = DEFAULT_LOG_LEVEL,
        stream: IO[str] | None = None,
    ) -> None:
        self.service_name = service_name
        self.json_output = json_output
        self.trace_context = trace_context
        self.correlation_filter = CorrelationFilter(correlation_id) if correlation else None

        self.logger = logging.getLogger(logger_name or service_name)
        self.logger.setLevel(resolve_level(level))
        self.logger.handlers.clear()
        self.logger.addHandler(self._build_handler(stream or sys.stdout))

    def _build_handler(self, stream: IO[str]) -> logging.Handler:
        handler = logging.StreamHandler(stream)
        if self.json_output:
            handler.setFormatter(
                UnifiedJSONFormatter(
                    include_trace=self.trace_context,
                    include_correlation=self.correlation_filter is not None,
                )
            )
        else:
            handler.setFormatter(
                logging.Formatter(TEXT_TRACE_FORMAT if self.trace_context else TEXT_FORMAT)
            )

        handler.addFilter(ServiceNameFilter(self.service_name))
        if self.trace_context:
            handler.addFilter(TraceContextFilter())
        if self.correlation_filter is not None:
            handler.addFilter(self.correlation_filter)
        return handler

    def bind_correlation_id(self, correlation_id: str) -> None:
        if self.correlation_filter is not None:
            self.correlation_filter.bind(correlation_id)

    def log(self, level: int, msg: str, *args: Any, exc_info: Any = None, **context: Any) -> None:
        self.logger.log(level, msg, *args, exc_info=exc_info, extra=context)

    def debug(self, msg: str, *args: Any, **context: Any) -> None:
        self.log(logging.DEBUG, msg, *args, **context)

    def info(self, msg: str, *args: Any, **context: Any) -> None:
        self.log(logging.INFO, msg, *args, **context)

    def warning(self, msg: str, *args: Any, **context: Any) -> None:
        self.log(logging.WARNING, msg, *args, **context)

    def error(self, msg: str, *args: Any, **context: Any) -> None:
        self.log(logging.ERROR, msg, *args, **context)

    def exception(self, msg: str, *args: Any, **context: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self.log(logging.ERROR, msg, *args, exc_info=True, **context)

    def log_service_startup(self, **details: Any) -> None:
        self.info("Service starting up", status="starting", **details)

    def log_service_ready(self, port: int | None = None) -> None:
        if port is None:
            self.info("Service ready", status="ready")
        else:
            self.info("Service ready", status="ready", port=port)


def get_unified_logger(
    service_name: str, logger_name: str | None = None, **options: Any
) -> UnifiedServiceLogger:
    return UnifiedServiceLogger(service_name, logger_name, **options)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def setup_unified_logging(
    service_name: str,
    logger_name: str | None = None,
    level: str = DEFAULT_LOG_LEVEL,
    json_output: bool = True,
    trace_context: bool = True,
    correlation: bool = True,
) -> UnifiedServiceLogger:
    """Build a service logger, letting the environment override the arguments.

    ``LOG_LEVEL`` sets the level, ``LOG_FORMAT`` (``json`` or ``text``) the
    output format, and ``ENABLE_TRACE_LOGGING`` / ``ENABLE_CORRELATION_LOGGING``
    toggle the trace and correlation fields.
    """
    log_format = os.getenv("LOG_FORMAT")
    if log_format is not None:
        json_output = log_format.strip().lower() == "json"

    return UnifiedServiceLogger(
        service_name,
        logger_name,
        json_output=json_output,
        trace_context=_env_flag("ENABLE_TRACE_LOGGING", trace_context),
        correlation=_env_flag("ENABLE_CORRELATION_LOGGING", correlation),
        level=os.getenv("LOG_LEVEL", level),
    )


__all__ = [
    "CorrelationFilter",
    "ServiceNameFilter",
    "TraceContextFilter",
    "UnifiedJSONFormatter",
    "UnifiedServiceLogger",
    "get_unified_logger",
    "resolve_level",
    "setup_unified_logging",
]
