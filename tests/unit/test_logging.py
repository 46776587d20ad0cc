"""
Tests for the unified logging module.
"""

import json
import logging
import sys

import pytest
from opentelemetry import trace

from weighted_routing.logging import (
    CorrelationFilter,
    ServiceNameFilter,
    TraceContextFilter,
    UnifiedJSONFormatter,
    UnifiedServiceLogger,
    get_unified_logger,
    resolve_level,
    setup_unified_logging,
)


def _record(msg="hello", exc_info=None):
    return logging.LogRecord(
        name="weighted_routing.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


@pytest.mark.unit
class TestFilters:
    """Test context-injecting filters."""

    def test_service_name_filter(self):
        record = _record()
        assert ServiceNameFilter("gateway").filter(record)
        assert record.service_name == "gateway"

    def test_trace_context_without_span(self):
        record = _record()
        TraceContextFilter().filter(record)
        assert record.trace_id == "0" * 32
        assert record.span_id == "0" * 16

    def test_correlation_filter(self):
        correlation = CorrelationFilter("abc")
        record = _record()
        correlation.filter(record)
        assert record.correlation_id == "abc"

        correlation.bind("def")
        correlation.filter(record)
        assert record.correlation_id == "def"

    def test_correlation_filter_generates_id(self):
        assert CorrelationFilter().correlation_id


@pytest.mark.unit
class TestUnifiedJSONFormatter:
    """Test structured JSON output."""

    def test_format(self):
        record = _record("compiled %d groups")
        record.args = (2,)
        ServiceNameFilter("weighted-routing").filter(record)
        CorrelationFilter("corr-1").filter(record)
        record.stack = "WeightedRoutingStack"

        entry = json.loads(UnifiedJSONFormatter().format(record))

        assert entry["message"] == "compiled 2 groups"
        assert entry["service"] == "weighted-routing"
        assert entry["level"] == "INFO"
        assert entry["correlation_id"] == "corr-1"
        assert entry["stack"] == "WeightedRoutingStack"

    def test_exception(self):
        try:
            raise RuntimeError("backend down")
        except RuntimeError:
            record = _record(exc_info=sys.exc_info())

        entry = json.loads(UnifiedJSONFormatter().format(record))
        assert entry["exception"]["type"] == "RuntimeError"
        assert entry["exception"]["message"] == "backend down"

    def test_without_trace(self):
        record = _record()
        TraceContextFilter().filter(record)
        entry = json.loads(UnifiedJSONFormatter(include_trace=False).format(record))
        assert "trace_id" not in entry


@pytest.mark.unit
class TestUnifiedServiceLogger:
    """Test the service logger wrapper."""

    def test_json_output(self, capsys):
        service_logger = get_unified_logger("gateway", "weighted_routing.test.json")
        service_logger.log_service_ready(3000)

        entry = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert entry["message"] == "Service ready"
        assert entry["port"] == 3000
        assert entry["service"] == "gateway"

    def test_level_filtering(self, capsys):
        service_logger = get_unified_logger(
            "gateway", "weighted_routing.test.level", level="warning"
        )
        service_logger.info("hidden")
        service_logger.warning("shown")

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out

    def test_off_level(self, capsys):
        service_logger = get_unified_logger(
            "gateway", "weighted_routing.test.off", level="OFF"
        )
        service_logger.error("nothing")
        assert capsys.readouterr().out == ""

    def test_text_format(self, capsys):
        service_logger = get_unified_logger(
            "gateway",
            "weighted_routing.test.text",
            json_output=False,
            trace_context=False,
        )
        service_logger.log_service_startup(version="v1")

        out = capsys.readouterr().out
        assert "[gateway]" in out
        assert "Service starting up" in out

    def test_exception_includes_traceback(self, capsys):
        service_logger = get_unified_logger("gateway", "weighted_routing.test.exc")
        try:
            raise ValueError("boom")
        except ValueError:
            service_logger.exception("failed")

        entry = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert entry["exception"]["type"] == "ValueError"

    def test_bind_correlation_id(self, capsys):
        service_logger = get_unified_logger("gateway", "weighted_routing.test.corr")
        service_logger.bind_correlation_id("req-42")
        service_logger.debug("dropped at INFO")
        service_logger.info("kept")

        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["correlation_id"] == "req-42"


@pytest.mark.unit
class TestSetupUnifiedLogging:
    """Test environment-driven setup."""

    def test_defaults(self):
        service_logger = setup_unified_logging("version-service")
        assert isinstance(service_logger, UnifiedServiceLogger)
        assert service_logger.json_output
        assert service_logger.logger.level == logging.INFO

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOG_FORMAT", "text")
        monkeypatch.setenv("ENABLE_TRACE_LOGGING", "false")
        monkeypatch.setenv("ENABLE_CORRELATION_LOGGING", "false")

        service_logger = setup_unified_logging(
            "version-service", logger_name="weighted_routing.test.env"
        )

        assert service_logger.logger.level == logging.DEBUG
        assert not service_logger.json_output
        assert not service_logger.trace_context
        assert service_logger.correlation_filter is None

    def test_structured_context(self, capsys):
        service_logger = get_unified_logger("gateway", "weighted_routing.test.context")
        service_logger.info("Call failed", backend="serviceb", status=503)

        entry = json.loads(capsys.readouterr().out.strip())
        assert entry["backend"] == "serviceb"
        assert entry["status"] == 503


@pytest.mark.unit
class TestTraceContext:
    """Test trace ids taken from the active span."""

    def test_ids_from_current_span(self):
        context = trace.SpanContext(
            trace_id=0x1234, span_id=0x42, is_remote=False
        )
        record = _record()
        with trace.use_span(trace.NonRecordingSpan(context)):
            TraceContextFilter().filter(record)

        assert record.trace_id == f"{0x1234:032x}"
        assert record.span_id == f"{0x42:016x}"


@pytest.mark.unit
@pytest.mark.parametrize(
    "name, level",
    [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("bogus", logging.INFO)],
)
def test_resolve_level(name, level):
    assert resolve_level(name) == level


@pytest.mark.unit
def test_resolve_off_level():
    assert resolve_level("off") > logging.CRITICAL
