"""Unit tests for logging, tracing and metrics helpers."""

import io
import json
import logging
import sys

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from prometheus_client import REGISTRY
import pytest

from docstore_search.domain.model import DocumentMetadata
from docstore_search.observability import (
    INDEX_OPERATIONS,
    SEARCH_LATENCY,
    JsonFormatter,
    configure_logging,
    create_span,
    get_metrics,
    get_metrics_content_type,
    get_trace_context,
    record_operation,
    resolve_level,
    set_trace_context,
    tenant_context,
    track_latency,
    tracing as tracing_module,
)


def make_record(msg: str = "test message", level: int = logging.INFO, name: str = "docstore_search.engine"):
    return logging.LogRecord(name=name, level=level, pathname="engine.py", lineno=1, msg=msg, args=(), exc_info=None)


@pytest.fixture
def span_exporter(monkeypatch):
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setitem(tracing_module._tracer_holder, "tracer", provider.get_tracer("test"))
    return exporter


@pytest.mark.unit
class TestJsonFormatter:
    def test_format_includes_trace_context(self):
        set_trace_context("a" * 32, "b" * 16)
        data = json.loads(JsonFormatter().format(make_record()))

        assert data["message"] == "test message"
        assert data["level"] == "INFO"
        assert data["logger"] == "docstore_search.engine"
        assert data["component"] == "engine"
        assert data["trace_id"] == "a" * 32
        assert data["span_id"] == "b" * 16
        assert "timestamp" in data

    def test_extra_fields_are_redacted(self):
        record = make_record()
        record.doc_id = "d1"
        record.api_key = "sk-live"
        record.terms = {"beta", "alpha"}
        data = json.loads(JsonFormatter().format(record))

        assert data["doc_id"] == "d1"
        assert data["api_key"] == "[REDACTED]"
        assert data["terms"] == ["alpha", "beta"]

    def test_long_messages_are_truncated(self):
        data = json.loads(JsonFormatter(max_message_chars=100).format(make_record("x" * 3000)))
        assert data["message"] == "x" * 100 + "..."

    def test_nested_secrets_are_redacted(self):
        record = make_record()
        record.request = {"headers": {"Authorization": "Bearer abc"}, "tenant": "acme", 3: "ok"}
        data = json.loads(JsonFormatter().format(record))

        assert data["request"] == {"headers": {"Authorization": "[REDACTED]"}, "tenant": "acme", "3": "ok"}

    def test_service_timestamp_and_models(self):
        record = make_record()
        record.created = 1_700_000_000.0
        record.document = DocumentMetadata(id="d1", tenant_id="t1")
        data = json.loads(JsonFormatter(service="docstore-search").format(record))

        assert data["service"] == "docstore-search"
        assert data["timestamp"].startswith("2023-11-14T22:13:20")
        assert data["document"]["id"] == "d1"
        assert data["document"]["tenant_id"] == "t1"

    def test_exception_is_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("t", logging.ERROR, "t.py", 1, "failed", (), exc_info=sys.exc_info())
        data = json.loads(JsonFormatter().format(record))
        assert "ValueError: boom" in data["exception"]

    def test_tenant_context_tags_records(self):
        with tenant_context("acme"):
            data = json.loads(JsonFormatter().format(make_record()))
            assert data["tenant"] == "acme"
        assert "tenant" not in get_trace_context()

    def test_tenant_context_without_tenant_is_noop(self):
        before = dict(get_trace_context())
        with tenant_context(None):
            assert get_trace_context() == before


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
    logging.getLogger("noisy.lib").setLevel(logging.NOTSET)


@pytest.mark.unit
class TestConfigureLogging:
    def test_second_call_replaces_own_handler(self, root_logger):
        foreign = logging.NullHandler()
        root_logger.addHandler(foreign)

        configure_logging("debug", json_output=True, logger_levels={"noisy.lib": "error"})
        handler = configure_logging("DEBUG", json_output=True)

        assert foreign in root_logger.handlers
        owned = [h for h in root_logger.handlers if isinstance(h.formatter, JsonFormatter)]
        assert owned == [handler]
        assert root_logger.level == logging.DEBUG
        assert logging.getLogger("noisy.lib").level == logging.ERROR

        plain = configure_logging("warning", json_output=False)
        assert handler not in root_logger.handlers
        assert not isinstance(plain.formatter, JsonFormatter)
        assert root_logger.level == logging.WARNING

    def test_writes_json_lines_to_stream(self, root_logger):
        stream = io.StringIO()
        configure_logging("info", service="docstore-search", stream=stream)

        logging.getLogger("docstore_search.engine").info("Indexed document %s", "d1", extra={"token": "t0k"})

        data = json.loads(stream.getvalue().splitlines()[-1])
        assert data["message"] == "Indexed document d1"
        assert data["service"] == "docstore-search"
        assert data["token"] == "[REDACTED]"

    def test_unknown_level_is_rejected_before_changes(self, root_logger):
        before = root_logger.handlers[:]
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("verbose")
        assert root_logger.handlers == before

    @pytest.mark.parametrize(("name", "expected"), [("debug", 10), (" Warning ", 30), ("CRITICAL", 50), (25, 25)])
    def test_resolve_level(self, name, expected):
        assert resolve_level(name) == expected


@pytest.mark.unit
class TestCreateSpan:
    def test_records_attributes_and_skips_none(self, span_exporter):
        with create_span("search.ranked", attributes={"search.query": "budget", "tenant.id": None}):
            pass

        (span,) = span_exporter.get_finished_spans()
        assert span.name == "search.ranked"
        assert span.attributes["search.query"] == "budget"
        assert "tenant.id" not in span.attributes

    def test_updates_log_span_id(self, span_exporter):
        with create_span("index.save") as span:
            assert get_trace_context()["span_id"] == format(span.get_span_context().span_id, "016x")

    def test_records_errors(self, span_exporter):
        with pytest.raises(RuntimeError), create_span("index.rebuild"):
            raise RuntimeError("source offline")

        (span,) = span_exporter.get_finished_spans()
        assert span.status.status_code == StatusCode.ERROR
        assert span.events[0].name == "exception"


@pytest.mark.unit
class TestMetrics:
    def test_track_latency_observes_histogram(self):
        labels = {"mode": "ranked"}
        before = REGISTRY.get_sample_value("search_latency_seconds_count", labels) or 0.0
        with track_latency(SEARCH_LATENCY, mode="ranked"):
            pass
        assert REGISTRY.get_sample_value("search_latency_seconds_count", labels) == before + 1

    def test_record_operation_counts_status(self):
        ok_labels = {"operation": "add", "status": "ok"}
        error_labels = {"operation": "add", "status": "error"}
        ok_before = REGISTRY.get_sample_value("index_operations_total", ok_labels) or 0.0
        error_before = REGISTRY.get_sample_value("index_operations_total", error_labels) or 0.0

        record_operation("add")
        record_operation("add", ok=False)

        assert REGISTRY.get_sample_value("index_operations_total", ok_labels) == ok_before + 1
        assert REGISTRY.get_sample_value("index_operations_total", error_labels) == error_before + 1

    def test_bridge_rejects_unknown_kind(self):
        bridge = type(INDEX_OPERATIONS)(
            INDEX_OPERATIONS._prom_metric, otel_name="x", otel_description="x", otel_kind="summary"
        )
        with pytest.raises(ValueError, match="Unknown metric kind"):
            bridge.labels(operation="add", status="ok").inc()

    def test_exposition(self):
        assert b"index_operations_total" in get_metrics()
        assert get_metrics_content_type().startswith("text/plain")
