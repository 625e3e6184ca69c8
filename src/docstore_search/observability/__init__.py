"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from docstore_search.observability.context import (
    get_trace_context,
    set_trace_context,
    tenant_context,
    trace_context,
)
from docstore_search.observability.logging import JsonFormatter, configure_logging, resolve_level
from docstore_search.observability.metrics import (
    INDEX_DOC_COUNT,
    INDEX_OPERATIONS,
    SEARCH_LATENCY,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    record_operation,
    track_latency,
)
from docstore_search.observability.tracing import create_span, get_tracer, init_tracing


__all__ = [
    "INDEX_DOC_COUNT",
    "INDEX_OPERATIONS",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "record_operation",
    "resolve_level",
    "set_trace_context",
    "tenant_context",
    "trace_context",
    "track_latency",
]
