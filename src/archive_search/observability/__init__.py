"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from archive_search.observability.context import get_trace_context, set_trace_context, trace_context
from archive_search.observability.logging import JsonFormatter, configure_logging
from archive_search.observability.metrics import (
    BUILD_LATENCY,
    INDEX_DOC_COUNT,
    REBUILD_COUNT,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from archive_search.observability.tracing import TraceContextMiddleware, create_span, get_tracer, init_tracing


__all__ = [
    "BUILD_LATENCY",
    "INDEX_DOC_COUNT",
    "REBUILD_COUNT",
    "SEARCH_LATENCY",
    "SEARCH_REQUESTS",
    "JsonFormatter",
    "TraceContextMiddleware",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
