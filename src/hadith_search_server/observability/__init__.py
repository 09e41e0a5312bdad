"""Observability: structured logging, Prometheus/OTel metrics, and tracing."""

from hadith_search_server.observability.context import RequestContext, bind_context, current_context
from hadith_search_server.observability.logging import JsonFormatter, configure_logging, enable_log_export
from hadith_search_server.observability.metrics import (
    CORPUS_LOAD_SECONDS,
    CORPUS_RECORD_COUNT,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SEARCH_LATENCY,
    enable_metric_export,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from hadith_search_server.observability.otlp import SERVICE_NAME
from hadith_search_server.observability.tracing import (
    RequestTracingMiddleware,
    create_span,
    enable_trace_export,
    get_tracer,
    init_tracing,
    route_family,
)


__all__ = [
    "CORPUS_LOAD_SECONDS",
    "CORPUS_RECORD_COUNT",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "SEARCH_LATENCY",
    "SERVICE_NAME",
    "JsonFormatter",
    "RequestContext",
    "RequestTracingMiddleware",
    "bind_context",
    "configure_logging",
    "create_span",
    "current_context",
    "enable_log_export",
    "enable_metric_export",
    "enable_trace_export",
    "get_metrics",
    "get_metrics_content_type",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "route_family",
    "track_latency",
]
