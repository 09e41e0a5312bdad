"""Request tracing: OpenTelemetry spans plus correlation-id binding."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

from hadith_search_server.config import ObservabilityCollectorConfig
from hadith_search_server.observability.context import bind_context, bind_span, current_context
from hadith_search_server.observability.metrics import OTLP_EXPORT_ENABLED, OTLP_EXPORT_ERRORS
from hadith_search_server.observability.otlp import SERVICE_NAME, build_exporter, service_resource


if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span, Tracer


logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
TRACE_HEADER = b"x-trace-id"

_tracing: dict[str, Any] = {"provider": None, "tracer": None}


def init_tracing(
    service_name: str = SERVICE_NAME,
    resource_attributes: dict[str, str] | None = None,
) -> TracerProvider:
    provider = TracerProvider(resource=service_resource(service_name, resource_attributes))
    trace.set_tracer_provider(provider)
    _tracing.update(provider=provider, tracer=provider.get_tracer(__name__))
    logger.debug("Tracing initialized for %s", service_name)
    return provider


def enable_trace_export(
    config: ObservabilityCollectorConfig | None,
    provider: TracerProvider | None = None,
) -> bool:
    """Attach a batching OTLP span exporter. Returns whether export is active."""
    if not config or not config.enabled:
        return False

    active = provider or _tracing["provider"] or init_tracing(resource_attributes=config.resource_attributes)
    try:
        exporter = build_exporter(config, "traces")
    except Exception as exc:
        logger.error("OTLP trace exporter unavailable: %s", exc, exc_info=True)
        OTLP_EXPORT_ERRORS.labels(signal="traces").inc()
        OTLP_EXPORT_ENABLED.labels(signal="traces").set(0)
        return False

    active.add_span_processor(BatchSpanProcessor(exporter))
    OTLP_EXPORT_ENABLED.labels(signal="traces").set(1)
    logger.info("OTLP trace export (%s) to %s", config.otlp_protocol, config.collector_endpoint)
    return True


def get_tracer() -> Tracer:
    if _tracing["tracer"] is None:
        init_tracing()
    return _tracing["tracer"]


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Open a span and expose its id to log records emitted inside it.

    Exceptions are recorded on the span and re-raised. The enclosing span id
    is bound again on exit.
    """
    parent_span_id = current_context().span_id
    with get_tracer().start_as_current_span(name, kind=kind, attributes=attributes) as span:
        bind_span(format(span.get_span_context().span_id, "016x"))
        try:
            yield span
        finally:
            bind_span(parent_span_id)


def route_family(path: str) -> str:
    """Collapse a request path to a low-cardinality label.

    ``/api/v1/collections/bukhari/hadiths/12`` becomes ``collections``;
    top-level paths keep their first segment (``health``, ``metrics``).
    """
    if path.startswith(API_PREFIX + "/"):
        path = path[len(API_PREFIX) :]
    segment = path.strip("/").split("/", 1)[0]
    return segment or "root"


class RequestTracingMiddleware:
    """ASGI middleware binding correlation ids and a server span per request.

    An ``x-trace-id`` request header is reused as the trace id so callers can
    find their request in the logs.
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        family = route_family(path)
        incoming = dict(scope.get("headers") or ()).get(TRACE_HEADER, b"").decode("latin-1").strip()
        bind_context(incoming or None, route=family)

        attributes = {
            "http.method": scope.get("method", ""),
            "http.target": path,
            "corpus.route_family": family,
        }
        with create_span("http.request", kind=SpanKind.SERVER, attributes=attributes) as span:

            async def send_and_record(message: dict) -> None:
                if message["type"] == "http.response.start":
                    status = message["status"]
                    span.set_attribute("http.status_code", status)
                    if status >= 400:
                        span.set_status(Status(StatusCode.ERROR, f"HTTP {status}"))
                await send(message)

            await self.app(scope, receive, send_and_record)
