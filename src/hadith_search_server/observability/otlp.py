"""OTLP exporter construction shared by traces, metrics and logs."""

from __future__ import annotations

from typing import Any, Literal

from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter as GrpcLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter as GrpcMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcSpanExporter
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter as HttpLogExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter as HttpMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpSpanExporter
from opentelemetry.sdk.resources import Resource

from hadith_search_server.config import ObservabilityCollectorConfig


SERVICE_NAME = "hadith-search-server"

Signal = Literal["traces", "metrics", "logs"]
SIGNALS: tuple[Signal, ...] = ("traces", "metrics", "logs")

EXPORTERS: dict[tuple[str, Signal], Any] = {
    ("grpc", "traces"): GrpcSpanExporter,
    ("grpc", "metrics"): GrpcMetricExporter,
    ("grpc", "logs"): GrpcLogExporter,
    ("http", "traces"): HttpSpanExporter,
    ("http", "metrics"): HttpMetricExporter,
    ("http", "logs"): HttpLogExporter,
}


def service_resource(service_name: str = SERVICE_NAME, extra: dict[str, str] | None = None) -> Resource:
    return Resource.create({"service.name": service_name, **(extra or {})})


def signal_endpoint(config: ObservabilityCollectorConfig, signal: Signal) -> str:
    """Resolve the collector URL for one signal.

    gRPC collectors take every signal on one endpoint. OTLP/HTTP uses one
    path per signal, so a configured ``.../v1/traces`` (or a bare base URL)
    is rewritten to ``.../v1/<signal>``.
    """
    endpoint = config.collector_endpoint
    if config.otlp_protocol == "grpc":
        return endpoint

    base = endpoint.rstrip("/")
    for known in SIGNALS:
        suffix = f"/v1/{known}"
        if base.endswith(suffix):
            base = base[: -len(suffix)]
            break
    return f"{base}/v1/{signal}"


def build_exporter(config: ObservabilityCollectorConfig, signal: Signal) -> Any:
    exporter_cls = EXPORTERS[(config.otlp_protocol, signal)]
    options: dict[str, Any] = {
        "endpoint": signal_endpoint(config, signal),
        "headers": config.headers,
        "timeout": config.timeout_seconds,
    }
    if config.otlp_protocol == "grpc":
        options["insecure"] = config.grpc_insecure
    return exporter_cls(**options)
