"""Golden-signal and corpus metrics.

Every metric is a Prometheus collector, scraped from ``/metrics``, mirrored
into an OpenTelemetry instrument of the same name so the same measurements
can be pushed over OTLP when a collector is configured.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from hadith_search_server.config import ObservabilityCollectorConfig
from hadith_search_server.observability.otlp import SERVICE_NAME, build_exporter, service_resource


if TYPE_CHECKING:
    from collections.abc import Generator, Sequence


logger = logging.getLogger(__name__)

_meters: dict[str, Any] = {"provider": None, "meter": None}


def init_metrics(
    service_name: str = SERVICE_NAME,
    resource_attributes: dict[str, str] | None = None,
    *,
    readers: Sequence[PeriodicExportingMetricReader] = (),
) -> MeterProvider:
    """Create the process meter provider on first call and return it afterwards."""
    provider = _meters["provider"]
    if provider is None:
        provider = MeterProvider(
            resource=service_resource(service_name, resource_attributes),
            metric_readers=list(readers),
        )
        otel_metrics.set_meter_provider(provider)
        _meters.update(provider=provider, meter=provider.get_meter(__name__))
    return provider


def enable_metric_export(
    config: ObservabilityCollectorConfig | None,
    *,
    service_name: str = SERVICE_NAME,
) -> bool:
    """Push metrics to the collector on a timer.

    Readers can only be attached when the provider is created, so this must
    run before the first measurement.
    """
    if not config or not config.enabled:
        return False
    if _meters["provider"] is not None:
        logger.warning("Meter provider already initialized; OTLP metric export not attached")
        return False

    try:
        exporter = build_exporter(config, "metrics")
    except Exception as exc:
        logger.error("OTLP metric exporter unavailable: %s", exc, exc_info=True)
        OTLP_EXPORT_ERRORS.labels(signal="metrics").inc()
        OTLP_EXPORT_ENABLED.labels(signal="metrics").set(0)
        return False

    init_metrics(service_name, config.resource_attributes, readers=[PeriodicExportingMetricReader(exporter)])
    OTLP_EXPORT_ENABLED.labels(signal="metrics").set(1)
    return True


def _meter() -> Any:
    if _meters["meter"] is None:
        init_metrics()
    return _meters["meter"]


_PROMETHEUS_TYPES = {"counter": Counter, "histogram": Histogram, "gauge": Gauge}


class DualMetric:
    """A labelled Prometheus metric and its lazily created OTel twin.

    Gauges become OTel up-down counters fed with the delta between
    successive ``set`` calls.
    """

    def __init__(self, kind: str, name: str, documentation: str, labelnames: Sequence[str], **options: Any) -> None:
        if kind not in _PROMETHEUS_TYPES:
            raise ValueError(f"Unknown metric kind: {kind}")
        self.kind = kind
        self.name = name
        self.documentation = documentation
        self.prometheus = _PROMETHEUS_TYPES[kind](name, documentation, list(labelnames), **options)
        self._instrument: Any = None
        self._gauge_values: dict[tuple[tuple[str, str], ...], float] = {}

    def labels(self, **labels: str) -> LabelledMetric:
        return LabelledMetric(self, labels)

    def instrument(self) -> Any:
        if self._instrument is None:
            meter = _meter()
            if self.kind == "counter":
                create = meter.create_counter
            elif self.kind == "histogram":
                create = meter.create_histogram
            else:
                create = meter.create_up_down_counter
            self._instrument = create(self.name, description=self.documentation)
        return self._instrument


class LabelledMetric:
    __slots__ = ("_labels", "_metric")

    def __init__(self, metric: DualMetric, labels: dict[str, str]) -> None:
        self._metric = metric
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._metric.prometheus.labels(**self._labels).inc(amount)
        self._metric.instrument().add(amount, self._labels)

    def observe(self, value: float) -> None:
        self._metric.prometheus.labels(**self._labels).observe(value)
        self._metric.instrument().record(value, self._labels)

    def set(self, value: float) -> None:
        metric = self._metric
        metric.prometheus.labels(**self._labels).set(value)
        key = tuple(sorted(self._labels.items()))
        delta = value - metric._gauge_values.get(key, 0.0)
        metric._gauge_values[key] = value
        if delta:
            metric.instrument().add(delta, self._labels)


_FAST_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)

REQUEST_LATENCY = DualMetric(
    "histogram",
    "http_request_latency_seconds",
    "HTTP request latency by route family",
    ("route", "method"),
    buckets=_FAST_BUCKETS,
)
REQUEST_COUNT = DualMetric(
    "counter",
    "http_requests_total",
    "HTTP requests by route family and status",
    ("route", "method", "status"),
)
SEARCH_LATENCY = DualMetric(
    "histogram",
    "search_latency_seconds",
    "Time to rank the corpus for one query",
    ("mode",),
    buckets=_FAST_BUCKETS,
)
CORPUS_RECORD_COUNT = DualMetric(
    "gauge",
    "corpus_record_count",
    "Records in the active corpus snapshot",
    ("strategy",),
)
CORPUS_LOAD_SECONDS = DualMetric(
    "histogram",
    "corpus_load_seconds",
    "Wall time of a corpus load",
    ("strategy",),
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)
OTLP_EXPORT_ERRORS = DualMetric(
    "counter",
    "otlp_export_errors_total",
    "OTLP exporters that failed to initialize",
    ("signal",),
)
OTLP_EXPORT_ENABLED = DualMetric(
    "gauge",
    "otlp_export_enabled",
    "1 when OTLP export is active for the signal",
    ("signal",),
)


@contextmanager
def track_latency(histogram: DualMetric, **labels: str) -> Generator[None, None, None]:
    """Observe the wall time of the enclosed block, even when it raises."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
