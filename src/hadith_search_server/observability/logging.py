"""Structured JSON logging correlated with the request context."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
import sys
from typing import Any

from opentelemetry._logs import set_logger_provider
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
import orjson

from hadith_search_server.config import ObservabilityCollectorConfig
from hadith_search_server.observability.context import current_context
from hadith_search_server.observability.metrics import OTLP_EXPORT_ENABLED, OTLP_EXPORT_ERRORS
from hadith_search_server.observability.otlp import SERVICE_NAME, build_exporter, service_resource


logger = logging.getLogger(__name__)

PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Attributes every LogRecord carries; anything else arrived through ``extra``
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _clip(value: str, limit: int) -> str:
    return value if len(value) <= limit else value[:limit] + "..."


def _to_json(value: Any) -> Any:
    """Fallback encoder for values orjson does not handle natively."""
    if isinstance(value, (set, frozenset)):
        try:
            return sorted(value)
        except TypeError:
            return list(value)
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (Path, Exception)):
        return str(value)
    return repr(value)


class JsonFormatter(logging.Formatter):
    """One orjson object per line, tagged with trace/span ids and route family.

    Arabic text is written as UTF-8 rather than ``\\u`` escapes so query logs
    stay readable.
    """

    REDACT_KEYS = frozenset({"password", "token", "api_key", "secret", "authorization"})
    MAX_MESSAGE_LEN = 2000
    MAX_EXTRA_LEN = 500

    def format(self, record: logging.LogRecord) -> str:
        ctx = current_context()
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "component": record.name.rpartition(".")[2],
            "message": _clip(record.getMessage(), self.MAX_MESSAGE_LEN),
            "trace_id": ctx.trace_id,
            "span_id": ctx.span_id,
        }
        if ctx.route:
            entry["route"] = ctx.route
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(self._extras(record))
        return orjson.dumps(entry, default=_to_json).decode("utf-8")

    def _extras(self, record: logging.LogRecord) -> dict[str, Any]:
        extras: dict[str, Any] = {}
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            if key.lower() in self.REDACT_KEYS:
                extras[key] = "[REDACTED]"
            elif isinstance(value, str):
                extras[key] = _clip(value, self.MAX_EXTRA_LEN)
            else:
                extras[key] = value
        return extras


def configure_logging(
    level: str = "info",
    *,
    json_output: bool = True,
    access_log: bool = False,
    logger_levels: dict[str, str] | None = None,
) -> None:
    """Replace the root handlers with a single stdout handler.

    Args:
        level: Root level name, case-insensitive
        json_output: Use :class:`JsonFormatter` instead of the plain format
        access_log: Keep ``uvicorn.access`` at INFO instead of WARNING
        logger_levels: Per-logger overrides (logger name -> level name)
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(PLAIN_FORMAT))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())

    levels = {"uvicorn.access": "info" if access_log else "warning", **(logger_levels or {})}
    for name, name_level in levels.items():
        logging.getLogger(name).setLevel(name_level.upper())


_log_export: dict[str, LoggerProvider | None] = {"provider": None}


def enable_log_export(
    config: ObservabilityCollectorConfig | None,
    *,
    service_name: str = SERVICE_NAME,
) -> LoggerProvider | None:
    """Forward log records to the OTLP collector. Idempotent per process."""
    if not config or not config.enabled:
        return None
    if _log_export["provider"] is not None:
        return _log_export["provider"]

    try:
        exporter = build_exporter(config, "logs")
    except Exception as exc:
        logger.error("OTLP log exporter unavailable: %s", exc, exc_info=True)
        OTLP_EXPORT_ERRORS.labels(signal="logs").inc()
        OTLP_EXPORT_ENABLED.labels(signal="logs").set(0)
        return None

    provider = LoggerProvider(resource=service_resource(service_name, config.resource_attributes))
    provider.add_log_record_processor(BatchLogRecordProcessor(exporter))
    set_logger_provider(provider)
    logging.getLogger().addHandler(LoggingHandler(level=logging.INFO, logger_provider=provider))
    _log_export["provider"] = provider
    OTLP_EXPORT_ENABLED.labels(signal="logs").set(1)
    return provider
