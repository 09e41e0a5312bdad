"""Starlette application exposing the corpus over HTTP.

Routes live under ``/api/v1``; health, readiness and metrics are top level.
Every error response has the shape ``{"error": true, "message", "statusCode"}``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
import functools
import logging
import time
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Mount, Route

from hadith_search_server import __version__
from hadith_search_server.config import Settings
from hadith_search_server.domain.model import VariantTag
from hadith_search_server.domain.query import AdvancedSearchOptions, ListOptions, SearchOptions, StatsScope
from hadith_search_server.errors import CorpusNotLoadedError, LoadError, QueryValidationError
from hadith_search_server.observability import (
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SERVICE_NAME,
    RequestTracingMiddleware,
    configure_logging,
    enable_log_export,
    enable_metric_export,
    enable_trace_export,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    init_tracing,
    route_family,
)
from hadith_search_server.runtime.health import (
    build_alive_endpoint,
    build_detailed_health_endpoint,
    build_health_endpoint,
    build_ready_endpoint,
)
from hadith_search_server.search.stats import DEFAULT_TERM_LIMIT
from hadith_search_server.service_layer.corpus_service import CorpusService


if TYPE_CHECKING:
    from starlette.requests import Request


logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
MAX_TERM_LIMIT = 100

Endpoint = Callable[["Request"], Awaitable[Response]]


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    payload = {"error": True, "message": message, "statusCode": status_code, **extra}
    return JSONResponse(payload, status_code=status_code)


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


def guarded(settings: Settings) -> Callable[[Endpoint], Endpoint]:
    """Map query-time exceptions to JSON error responses."""

    def decorator(endpoint: Endpoint) -> Endpoint:
        @functools.wraps(endpoint)
        async def wrapper(request: Request) -> Response:
            try:
                return await endpoint(request)
            except QueryValidationError as exc:
                return error_response(400, str(exc))
            except ValidationError as exc:
                return error_response(400, _validation_message(exc))
            except CorpusNotLoadedError as exc:
                return error_response(503, str(exc))
            except Exception as exc:
                logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
                message = "Internal Server Error" if settings.mask_error_details else str(exc)
                return error_response(500, message)

        return wrapper

    return decorator


async def record_request_metrics(request: Request, call_next: Any) -> Response:
    """Observe golden-signal latency and counts per route family."""
    route = route_family(request.url.path)
    status = 500
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        status = response.status_code
        return response
    finally:
        REQUEST_LATENCY.labels(route=route, method=request.method).observe(time.perf_counter() - start)
        REQUEST_COUNT.labels(route=route, method=request.method, status=str(status)).inc()


async def http_error_handler(request: Request, exc: HTTPException) -> Response:
    if exc.status_code == 404:
        return error_response(404, "Route not found", path=request.url.path)
    return error_response(exc.status_code, str(exc.detail))


def setup_observability(settings: Settings) -> None:
    """Configure logging, metrics and tracing for this process."""
    configure_logging(settings.log_level, json_output=settings.log_json, access_log=settings.access_log)
    collector = settings.observability
    # Metric readers must exist before the meter provider is created
    enable_metric_export(collector, service_name=SERVICE_NAME)
    init_metrics(SERVICE_NAME, collector.resource_attributes)
    init_tracing(SERVICE_NAME, collector.resource_attributes)
    enable_trace_export(collector)
    enable_log_export(collector, service_name=SERVICE_NAME)


class CorpusRoutes:
    """Endpoint factories for the ``/api/v1`` surface."""

    def __init__(self, service: CorpusService, settings: Settings) -> None:
        self.service = service
        self.settings = settings
        self._guard = guarded(settings)

    def _paged_params(self, request: Request) -> dict[str, Any]:
        params: dict[str, Any] = dict(request.query_params)
        params.setdefault("limit", self.settings.default_page_limit)
        return params

    def _clamped(self, options: Any) -> Any:
        return options.model_copy(update={"limit": self.settings.clamp_limit(options.limit)})

    def routes(self) -> list[Route]:
        guard = self._guard
        return [
            Route("/", guard(self.api_info), methods=["GET"]),
            Route("/info", guard(self.data_info), methods=["GET"]),
            Route("/collections", guard(self.list_collections), methods=["GET"]),
            Route("/collections/{collection_id}", guard(self.get_collection), methods=["GET"]),
            Route("/collections/{collection_id}/hadiths", guard(self.list_records), methods=["GET"]),
            Route("/collections/{collection_id}/hadiths/{hadith_id}", guard(self.get_record), methods=["GET"]),
            Route("/search", guard(self.search), methods=["GET"]),
            Route("/search/suggestions", guard(self.suggestions), methods=["GET"]),
            Route("/search/advanced", guard(self.advanced_search), methods=["POST"]),
            Route("/stats", guard(self.stats), methods=["GET"]),
            Route("/stats/collections/{collection_id}", guard(self.collection_stats), methods=["GET"]),
            Route("/stats/distribution", guard(self.distribution), methods=["GET"]),
            Route("/stats/frequent-terms", guard(self.frequent_terms), methods=["GET"]),
        ]

    # API info ----------------------------------------------------------------

    async def api_info(self, request: Request) -> Response:
        base = f"{request.url.scheme}://{request.url.netloc}"
        return JSONResponse(
            {
                "name": "Hadith API",
                "version": __version__,
                "description": "Search and browse hadith collections in their Arabic renderings",
                "endpoints": {
                    "collections": f"{base}{API_PREFIX}/collections",
                    "search": f"{base}{API_PREFIX}/search",
                    "stats": f"{base}{API_PREFIX}/stats",
                    "info": f"{base}{API_PREFIX}/info",
                    "health": f"{base}/health",
                },
                "collections": [summary.collection_name for summary in self.service.list_collection_summaries()],
            }
        )

    async def data_info(self, request: Request) -> Response:
        return JSONResponse(self.service.data_info())

    # Collections -------------------------------------------------------------

    async def list_collections(self, request: Request) -> Response:
        summaries = [summary.to_wire() for summary in self.service.list_collection_summaries()]
        return JSONResponse({"collections": summaries, "total": len(summaries)})

    async def get_collection(self, request: Request) -> Response:
        collection_id = request.path_params["collection_id"]
        detail = self.service.get_collection(collection_id)
        if detail is None:
            return error_response(404, f"Collection '{collection_id}' not found")
        return JSONResponse(detail.to_wire())

    async def list_records(self, request: Request) -> Response:
        collection_id = request.path_params["collection_id"]
        options = self._clamped(ListOptions.model_validate(self._paged_params(request)))
        page = self.service.list_records(collection_id, options)
        if page is None:
            return error_response(404, f"Collection '{collection_id}' not found")
        return JSONResponse(page.to_wire())

    async def get_record(self, request: Request) -> Response:
        collection_id = request.path_params["collection_id"]
        hadith_id = request.path_params["hadith_id"]
        raw_variant = request.query_params.get("fileType") or VariantTag.REGULAR.value
        try:
            variant = VariantTag.parse(raw_variant)
        except ValueError as exc:
            raise QueryValidationError(f"Unknown fileType '{raw_variant}'") from exc

        record = self.service.get_record(collection_id, hadith_id, variant)
        if record is None:
            return error_response(
                404,
                f"Hadith '{hadith_id}' not found in collection '{collection_id}' with file type '{variant.value}'",
            )
        return JSONResponse(record.to_wire())

    # Search ------------------------------------------------------------------

    async def search(self, request: Request) -> Response:
        params = self._paged_params(request)
        query = params.pop("q", "")
        options = self._clamped(SearchOptions.model_validate(params))
        return JSONResponse(self.service.search(query, options).to_wire())

    async def suggestions(self, request: Request) -> Response:
        query = request.query_params.get("q", "")
        raw_limit = request.query_params.get("limit")
        try:
            limit = int(raw_limit) if raw_limit else None
        except ValueError as exc:
            raise QueryValidationError("limit must be an integer") from exc
        return JSONResponse(self.service.suggest(query, limit).to_wire())

    async def advanced_search(self, request: Request) -> Response:
        try:
            body = await request.json()
        except ValueError as exc:
            raise QueryValidationError("Request body must be valid JSON") from exc
        if not isinstance(body, dict):
            raise QueryValidationError("Request body must be a JSON object")

        query = body.get("query")
        if not isinstance(query, str):
            raise QueryValidationError("query is required")
        body.setdefault("limit", self.settings.default_page_limit)
        options = self._clamped(AdvancedSearchOptions.model_validate(body))
        return JSONResponse(self.service.advanced_search(query, options).to_wire())

    # Statistics --------------------------------------------------------------

    async def stats(self, request: Request) -> Response:
        scope = StatsScope.model_validate(dict(request.query_params))
        return JSONResponse(self.service.compute_stats(scope).to_wire())

    async def collection_stats(self, request: Request) -> Response:
        collection_id = request.path_params["collection_id"]
        report = self.service.collection_report(collection_id)
        if report is None:
            return error_response(404, f"Collection '{collection_id}' not found")
        return JSONResponse(report.to_wire())

    async def distribution(self, request: Request) -> Response:
        scope = StatsScope.model_validate(dict(request.query_params))
        distribution = self.service.distribution(scope)
        payload: dict[str, Any] = {
            "distribution": distribution.to_wire(),
            "filters": {
                "collectionId": scope.collection_id,
                "fileType": scope.variant.value if scope.variant else None,
            },
        }
        if distribution.statistics.total == 0:
            payload["note"] = "No data found for the specified filters"
        return JSONResponse(payload)

    async def frequent_terms(self, request: Request) -> Response:
        scope = StatsScope.model_validate(dict(request.query_params))
        raw_limit = request.query_params.get("limit")
        try:
            limit = int(raw_limit) if raw_limit else DEFAULT_TERM_LIMIT
        except ValueError as exc:
            raise QueryValidationError("limit must be an integer") from exc
        limit = max(1, min(limit, MAX_TERM_LIMIT))

        result = self.service.frequent_terms(scope.collection_id, scope.variant, limit=limit)
        payload = result.to_wire()
        payload["filters"] = {"collectionId": scope.collection_id}
        return JSONResponse(payload)


def _build_metrics_endpoint():
    async def metrics_endpoint(_: Request) -> Response:
        return Response(content=get_metrics(), media_type=get_metrics_content_type())

    return metrics_endpoint


def _build_lifespan(service: CorpusService):
    @asynccontextmanager
    async def lifespan(app: Starlette):
        try:
            report = await service.initialize()
        except LoadError:
            logger.critical("Corpus could not be loaded; refusing to serve", exc_info=True)
            raise
        logger.info("Serving %d records from %d collections", report.records_count, report.collections_count)
        yield
        logger.info("Shutting down")

    return lifespan


def create_app(
    settings: Settings | None = None,
    *,
    service: CorpusService | None = None,
    setup_observability_stack: bool = True,
) -> Starlette:
    """Build the ASGI application; the corpus loads in its lifespan."""
    settings = settings or Settings()
    if setup_observability_stack:
        setup_observability(settings)

    service = service or CorpusService(settings)
    api = CorpusRoutes(service, settings)

    routes = [
        Route("/health", endpoint=build_health_endpoint(), methods=["GET"]),
        Route("/health/detailed", endpoint=build_detailed_health_endpoint(service), methods=["GET"]),
        Route("/ready", endpoint=build_ready_endpoint(service), methods=["GET"]),
        Route("/alive", endpoint=build_alive_endpoint(), methods=["GET"]),
        Route("/metrics", endpoint=_build_metrics_endpoint(), methods=["GET"]),
        Mount(API_PREFIX, routes=api.routes()),
    ]

    app = Starlette(
        debug=settings.log_level == "debug",
        routes=routes,
        lifespan=_build_lifespan(service),
        exception_handlers={HTTPException: http_error_handler},
    )
    app.state.corpus_service = service
    app.state.settings = settings
    app.add_middleware(BaseHTTPMiddleware, dispatch=record_request_metrics)
    app.add_middleware(RequestTracingMiddleware)
    return app


def main() -> None:
    """Run the server with uvicorn."""
    import uvicorn

    settings = Settings()
    logger.info("Starting %s on %s:%d (data: %s)", SERVICE_NAME, settings.host, settings.port, settings.data_dir)
    uvicorn.run(
        "hadith_search_server.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        log_config=None,  # Don't let uvicorn override our logging config
        workers=settings.uvicorn_workers,
        limit_concurrency=settings.uvicorn_limit_concurrency,
    )


if __name__ == "__main__":
    main()
