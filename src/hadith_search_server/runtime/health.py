"""Health, readiness and liveness endpoint factories."""

from __future__ import annotations

from datetime import datetime, timezone
import platform
import time
from typing import TYPE_CHECKING, Any

import psutil
from starlette.responses import JSONResponse

from hadith_search_server import __version__


if TYPE_CHECKING:
    from starlette.requests import Request

    from hadith_search_server.service_layer.corpus_service import CorpusService


_STARTED_AT = time.monotonic()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uptime() -> float:
    return round(time.monotonic() - _STARTED_AT, 3)


def _base_payload() -> dict[str, Any]:
    return {"status": "healthy", "timestamp": _now(), "uptime": _uptime(), "version": __version__}


def build_health_endpoint():
    """Basic process health; never depends on the corpus."""

    async def health(request: Request) -> JSONResponse:
        return JSONResponse(_base_payload())

    return health


def build_detailed_health_endpoint(service: CorpusService):
    """Process health plus corpus load state and memory usage."""

    async def detailed_health(request: Request) -> JSONResponse:
        payload = _base_payload()
        status = service.status()
        if status["ready"]:
            report = status["loadReport"]
            payload["data"] = {
                "loaded": True,
                "totalCollections": status["collections"],
                "totalHadiths": status["records"],
                "totalFiles": status["files"],
                "strategy": report["strategy"],
                "loadedAt": report["loadedAt"],
                "lastUpdated": service.snapshot.corpus.metadata.get("generatedAt") or "Unknown",
            }
        else:
            payload["data"] = {"loaded": False, "message": "Data still loading"}

        memory = psutil.Process().memory_info()
        payload["system"] = {
            "pythonVersion": platform.python_version(),
            "platform": platform.system().lower(),
            "architecture": platform.machine(),
            "memory": {"rss": memory.rss, "vms": memory.vms},
        }
        return JSONResponse(payload)

    return detailed_health


def build_ready_endpoint(service: CorpusService):
    """503 until the corpus is loaded, so orchestrators hold traffic back."""

    async def ready(request: Request) -> JSONResponse:
        if service.is_ready:
            return JSONResponse({"ready": True, "timestamp": _now()})
        return JSONResponse(
            {"ready": False, "timestamp": _now(), "message": "Data not loaded"},
            status_code=503,
        )

    return ready


def build_alive_endpoint():
    async def alive(request: Request) -> JSONResponse:
        return JSONResponse({"alive": True, "timestamp": _now()})

    return alive
