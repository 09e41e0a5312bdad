"""Tests for runtime health endpoints."""

import asyncio
import json

import pytest

from hadith_search_server.runtime.health import (
    build_alive_endpoint,
    build_detailed_health_endpoint,
    build_health_endpoint,
    build_ready_endpoint,
)
from hadith_search_server.service_layer.corpus_service import CorpusService


def _call(endpoint):
    response = asyncio.run(endpoint(None))
    return response.status_code, json.loads(response.body)


def test_health_does_not_need_corpus():
    status, payload = _call(build_health_endpoint())

    assert status == 200
    assert payload["status"] == "healthy"
    assert payload["uptime"] >= 0


def test_alive():
    status, payload = _call(build_alive_endpoint())

    assert status == 200
    assert payload["alive"] is True


def test_ready_tracks_load_state(settings):
    service = CorpusService(settings)
    endpoint = build_ready_endpoint(service)

    status, payload = _call(endpoint)
    assert status == 503
    assert payload["message"] == "Data not loaded"

    service.load()
    status, payload = _call(endpoint)
    assert status == 200
    assert payload["ready"] is True


@pytest.mark.parametrize("loaded", [False, True])
def test_detailed_health(settings, loaded):
    service = CorpusService(settings)
    if loaded:
        service.load()

    status, payload = _call(build_detailed_health_endpoint(service))

    assert status == 200
    assert payload["data"]["loaded"] is loaded
    assert payload["system"]["pythonVersion"]
    if loaded:
        assert payload["data"]["totalCollections"] == 2
        assert payload["data"]["lastUpdated"] == "2024-01-01T00:00:00Z"
