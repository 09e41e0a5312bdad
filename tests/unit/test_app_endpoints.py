"""HTTP surface tests using Starlette's TestClient."""

from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from hadith_search_server.app import create_app
from hadith_search_server.errors import LoadError


@pytest.fixture
def client(settings):
    app = create_app(settings, setup_observability_stack=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def cold_client(settings):
    """A client whose lifespan never ran, so the corpus is not loaded."""
    return TestClient(create_app(settings, setup_observability_stack=False))


def _assert_error(response, status_code: int) -> dict:
    assert response.status_code == status_code
    payload = response.json()
    assert payload["error"] is True
    assert payload["statusCode"] == status_code
    assert payload["message"]
    return payload


class TestCollectionRoutes:
    def test_list_collections(self, client):
        payload = client.get("/api/v1/collections").json()

        assert payload["total"] == 2
        bukhari = payload["collections"][0]
        assert bukhari["collectionId"] == "bukhari"
        assert bukhari["totalHadiths"] == 6
        assert bukhari["fileTypes"] == ["regular", "fully-diacritized"]

    def test_get_collection(self, client):
        payload = client.get("/api/v1/collections/muslim").json()

        assert payload["collectionNameArabic"] == "صحيح مسلم"
        assert payload["files"] == [{"fileType": "regular", "fileName": "muslim.csv", "count": 2}]

    def test_unknown_collection_is_404(self, client):
        payload = _assert_error(client.get("/api/v1/collections/tirmidhi"), 404)
        assert "tirmidhi" in payload["message"]

        _assert_error(client.get("/api/v1/collections/tirmidhi/hadiths"), 404)

    def test_list_records(self, client):
        payload = client.get("/api/v1/collections/bukhari/hadiths", params={"limit": 2, "offset": 1}).json()

        assert [h["id"] for h in payload["hadiths"]] == ["2", "3"]
        assert payload["pagination"] == {"total": 6, "limit": 2, "offset": 1, "hasMore": True}

    def test_list_records_clamps_limit(self, client):
        payload = client.get("/api/v1/collections/bukhari/hadiths", params={"limit": 5000}).json()

        assert payload["pagination"]["limit"] == 100

    def test_get_record(self, client):
        payload = client.get("/api/v1/collections/muslim/hadiths/2").json()

        assert payload == {
            "id": "2",
            "text": "الزكاة والصوم",
            "textLength": 13,
            "hasFullDiacritics": False,
            "collectionId": "muslim",
            "collectionName": "Sahih Muslim",
            "fileType": "regular",
        }

    def test_get_record_in_diacritized_rendering(self, client):
        response = client.get("/api/v1/collections/bukhari/hadiths/1", params={"fileType": "mushakkala_mufassala"})

        assert response.status_code == 200
        assert response.json()["fileType"] == "fully-diacritized"
        assert response.json()["hasFullDiacritics"] is True

    def test_missing_record_is_404(self, client):
        payload = _assert_error(client.get("/api/v1/collections/bukhari/hadiths/99"), 404)

        assert payload["message"] == "Hadith '99' not found in collection 'bukhari' with file type 'regular'"

    def test_unknown_file_type_is_400(self, client):
        _assert_error(client.get("/api/v1/collections/bukhari/hadiths/1", params={"fileType": "audio"}), 400)


class TestSearchRoutes:
    def test_search(self, client):
        payload = client.get("/api/v1/search", params={"q": "رسول الله", "exact": "true"}).json()

        assert [h["collectionId"] for h in payload["hadiths"]] == ["muslim", "bukhari"]
        first = payload["hadiths"][0]
        assert first["relevanceScore"] > payload["hadiths"][1]["relevanceScore"]
        assert first["collectionNameArabic"] == "صحيح مسلم"
        assert payload["query"]["term"] == "رسول الله"
        assert payload["query"]["options"]["exact"] is True

    def test_search_requires_query(self, client):
        payload = _assert_error(client.get("/api/v1/search"), 400)

        assert payload["message"] == "Search query cannot be empty"

    def test_search_limit_is_clamped(self, client):
        payload = client.get("/api/v1/search", params={"q": "قال", "limit": 1000}).json()

        assert payload["pagination"]["limit"] == 100
        assert payload["pagination"]["total"] == 3

    def test_negative_offset_is_400(self, client):
        _assert_error(client.get("/api/v1/search", params={"q": "قال", "offset": -1}), 400)

    def test_unknown_collection_is_400(self, client):
        _assert_error(client.get("/api/v1/search", params={"q": "قال", "collection": "tirmidhi"}), 400)

    def test_suggestions(self, client):
        payload = client.get("/api/v1/search/suggestions", params={"q": "الله", "limit": 2}).json()

        assert payload == {"suggestions": ["الله", "رسول الله"], "query": "الله"}

    def test_short_suggestion_query_is_400(self, client):
        _assert_error(client.get("/api/v1/search/suggestions", params={"q": "ق"}), 400)

    def test_advanced_search(self, client):
        response = client.post(
            "/api/v1/search/advanced",
            json={"query": "قال", "collections": ["bukhari"], "maxLength": 30},
        )

        payload = response.json()
        assert response.status_code == 200
        assert [h["id"] for h in payload["hadiths"]] == ["1"]
        assert payload["filters"]["resultsBeforeFiltering"] == 3
        assert payload["filters"]["resultsAfterFiltering"] == 1
        assert payload["filters"]["applied"]["lengthFilter"] is True

    @pytest.mark.parametrize(
        "body",
        [{}, {"query": 5}, {"query": "   "}, {"query": "قال", "fileTypes": ["audio"]}],
    )
    def test_invalid_advanced_search_is_400(self, client, body):
        _assert_error(client.post("/api/v1/search/advanced", json=body), 400)

    def test_malformed_json_body_is_400(self, client):
        response = client.post(
            "/api/v1/search/advanced",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        _assert_error(response, 400)


class TestStatsRoutes:
    def test_stats(self, client):
        payload = client.get("/api/v1/stats").json()

        assert payload["overview"]["totalHadiths"] == 8
        assert [c["percentage"] for c in payload["collections"]] == [75.0, 25.0]
        assert payload["metadata"]["encoding"] == "UTF-8"

    def test_collection_stats(self, client):
        payload = client.get("/api/v1/stats/collections/bukhari").json()

        assert payload["analysis"]["diacriticsAnalysis"]["percentageWithDiacritics"] == 50.0
        _assert_error(client.get("/api/v1/stats/collections/tirmidhi"), 404)

    def test_distribution(self, client):
        payload = client.get("/api/v1/stats/distribution", params={"collection": "muslim"}).json()

        assert payload["distribution"]["statistics"]["total"] == 2
        assert payload["filters"] == {"collectionId": "muslim", "fileType": None}
        assert "note" not in payload

    def test_empty_distribution_carries_note(self, client):
        payload = client.get("/api/v1/stats/distribution", params={"collection": "tirmidhi"}).json()

        assert payload["distribution"]["statistics"]["total"] == 0
        assert payload["note"] == "No data found for the specified filters"

    def test_frequent_terms(self, client):
        payload = client.get("/api/v1/stats/frequent-terms", params={"limit": 2}).json()

        assert [t["term"] for t in payload["frequentTerms"]] == ["حدثنا", "قال"]
        assert payload["analysis"]["analyzedHadiths"] == 5
        assert payload["filters"] == {"collectionId": None}

    def test_frequent_terms_limit_must_be_numeric(self, client):
        _assert_error(client.get("/api/v1/stats/frequent-terms", params={"limit": "many"}), 400)


class TestApiInfoRoutes:
    def test_api_root_lists_endpoints(self, client):
        payload = client.get("/api/v1/").json()

        assert payload["name"] == "Hadith API"
        assert payload["version"] == "1.0.0"
        assert payload["endpoints"]["collections"] == "http://testserver/api/v1/collections"
        assert payload["endpoints"]["health"] == "http://testserver/health"
        assert payload["collections"] == ["Sahih al-Bukhari", "Sahih Muslim"]

    def test_info_summarizes_loaded_data(self, client):
        payload = client.get("/api/v1/info").json()

        assert payload == {
            "totalCollections": 2,
            "totalHadiths": 8,
            "totalFiles": 3,
            "dataVersion": "1.0.0",
            "lastUpdated": "2024-01-01T00:00:00Z",
        }

    def test_info_before_load_is_503(self, cold_client):
        _assert_error(cold_client.get("/api/v1/info"), 503)


class TestOperationalRoutes:
    def test_health(self, client):
        payload = client.get("/health").json()

        assert payload["status"] == "healthy"
        assert payload["version"]

    def test_detailed_health(self, client):
        payload = client.get("/health/detailed").json()

        assert payload["data"]["loaded"] is True
        assert payload["data"]["totalHadiths"] == 8
        assert payload["data"]["strategy"] == "unified"
        assert payload["system"]["memory"]["rss"] > 0

    def test_ready_and_alive(self, client):
        assert client.get("/ready").json()["ready"] is True
        assert client.get("/alive").json()["alive"] is True

    def test_metrics_exposition(self, client):
        client.get("/api/v1/search", params={"q": "قال"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert "search_latency_seconds" in response.text

    def test_unknown_route_is_json_404(self, client):
        payload = _assert_error(client.get("/api/v1/nowhere"), 404)

        assert payload["message"] == "Route not found"
        assert payload["path"] == "/api/v1/nowhere"


class TestLifecycle:
    def test_queries_before_load_are_503(self, cold_client):
        _assert_error(cold_client.get("/api/v1/collections"), 503)
        assert cold_client.get("/ready").status_code == 503
        assert cold_client.get("/alive").status_code == 200
        assert cold_client.get("/health/detailed").json()["data"]["loaded"] is False

    def test_startup_fails_without_corpus(self, tmp_path, make_settings):
        app = create_app(make_settings(tmp_path), setup_observability_stack=False)

        with pytest.raises(LoadError):
            with TestClient(app):
                pass
