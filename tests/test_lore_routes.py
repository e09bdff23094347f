"""
Tests for /api/lore: cache-or-generate flow, quota, history and stats.
"""

import json
from unittest.mock import patch

import pytest

CURRENT = {"id": 3, "title": "Toy Story 3", "release_date": "2010-06-16", "genres": [{"id": 16, "name": "Animación"}]}
PREVIOUS = [
    {"id": 1, "title": "Toy Story", "release_date": "1995-11-22"},
    {"id": 2, "title": "Toy Story 2", "release_date": "1999-11-24"},
]
USAGE = {"input_tokens": 1500, "output_tokens": 500, "total_tokens": 2000}


def _lore(narrative="Woody conoce a Buzz."):
    return {
        "status": "ready",
        "required_movies": [
            {"tmdb_id": 1, "title": "Toy Story", "summary": {"narrative": narrative, "tone": "aventurero"}},
        ],
    }


def _body(**overrides):
    body = {"currentMovie": CURRENT, "previousMovies": PREVIOUS}
    body.update(overrides)
    return body


@pytest.fixture
def qwen_api(make_response):
    """Patches the DashScope call; tests set .return_value or .side_effect on the mock."""
    payload = {"output": {"choices": [{"message": {"content": json.dumps(_lore())}}]}, "usage": USAGE}
    with patch(
        "cineprep.modules.lore.qwen_client.requests.post",
        return_value=make_response(200, payload),
    ) as mock_post:
        yield mock_post


def _analyses_used(fake_db, user_id):
    return next(r for r in fake_db.rows("usage_tracking") if r["user_id"] == user_id)["analyses_generated"]


class TestGenerateLore:
    def test_cache_miss_calls_llm_and_stores(self, client, fake_db, provisioned_user, qwen_api):
        response = client.post("/api/lore/generate", json=_body())

        assert response.status_code == 200
        body = response.json()
        assert body["from_cache"] is False
        assert body["user_analysis_id"]
        assert body["token_usage"]["total_tokens"] == 2000
        qwen_api.assert_called_once()

        cache = fake_db.rows("lore_cache")
        assert len(cache) == 1
        assert cache[0]["tmdb_movie_id"] == 3
        assert cache[0]["analysis_data"]["required_movies"][0]["title"] == "Toy Story"

        analyses = fake_db.rows("user_analyses")
        assert len(analyses) == 1
        assert analyses[0]["lore_cache_id"] == cache[0]["id"]
        assert analyses[0]["release_year"] == 2010
        assert analyses[0]["genres"] == [{"id": 16, "name": "Animación"}]

        usage = next(r for r in fake_db.rows("usage_tracking") if r["user_id"] == provisioned_user["id"])
        assert usage["analyses_generated"] == 1
        assert usage["tokens_consumed"] == 2000

    def test_cache_hit_skips_llm_but_still_charges(self, client, fake_db, provisioned_user, qwen_api):
        fake_db.seed("lore_cache", {"tmdb_movie_id": 3, "movie_title": "Toy Story 3", "analysis_data": _lore("cached")})

        response = client.post("/api/lore/generate", json=_body())

        assert response.status_code == 200
        body = response.json()
        assert body["from_cache"] is True
        assert body["required_movies"][0]["summary"]["narrative"] == "cached"
        qwen_api.assert_not_called()
        assert fake_db.rows("lore_cache")[0]["hit_count"] == 1
        assert len(fake_db.rows("user_analyses")) == 1
        assert _analyses_used(fake_db, provisioned_user["id"]) == 1

    def test_exhausted_quota_is_403_without_llm_call(self, client, fake_db, provisioned_user, qwen_api):
        fake_db.rows("usage_tracking")[0]["analyses_generated"] = 3

        response = client.post("/api/lore/generate", json=_body())

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["error"] == "Limit Reached"
        assert detail["usage"]["remaining"] == 0
        qwen_api.assert_not_called()
        assert fake_db.rows("user_analyses") == []

    def test_force_regenerate_ignored_on_free_plan(self, client, fake_db, provisioned_user, qwen_api):
        fake_db.seed("lore_cache", {"tmdb_movie_id": 3, "movie_title": "Toy Story 3", "analysis_data": _lore("cached")})

        response = client.post("/api/lore/generate", json=_body(forceRegenerate=True))

        assert response.json()["from_cache"] is True
        qwen_api.assert_not_called()

    def test_force_regenerate_replaces_cache_when_plan_allows(
        self, client, fake_db, provisioned_user, qwen_api, set_plan_limits
    ):
        set_plan_limits(can_force_regenerate=True)
        fake_db.seed("lore_cache", {"tmdb_movie_id": 3, "movie_title": "Toy Story 3", "analysis_data": _lore("cached")})

        response = client.post("/api/lore/generate", json=_body(forceRegenerate=True))

        assert response.json()["from_cache"] is False
        qwen_api.assert_called_once()
        cache = fake_db.rows("lore_cache")
        assert len(cache) == 1
        assert cache[0]["analysis_data"]["required_movies"][0]["summary"]["narrative"] == "Woody conoce a Buzz."

    def test_missing_previous_movies_is_400(self, client, provisioned_user, qwen_api):
        response = client.post("/api/lore/generate", json={"currentMovie": CURRENT})
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required fields: currentMovie, previousMovies"
        qwen_api.assert_not_called()

    def test_empty_previous_movies_is_accepted(self, client, provisioned_user, qwen_api):
        response = client.post("/api/lore/generate", json=_body(previousMovies=[]))

        assert response.status_code == 200
        qwen_api.assert_called_once()

    def test_disabled_flag_is_503(self, client, fake_db, provisioned_user, qwen_api):
        fake_db.seed("system_settings", {"key": "ai_generation_enabled", "value": "false"})

        response = client.post("/api/lore/generate", json=_body())

        assert response.status_code == 503
        assert response.json()["detail"] == "AI generation is temporarily disabled"
        qwen_api.assert_not_called()

    def test_llm_failure_is_502_and_not_charged(self, client, fake_db, provisioned_user, qwen_api, make_response):
        qwen_api.return_value = make_response(500, None, text="upstream down")

        response = client.post("/api/lore/generate", json=_body())

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["error"] == "Failed to generate lore"
        assert "500" in detail["message"]
        assert fake_db.rows("lore_cache") == []
        assert _analyses_used(fake_db, provisioned_user["id"]) == 0

    def test_unparseable_answer_is_502(self, client, provisioned_user, qwen_api, make_response):
        qwen_api.return_value = make_response(200, {"output": {"choices": [{"message": {"content": "sin json"}}]}})
        response = client.post("/api/lore/generate", json=_body())
        assert response.status_code == 502
        assert "No JSON found" in response.json()["detail"]["message"]

    def test_marks_pending_recommendation_converted(self, client, fake_db, provisioned_user, qwen_api):
        fake_db.seed(
            "movie_recommendations",
            {"user_id": provisioned_user["id"], "tmdb_movie_id": 3, "status": "sent"},
            {"user_id": provisioned_user["id"], "tmdb_movie_id": 99, "status": "pending"},
        )

        client.post("/api/lore/generate", json=_body())

        statuses = {r["tmdb_movie_id"]: r["status"] for r in fake_db.rows("movie_recommendations")}
        assert statuses == {3: "converted", 99: "pending"}


class TestHistoryAndDetail:
    def _seed(self, fake_db, user_id, n):
        for i in range(n):
            fake_db.seed("user_analyses", {
                "user_id": user_id,
                "tmdb_movie_id": i,
                "movie_title": f"Movie {i}",
                "analysis_data": _lore(),
                "is_favorite": False,
            })

    def test_history_newest_first_with_total(self, client, fake_db, provisioned_user):
        self._seed(fake_db, provisioned_user["id"], 5)
        self._seed(fake_db, "someone-else", 2)

        response = client.get("/api/lore/history", params={"limit": 2, "offset": 1})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 5
        assert body["limit"] == 2
        assert body["offset"] == 1
        assert [a["movie_title"] for a in body["analyses"]] == ["Movie 3", "Movie 2"]

    def test_history_limit_is_bounded(self, client, provisioned_user):
        assert client.get("/api/lore/history", params={"limit": 101}).status_code == 422
        assert client.get("/api/lore/history", params={"offset": -1}).status_code == 422

    def test_get_analysis(self, client, fake_db, provisioned_user):
        self._seed(fake_db, provisioned_user["id"], 1)
        analysis_id = fake_db.rows("user_analyses")[0]["id"]

        response = client.get(f"/api/lore/{analysis_id}")

        assert response.status_code == 200
        assert response.json()["analysis_data"]["status"] == "ready"

    def test_other_users_analysis_is_404(self, client, fake_db, provisioned_user):
        self._seed(fake_db, "someone-else", 1)
        analysis_id = fake_db.rows("user_analyses")[0]["id"]

        response = client.get(f"/api/lore/{analysis_id}")

        assert response.status_code == 404
        assert response.json()["detail"] == "Analysis not found"


class TestStats:
    def test_stats_count_llm_generations_only(self, client, fake_db, provisioned_user, qwen_api, set_plan_limits):
        set_plan_limits(max_analyses_per_month=-1)
        before = client.get("/api/lore/stats").json()

        client.post("/api/lore/generate", json=_body())
        client.post("/api/lore/generate", json=_body())  # served from cache

        after = client.get("/api/lore/stats").json()
        assert after["total_requests"] - before["total_requests"] == 1
        assert after["total_tokens_used"] - before["total_tokens_used"] == 2000
        assert after["estimated_total_cost"].endswith(" USD")
