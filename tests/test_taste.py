"""
Tests for taste profile aggregation and recommendation scoring.
"""

import pytest

from cineprep.modules.favorites.schemas import UpcomingMovie
from cineprep.modules.favorites.taste import (
    MAX_RECOMMENDATIONS,
    TasteService,
    average_rating,
    build_profile,
    decade_of,
    decade_preferences,
    emotional_keywords,
    franchise_preferences,
    genre_preferences,
    rank_candidates,
    score_movie,
    tone_preferences,
)


def _analysis(genres=(), year=None, collection=None, tone=None, beats=(), vote=None):
    summary = {"narrative": "...", "tone": tone, "emotional_beats": list(beats)}
    analysis = {
        "genres": [{"id": i, "name": name} for i, name in enumerate(genres)],
        "release_year": year,
        "vote_average": vote,
        "analysis_data": {"required_movies": [{"title": "x", "summary": summary}]},
    }
    if collection:
        analysis["collection_id"], analysis["collection_name"] = collection
    return analysis


# Newest first
ANALYSES = [
    _analysis(["Action", "Drama"], 2010, (10, "Toy Story"), "épico, Oscuro", ["❤️ Love conquers"], 7.0),
    _analysis(["Action"], 2012, (20, "Alien"), "oscuro", ["Love and friendship"], 8.0),
    _analysis(["Comedy"], 1995, (10, "Toy Story"), None, ["💔 Loss"], None),
]


class TestAggregation:
    def test_genres_decay_and_normalise(self):
        assert genre_preferences(ANALYSES) == {"Action": 100, "Drama": 51, "Comedy": 46}

    def test_newest_analysis_weighs_most(self):
        newest_first = [_analysis(["Drama"]), _analysis(["Action"])]
        assert genre_preferences(newest_first) == {"Drama": 100, "Action": 95}

    def test_decades(self):
        assert decade_preferences(ANALYSES) == {"2010s": 100, "1990s": 46}

    def test_decade_of(self):
        assert decade_of(1999) == "1990s"
        assert decade_of(2000) == "2000s"

    def test_franchises_ranked_by_decayed_weight(self):
        franchises = franchise_preferences(ANALYSES)
        assert franchises == [
            {"collection_id": 10, "name": "Toy Story", "score": 100},
            {"collection_id": 20, "name": "Alien", "score": 50},
        ]

    def test_tones_split_and_lowercased(self):
        assert tone_preferences(ANALYSES) == {"épico": 50, "oscuro": 100}

    def test_emotional_keywords(self):
        keywords = emotional_keywords(ANALYSES)
        assert keywords[0] == "love"
        assert set(keywords) == {"love", "friendship", "loss"}

    def test_average_rating_ignores_missing_and_zero(self):
        assert average_rating(ANALYSES + [_analysis(vote=0)]) == 7.5
        assert average_rating([_analysis()]) == 0

    def test_empty_inputs(self):
        profile = build_profile([])
        assert profile["genre_preferences"] == {}
        assert profile["franchise_preferences"] == []
        assert profile["total_movies_analyzed"] == 0

    def test_build_profile_counts_analyses(self):
        assert build_profile(ANALYSES)["total_movies_analyzed"] == 3


PROFILE = {
    "genre_preferences": {"Action": 100, "Drama": 51},
    "decade_preferences": {"2010s": 100},
    "franchise_preferences": [{"collection_id": 10, "name": "Toy Story", "score": 100}],
    "avg_movie_rating": 7.5,
}


def _movie(tmdb_id=1, genres=(), release_date=None, vote=None, collection_id=None):
    return UpcomingMovie(
        tmdb_movie_id=tmdb_id,
        movie_title=f"Movie {tmdb_id}",
        genres=[{"name": name} for name in genres],
        release_date=release_date,
        vote_average=vote,
        collection_id=collection_id,
    )


class TestScoreMovie:
    def test_weighted_factors_and_reason(self):
        scored = score_movie(_movie(genres=["Action", "Comedy"], release_date="2026-05-01", vote=8.5, collection_id=10), PROFILE)

        # genre 50 * 0.35 + franchise 100 * 0.25 + decade 0 + rating 85 * 0.10
        assert scored["score"] == 51
        assert scored["factors"] == {"genre_match": 50, "franchise_match": 100, "decade_match": 0}
        assert scored["reason"] == "Matches your favorite genres: Action. Part of Toy Story franchise you love"

    def test_no_match_uses_generic_reason(self):
        scored = score_movie(_movie(genres=["Horror"]), PROFILE)
        assert scored["score"] == 0
        assert scored["factors"] == {"genre_match": 0}
        assert scored["reason"] == "Based on your viewing preferences"

    def test_rating_factor_needs_profile_average(self):
        scored = score_movie(_movie(vote=9.0), {**PROFILE, "avg_movie_rating": 0})
        assert scored["score"] == 0


class TestRankCandidates:
    def test_filters_threshold_and_analyzed_then_sorts(self):
        strong = _movie(1, ["Action"], "2015-01-01", 7.5)           # 35 + 15 + 10
        weaker = _movie(2, ["Action", "Horror"], "2016-01-01", 7.5)  # 17.5 + 15 + 10
        weak = _movie(3, ["Horror"], "1980-01-01")
        seen = _movie(4, ["Action"], "2015-01-01", 7.5)

        ranked = rank_candidates([weaker, weak, strong, seen], PROFILE, analyzed_ids={4})

        assert [r["tmdb_movie_id"] for r in ranked] == [1, 2]
        assert ranked[0]["recommendation_score"] == 60
        assert ranked[0]["matching_factors"]["genre_match"] == 100

    def test_caps_result_size(self):
        candidates = [_movie(i, ["Action"], "2015-01-01", 7.5) for i in range(MAX_RECOMMENDATIONS + 5)]
        assert len(rank_candidates(candidates, PROFILE, set())) == MAX_RECOMMENDATIONS


class TestTasteService:
    @pytest.fixture
    def seeded(self, fake_db):
        cache = fake_db.seed("lore_cache", {"tmdb_movie_id": 3, "tmdb_collection_id": 10, "collection_name": "Toy Story"})[0]
        for i, (genre, year) in enumerate([("Action", 2010), ("Action", 2012), ("Drama", None)]):
            fake_db.seed("user_analyses", {
                "user_id": "u1",
                "tmdb_movie_id": 100 + i,
                "movie_title": f"Movie {i}",
                "genres": [{"id": i, "name": genre}],
                "release_year": year,
                "vote_average": 8.0,
                "lore_cache_id": cache["id"],
                "analysis_data": {"required_movies": []},
            })
        return fake_db

    def test_update_profile_joins_collections(self, seeded):
        profile = TasteService(seeded).update_profile("u1")

        assert profile["total_movies_analyzed"] == 3
        assert profile["franchise_preferences"][0]["name"] == "Toy Story"
        # Missing release_year falls back to the analysis date
        assert "2020s" in profile["decade_preferences"]
        assert len(seeded.rows("user_taste_profile")) == 1

    def test_update_profile_without_analyses(self, fake_db):
        assert TasteService(fake_db).update_profile("nobody") is None
        assert fake_db.rows("user_taste_profile") == []

    def test_get_profile_builds_on_first_access(self, seeded):
        service = TasteService(seeded)
        assert service.get_profile("u1")["total_movies_analyzed"] == 3
        service.get_profile("u1")
        assert len(seeded.rows("user_taste_profile")) == 1

    def test_recommendations_need_three_analyses(self, fake_db):
        fake_db.seed("user_analyses", {"user_id": "u1", "tmdb_movie_id": 1, "genres": [{"name": "Action"}]})
        assert TasteService(fake_db).generate_recommendations("u1", [_movie(5, ["Action"])]) == []
        assert fake_db.rows("movie_recommendations") == []

    def test_generate_and_list_recommendations(self, seeded):
        service = TasteService(seeded)
        candidates = [
            _movie(5, ["Action"], "2011-01-01", 8.0),
            _movie(6, ["Romance"], "1980-01-01"),
            _movie(100, ["Action"], "2011-01-01", 8.0),
        ]

        saved = service.generate_recommendations("u1", candidates)

        assert [r["tmdb_movie_id"] for r in saved] == [5]
        assert saved[0]["status"] == "pending"
        listed = service.get_recommendations("u1")
        assert listed["total"] == 1

    def test_regenerating_keeps_status(self, seeded):
        service = TasteService(seeded)
        candidate = _movie(5, ["Action"], "2011-01-01", 8.0)
        rec = service.generate_recommendations("u1", [candidate])[0]
        service.set_recommendation_status("u1", rec["id"], "viewed")

        service.generate_recommendations("u1", [candidate])

        rows = seeded.rows("movie_recommendations")
        assert len(rows) == 1
        assert rows[0]["status"] == "viewed"
        assert rows[0]["viewed_at"]
        assert service.get_recommendations("u1")["total"] == 0
