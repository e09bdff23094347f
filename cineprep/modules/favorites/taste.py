"""
Taste profile and recommendation scoring.

A profile is aggregated from the user's most recent lore analyses. Each
analysis contributes with a time decay of TIME_DECAY_FACTOR per position, so
the newest analysis weighs 1, the next 0.95, and so on. Genre, decade and
tone preferences are normalised to 0-100 against the strongest entry.

Candidate movies are scored against the profile with fixed weights per
factor; only candidates scoring RECOMMENDATION_THRESHOLD or more are kept.
"""

import logging
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from supabase import Client

from cineprep.modules.favorites.schemas import UpcomingMovie

logger = logging.getLogger(__name__)

GENRE_WEIGHT = 0.35
FRANCHISE_WEIGHT = 0.25
DECADE_WEIGHT = 0.15
TONE_WEIGHT = 0.15
RATING_WEIGHT = 0.10

TIME_DECAY_FACTOR = 0.95
MIN_ANALYSES_FOR_RECOMMENDATIONS = 3
RECOMMENDATION_THRESHOLD = 40
MAX_RECOMMENDATIONS = 20
PROFILE_HISTORY_SIZE = 100
TOP_FRANCHISES = 10
TOP_KEYWORDS = 15

EMOTIONAL_WORDS = [
    "sacrifice", "redemption", "love", "betrayal", "hope",
    "revenge", "friendship", "loss", "victory", "adventure",
    "mystery", "discovery", "transformation", "courage", "fear",
    "joy", "sorrow", "anger", "peace", "conflict",
]

_EMOJI_RE = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF\u2600-\u26FF]"
)


def _decay(index: int) -> float:
    return TIME_DECAY_FACTOR ** index


def _normalize(weights: Dict[str, float]) -> Dict[str, int]:
    max_weight = max(list(weights.values()) + [1])
    return {key: round(weight / max_weight * 100) for key, weight in weights.items()}


def decade_of(year: int) -> str:
    return f"{year // 10 * 10}s"


def _summaries(analysis: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    data = analysis.get("analysis_data") or {}
    for movie in data.get("required_movies") or []:
        summary = movie.get("summary") if isinstance(movie, dict) else None
        if isinstance(summary, dict):
            yield summary


def genre_preferences(analyses: List[Dict[str, Any]]) -> Dict[str, int]:
    weights: Dict[str, float] = {}
    for index, analysis in enumerate(analyses):
        for genre in analysis.get("genres") or []:
            name = genre.get("name") if isinstance(genre, dict) else None
            if name:
                weights[name] = weights.get(name, 0) + _decay(index)
    return _normalize(weights)


def decade_preferences(analyses: List[Dict[str, Any]]) -> Dict[str, int]:
    weights: Dict[str, float] = {}
    for index, analysis in enumerate(analyses):
        year = analysis.get("release_year")
        if year:
            decade = decade_of(int(year))
            weights[decade] = weights.get(decade, 0) + _decay(index)
    return _normalize(weights)


def franchise_preferences(analyses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    franchises: Dict[int, Dict[str, Any]] = {}
    for index, analysis in enumerate(analyses):
        collection_id = analysis.get("collection_id")
        name = analysis.get("collection_name")
        if not collection_id or not name:
            continue
        entry = franchises.setdefault(collection_id, {"name": name, "count": 0, "weight": 0.0})
        entry["count"] += 1
        entry["weight"] += _decay(index)

    max_weight = max([f["weight"] for f in franchises.values()] + [1])
    ranked = [
        {"collection_id": collection_id, "name": f["name"], "score": round(f["weight"] / max_weight * 100)}
        for collection_id, f in franchises.items()
    ]
    ranked.sort(key=lambda f: f["score"], reverse=True)
    return ranked[:TOP_FRANCHISES]


def tone_preferences(analyses: List[Dict[str, Any]]) -> Dict[str, int]:
    """Tones are comma-separated ("épico, oscuro"), counted without decay."""
    counts: Counter = Counter()
    for analysis in analyses:
        for summary in _summaries(analysis):
            tone = summary.get("tone")
            if not isinstance(tone, str):
                continue
            for part in tone.split(","):
                part = part.strip().lower()
                if part:
                    counts[part] += 1
    return _normalize(dict(counts))


def emotional_keywords(analyses: List[Dict[str, Any]]) -> List[str]:
    counts: Counter = Counter()
    for analysis in analyses:
        for summary in _summaries(analysis):
            for beat in summary.get("emotional_beats") or []:
                if not isinstance(beat, str):
                    continue
                clean = _EMOJI_RE.sub("", beat).lower()
                for word in EMOTIONAL_WORDS:
                    if word in clean:
                        counts[word] += 1
    return [word for word, _ in counts.most_common(TOP_KEYWORDS)]


def average_rating(analyses: List[Dict[str, Any]]) -> float:
    ratings = [a["vote_average"] for a in analyses if a.get("vote_average") and a["vote_average"] > 0]
    if not ratings:
        return 0
    return round(sum(ratings) / len(ratings), 1)


def build_profile(analyses: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Aggregate profile columns from analyses ordered newest first."""
    return {
        "genre_preferences": genre_preferences(analyses),
        "decade_preferences": decade_preferences(analyses),
        "franchise_preferences": franchise_preferences(analyses),
        "tone_preferences": tone_preferences(analyses),
        "emotional_keywords": emotional_keywords(analyses),
        "avg_movie_rating": average_rating(analyses),
        "total_movies_analyzed": len(analyses),
    }


def score_movie(movie: UpcomingMovie, profile: Dict[str, Any]) -> Dict[str, Any]:
    """Score `movie` against `profile`: {score, factors, reason}."""
    total = 0.0
    factors: Dict[str, int] = {}
    reasons: List[str] = []

    genre_prefs = profile.get("genre_preferences") or {}
    if movie.genres:
        genre_score = 0
        matched = []
        for genre in movie.genres:
            preference = genre_prefs.get(genre.name, 0)
            if preference > 0:
                genre_score += preference
                if preference >= 50:
                    matched.append(genre.name)
        genre_score = min(100, genre_score / len(movie.genres))
        factors["genre_match"] = round(genre_score)
        total += genre_score * GENRE_WEIGHT
        if matched:
            reasons.append(f"Matches your favorite genres: {', '.join(matched[:3])}")

    if movie.collection_id:
        franchise = next(
            (f for f in profile.get("franchise_preferences") or [] if f.get("collection_id") == movie.collection_id),
            None,
        )
        if franchise:
            factors["franchise_match"] = franchise["score"]
            total += franchise["score"] * FRANCHISE_WEIGHT
            reasons.append(f"Part of {franchise['name']} franchise you love")

    if movie.release_date and movie.release_date[:4].isdigit():
        decade_score = (profile.get("decade_preferences") or {}).get(decade_of(int(movie.release_date[:4])), 0)
        factors["decade_match"] = decade_score
        total += decade_score * DECADE_WEIGHT

    avg = profile.get("avg_movie_rating") or 0
    if movie.vote_average and avg > 0:
        rating_score = max(0, 100 - abs(movie.vote_average - avg) * 15)
        total += rating_score * RATING_WEIGHT

    return {
        "score": round(total),
        "factors": factors,
        "reason": ". ".join(reasons) if reasons else "Based on your viewing preferences",
    }


def rank_candidates(
    candidates: List[UpcomingMovie],
    profile: Dict[str, Any],
    analyzed_ids: Set[int]
) -> List[Dict[str, Any]]:
    """Scored recommendation rows, best first, excluding already analyzed movies."""
    ranked = []
    for movie in candidates:
        if movie.tmdb_movie_id in analyzed_ids:
            continue
        scored = score_movie(movie, profile)
        if scored["score"] < RECOMMENDATION_THRESHOLD:
            continue
        ranked.append({
            "tmdb_movie_id": movie.tmdb_movie_id,
            "movie_title": movie.movie_title,
            "movie_poster_path": movie.movie_poster_path,
            "movie_backdrop_path": movie.movie_backdrop_path,
            "release_date": movie.release_date,
            "vote_average": movie.vote_average,
            "genres": [g.model_dump() for g in movie.genres],
            "overview": movie.overview,
            "recommendation_score": scored["score"],
            "recommendation_reason": scored["reason"],
            "matching_factors": scored["factors"],
        })
    ranked.sort(key=lambda r: r["recommendation_score"], reverse=True)
    return ranked[:MAX_RECOMMENDATIONS]


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TasteService:
    """Persists taste profiles and recommendations in Supabase."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _recent_analyses(self, user_id: str) -> List[Dict[str, Any]]:
        result = self.supabase.table("user_analyses")\
            .select("tmdb_movie_id, movie_title, analysis_data, genres, vote_average, release_year, lore_cache_id, created_at")\
            .eq("user_id", user_id)\
            .order("created_at", desc=True)\
            .limit(PROFILE_HISTORY_SIZE)\
            .execute()
        analyses = result.data or []

        cache_ids = list({a["lore_cache_id"] for a in analyses if a.get("lore_cache_id")})
        collections: Dict[Any, Dict[str, Any]] = {}
        if cache_ids:
            cache_rows = self.supabase.table("lore_cache")\
                .select("id, tmdb_collection_id, collection_name")\
                .in_("id", cache_ids)\
                .execute()
            collections = {row["id"]: row for row in (cache_rows.data or [])}

        for analysis in analyses:
            cache = collections.get(analysis.get("lore_cache_id")) or {}
            analysis["collection_id"] = cache.get("tmdb_collection_id")
            analysis["collection_name"] = cache.get("collection_name")
            if not analysis.get("release_year") and analysis.get("created_at"):
                analysis["release_year"] = int(str(analysis["created_at"])[:4])
        return analyses

    def update_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Rebuild the profile from the last analyses. None when the user has none."""
        analyses = self._recent_analyses(user_id)
        if not analyses:
            return None
        profile = build_profile(analyses)
        self.supabase.table("user_taste_profile").upsert({
            "user_id": user_id,
            **profile,
            "updated_at": _utcnow_iso(),
        }, on_conflict="user_id").execute()
        logger.info(f"Taste profile updated for user {user_id} from {len(analyses)} analyses")
        return self._profile_row(user_id)

    def _profile_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("user_taste_profile")\
            .select("*")\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Stored profile, built on first access."""
        return self._profile_row(user_id) or self.update_profile(user_id)

    def update_notification_settings(self, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("user_taste_profile")\
            .update({**fields, "updated_at": _utcnow_iso()})\
            .eq("user_id", user_id)\
            .execute()
        return result.data[0] if result.data else None

    def generate_recommendations(self, user_id: str, candidates: List[UpcomingMovie]) -> List[Dict[str, Any]]:
        profile = self.get_profile(user_id)
        if not profile or (profile.get("total_movies_analyzed") or 0) < MIN_ANALYSES_FOR_RECOMMENDATIONS:
            logger.info(f"User {user_id} doesn't have enough analyses for recommendations")
            return []

        analyzed = self.supabase.table("user_analyses")\
            .select("tmdb_movie_id")\
            .eq("user_id", user_id)\
            .execute()
        analyzed_ids = {row["tmdb_movie_id"] for row in (analyzed.data or [])}

        ranked = rank_candidates(candidates, profile, analyzed_ids)
        saved = []
        for row in ranked:
            result = self.supabase.table("movie_recommendations").upsert({
                "user_id": user_id,
                **row,
                "created_at": _utcnow_iso(),
            }, on_conflict="user_id,tmdb_movie_id").execute()
            saved.extend(result.data or [])
        return saved

    def get_recommendations(self, user_id: str, limit: int = 10, offset: int = 0) -> Dict[str, Any]:
        result = self.supabase.table("movie_recommendations")\
            .select("*", count="exact")\
            .eq("user_id", user_id)\
            .in_("status", ["pending", "sent"])\
            .order("recommendation_score", desc=True)\
            .range(offset, offset + limit - 1)\
            .execute()
        return {"recommendations": result.data or [], "total": result.count or 0}

    def set_recommendation_status(self, user_id: str, recommendation_id: str, status: str) -> None:
        update: Dict[str, Any] = {"status": status}
        if status == "viewed":
            update["viewed_at"] = _utcnow_iso()
        self.supabase.table("movie_recommendations")\
            .update(update)\
            .eq("id", recommendation_id)\
            .eq("user_id", user_id)\
            .execute()
