from supabase import Client
from cineprep.database.supabase_client import is_generation_enabled
from cineprep.modules.lore import metrics
from cineprep.modules.lore.qwen_client import QwenClient
from cineprep.modules.lore.schemas import (
    LoreGenerateRequest, Movie, UserAnalysisSummary, UserAnalysisDetail, HistoryResponse
)
from cineprep.modules.membership.schemas import QuotaStatus
from cineprep.modules.membership.service import MembershipService
from fastapi import HTTPException
from datetime import datetime, timezone
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = "id, tmdb_movie_id, movie_title, movie_poster_path, is_favorite, user_rating, created_at"


def _release_year(movie: Movie) -> Optional[int]:
    if movie.release_date and movie.release_date[:4].isdigit():
        return int(movie.release_date[:4])
    return None


class LoreService:
    def __init__(
        self,
        supabase: Client,
        qwen: Optional[QwenClient] = None,
        membership: Optional[MembershipService] = None
    ):
        self.supabase = supabase
        self.qwen = qwen or QwenClient()
        self.membership = membership or MembershipService(supabase)

    def _cached_lore(self, tmdb_movie_id: int) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("lore_cache")\
            .select("*")\
            .eq("tmdb_movie_id", tmdb_movie_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _bump_hit_count(self, cached: Dict[str, Any]) -> None:
        try:
            self.supabase.table("lore_cache")\
                .update({"hit_count": (cached.get("hit_count") or 0) + 1})\
                .eq("id", cached["id"])\
                .execute()
        except Exception as e:
            logger.warning(f"Could not update hit_count for lore_cache {cached['id']}: {e}")

    def _store_lore(self, request: LoreGenerateRequest, analysis: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        current = request.current_movie
        self.supabase.table("lore_cache").upsert({
            "tmdb_movie_id": current.id,
            "movie_title": current.title,
            "tmdb_collection_id": request.collection.id if request.collection else None,
            "collection_name": request.collection.name if request.collection else None,
            "analysis_data": analysis,
            "hit_count": 0,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }, on_conflict="tmdb_movie_id").execute()
        return self._cached_lore(current.id)

    def _record_analysis(
        self,
        user_id: str,
        movie: Movie,
        analysis: Dict[str, Any],
        lore_cache_id: Optional[Any]
    ) -> Optional[Any]:
        result = self.supabase.table("user_analyses").insert({
            "user_id": user_id,
            "lore_cache_id": lore_cache_id,
            "tmdb_movie_id": movie.id,
            "movie_title": movie.title,
            "movie_poster_path": movie.poster_path,
            "genres": [g.model_dump() for g in movie.genres],
            "vote_average": movie.vote_average,
            "release_year": _release_year(movie),
            "analysis_data": analysis,
            "is_favorite": False,
        }).execute()
        return result.data[0]["id"] if result.data else None

    def _mark_recommendation_converted(self, user_id: str, tmdb_movie_id: int) -> None:
        try:
            self.supabase.table("movie_recommendations")\
                .update({"status": "converted"})\
                .eq("user_id", user_id)\
                .eq("tmdb_movie_id", tmdb_movie_id)\
                .in_("status", ["pending", "sent", "viewed"])\
                .execute()
        except Exception as e:
            logger.warning(f"Could not mark recommendation {tmdb_movie_id} as converted: {e}")

    def generate(self, user_id: str, request: LoreGenerateRequest, quota: QuotaStatus) -> Dict[str, Any]:
        """
        Serve the lore for request.current_movie from lore_cache or the LLM.

        Every call records a user_analyses row and consumes one analysis credit,
        cache hits included. Force regeneration is honoured only for plans with
        can_force_regenerate. QwenAPIError / LoreParseError propagate to the caller.
        """
        if request.current_movie is None or request.previous_movies is None:
            raise HTTPException(status_code=400, detail="Missing required fields: currentMovie, previousMovies")

        if not is_generation_enabled(self.supabase):
            raise HTTPException(status_code=503, detail="AI generation is temporarily disabled")

        current = request.current_movie
        force = request.force_regenerate and quota.can_force_regenerate
        if request.force_regenerate and not force:
            logger.info(f"Force regenerate ignored for user {user_id}: plan {quota.plan_slug} does not allow it")

        cached = None if force else self._cached_lore(current.id)
        if cached:
            logger.info(f"Lore cache hit for {current.title} ({current.id})")
            self._bump_hit_count(cached)
            metrics.record_cache_hit()
            analysis = cached.get("analysis_data") or {}
            lore_cache_id = cached["id"]
            tokens = 0
            from_cache = True
        else:
            logger.info(f"Generating lore for {current.title} with {len(request.previous_movies)} previous movie(s)")
            analysis = self.qwen.generate_lore(current, request.previous_movies)
            tokens = (analysis.get("token_usage") or {}).get("total_tokens", 0)
            metrics.record_generation(tokens)
            stored = self._store_lore(request, analysis)
            lore_cache_id = stored["id"] if stored else None
            from_cache = False

        user_analysis_id = self._record_analysis(user_id, current, analysis, lore_cache_id)
        self.membership.increment_usage(user_id, "analysis", 1, tokens=tokens)
        self._mark_recommendation_converted(user_id, current.id)

        return {**analysis, "from_cache": from_cache, "user_analysis_id": user_analysis_id}

    def get_history(self, user_id: str, limit: int = 20, offset: int = 0) -> HistoryResponse:
        result = self.supabase.table("user_analyses")\
            .select(HISTORY_COLUMNS, count="exact")\
            .eq("user_id", user_id)\
            .order("created_at", desc=True)\
            .range(offset, offset + limit - 1)\
            .execute()
        return HistoryResponse(
            analyses=[UserAnalysisSummary(**row) for row in (result.data or [])],
            total=result.count or 0,
            limit=limit,
            offset=offset,
        )

    def get_analysis(self, user_id: str, analysis_id: str) -> UserAnalysisDetail:
        result = self.supabase.table("user_analyses")\
            .select("*")\
            .eq("id", analysis_id)\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Analysis not found")
        return UserAnalysisDetail(**result.data[0])
