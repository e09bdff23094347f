from supabase import Client
from cineprep.modules.favorites.schemas import (
    AddFavoriteRequest, FavoriteItem, FavoritesListResponse, TasteProfileUpdate,
    TasteProfileResponse, ScoredName, NotificationTokenRequest
)
from cineprep.modules.favorites.taste import TasteService
from fastapi import HTTPException
from datetime import datetime, timezone
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

NOTIFICATION_FREQUENCIES = ("daily", "weekly", "monthly", "never")
PLATFORMS = ("web", "ios", "android")


class FavoritesService:
    def __init__(self, supabase: Client, taste: Optional[TasteService] = None):
        self.supabase = supabase
        self.taste = taste or TasteService(supabase)

    def _owned_analysis(self, user_id: str, analysis_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("user_analyses")\
            .select("id, tmdb_movie_id, movie_title, movie_poster_path, genres, vote_average, release_year, is_favorite")\
            .eq("id", analysis_id)\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _set_analysis_flag(self, analysis_id: Any, is_favorite: bool) -> None:
        self.supabase.table("user_analyses")\
            .update({"is_favorite": is_favorite})\
            .eq("id", analysis_id)\
            .execute()

    def list_favorites(self, user_id: str, limit: int = 20, offset: int = 0) -> FavoritesListResponse:
        result = self.supabase.table("user_favorites")\
            .select("*", count="exact")\
            .eq("user_id", user_id)\
            .order("created_at", desc=True)\
            .range(offset, offset + limit - 1)\
            .execute()
        rows = result.data or []

        analysis_ids = [row["user_analysis_id"] for row in rows]
        analysis_data: Dict[Any, Any] = {}
        if analysis_ids:
            analyses = self.supabase.table("user_analyses")\
                .select("id, analysis_data")\
                .in_("id", analysis_ids)\
                .execute()
            analysis_data = {a["id"]: a.get("analysis_data") for a in (analyses.data or [])}

        return FavoritesListResponse(
            favorites=[FavoriteItem(**row, analysis_data=analysis_data.get(row["user_analysis_id"])) for row in rows],
            total=result.count or 0,
            limit=limit,
            offset=offset,
        )

    def add_favorite(self, user_id: str, body: AddFavoriteRequest) -> FavoriteItem:
        if not body.user_analysis_id or not body.tmdb_movie_id or not body.movie_title:
            raise HTTPException(
                status_code=400,
                detail="Missing required fields: user_analysis_id, tmdb_movie_id, movie_title"
            )
        if not self._owned_analysis(user_id, body.user_analysis_id):
            raise HTTPException(status_code=404, detail="Analysis not found or does not belong to user")

        result = self.supabase.table("user_favorites").upsert({
            "user_id": user_id,
            "user_analysis_id": body.user_analysis_id,
            "tmdb_movie_id": body.tmdb_movie_id,
            "movie_title": body.movie_title,
            "movie_poster_path": body.movie_poster_path,
            "genres": [g.model_dump() for g in body.genres],
            "vote_average": body.vote_average,
            "release_year": body.release_year,
        }, on_conflict="user_id,user_analysis_id", ignore_duplicates=True).execute()
        self._set_analysis_flag(body.user_analysis_id, True)

        if not result.data:
            raise HTTPException(status_code=409, detail="This analysis is already in favorites")

        self._refresh_profile(user_id)
        return FavoriteItem(**result.data[0])

    def _refresh_profile(self, user_id: str) -> None:
        try:
            self.taste.update_profile(user_id)
        except Exception as e:
            logger.error(f"Error updating taste profile for user {user_id}: {e}")

    def remove_favorite(self, user_id: str, favorite_id: str) -> None:
        result = self.supabase.table("user_favorites")\
            .select("user_analysis_id")\
            .eq("id", favorite_id)\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Favorite not found")

        self.supabase.table("user_favorites")\
            .delete()\
            .eq("id", favorite_id)\
            .eq("user_id", user_id)\
            .execute()
        self._set_analysis_flag(result.data[0]["user_analysis_id"], False)

    def toggle_favorite(self, user_id: str, analysis_id: str) -> bool:
        """Flip is_favorite for one of the user's analyses and return the new state."""
        analysis = self._owned_analysis(user_id, analysis_id)
        if not analysis:
            raise HTTPException(status_code=404, detail="Analysis not found")

        is_favorite = not analysis.get("is_favorite")
        if is_favorite:
            self.supabase.table("user_favorites").upsert({
                "user_id": user_id,
                "user_analysis_id": analysis["id"],
                "tmdb_movie_id": analysis["tmdb_movie_id"],
                "movie_title": analysis["movie_title"],
                "movie_poster_path": analysis.get("movie_poster_path"),
                "genres": analysis.get("genres") or [],
                "vote_average": analysis.get("vote_average"),
                "release_year": analysis.get("release_year"),
            }, on_conflict="user_id,user_analysis_id", ignore_duplicates=True).execute()
        else:
            self.supabase.table("user_favorites")\
                .delete()\
                .eq("user_analysis_id", analysis["id"])\
                .eq("user_id", user_id)\
                .execute()

        self._set_analysis_flag(analysis["id"], is_favorite)
        return is_favorite

    # ------------------------------------------------------------------
    # Taste profile
    # ------------------------------------------------------------------

    def get_taste_profile(self, user_id: str) -> TasteProfileResponse:
        profile = self.taste.get_profile(user_id)
        if not profile:
            raise HTTPException(status_code=404, detail="Taste profile not found. Generate some lore analyses first!")

        genres = sorted((profile.get("genre_preferences") or {}).items(), key=lambda item: item[1], reverse=True)
        return TasteProfileResponse(
            profile=profile,
            top_genres=[ScoredName(name=name, score=score) for name, score in genres[:5]],
            top_franchises=(profile.get("franchise_preferences") or [])[:5],
        )

    def update_taste_profile(self, user_id: str, body: TasteProfileUpdate) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        if body.notification_enabled is not None:
            fields["notification_enabled"] = body.notification_enabled
        if body.notification_frequency is not None:
            if body.notification_frequency not in NOTIFICATION_FREQUENCIES:
                raise HTTPException(
                    status_code=400,
                    detail="Invalid notification_frequency. Must be: daily, weekly, monthly, or never"
                )
            fields["notification_frequency"] = body.notification_frequency
        if not fields:
            raise HTTPException(status_code=400, detail="No valid fields to update")

        profile = self.taste.update_notification_settings(user_id, fields)
        if not profile:
            raise HTTPException(status_code=404, detail="Taste profile not found")
        return profile

    def refresh_taste_profile(self, user_id: str) -> Dict[str, Any]:
        profile = self.taste.update_profile(user_id)
        if not profile:
            raise HTTPException(status_code=404, detail="No analyses found to build taste profile")
        return profile

    # ------------------------------------------------------------------
    # Notification tokens
    # ------------------------------------------------------------------

    def register_token(self, user_id: str, body: NotificationTokenRequest) -> Dict[str, Any]:
        if not body.token or not body.platform:
            raise HTTPException(status_code=400, detail="Missing required fields: token, platform")
        if body.platform not in PLATFORMS:
            raise HTTPException(status_code=400, detail="Invalid platform. Must be: web, ios, or android")

        now = datetime.now(timezone.utc).isoformat()
        self.supabase.table("user_notification_tokens").upsert({
            "user_id": user_id,
            "token": body.token,
            "platform": body.platform,
            "device_name": body.device_name,
            "is_active": True,
            "last_used_at": now,
            "updated_at": now,
        }, on_conflict="user_id,token").execute()

        result = self.supabase.table("user_notification_tokens")\
            .select("*")\
            .eq("user_id", user_id)\
            .eq("token", body.token)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else {}

    def deactivate_token(self, user_id: str, token: str) -> None:
        self.supabase.table("user_notification_tokens")\
            .update({"is_active": False, "updated_at": datetime.now(timezone.utc).isoformat()})\
            .eq("user_id", user_id)\
            .eq("token", token)\
            .execute()
