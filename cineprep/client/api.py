import logging
from typing import Any, Dict, List, Optional

import requests

from cineprep.client.cache import HistoryCache, LoreCache
from cineprep.modules.audio.tts_client import CLIENT_NARRATIVE_LIMIT

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3001"


class CinePrepAPIError(Exception):
    def __init__(self, status_code: int, detail: Any):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"CinePrep API error {status_code}: {detail}")


def truncate_for_tts(narrative: str, limit: int = CLIENT_NARRATIVE_LIMIT) -> str:
    return narrative[:limit] + "..." if len(narrative) > limit else narrative


class CinePrepClient:
    """HTTP client for the CinePrep backend, authenticated with a Supabase access token."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        access_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        history_cache: Optional[HistoryCache] = None,
        lore_cache: Optional[LoreCache] = None,
        timeout: float = 120
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.history_cache = history_cache or HistoryCache()
        self.lore_cache = lore_cache or LoreCache()
        self.timeout = timeout
        self.session.headers.update({"Content-Type": "application/json"})
        if access_token:
            self.set_access_token(access_token)

    def set_access_token(self, access_token: Optional[str]) -> None:
        if access_token:
            self.session.headers["Authorization"] = f"Bearer {access_token}"
        else:
            self.session.headers.pop("Authorization", None)
        self.history_cache.invalidate()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        if not response.ok:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text
            raise CinePrepAPIError(response.status_code, detail)
        return response.json()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def exchange_firebase_token(
        self,
        firebase_token: str,
        email: str,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None
    ) -> Dict[str, Any]:
        """Trade a Firebase ID token for a Supabase session and use its access token from now on."""
        session = self._request("POST", "/api/auth/firebase-to-supabase", json={
            "firebaseToken": firebase_token,
            "email": email,
            "displayName": display_name,
            "photoURL": photo_url,
        })
        self.set_access_token(session["access_token"])
        return session

    # ------------------------------------------------------------------
    # Lore
    # ------------------------------------------------------------------

    def generate_lore(
        self,
        current_movie: Dict[str, Any],
        previous_movies: List[Dict[str, Any]],
        collection: Optional[Dict[str, Any]] = None,
        force_regenerate: bool = False,
        use_cache: bool = True
    ) -> Dict[str, Any]:
        if use_cache and not force_regenerate:
            cached = self.lore_cache.get(current_movie["id"])
            if cached is not None:
                return cached

        body: Dict[str, Any] = {
            "currentMovie": current_movie,
            "previousMovies": previous_movies,
            "forceRegenerate": force_regenerate,
        }
        if collection:
            body["collection"] = collection
        analysis = self._request("POST", "/api/lore/generate", json=body)
        self.lore_cache.save(current_movie["id"], analysis)
        self.history_cache.invalidate()
        return analysis

    def get_history(self, limit: int = 100, offset: int = 0, refresh: bool = False) -> Dict[str, Any]:
        """History page; the default page is served from the history cache."""
        def fetch():
            return self._request("GET", "/api/lore/history", params={"limit": limit, "offset": offset})

        if refresh:
            self.history_cache.invalidate()
        if limit != 100 or offset != 0:
            return fetch()
        return self.history_cache.get_or_fetch(fetch)

    def has_analysis(self, movie_id: int) -> bool:
        return any(a["tmdb_movie_id"] == movie_id for a in self.get_history()["analyses"])

    def get_analysis(self, analysis_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/lore/{analysis_id}")

    def get_lore_stats(self) -> Dict[str, Any]:
        return self._request("GET", "/api/lore/stats")

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    def generate_audio(self, narrative: str, movie_title: str) -> Dict[str, Any]:
        return self._request("POST", "/api/audio/generate", json={
            "narrative": truncate_for_tts(narrative),
            "movieTitle": movie_title,
        })

    def audio_fallback(self, narrative: str) -> Dict[str, Any]:
        return self._request("POST", "/api/audio/generate-fallback", json={"narrative": narrative})

    # ------------------------------------------------------------------
    # Favorites
    # ------------------------------------------------------------------

    def get_favorites(self, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        return self._request("GET", "/api/favorites", params={"limit": limit, "offset": offset})

    def add_favorite(self, favorite: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/favorites", json=favorite)

    def remove_favorite(self, favorite_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/api/favorites/{favorite_id}")

    def toggle_favorite(self, analysis_id: str) -> bool:
        result = self._request("POST", f"/api/favorites/toggle/{analysis_id}")
        self.history_cache.invalidate()
        return result["is_favorite"]

    def get_taste_profile(self) -> Dict[str, Any]:
        return self._request("GET", "/api/favorites/taste-profile")

    def get_recommendations(self, limit: int = 10, offset: int = 0) -> Dict[str, Any]:
        return self._request("GET", "/api/favorites/recommendations", params={"limit": limit, "offset": offset})

    # ------------------------------------------------------------------
    # Settings, membership, health
    # ------------------------------------------------------------------

    def get_settings(self) -> Dict[str, Any]:
        return self._request("GET", "/api/settings")

    def update_settings(self, **fields) -> Dict[str, Any]:
        return self._request("PUT", "/api/settings", json=fields)

    def reset_settings(self) -> Dict[str, Any]:
        return self._request("DELETE", "/api/settings")

    def get_membership(self) -> Dict[str, Any]:
        return self._request("GET", "/api/user/membership")

    def get_usage(self) -> Dict[str, Any]:
        return self._request("GET", "/api/user/usage")

    def check_health(self) -> bool:
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=self.timeout)
        except requests.exceptions.RequestException:
            return False
        return response.ok
