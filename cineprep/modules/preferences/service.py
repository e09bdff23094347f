from supabase import Client
from cineprep.modules.preferences.schemas import UserPreferences, UpdatePreferencesRequest
from fastapi import HTTPException
from datetime import datetime, timezone
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "default_language": "es",
    "default_detail_level": "standard",
    "default_tone": "engaging",
    "preferred_voice_id": None,
    "auto_generate_audio": False,
    "theme": "dark",
    "email_notifications": True,
    "new_features_newsletter": True,
}

ALLOWED_FIELDS = tuple(DEFAULT_PREFERENCES.keys())


class PreferencesService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_preferences(self, user_id: str) -> UserPreferences:
        """Stored preferences, or the defaults when the user has none yet"""
        try:
            result = self.supabase.table("user_preferences")\
                .select("*")\
                .eq("user_id", user_id)\
                .limit(1)\
                .execute()
            if not result.data:
                return UserPreferences(user_id=user_id, **DEFAULT_PREFERENCES)
            return UserPreferences(**result.data[0])
        except Exception as e:
            logger.error(f"Error fetching preferences for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    def update_preferences(self, user_id: str, updates: UpdatePreferencesRequest) -> UserPreferences:
        data = updates.model_dump(exclude_unset=True)
        invalid_fields = [key for key in data if key not in ALLOWED_FIELDS]
        if invalid_fields:
            raise HTTPException(status_code=400, detail=f"Invalid fields: {', '.join(invalid_fields)}")
        if not data:
            raise HTTPException(status_code=400, detail="No fields to update")
        return self._upsert(user_id, data)

    def reset_preferences(self, user_id: str) -> UserPreferences:
        return self._upsert(user_id, dict(DEFAULT_PREFERENCES))

    def _upsert(self, user_id: str, data: Dict[str, Any]) -> UserPreferences:
        try:
            row = {"user_id": user_id, **data, "updated_at": datetime.now(timezone.utc).isoformat()}
            result = self.supabase.table("user_preferences")\
                .upsert(row, on_conflict="user_id")\
                .execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to save preferences")
            return UserPreferences(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error saving preferences for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")
