from supabase import create_client, Client
from cineprep.config import settings
import logging

logger = logging.getLogger(__name__)


class SupabaseClient:
    _client: Client = None

    @classmethod
    def get_client(cls) -> Client:
        """Client with service_role key; bypasses RLS and exposes auth.admin."""
        if cls._client is None:
            key = settings.supabase_service_role_key or settings.supabase_key
            cls._client = create_client(settings.supabase_url, key)
        return cls._client

    @classmethod
    def reset_client(cls):
        cls._client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def new_session_client() -> Client:
    """Throwaway client for verify_otp so the shared admin client never holds a user session."""
    key = settings.supabase_key or settings.supabase_service_role_key
    return create_client(settings.supabase_url, key)


def is_generation_enabled(supabase: Client) -> bool:
    """AI generation is on unless system_settings.ai_generation_enabled is the string 'false'."""
    try:
        result = supabase.table("system_settings")\
            .select("value")\
            .eq("key", "ai_generation_enabled")\
            .limit(1)\
            .execute()
    except Exception as e:
        logger.error(f"Error reading ai_generation_enabled flag: {e}")
        return True
    if not result.data:
        return True
    return result.data[0].get("value") != "false"
