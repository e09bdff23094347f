import hashlib
import logging
import time
from datetime import datetime, timezone
from urllib.parse import urlparse, parse_qs
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from supabase import Client
from cineprep.modules.auth.schemas import FirebaseBridgeRequest, SessionResponse
from cineprep.modules.membership.service import MembershipService
from cineprep.database.supabase_client import new_session_client
from cineprep.config.settings import settings
from fastapi import HTTPException
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500

# Older GoTrue releases report duplicates only in the message
DUPLICATE_USER_MARKERS = ("already been registered", "already registered", "already exists")


def clear_auth_cache() -> None:
    _AUTH_USER_CACHE.clear()


def verify_firebase_token(token: str) -> Dict[str, Any]:
    """Verify a Firebase ID token against Google's public keys and return its claims.

    Without FIREBASE_PROJECT_ID google-auth skips the audience check, so any
    Firebase project's token would pass; refuse instead.
    """
    if not settings.firebase_project_id:
        logger.error("[AUTH] FIREBASE_PROJECT_ID is not set, rejecting Firebase login")
        raise HTTPException(status_code=503, detail="Firebase not configured")
    try:
        return id_token.verify_firebase_token(
            token,
            google_requests.Request(),
            audience=settings.firebase_project_id,
        )
    except ValueError as e:
        logger.warning(f"[AUTH] Invalid Firebase token: {e}")
        raise HTTPException(status_code=401, detail="Invalid Firebase token")


def _is_duplicate_user_error(error: Exception) -> bool:
    """GoTrue answers a duplicate email with code email_exists (422)."""
    if getattr(error, "code", None) == "email_exists":
        return True
    message = str(error).lower()
    return any(marker in message for marker in DUPLICATE_USER_MARKERS)


def _extract_otp(link_response) -> Optional[str]:
    """email_otp from the generated link, or the token query param of action_link."""
    properties = getattr(link_response, "properties", None)
    if properties is None:
        return None
    otp = getattr(properties, "email_otp", None)
    if otp:
        return otp
    action_link = getattr(properties, "action_link", None)
    if not action_link:
        return None
    tokens = parse_qs(urlparse(action_link).query).get("token")
    return tokens[0] if tokens else None


def _user_payload(user) -> Dict[str, Any]:
    if user is None:
        return {}
    if hasattr(user, "model_dump"):
        return user.model_dump(mode="json")
    return dict(user)


class AuthService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    # ------------------------------------------------------------------
    # Firebase -> Supabase bridge
    # ------------------------------------------------------------------

    def firebase_to_supabase(self, payload: FirebaseBridgeRequest) -> SessionResponse:
        """Verify a Firebase login, mirror and provision the user, then mint a Supabase session."""
        if not payload.firebase_token or not payload.email:
            raise HTTPException(status_code=400, detail="Faltan datos.")
        email = str(payload.email)

        claims = verify_firebase_token(payload.firebase_token)
        if claims.get("email") != email:
            raise HTTPException(status_code=403, detail="Email mismatch.")

        logger.info(f"[AUTH] Usuario: {email}")

        try:
            auth_user_id = self._ensure_auth_user(
                email,
                payload.display_name,
                payload.photo_url,
                claims.get("user_id") or claims.get("sub"),
            )
            user_id = self._sync_public_user(auth_user_id, email, payload.display_name, payload.photo_url)
            MembershipService(self.supabase).provision_user(user_id)
            return self._mint_session(email)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"[AUTH ERROR]: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    def _ensure_auth_user(
        self,
        email: str,
        display_name: Optional[str],
        photo_url: Optional[str],
        firebase_uid: Optional[str]
    ) -> str:
        metadata = {
            "full_name": display_name,
            "avatar_url": photo_url,
            "firebase_uid": firebase_uid,
        }
        try:
            response = self.supabase.auth.admin.create_user({
                "email": email,
                "email_confirm": True,
                "user_metadata": {**metadata, "provider": "google"},
            })
            return response.user.id
        except Exception as e:
            if not _is_duplicate_user_error(e):
                raise

        # Existing auth user: list and scan for the email
        users = self.supabase.auth.admin.list_users()
        existing = next((u for u in users if u.email == email), None)
        if existing is None:
            raise HTTPException(status_code=500, detail="Registered user not found in Supabase Auth")
        self.supabase.auth.admin.update_user_by_id(existing.id, {"user_metadata": metadata})
        return existing.id

    def _sync_public_user(
        self,
        auth_user_id: str,
        email: str,
        display_name: Optional[str],
        photo_url: Optional[str]
    ) -> str:
        """Upsert the public.users mirror keyed by email and return the stored id."""
        try:
            self.supabase.table("users").upsert({
                "id": auth_user_id,
                "email": email,
                "password_hash": "oauth_google",
                "full_name": display_name or None,
                "avatar_url": photo_url or None,
                "email_verified": True,
                "is_active": True,
                "last_login_at": datetime.now(timezone.utc).isoformat(),
            }, on_conflict="email").execute()
            logger.info(f"[AUTH] User synced to public.users: {email}")
        except Exception as e:
            logger.error(f"[AUTH] Error upserting to public.users: {e}")
            return auth_user_id

        result = self.supabase.table("users")\
            .select("id")\
            .eq("email", email)\
            .limit(1)\
            .execute()
        return result.data[0]["id"] if result.data else auth_user_id

    def _mint_session(self, email: str) -> SessionResponse:
        link = self.supabase.auth.admin.generate_link({"type": "magiclink", "email": email})
        otp = _extract_otp(link)
        if not otp:
            raise HTTPException(status_code=500, detail="Error generando token")

        session_client = new_session_client()
        response = session_client.auth.verify_otp({
            "email": email,
            "token": otp,
            "type": "magiclink",
        })
        if not response.session:
            raise HTTPException(status_code=500, detail="Failed to create Supabase session")
        return SessionResponse(
            access_token=response.session.access_token,
            refresh_token=response.session.refresh_token,
            user=_user_payload(response.user),
        )

    # ------------------------------------------------------------------
    # Bearer token -> user
    # ------------------------------------------------------------------

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Resolve a Supabase access token to the active public.users row. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")

            result = self.supabase.table("users")\
                .select("id, email")\
                .eq("email", user_response.user.email)\
                .eq("is_active", True)\
                .limit(1)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=401, detail="User not found in database")

            user_data = {"id": result.data[0]["id"], "email": result.data[0]["email"]}
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
            return user_data
        except HTTPException:
            raise
        except Exception as e:
            error_msg = str(e)
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            raise HTTPException(status_code=401, detail="Authentication failed")
