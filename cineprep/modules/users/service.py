from supabase import Client
from cineprep.modules.users.schemas import UserProfileUpdate, UserProfileResponse
from fastapi import HTTPException
from datetime import datetime, timezone


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_profile(self, user_id: str) -> UserProfileResponse:
        """Get user profile by ID"""
        try:
            result = self.supabase.table("users")\
                .select("*")\
                .eq("id", user_id)\
                .limit(1)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="User not found")

            return UserProfileResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_profile(self, user_id: str, user_data: UserProfileUpdate) -> UserProfileResponse:
        """Update display name / avatar"""
        try:
            update_data = {"updated_at": datetime.now(timezone.utc).isoformat()}
            if user_data.full_name is not None:
                update_data["full_name"] = user_data.full_name
            if user_data.avatar_url is not None:
                update_data["avatar_url"] = user_data.avatar_url

            result = self.supabase.table("users")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="User not found")

            return UserProfileResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
