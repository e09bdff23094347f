from fastapi import APIRouter, Depends
from cineprep.database.supabase_client import get_supabase
from cineprep.modules.preferences.schemas import PreferencesEnvelope, UpdatePreferencesRequest
from cineprep.modules.preferences.service import PreferencesService
from cineprep.core.dependencies import get_current_user
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/settings", tags=["settings"])


def get_preferences_service(supabase: Client = Depends(get_supabase)) -> PreferencesService:
    return PreferencesService(supabase)


@router.get("", response_model=PreferencesEnvelope)
async def get_settings(
    current_user: Dict = Depends(get_current_user),
    service: PreferencesService = Depends(get_preferences_service)
):
    """Get user preferences (defaults when none are stored)"""
    return PreferencesEnvelope(preferences=service.get_preferences(current_user["id"]))


@router.put("", response_model=PreferencesEnvelope)
async def update_settings(
    updates: UpdatePreferencesRequest,
    current_user: Dict = Depends(get_current_user),
    service: PreferencesService = Depends(get_preferences_service)
):
    """Update user preferences"""
    return PreferencesEnvelope(preferences=service.update_preferences(current_user["id"], updates))


@router.delete("", response_model=PreferencesEnvelope)
async def reset_settings(
    current_user: Dict = Depends(get_current_user),
    service: PreferencesService = Depends(get_preferences_service)
):
    """Reset preferences to defaults"""
    return PreferencesEnvelope(preferences=service.reset_preferences(current_user["id"]))
