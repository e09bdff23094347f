from fastapi import APIRouter, Depends
from cineprep.modules.auth.schemas import FirebaseBridgeRequest, SessionResponse, CurrentUser
from cineprep.modules.auth.service import AuthService
from cineprep.core.dependencies import get_auth_service, get_current_user
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/firebase-to-supabase", response_model=SessionResponse)
async def firebase_to_supabase(
    payload: FirebaseBridgeRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Exchange a Firebase ID token for a Supabase session, provisioning the user on first login"""
    return service.firebase_to_supabase(payload)


@router.get("/me", response_model=CurrentUser)
async def me(current_user: Dict = Depends(get_current_user)):
    """Current authenticated user"""
    return current_user
