from fastapi import APIRouter, Depends, Query
from cineprep.core.dependencies import get_current_user
from cineprep.database.supabase_client import get_supabase
from cineprep.modules.favorites.schemas import (
    AddFavoriteRequest, FavoriteCreatedResponse, FavoritesListResponse, ToggleFavoriteResponse,
    MessageResponse, TasteProfileResponse, TasteProfileUpdate, ProfileEnvelope,
    GenerateRecommendationsRequest, RecommendationsResponse,
    NotificationTokenRequest, NotificationTokenResponse
)
from cineprep.modules.favorites.service import FavoritesService
from cineprep.modules.favorites.taste import TasteService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/favorites", tags=["favorites"])


def get_favorites_service(supabase: Client = Depends(get_supabase)) -> FavoritesService:
    return FavoritesService(supabase)


def get_taste_service(supabase: Client = Depends(get_supabase)) -> TasteService:
    return TasteService(supabase)


@router.get("", response_model=FavoritesListResponse)
async def list_favorites(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: Dict = Depends(get_current_user),
    service: FavoritesService = Depends(get_favorites_service)
):
    """Favorite analyses, newest first"""
    return service.list_favorites(current_user["id"], limit, offset)


@router.post("", response_model=FavoriteCreatedResponse, status_code=201)
async def add_favorite(
    body: AddFavoriteRequest,
    current_user: Dict = Depends(get_current_user),
    service: FavoritesService = Depends(get_favorites_service)
):
    return FavoriteCreatedResponse(favorite=service.add_favorite(current_user["id"], body))


# Static paths are registered before "/{favorite_id}" routes

@router.get("/taste-profile", response_model=TasteProfileResponse)
async def get_taste_profile(
    current_user: Dict = Depends(get_current_user),
    service: FavoritesService = Depends(get_favorites_service)
):
    """Taste profile with top 5 genres and franchises"""
    return service.get_taste_profile(current_user["id"])


@router.put("/taste-profile", response_model=ProfileEnvelope)
async def update_taste_profile(
    body: TasteProfileUpdate,
    current_user: Dict = Depends(get_current_user),
    service: FavoritesService = Depends(get_favorites_service)
):
    """Notification settings of the taste profile"""
    return ProfileEnvelope(profile=service.update_taste_profile(current_user["id"], body))


@router.post("/taste-profile/refresh", response_model=ProfileEnvelope)
async def refresh_taste_profile(
    current_user: Dict = Depends(get_current_user),
    service: FavoritesService = Depends(get_favorites_service)
):
    return ProfileEnvelope(profile=service.refresh_taste_profile(current_user["id"]))


@router.get("/recommendations", response_model=RecommendationsResponse)
async def get_recommendations(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: Dict = Depends(get_current_user),
    taste: TasteService = Depends(get_taste_service)
):
    """Pending and sent recommendations, best score first"""
    return taste.get_recommendations(current_user["id"], limit, offset)


@router.post("/recommendations/generate", response_model=RecommendationsResponse)
async def generate_recommendations(
    body: GenerateRecommendationsRequest,
    current_user: Dict = Depends(get_current_user),
    taste: TasteService = Depends(get_taste_service)
):
    """Score candidate movies (e.g. TMDB upcoming) against the taste profile and store the best"""
    recommendations = taste.generate_recommendations(current_user["id"], body.movies)
    return RecommendationsResponse(recommendations=recommendations, total=len(recommendations))


@router.post("/recommendations/{recommendation_id}/view", response_model=MessageResponse)
async def view_recommendation(
    recommendation_id: str,
    current_user: Dict = Depends(get_current_user),
    taste: TasteService = Depends(get_taste_service)
):
    taste.set_recommendation_status(current_user["id"], recommendation_id, "viewed")
    return MessageResponse(message="Recommendation marked as viewed")


@router.post("/recommendations/{recommendation_id}/dismiss", response_model=MessageResponse)
async def dismiss_recommendation(
    recommendation_id: str,
    current_user: Dict = Depends(get_current_user),
    taste: TasteService = Depends(get_taste_service)
):
    taste.set_recommendation_status(current_user["id"], recommendation_id, "dismissed")
    return MessageResponse(message="Recommendation dismissed")


@router.post("/notification-token", response_model=NotificationTokenResponse, status_code=201)
async def register_notification_token(
    body: NotificationTokenRequest,
    current_user: Dict = Depends(get_current_user),
    service: FavoritesService = Depends(get_favorites_service)
):
    """Register (or reactivate) a push notification token"""
    return NotificationTokenResponse(token=service.register_token(current_user["id"], body))


@router.delete("/notification-token/{token}", response_model=MessageResponse)
async def deactivate_notification_token(
    token: str,
    current_user: Dict = Depends(get_current_user),
    service: FavoritesService = Depends(get_favorites_service)
):
    service.deactivate_token(current_user["id"], token)
    return MessageResponse(message="Notification token deactivated")


@router.post("/toggle/{analysis_id}", response_model=ToggleFavoriteResponse)
async def toggle_favorite(
    analysis_id: str,
    current_user: Dict = Depends(get_current_user),
    service: FavoritesService = Depends(get_favorites_service)
):
    return ToggleFavoriteResponse(is_favorite=service.toggle_favorite(current_user["id"], analysis_id))


@router.delete("/{favorite_id}", response_model=MessageResponse)
async def remove_favorite(
    favorite_id: str,
    current_user: Dict = Depends(get_current_user),
    service: FavoritesService = Depends(get_favorites_service)
):
    service.remove_favorite(current_user["id"], favorite_id)
    return MessageResponse(message="Favorite removed successfully")
