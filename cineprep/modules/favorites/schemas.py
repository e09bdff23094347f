from pydantic import BaseModel, Field
from typing import Optional, List, Any, Dict, Union
from datetime import datetime
from cineprep.modules.lore.schemas import Genre


class AddFavoriteRequest(BaseModel):
    user_analysis_id: Optional[str] = None
    tmdb_movie_id: Optional[int] = None
    movie_title: Optional[str] = None
    movie_poster_path: Optional[str] = None
    genres: List[Genre] = Field(default_factory=list)
    vote_average: Optional[float] = None
    release_year: Optional[int] = None


class FavoriteItem(BaseModel):
    id: Union[int, str]
    user_id: str
    user_analysis_id: Union[int, str]
    tmdb_movie_id: int
    movie_title: str
    movie_poster_path: Optional[str] = None
    genres: Optional[List[Any]] = None
    vote_average: Optional[float] = None
    release_year: Optional[int] = None
    created_at: Optional[datetime] = None
    analysis_data: Optional[Dict[str, Any]] = None


class FavoritesListResponse(BaseModel):
    favorites: List[FavoriteItem]
    total: int
    limit: int
    offset: int


class FavoriteCreatedResponse(BaseModel):
    success: bool = True
    favorite: FavoriteItem


class ToggleFavoriteResponse(BaseModel):
    success: bool = True
    is_favorite: bool


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class TasteProfileUpdate(BaseModel):
    notification_enabled: Optional[bool] = None
    notification_frequency: Optional[str] = None  # daily | weekly | monthly | never


class ScoredName(BaseModel):
    name: str
    score: int


class TasteProfileResponse(BaseModel):
    profile: Dict[str, Any]
    top_genres: List[ScoredName]
    top_franchises: List[Dict[str, Any]]


class ProfileEnvelope(BaseModel):
    success: bool = True
    profile: Dict[str, Any]


class UpcomingMovie(BaseModel):
    """Candidate for recommendation, usually from TMDB upcoming/now playing."""
    tmdb_movie_id: int
    movie_title: str
    movie_poster_path: Optional[str] = None
    movie_backdrop_path: Optional[str] = None
    release_date: Optional[str] = None
    vote_average: Optional[float] = None
    genres: List[Genre] = Field(default_factory=list)
    overview: Optional[str] = None
    collection_id: Optional[int] = None
    collection_name: Optional[str] = None


class GenerateRecommendationsRequest(BaseModel):
    movies: List[UpcomingMovie]


class RecommendationsResponse(BaseModel):
    recommendations: List[Dict[str, Any]]
    total: int


class NotificationTokenRequest(BaseModel):
    token: Optional[str] = None
    platform: Optional[str] = None  # web | ios | android
    device_name: Optional[str] = None


class NotificationTokenResponse(BaseModel):
    success: bool = True
    token: Dict[str, Any]
