from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Any, Dict, Union
from datetime import datetime


class Genre(BaseModel):
    id: Optional[int] = None
    name: str


class Movie(BaseModel):
    id: int
    title: str
    overview: Optional[str] = ""
    release_date: Optional[str] = None
    poster_path: Optional[str] = None
    genres: List[Genre] = Field(default_factory=list)
    vote_average: Optional[float] = None


class CollectionRef(BaseModel):
    id: int
    name: str


class LoreGenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_movie: Optional[Movie] = Field(default=None, alias="currentMovie")
    previous_movies: Optional[List[Movie]] = Field(default=None, alias="previousMovies")
    collection: Optional[CollectionRef] = None
    force_regenerate: bool = Field(default=False, alias="forceRegenerate")


class UserAnalysisSummary(BaseModel):
    id: Union[int, str]
    tmdb_movie_id: int
    movie_title: str
    movie_poster_path: Optional[str] = None
    is_favorite: bool = False
    user_rating: Optional[float] = None
    created_at: Optional[datetime] = None


class UserAnalysisDetail(UserAnalysisSummary):
    lore_cache_id: Optional[Union[int, str]] = None
    analysis_data: Dict[str, Any] = Field(default_factory=dict)


class HistoryResponse(BaseModel):
    analyses: List[UserAnalysisSummary]
    total: int
    limit: int
    offset: int


class TokenStatsResponse(BaseModel):
    total_requests: int
    total_tokens_used: int
    average_tokens_per_request: int
    estimated_total_cost: str
