"""
Pydantic models for movie requests and responses
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .response_models import PaginationMeta


class SortBy(str, Enum):
    TITLE = "title"
    RELEASE_DATE = "release_date"
    POPULARITY = "popularity"
    VOTE_AVERAGE = "vote_average"
    USER_RATING_AVERAGE = "user_rating_average"
    CREATED_AT = "created_at"


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class GenreRef(BaseModel):
    id: int
    name: str


class MovieBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=500, description="Movie title")
    overview: Optional[str] = Field(None, description="Plot overview")
    poster_path: Optional[str] = Field(None, max_length=255, description="TMDB poster path")
    backdrop_path: Optional[str] = Field(None, max_length=255, description="TMDB backdrop path")
    release_date: Optional[date] = Field(None, description="Release date")
    vote_average: float = Field(0, ge=0, le=10, description="TMDB vote average")
    vote_count: int = Field(0, ge=0, description="TMDB vote count")
    popularity: float = Field(0, ge=0, description="TMDB popularity score")
    genre_ids: List[int] = Field(default_factory=list, description="TMDB genre ids")
    original_language: Optional[str] = Field(None, max_length=10, description="ISO 639-1 language code")
    original_title: Optional[str] = Field(None, max_length=500, description="Title in the original language")
    adult: bool = Field(False, description="Adult content flag")
    video: bool = Field(False, description="Video flag")

    @field_validator("title", "original_title", mode="before")
    @classmethod
    def strip_titles(cls, v):
        return v.strip() if isinstance(v, str) else v


class MovieCreate(MovieBase):
    tmdb_id: int = Field(..., gt=0, description="TMDB movie id")


class MovieUpdate(BaseModel):
    """Partial update; only the fields sent are changed"""

    tmdb_id: Optional[int] = Field(None, gt=0)
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    overview: Optional[str] = None
    poster_path: Optional[str] = Field(None, max_length=255)
    backdrop_path: Optional[str] = Field(None, max_length=255)
    release_date: Optional[date] = None
    vote_average: Optional[float] = Field(None, ge=0, le=10)
    vote_count: Optional[int] = Field(None, ge=0)
    popularity: Optional[float] = Field(None, ge=0)
    genre_ids: Optional[List[int]] = None
    original_language: Optional[str] = Field(None, max_length=10)
    original_title: Optional[str] = Field(None, max_length=500)
    adult: Optional[bool] = None
    video: Optional[bool] = None

    @field_validator("title", "original_title", mode="before")
    @classmethod
    def strip_titles(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("tmdb_id", "title", "vote_average", "vote_count", "popularity", "genre_ids", "adult", "video")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} may not be null")
        return v


class MovieQuery(BaseModel):
    """Filters, sorting and paging for the movie listing"""

    search: Optional[str] = None
    genre_ids: Optional[List[int]] = None
    year_from: Optional[int] = Field(None, ge=1900, le=2100)
    year_to: Optional[int] = Field(None, ge=1900, le=2100)
    min_rating: Optional[float] = Field(None, ge=0, le=10)
    max_rating: Optional[float] = Field(None, ge=0, le=10)
    language: Optional[str] = None
    include_adult: bool = False
    sort_by: SortBy = SortBy.POPULARITY
    sort_order: SortOrder = SortOrder.DESC
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

    @model_validator(mode="after")
    def check_ranges(self):
        if self.year_from is not None and self.year_to is not None and self.year_from > self.year_to:
            raise ValueError("year_from must not be greater than year_to")
        if self.min_rating is not None and self.max_rating is not None and self.min_rating > self.max_rating:
            raise ValueError("min_rating must not be greater than max_rating")
        return self


class MovieResponse(BaseModel):
    id: int
    tmdb_id: int
    title: str
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[date] = None
    vote_average: float = 0
    vote_count: int = 0
    popularity: float = 0
    genre_ids: List[int] = Field(default_factory=list)
    genres: List[GenreRef] = Field(default_factory=list)
    original_language: Optional[str] = None
    original_title: Optional[str] = None
    adult: bool = False
    video: bool = False
    user_rating_average: Optional[float] = Field(None, description="Average of local user ratings")
    user_rating_count: int = Field(0, description="Number of local user ratings")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PaginatedMovies(BaseModel):
    data: List[MovieResponse] = Field(..., description="Movies on this page")
    meta: PaginationMeta = Field(..., description="Pagination information")


class MovieBatchRequest(BaseModel):
    movies: List[MovieCreate] = Field(..., min_length=1, max_length=100, description="Movies to create")
