"""
Pydantic models for rating requests and responses
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

RATING_MIN = 0.5
RATING_MAX = 10


class RatingCreate(BaseModel):
    rating: float = Field(..., ge=RATING_MIN, le=RATING_MAX, description="Score from 0.5 to 10")
    review: Optional[str] = Field(None, max_length=1000, description="Optional review text")


class RatingUpdate(BaseModel):
    rating: Optional[float] = Field(None, ge=RATING_MIN, le=RATING_MAX)
    review: Optional[str] = Field(None, max_length=1000)


class BatchRatingItem(RatingCreate):
    movie_id: int = Field(..., gt=0)


class BatchRatingRequest(BaseModel):
    ratings: List[BatchRatingItem] = Field(..., min_length=1, max_length=100)


class RatingResponse(BaseModel):
    id: int
    rating: float
    review: Optional[str] = None
    user_id: int
    movie_id: int
    username: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class UserRatingResponse(BaseModel):
    """A rating listed from the user's side, with the movie title"""

    id: int
    movie_id: int
    movie_title: str
    rating: float
    review: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class RatingStatsResponse(BaseModel):
    average: float = Field(..., description="Mean rating rounded to one decimal")
    count: int = Field(..., description="Number of ratings")
    distribution: Dict[str, int] = Field(..., description="Rating count per integer bucket")


class AverageRatingResponse(BaseModel):
    average: float
