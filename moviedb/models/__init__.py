"""
Request and response models
"""

from .movie_models import MovieCreate, MovieQuery, MovieResponse, MovieUpdate, PaginatedMovies
from .rating_models import RatingCreate, RatingResponse, RatingStatsResponse, RatingUpdate
from .response_models import MessageResponse, PaginationMeta
from .user_models import LoginRequest, LoginResponse, UserCreate, UserResponse, UserUpdate

__all__ = [
    "MovieCreate",
    "MovieQuery",
    "MovieResponse",
    "MovieUpdate",
    "PaginatedMovies",
    "RatingCreate",
    "RatingResponse",
    "RatingStatsResponse",
    "RatingUpdate",
    "MessageResponse",
    "PaginationMeta",
    "LoginRequest",
    "LoginResponse",
    "UserCreate",
    "UserResponse",
    "UserUpdate",
]
