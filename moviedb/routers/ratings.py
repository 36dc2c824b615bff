"""
Rating endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from moviedb.database.models import User
from moviedb.models.movie_models import MovieResponse
from moviedb.models.rating_models import (
    AverageRatingResponse,
    BatchRatingRequest,
    RatingCreate,
    RatingResponse,
    RatingStatsResponse,
    RatingUpdate,
    UserRatingResponse,
)
from moviedb.routers.deps import get_current_user, get_rating_service
from moviedb.services.logger_service import get_logger
from moviedb.services.rating_service import RatingService

router = APIRouter(prefix="/ratings", tags=["Ratings"])

logger = get_logger("api.ratings")


@router.post("/movies/{movie_id}", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
def rate_movie(
    movie_id: int,
    payload: RatingCreate,
    current_user: User = Depends(get_current_user),
    ratings: RatingService = Depends(get_rating_service),
):
    """Create the caller's rating for a movie, or update it when one exists"""
    return ratings.create_or_update(current_user.id, movie_id, payload.model_dump()).to_dict()


@router.get("/movies/{movie_id}", response_model=List[RatingResponse])
def movie_ratings(movie_id: int, ratings: RatingService = Depends(get_rating_service)):
    return [rating.to_dict(include_user=True) for rating in ratings.find_by_movie(movie_id)]


@router.get("/movies/{movie_id}/stats", response_model=RatingStatsResponse)
def movie_rating_stats(movie_id: int, ratings: RatingService = Depends(get_rating_service)):
    return ratings.get_movie_rating_stats(movie_id)


@router.get("/movies/{movie_id}/my-rating", response_model=Optional[RatingResponse])
def my_rating_for_movie(
    movie_id: int,
    current_user: User = Depends(get_current_user),
    ratings: RatingService = Depends(get_rating_service),
):
    rating = ratings.find_user_rating_for_movie(current_user.id, movie_id)
    return rating.to_dict() if rating else None


@router.get("/my-ratings", response_model=List[UserRatingResponse])
def my_ratings(current_user: User = Depends(get_current_user), ratings: RatingService = Depends(get_rating_service)):
    return ratings.find_by_user(current_user.id)


@router.get("/users/{user_id}", response_model=List[UserRatingResponse])
def user_ratings(user_id: int, ratings: RatingService = Depends(get_rating_service)):
    return ratings.find_by_user(user_id)


@router.get("/top-rated", response_model=List[MovieResponse])
def top_rated(limit: int = Query(10, ge=1, le=100), ratings: RatingService = Depends(get_rating_service)):
    return [movie.to_dict() for movie in ratings.get_top_rated_movies(limit)]


@router.get("/average", response_model=AverageRatingResponse)
def overall_average(ratings: RatingService = Depends(get_rating_service)):
    return {"average": ratings.get_overall_average_rating()}


@router.post("/batch", response_model=List[RatingResponse], status_code=status.HTTP_201_CREATED)
def batch_rate(
    payload: BatchRatingRequest,
    current_user: User = Depends(get_current_user),
    ratings: RatingService = Depends(get_rating_service),
):
    """Rate several movies at once; ratings that fail are skipped"""
    saved = ratings.batch_rate(current_user.id, [item.model_dump() for item in payload.ratings])
    logger.info("Batch rating finished", user_id=current_user.id, requested=len(payload.ratings), saved=len(saved))
    return [rating.to_dict() for rating in saved]


@router.get("/{rating_id}", response_model=RatingResponse)
def get_rating(rating_id: int, ratings: RatingService = Depends(get_rating_service)):
    return ratings.find_one(rating_id).to_dict(include_user=True)


@router.patch("/{rating_id}", response_model=RatingResponse)
def update_rating(
    rating_id: int,
    payload: RatingUpdate,
    current_user: User = Depends(get_current_user),
    ratings: RatingService = Depends(get_rating_service),
):
    return ratings.update(rating_id, current_user.id, payload.model_dump(exclude_unset=True)).to_dict()


@router.delete("/{rating_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rating(
    rating_id: int,
    current_user: User = Depends(get_current_user),
    ratings: RatingService = Depends(get_rating_service),
):
    ratings.remove(rating_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
