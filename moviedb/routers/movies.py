"""
Movie endpoints; read paths are served through the Redis cache
"""

from typing import Any, Callable, List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import ValidationError as PydanticValidationError

from moviedb.models.movie_models import (
    MovieBatchRequest,
    MovieCreate,
    MovieQuery,
    MovieResponse,
    MovieUpdate,
    PaginatedMovies,
    SortBy,
    SortOrder,
)
from moviedb.routers.deps import get_cache, get_movie_service
from moviedb.services import cache_service
from moviedb.services.cache_service import CacheService
from moviedb.services.exceptions import ValidationError
from moviedb.services.logger_service import get_logger
from moviedb.services.movie_service import MovieService

router = APIRouter(prefix="/movies", tags=["Movies"])

logger = get_logger("api.movies")


def _cached(request: Request, cache: CacheService, ttl: int, producer: Callable[[], Any]) -> Any:
    key = CacheService.build_key(cache_service.MOVIES_NAMESPACE, request.url.path, request.url.query)
    return cache.get_or_set(key, ttl, producer)


def movie_query(
    search: Optional[str] = Query(None, description="Substring of the title or original title"),
    genre_ids: Optional[str] = Query(None, description="Comma separated TMDB genre ids, e.g. 28,12"),
    year_from: Optional[int] = Query(None, ge=1900, le=2100),
    year_to: Optional[int] = Query(None, ge=1900, le=2100),
    min_rating: Optional[float] = Query(None, ge=0, le=10),
    max_rating: Optional[float] = Query(None, ge=0, le=10),
    language: Optional[str] = Query(None, description="Original language (ISO 639-1)"),
    include_adult: bool = Query(False),
    sort_by: SortBy = Query(SortBy.POPULARITY),
    sort_order: SortOrder = Query(SortOrder.DESC),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> MovieQuery:
    ids = None
    if genre_ids:
        try:
            ids = [int(part) for part in genre_ids.split(",") if part.strip()]
        except ValueError:
            raise ValidationError("genre_ids must be a comma separated list of integers")

    try:
        return MovieQuery(
            search=search,
            genre_ids=ids,
            year_from=year_from,
            year_to=year_to,
            min_rating=min_rating,
            max_rating=max_rating,
            language=language,
            include_adult=include_adult,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
    except PydanticValidationError as e:
        raise ValidationError("; ".join(err["msg"].removeprefix("Value error, ") for err in e.errors()))


@router.post("", response_model=MovieResponse, status_code=status.HTTP_201_CREATED)
def create_movie(payload: MovieCreate, movies: MovieService = Depends(get_movie_service)):
    return movies.create(payload.model_dump()).to_dict()


@router.get("", response_model=PaginatedMovies)
def list_movies(
    request: Request,
    query: MovieQuery = Depends(movie_query),
    movies: MovieService = Depends(get_movie_service),
    cache: CacheService = Depends(get_cache),
):
    """
    List movies with filtering, sorting and pagination

    - **search**: case-insensitive match on title or original title
    - **genre_ids**: movies carrying any of the given genres
    - **year_from / year_to**: release year window
    - **min_rating / max_rating**: TMDB vote average bounds
    - **sort_by / sort_order**: defaults to popularity DESC
    """
    return _cached(request, cache, cache_service.TTL_MOVIE_LIST, lambda: movies.find_all(query))


@router.get("/trending", response_model=List[MovieResponse])
def trending_movies(
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    movies: MovieService = Depends(get_movie_service),
    cache: CacheService = Depends(get_cache),
):
    return _cached(
        request, cache, cache_service.TTL_TRENDING, lambda: [m.to_dict() for m in movies.get_trending(limit)]
    )


@router.get("/top-rated", response_model=List[MovieResponse])
def top_rated_movies(
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    movies: MovieService = Depends(get_movie_service),
    cache: CacheService = Depends(get_cache),
):
    """Movies with at least one user rating, best average first"""
    return _cached(
        request, cache, cache_service.TTL_TOP_RATED, lambda: [m.to_dict() for m in movies.get_top_rated(limit)]
    )


@router.get("/search", response_model=PaginatedMovies)
def search_movies(
    request: Request,
    q: str = Query(..., min_length=1, description="Title substring"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    movies: MovieService = Depends(get_movie_service),
    cache: CacheService = Depends(get_cache),
):
    return _cached(request, cache, cache_service.TTL_SEARCH, lambda: movies.search(q, page, limit))


@router.get("/genre/{genre_id}", response_model=PaginatedMovies)
def movies_by_genre(
    request: Request,
    genre_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    movies: MovieService = Depends(get_movie_service),
    cache: CacheService = Depends(get_cache),
):
    return _cached(request, cache, cache_service.TTL_GENRE, lambda: movies.find_by_genre(genre_id, page, limit))


@router.get("/tmdb/{tmdb_id}", response_model=MovieResponse)
def movie_by_tmdb_id(
    request: Request,
    tmdb_id: int,
    movies: MovieService = Depends(get_movie_service),
    cache: CacheService = Depends(get_cache),
):
    """Local movie by TMDB id; unknown ids are fetched from TMDB and stored"""
    return _cached(request, cache, cache_service.TTL_TMDB_LOOKUP, lambda: movies.find_by_tmdb_id(tmdb_id).to_dict())


@router.post("/sync/{tmdb_id}", response_model=MovieResponse)
def sync_movie(tmdb_id: int, movies: MovieService = Depends(get_movie_service)):
    logger.info("Movie sync requested", tmdb_id=tmdb_id)
    return movies.sync_from_tmdb(tmdb_id).to_dict()


@router.post("/batch", response_model=List[MovieResponse], status_code=status.HTTP_201_CREATED)
def batch_create_movies(payload: MovieBatchRequest, movies: MovieService = Depends(get_movie_service)):
    """Create several movies; duplicates and failures are skipped"""
    created = movies.batch_create([item.model_dump() for item in payload.movies])
    logger.info("Batch create finished", requested=len(payload.movies), created=len(created))
    return [movie.to_dict() for movie in created]


@router.get("/{movie_id}", response_model=MovieResponse)
def get_movie(
    request: Request,
    movie_id: int,
    movies: MovieService = Depends(get_movie_service),
    cache: CacheService = Depends(get_cache),
):
    return _cached(request, cache, cache_service.TTL_MOVIE, lambda: movies.find_one(movie_id).to_dict())


@router.patch("/{movie_id}", response_model=MovieResponse)
def update_movie(movie_id: int, payload: MovieUpdate, movies: MovieService = Depends(get_movie_service)):
    return movies.update(movie_id, payload.model_dump(exclude_unset=True)).to_dict()


@router.delete("/{movie_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_movie(movie_id: int, movies: MovieService = Depends(get_movie_service)):
    movies.remove(movie_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
