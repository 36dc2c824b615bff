"""
Shared FastAPI dependencies: service providers and authentication
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from moviedb.database.connection import get_db, get_session_factory
from moviedb.database.models import User
from moviedb.services.auth_service import AuthService, get_auth_service
from moviedb.services.cache_service import CacheService, get_cache_service
from moviedb.services.exceptions import UnauthorizedError
from moviedb.services.movie_service import MovieService
from moviedb.services.rating_service import RatingService
from moviedb.services.user_service import UserService
from moviedb.tmdb.client import TmdbClient, get_tmdb_client
from moviedb.tmdb.sync import TmdbSyncService

bearer_scheme = HTTPBearer(auto_error=False)


def get_cache() -> CacheService:
    return get_cache_service()


def get_tmdb() -> TmdbClient:
    return get_tmdb_client()


def get_auth() -> AuthService:
    return get_auth_service()


def get_movie_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    tmdb: TmdbClient = Depends(get_tmdb),
) -> MovieService:
    return MovieService(db, cache=cache, tmdb_client=tmdb)


def get_user_service(
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth),
    movie_service: MovieService = Depends(get_movie_service),
) -> UserService:
    return UserService(db, auth=auth, movie_service=movie_service)


def get_rating_service(
    db: Session = Depends(get_db), movie_service: MovieService = Depends(get_movie_service)
) -> RatingService:
    return RatingService(db, movie_service=movie_service)


def get_sync_service(
    cache: CacheService = Depends(get_cache), tmdb: TmdbClient = Depends(get_tmdb)
) -> TmdbSyncService:
    return TmdbSyncService(get_session_factory(), tmdb, cache=cache)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth),
) -> User:
    """Resolve the bearer token to an active user, or fail with 401"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Not authenticated")

    payload = auth.decode_token(credentials.credentials)
    user = db.get(User, payload["sub"])
    if user is None or not user.is_active:
        raise UnauthorizedError("User no longer exists or is inactive")
    return user
