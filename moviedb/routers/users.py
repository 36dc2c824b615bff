"""
User endpoints: registration, login, profile and movie lists
"""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from moviedb.database.models import User
from moviedb.models.movie_models import MovieResponse
from moviedb.models.response_models import MessageResponse
from moviedb.models.user_models import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from moviedb.routers.deps import get_current_user, get_user_service
from moviedb.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, users: UserService = Depends(get_user_service)):
    return users.create(payload.model_dump()).to_dict()


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, users: UserService = Depends(get_user_service)):
    """Exchange username (or email) and password for a bearer token"""
    return users.login(payload.username_or_email, payload.password)


@router.get("", response_model=List[UserResponse])
def list_users(
    current_user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)
):
    return [user.to_dict() for user in users.find_all()]


@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user.to_dict()


@router.patch("/profile", response_model=UserResponse)
def update_profile(
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    return users.update(current_user.id, payload.model_dump(exclude_unset=True)).to_dict()


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    users.change_password(current_user.id, payload.old_password, payload.new_password)
    return {"message": "Password changed successfully"}


@router.get("/watchlist", response_model=List[MovieResponse])
def get_watchlist(current_user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)):
    return [movie.to_dict() for movie in users.get_watchlist(current_user.id)]


@router.post("/watchlist/{movie_id}", response_model=List[MovieResponse])
def add_to_watchlist(
    movie_id: int, current_user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)
):
    user = users.add_to_watchlist(current_user.id, movie_id)
    return [movie.to_dict() for movie in user.watchlist]


@router.delete("/watchlist/{movie_id}", response_model=List[MovieResponse])
def remove_from_watchlist(
    movie_id: int, current_user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)
):
    user = users.remove_from_watchlist(current_user.id, movie_id)
    return [movie.to_dict() for movie in user.watchlist]


@router.get("/favorites", response_model=List[MovieResponse])
def get_favorites(current_user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)):
    return [movie.to_dict() for movie in users.get_favorites(current_user.id)]


@router.post("/favorites/{movie_id}", response_model=List[MovieResponse])
def add_to_favorites(
    movie_id: int, current_user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)
):
    user = users.add_to_favorites(current_user.id, movie_id)
    return [movie.to_dict() for movie in user.favorites]


@router.delete("/favorites/{movie_id}", response_model=List[MovieResponse])
def remove_from_favorites(
    movie_id: int, current_user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)
):
    user = users.remove_from_favorites(current_user.id, movie_id)
    return [movie.to_dict() for movie in user.favorites]


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int, current_user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)
):
    return users.find_one(user_id).to_dict()


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    return users.update(user_id, payload.model_dump(exclude_unset=True)).to_dict()


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int, current_user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)
):
    users.remove(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
