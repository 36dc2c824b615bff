"""
User accounts, credentials and movie lists
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from moviedb.database.models import Movie, Rating, User
from moviedb.services.auth_service import AuthService, get_auth_service
from moviedb.services.exceptions import ConflictError, NotFoundError, UnauthorizedError
from moviedb.services.logger_service import get_logger
from moviedb.services.movie_service import MovieService


class UserService:
    def __init__(self, session: Session, auth: AuthService = None, movie_service: Optional[MovieService] = None):
        self.session = session
        self.auth = auth or get_auth_service()
        self.movie_service = movie_service or MovieService(session)
        self.logger = get_logger("users.service")

    def _commit(self, action: str, **context):
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            self.logger.error(f"Failed to {action}", error=str(e), **context)
            raise

    def _ensure_unique(self, username: str = None, email: str = None, exclude_id: int = None):
        if username is not None:
            q = self.session.query(User.id).filter(User.username == username)
            if exclude_id is not None:
                q = q.filter(User.id != exclude_id)
            if q.first():
                raise ConflictError("Username already exists")

        if email is not None:
            q = self.session.query(User.id).filter(User.email == email)
            if exclude_id is not None:
                q = q.filter(User.id != exclude_id)
            if q.first():
                raise ConflictError("Email already exists")

    def create(self, data: Dict[str, Any]) -> User:
        self._ensure_unique(username=data["username"], email=data["email"])

        # Password is hashed by the model on assignment
        user = User(**data)
        self.session.add(user)
        self._commit("create user", username=data["username"])
        self.session.refresh(user)

        self.logger.info("User registered", user_id=user.id, username=user.username)
        return user

    def find_all(self) -> List[User]:
        return self.session.query(User).order_by(User.id).all()

    def find_one(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found")
        return user

    def find_by_username_or_email(self, value: str) -> User:
        user = self.session.query(User).filter(or_(User.username == value, User.email == value)).first()
        if user is None:
            raise NotFoundError(f"User {value} not found")
        return user

    def update(self, user_id: int, data: Dict[str, Any]) -> User:
        user = self.find_one(user_id)

        self._ensure_unique(
            username=data.get("username") if data.get("username") not in (None, user.username) else None,
            email=data.get("email") if data.get("email") not in (None, user.email) else None,
            exclude_id=user_id,
        )

        for key in ("username", "email", "first_name", "last_name"):
            if key in data:
                setattr(user, key, data[key])

        self._commit("update user", user_id=user_id)
        self.session.refresh(user)
        self.logger.info("User updated", user_id=user_id, fields=sorted(data))
        return user

    def remove(self, user_id: int) -> None:
        """Delete the user; their ratings go with them and the rated movies are re-aggregated"""
        user = self.find_one(user_id)
        rated = [movie_id for (movie_id,) in self.session.query(Rating.movie_id).filter(Rating.user_id == user_id)]

        self.session.delete(user)
        self._commit("delete user", user_id=user_id)

        for movie_id in rated:
            self.movie_service.update_rating_statistics(movie_id)
        self.logger.info("User deleted", user_id=user_id, ratings_removed=len(rated))

    def validate_user(self, username_or_email: str, password: str) -> User:
        """Return the user for valid credentials; every failure is the same 401"""
        try:
            user = self.find_by_username_or_email(username_or_email)
        except NotFoundError:
            user = None
        if user is None or not user.is_active or not user.check_password(password):
            self.logger.info("Rejected login attempt", login=username_or_email)
            raise UnauthorizedError("Invalid credentials")
        return user

    def login(self, username_or_email: str, password: str) -> Dict[str, Any]:
        user = self.validate_user(username_or_email, password)
        token = self.auth.create_access_token(user)
        self.logger.info("User logged in", user_id=user.id)
        return {
            "user": user.to_dict(),
            "access_token": token,
            "token_type": "bearer",
            "expires_in": self.auth.expires_in,
        }

    def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        user = self.find_one(user_id)
        if not user.check_password(old_password):
            raise UnauthorizedError("Invalid current password")

        user.password = new_password
        self._commit("change password", user_id=user_id)
        self.logger.info("Password changed", user_id=user_id)

    # Watchlist / favorites
    def _add_to_list(self, relationship: str, user_id: int, movie_id: int) -> User:
        user = self.find_one(user_id)
        movie = self.session.get(Movie, movie_id)
        if movie is None:
            raise NotFoundError(f"Movie with ID {movie_id} not found")

        movies = getattr(user, relationship)
        if movie not in movies:
            movies.append(movie)
            self._commit(f"add movie to {relationship}", user_id=user_id, movie_id=movie_id)
            self.logger.info(f"Movie added to {relationship}", user_id=user_id, movie_id=movie_id)
        return user

    def _remove_from_list(self, relationship: str, user_id: int, movie_id: int) -> User:
        user = self.find_one(user_id)
        movies = getattr(user, relationship)
        for movie in list(movies):
            if movie.id == movie_id:
                movies.remove(movie)
                self._commit(f"remove movie from {relationship}", user_id=user_id, movie_id=movie_id)
                self.logger.info(f"Movie removed from {relationship}", user_id=user_id, movie_id=movie_id)
        return user

    def add_to_watchlist(self, user_id: int, movie_id: int) -> User:
        return self._add_to_list("watchlist", user_id, movie_id)

    def remove_from_watchlist(self, user_id: int, movie_id: int) -> User:
        return self._remove_from_list("watchlist", user_id, movie_id)

    def get_watchlist(self, user_id: int) -> List[Movie]:
        return list(self.find_one(user_id).watchlist)

    def add_to_favorites(self, user_id: int, movie_id: int) -> User:
        return self._add_to_list("favorites", user_id, movie_id)

    def remove_from_favorites(self, user_id: int, movie_id: int) -> User:
        return self._remove_from_list("favorites", user_id, movie_id)

    def get_favorites(self, user_id: int) -> List[Movie]:
        return list(self.find_one(user_id).favorites)
