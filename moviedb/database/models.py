"""
SQLAlchemy ORM models for database tables
"""

import bcrypt
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship, validates
from sqlalchemy.sql import func

Base = declarative_base()

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def _iso(value):
    return value.isoformat() if value else None


def _number(value):
    return float(value) if value is not None else None


user_watchlist = Table(
    "user_watchlist",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("movie_id", Integer, ForeignKey("movies.id", ondelete="CASCADE"), primary_key=True),
)

user_favorites = Table(
    "user_favorites",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("movie_id", Integer, ForeignKey("movies.id", ondelete="CASCADE"), primary_key=True),
)


class Genre(Base):
    """TMDB genre; the primary key is the TMDB genre id"""

    __tablename__ = "genres"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(100), nullable=False, unique=True)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class Movie(Base):
    """Movie record mirrored from TMDB plus local rating statistics"""

    __tablename__ = "movies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tmdb_id = Column(Integer, nullable=False, unique=True, index=True)
    title = Column(String(500), nullable=False, index=True)
    overview = Column(Text, nullable=True)
    poster_path = Column(String(255), nullable=True)
    backdrop_path = Column(String(255), nullable=True)
    release_date = Column(Date, nullable=True, index=True)
    vote_average = Column(Numeric(3, 1), nullable=False, default=0)
    vote_count = Column(Integer, nullable=False, default=0)
    popularity = Column(Float, nullable=False, default=0)
    genre_ids_raw = Column("genre_ids", Text, nullable=True)
    genres = Column(JSON, nullable=True)
    original_language = Column(String(10), nullable=True)
    original_title = Column(String(500), nullable=True)
    adult = Column(Boolean, nullable=False, default=False)
    video = Column(Boolean, nullable=False, default=False)
    user_rating_average = Column(Numeric(3, 1), nullable=True)
    user_rating_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    ratings = relationship("Rating", back_populates="movie", cascade="all, delete-orphan")
    watchlisted_by = relationship("User", secondary=user_watchlist, back_populates="watchlist")
    favorited_by = relationship("User", secondary=user_favorites, back_populates="favorites")

    @property
    def genre_ids(self):
        if not self.genre_ids_raw:
            return []
        return [int(part) for part in self.genre_ids_raw.split(",") if part]

    @genre_ids.setter
    def genre_ids(self, values):
        self.genre_ids_raw = ",".join(str(int(v)) for v in values) if values else None

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "tmdb_id": self.tmdb_id,
            "title": self.title,
            "overview": self.overview,
            "poster_path": self.poster_path,
            "backdrop_path": self.backdrop_path,
            "release_date": _iso(self.release_date),
            "vote_average": _number(self.vote_average) or 0.0,
            "vote_count": self.vote_count or 0,
            "popularity": _number(self.popularity) or 0.0,
            "genre_ids": self.genre_ids,
            "genres": self.genres or [],
            "original_language": self.original_language,
            "original_title": self.original_title,
            "adult": bool(self.adult),
            "video": bool(self.video),
            "user_rating_average": _number(self.user_rating_average),
            "user_rating_count": self.user_rating_count or 0,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class User(Base):
    """Registered user"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(30), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    watchlist = relationship("Movie", secondary=user_watchlist, back_populates="watchlisted_by")
    favorites = relationship("Movie", secondary=user_favorites, back_populates="favorited_by")
    ratings = relationship("Rating", back_populates="user", cascade="all, delete-orphan")

    @validates("password")
    def _hash_password(self, key, value):
        # Already-hashed values are stored as-is
        if value and value.startswith(BCRYPT_PREFIXES):
            return value
        return bcrypt.hashpw(value.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    def check_password(self, plain: str) -> bool:
        if not plain or not self.password:
            return False
        return bcrypt.checkpw(plain.encode("utf-8"), self.password.encode("utf-8"))

    def to_dict(self):
        """Convert to dictionary; the password hash is never included"""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Rating(Base):
    """A user's rating of a movie, one per (user, movie)"""

    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_ratings_user_movie"),
        Index("ix_ratings_user_movie", "user_id", "movie_id"),
        CheckConstraint("rating >= 0.5 AND rating <= 10", name="ck_ratings_range"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    rating = Column(Numeric(3, 1), nullable=False)
    review = Column(Text, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    movie_id = Column(Integer, ForeignKey("movies.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="ratings")
    movie = relationship("Movie", back_populates="ratings")

    def to_dict(self, include_user: bool = False):
        """Convert to dictionary"""
        data = {
            "id": self.id,
            "rating": _number(self.rating),
            "review": self.review,
            "user_id": self.user_id,
            "movie_id": self.movie_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_user:
            data["username"] = self.user.username if self.user else None
        return data


class SyncRun(Base):
    """TMDB synchronization run tracking table"""

    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job = Column(String(20), nullable=False, default="full")  # full, popular, genres, batch
    started_at = Column(DateTime, nullable=False, default=func.now())
    finished_at = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default="running")  # running, completed, failed
    records_processed = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "job": self.job,
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
            "status": self.status,
            "records_processed": self.records_processed,
            "error_message": self.error_message,
            "duration_seconds": self.duration_seconds,
        }
