"""
Database module

Engine and session management, ORM models and sync run bookkeeping.
"""

from .connection import get_db, get_engine, get_session_factory
from .models import Base, Genre, Movie, Rating, SyncRun, User
from .service import DatabaseService, SyncRunResult

__all__ = [
    "get_db",
    "get_engine",
    "get_session_factory",
    "Base",
    "Genre",
    "Movie",
    "Rating",
    "SyncRun",
    "User",
    "DatabaseService",
    "SyncRunResult",
]
