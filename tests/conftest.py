import os

# Settings are read once on first import, so the environment must be in place first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["SYNC_ENABLED"] = "false"
os.environ["TMDB_API_KEY"] = ""
os.environ["JWT_SECRET"] = "test-secret-with-enough-length-for-hs256"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["METRICS_ENABLED"] = "true"

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from moviedb.database import connection
from moviedb.database.models import Base

_engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
_SessionLocal = sessionmaker(bind=_engine, autocommit=False, autoflush=False)

# Route get_engine/get_db/get_session_factory to the shared in-memory database
connection._engine = _engine
connection._session_factory = _SessionLocal

from moviedb.api import app  # noqa: E402
from moviedb.routers.deps import get_cache, get_sync_service, get_tmdb  # noqa: E402
from moviedb.services.cache_service import CacheService  # noqa: E402
from moviedb.tmdb.client import TmdbClient  # noqa: E402
from moviedb.tmdb.sync import TmdbSyncService  # noqa: E402

PASSWORD = "Password123!"


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(_engine)
    yield _engine
    Base.metadata.drop_all(_engine)


@pytest.fixture
def session_factory():
    return _SessionLocal


@pytest.fixture
def db_session(database):
    session = _SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cache():
    # CACHE_ENABLED=false, so every lookup falls through to the database
    return CacheService()


@pytest.fixture
def tmdb_client():
    return MagicMock(spec=TmdbClient)


@pytest.fixture
def sync_service(session_factory, tmdb_client, cache):
    return TmdbSyncService(session_factory, tmdb_client, cache=cache, sleep=lambda seconds: None)


@pytest.fixture
def client(cache, tmdb_client, sync_service):
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_tmdb] = lambda: tmdb_client
    app.dependency_overrides[get_sync_service] = lambda: sync_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def register_user(client):
    """Register a user through the API and return (user, auth headers)"""

    def _register(username="moviefan", email=None, password=PASSWORD):
        email = email or f"{username}@example.com"
        response = client.post(
            "/users/register", json={"username": username, "email": email, "password": password}
        )
        assert response.status_code == 201, response.text

        login = client.post("/users/login", json={"username_or_email": username, "password": password})
        assert login.status_code == 200, login.text
        token = login.json()["access_token"]
        return response.json(), {"Authorization": f"Bearer {token}"}

    return _register


@pytest.fixture
def create_movie(client):
    """Create a movie through the API and return its JSON"""
    counter = {"tmdb_id": 1000}

    def _create(**fields):
        counter["tmdb_id"] += 1
        payload = {"tmdb_id": counter["tmdb_id"], "title": f"Movie {counter['tmdb_id']}"}
        payload.update(fields)
        response = client.post("/movies", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
