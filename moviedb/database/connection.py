"""
Engine and session management

The engine is created lazily from DATABASE_URL. PostgreSQL gets a sized,
pre-pinged connection pool; SQLite URLs (used by the tests) get the driver
defaults.
"""

import time
from typing import Callable, Iterator, Optional

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from moviedb.config.settings import get_settings
from moviedb.services.logger_service import get_logger

logger = get_logger("database.connection")

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _engine_options(settings) -> dict:
    options = {"echo": settings.db_echo}
    if settings.database_url.startswith("sqlite"):
        return options
    options.update(
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=1800,
    )
    return options


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        settings = get_settings()
        logger.info("Creating database engine", backend=settings.database_url.split(":", 1)[0])
        _engine = create_engine(settings.database_url, **_engine_options(settings))
    return _engine


def get_session_factory() -> sessionmaker:
    """Session factory for background jobs that manage their own sessions"""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autocommit=False, autoflush=False)
    return _session_factory


def get_db() -> Iterator[Session]:
    """FastAPI dependency: one session per request, always closed"""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def ping_database() -> bool:
    """True when SELECT 1 succeeds"""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database ping failed", error=str(e))
        return False
    return True


def wait_for_database(
    max_retries: int = 30, retry_interval: float = 2, sleep: Callable[[float], None] = time.sleep
) -> bool:
    """Poll until the database accepts connections or the retries run out"""
    logger.info("Waiting for database to be available", max_retries=max_retries)
    for attempt in range(1, max_retries + 1):
        if ping_database():
            logger.info("Database connection successful", attempt=attempt)
            return True
        if attempt < max_retries:
            sleep(retry_interval)

    logger.error("Database connection failed after all retries", attempts=max_retries)
    return False


def init_database() -> bool:
    """Create any missing tables; returns False when the database is unreachable"""
    if not ping_database():
        logger.warning("Continuing without database initialization")
        return False

    from moviedb.database.models import Base

    try:
        Base.metadata.create_all(get_engine())
    except SQLAlchemyError as e:
        logger.error("Database initialization failed", error=str(e))
        raise

    logger.info("Database initialized")
    return True


def dispose_engine() -> None:
    """Close pooled connections and forget the engine"""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
