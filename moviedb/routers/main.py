"""
Root, health, metrics and genre endpoints
"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from moviedb.config.settings import get_settings
from moviedb.database.connection import get_db, get_engine
from moviedb.database.models import Genre
from moviedb.models.response_models import GenreResponse
from moviedb.services.cache_service import get_cache_service
from moviedb.services.logger_service import get_logger
from moviedb.services.monitoring_service import (
    CacheHealthCheck,
    DatabaseHealthCheck,
    TmdbHealthCheck,
    get_monitoring_service,
)

router = APIRouter()

settings = get_settings()

logger = get_logger("api.main")

# Initialize monitoring service with health checks
monitoring_service = get_monitoring_service()
monitoring_service.add_health_check(DatabaseHealthCheck(get_engine))
monitoring_service.add_health_check(CacheHealthCheck(get_cache_service))
monitoring_service.add_health_check(TmdbHealthCheck(settings))


@router.get("/")
async def api_root():
    """
    API root endpoint with basic information
    """
    return {
        "message": settings.api_title,
        "version": settings.api_version,
        "endpoints": {
            "movies": "/movies?page=1&limit=20",
            "users": "/users",
            "ratings": "/ratings",
            "sync": "/sync/status",
            "health": "/health",
            "docs": "/docs",
        },
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health")
async def health_check():
    """
    Comprehensive health check endpoint
    Returns detailed health information including:
    - **Overall Status**: healthy, degraded, or unhealthy
    - **Component Status**: database, cache and TMDB
    - **Summary Statistics**: Count of healthy/degraded/unhealthy checks
    """
    health_result = await monitoring_service.check_health()

    # Degraded is still operational
    status_code = 503 if health_result["status"] == "unhealthy" else 200
    if status_code != 200:
        logger.warning("Health check reported unhealthy", components=health_result["summary"])

    return JSONResponse(content=health_result, status_code=status_code)


@router.get("/metrics")
async def get_metrics(format: str = Query("json", pattern="^(json|prometheus)$")):
    """
    Get application metrics
    - **format**: `json` (default) or `prometheus` text exposition
    """
    if format == "prometheus":
        return PlainTextResponse(monitoring_service.render_prometheus(), media_type="text/plain; version=0.0.4")
    return {"metrics": monitoring_service.get_all_metrics(), "timestamp": datetime.utcnow().isoformat()}


@router.get("/genres", response_model=List[GenreResponse], tags=["Genres"])
def list_genres(db: Session = Depends(get_db)):
    """Genres synchronized from TMDB, alphabetically"""
    return [genre.to_dict() for genre in db.query(Genre).order_by(Genre.name).all()]
