import time
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from moviedb.config.loader import get_configuration_summary
from moviedb.config.settings import get_settings
from moviedb.database.connection import dispose_engine, get_session_factory, init_database
from moviedb.routers.main import router as main_router
from moviedb.routers.movies import router as movies_router
from moviedb.routers.ratings import router as ratings_router
from moviedb.routers.sync import router as sync_router
from moviedb.routers.users import router as users_router
from moviedb.services.cache_service import get_cache_service
from moviedb.services.exceptions import ServiceError, UnauthorizedError
from moviedb.services.logger_service import bind_context, get_logger
from moviedb.services.monitoring_service import get_monitoring_service
from moviedb.tmdb.client import get_tmdb_client
from moviedb.tmdb.sync import SyncScheduler, TmdbSyncService

# Initialize configuration
settings = get_settings()

logger = get_logger("api")
monitoring = get_monitoring_service()

# Initialize FastAPI app
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="Movies, users and ratings backed by PostgreSQL, Redis and TMDB",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(main_router)
app.include_router(movies_router)
app.include_router(users_router)
app.include_router(ratings_router)
app.include_router(sync_router)

scheduler: Optional[SyncScheduler] = None


@app.middleware("http")
async def track_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    start = time.time()
    with bind_context(request_id=request_id):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    if settings.metrics_enabled:
        route = request.scope.get("route")
        path = route.path if route is not None else "unmatched"
        tags = {"method": request.method, "path": path, "status": str(response.status_code)}
        monitoring.increment_counter("http_requests_total", tags=tags)
        monitoring.record_histogram("http_request_duration_seconds", time.time() - start, tags={"path": path})
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.message, status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
async def startup_event():
    """Initialize database and start the TMDB sync scheduler"""
    global scheduler

    logger.info("API server starting up", version=settings.api_version, environment=settings.environment)
    logger.debug(get_configuration_summary(settings))

    try:
        database_ready = init_database()
    except SQLAlchemyError as e:
        database_ready = False
        logger.error("Failed to initialize database, database operations may fail", error=str(e))

    if not settings.sync_enabled:
        logger.info("TMDB sync disabled")
    elif not settings.tmdb_api_key:
        logger.warning("TMDB_API_KEY not set, sync scheduler not started")
    elif not database_ready:
        logger.warning("Database unavailable, sync scheduler not started")
    else:
        sync_service = TmdbSyncService(get_session_factory(), get_tmdb_client(), cache=get_cache_service())
        scheduler = SyncScheduler(
            sync_service,
            interval_seconds=settings.sync_interval_seconds,
            run_on_startup=settings.sync_on_startup,
        )
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    global scheduler

    if scheduler is not None:
        scheduler.stop()
        scheduler = None
    get_cache_service().close()
    dispose_engine()
    logger.info("API server shut down")


def main():
    """Main entry point for API server"""
    logger.info("Starting API server", host=settings.api_host, port=settings.api_port)

    uvicorn.run(
        "moviedb.api:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.api_log_level,
    )


if __name__ == "__main__":
    main()
