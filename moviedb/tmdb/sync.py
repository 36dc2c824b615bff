"""
TMDB synchronization: genre and movie refresh jobs plus the background scheduler
"""

import sys
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from moviedb.config.settings import Settings, get_settings
from moviedb.database.models import Genre
from moviedb.database.service import DatabaseService
from moviedb.services.logger_service import bind_context, get_logger, log_execution_time
from moviedb.services.monitoring_service import get_monitoring_service
from moviedb.services.movie_service import MovieService
from moviedb.tmdb.client import CATEGORIES, TmdbClient, TmdbClientError

logger = get_logger("tmdb.sync")

# One sync job at a time per process, whether started by the scheduler or the API
_job_lock = threading.Lock()


def is_sync_running() -> bool:
    return _job_lock.locked()


class SyncAlreadyRunningError(RuntimeError):
    pass


class TmdbSyncService:
    """Pulls genres and movies from TMDB into the local database"""

    def __init__(
        self,
        session_factory: Callable,
        tmdb_client: TmdbClient,
        cache=None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory
        self.tmdb_client = tmdb_client
        self.cache = cache
        self.settings = settings or get_settings()
        self._sleep = sleep
        self.monitoring = get_monitoring_service()

    def sync_genres(self) -> List[Dict[str, Any]]:
        """Upsert every TMDB genre; returns [] when TMDB or the database fails"""
        try:
            genres = self.tmdb_client.get_genres()
        except TmdbClientError as e:
            logger.error("Failed to fetch genres from TMDB", error=e.message)
            return []

        with self.session_factory() as session:
            try:
                for item in genres:
                    genre = session.get(Genre, item["id"])
                    if genre is None:
                        session.add(Genre(id=item["id"], name=item["name"]))
                    else:
                        genre.name = item["name"]
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error("Failed to save genres", error=str(e))
                return []

        logger.info("Genres synchronized", count=len(genres))
        return genres

    def save_movie(self, payload: Dict[str, Any], session=None) -> int:
        """Insert or update one TMDB payload; returns the local movie id"""
        if session is not None:
            return MovieService(session).upsert_from_tmdb(payload).id

        with self.session_factory() as own_session:
            return MovieService(own_session).upsert_from_tmdb(payload).id

    def _save_all(self, payloads: Iterable[Dict[str, Any]], delay: float) -> int:
        saved = 0
        with self.session_factory() as session:
            for index, payload in enumerate(payloads):
                if index and delay:
                    self._sleep(delay)
                try:
                    self.save_movie(payload, session=session)
                    saved += 1
                except (SQLAlchemyError, KeyError, ValueError) as e:
                    session.rollback()
                    logger.warning("Skipping movie", tmdb_id=payload.get("id"), error=str(e))

        self.monitoring.increment_counter("sync_movies_saved_total", saved)
        if saved and self.cache is not None:
            self.cache.invalidate_movies()
        return saved

    @log_execution_time("tmdb.sync")
    def sync_initial_movies(self, pages: Optional[int] = None) -> int:
        """Fetch every list category, de-duplicate by TMDB id and save"""
        pages = pages or self.settings.sync_initial_pages
        categories = self.tmdb_client.fetch_multiple_categories(pages)

        unique: Dict[int, Dict[str, Any]] = {}
        for category in CATEGORIES:
            for item in categories.get(category, []):
                unique.setdefault(item["id"], item)

        logger.info("Saving initial movies", pages=pages, unique_movies=len(unique))
        saved = self._save_all(unique.values(), self.settings.sync_save_delay)
        logger.info("Initial movie sync finished", saved=saved, fetched=len(unique))
        return saved

    def sync_popular_movies(self) -> int:
        results = self.tmdb_client.get_popular_movies(1).get("results", [])
        saved = self._save_all(results, self.settings.sync_save_delay)
        logger.info("Popular movie sync finished", saved=saved, fetched=len(results))
        return saved

    def sync_movie_details(self, tmdb_id: int) -> int:
        details = self.tmdb_client.get_movie_details(tmdb_id)
        movie_id = self.save_movie(details)
        if self.cache is not None:
            self.cache.invalidate_movies()
        logger.info("Movie details synchronized", tmdb_id=tmdb_id, movie_id=movie_id)
        return movie_id

    def batch_sync_movies(self, tmdb_ids: List[int]) -> int:
        synced = 0
        for index, tmdb_id in enumerate(tmdb_ids):
            if index:
                self._sleep(self.settings.sync_batch_delay)
            try:
                self.sync_movie_details(tmdb_id)
                synced += 1
            except (TmdbClientError, SQLAlchemyError) as e:
                logger.warning("Skipping movie in batch sync", tmdb_id=tmdb_id, error=str(e))

        logger.info("Batch sync finished", requested=len(tmdb_ids), synced=synced)
        return synced

    # Tracked jobs
    def start_run(self, job: str) -> int:
        with self.session_factory() as session:
            return DatabaseService(session).create_sync_run(job).id

    def _run_job(self, job: str, work: Callable[[], int], run_id: Optional[int] = None) -> Dict[str, Any]:
        """Run work() under the job lock and record the outcome in sync_runs"""
        if not _job_lock.acquire(blocking=False):
            logger.warning("Sync job already running, skipping", job=job)
            raise SyncAlreadyRunningError(f"A sync job is already running; {job} sync skipped")

        started = time.time()
        records = 0
        try:
            if run_id is None:
                run_id = self.start_run(job)

            logger.info("Sync job started", job=job, run_id=run_id)
            try:
                with bind_context(sync_job=job, run_id=run_id):
                    records = work()
            except Exception as e:
                self.finish_run(run_id, "failed", records, str(e))
                self.monitoring.increment_counter("sync_runs_total", tags={"job": job, "status": "failed"})
                logger.exception("Sync job failed", job=job, run_id=run_id)
                return {"success": False, "run_id": run_id, "error": str(e), "records_processed": records}

            self.finish_run(run_id, "completed", records)
            self.monitoring.increment_counter("sync_runs_total", tags={"job": job, "status": "completed"})
            duration = time.time() - started
            self.monitoring.record_histogram("sync_duration_seconds", duration, tags={"job": job})
            self.monitoring.set_gauge("sync_last_success_timestamp", time.time(), tags={"job": job})
            logger.info("Sync job completed", job=job, run_id=run_id, records_processed=records, duration_seconds=duration)
            return {"success": True, "run_id": run_id, "records_processed": records, "duration_seconds": duration}
        finally:
            _job_lock.release()

    def finish_run(self, run_id: int, status: str, records: int, error: Optional[str] = None):
        with self.session_factory() as session:
            db_service = DatabaseService(session)
            current = db_service.get_sync_run_by_id(run_id)
            if current is not None and current.status != "running":
                # Cancelled while in progress; keep the cancellation
                logger.info("Sync run was cancelled, keeping status", run_id=run_id, status=current.status)
                return
            db_service.update_sync_run(run_id, status, records_processed=records, error_message=error)

    def run_full_sync(self, run_id: Optional[int] = None) -> Dict[str, Any]:
        def work():
            self.sync_genres()
            return self.sync_initial_movies()

        return self._run_job("full", work, run_id)

    def run_popular_sync(self, run_id: Optional[int] = None) -> Dict[str, Any]:
        return self._run_job("popular", self.sync_popular_movies, run_id)

    def run_genre_sync(self, run_id: Optional[int] = None) -> Dict[str, Any]:
        return self._run_job("genres", lambda: len(self.sync_genres()), run_id)

    def run_batch_sync(self, tmdb_ids: List[int], run_id: Optional[int] = None) -> Dict[str, Any]:
        return self._run_job("batch", lambda: self.batch_sync_movies(tmdb_ids), run_id)


class SyncScheduler:
    """Daemon thread: optional full sync at startup, then the popular sync on an interval"""

    def __init__(self, sync_service: TmdbSyncService, interval_seconds: int, run_on_startup: bool = True):
        self.sync_service = sync_service
        self.interval_seconds = interval_seconds
        self.run_on_startup = run_on_startup
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="tmdb-sync-scheduler", daemon=True)
        self._thread.start()
        logger.info("Sync scheduler started", interval_seconds=self.interval_seconds, run_on_startup=self.run_on_startup)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Sync scheduler stopped")

    def _run_safely(self, job: Callable[[], Dict[str, Any]], name: str):
        try:
            job()
        except SyncAlreadyRunningError:
            logger.info("Scheduled sync skipped, another job is running", job=name)
        except Exception:
            # The scheduler thread must survive a failed run
            logger.exception("Scheduled sync crashed", job=name)

    def _loop(self):
        if self.run_on_startup:
            self._run_safely(self.sync_service.run_full_sync, "full")

        while not self._stop_event.wait(self.interval_seconds):
            self._run_safely(self.sync_service.run_popular_sync, "popular")


def main():
    """Run one sync job from the command line: full (default), popular or genres"""
    from moviedb.config.loader import load_configuration
    from moviedb.database.connection import get_session_factory, init_database
    from moviedb.services.cache_service import get_cache_service
    from moviedb.tmdb.client import get_tmdb_client

    job = sys.argv[1] if len(sys.argv) > 1 else "full"
    jobs = {"full": "run_full_sync", "popular": "run_popular_sync", "genres": "run_genre_sync"}
    if job not in jobs:
        print(f"Usage: python -m moviedb.tmdb.sync [{'|'.join(jobs)}]")
        sys.exit(2)

    load_configuration()
    init_database()
    service = TmdbSyncService(get_session_factory(), get_tmdb_client(), cache=get_cache_service())
    result = getattr(service, jobs[job])()

    if result["success"]:
        print(f"Sync completed: {result['records_processed']} records in {result['duration_seconds']:.2f} seconds")
    else:
        print(f"Sync failed: {result['error']}")
        sys.exit(1)


if __name__ == "__main__":
    main()
