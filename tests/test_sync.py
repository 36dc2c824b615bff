import threading
from unittest.mock import MagicMock

import pytest

from moviedb.database.models import Genre, Movie, SyncRun
from moviedb.database.service import DatabaseService
from moviedb.services.monitoring_service import get_monitoring_service
from moviedb.tmdb import sync as sync_module
from moviedb.tmdb.client import TmdbClientError
from moviedb.tmdb.sync import SyncAlreadyRunningError, SyncScheduler


def tmdb_movie(tmdb_id, title=None, **fields):
    payload = {
        "id": tmdb_id,
        "title": title or f"TMDB {tmdb_id}",
        "release_date": "2020-01-01",
        "vote_average": 7.0,
        "vote_count": 100,
        "popularity": 10.0,
        "genre_ids": [28],
    }
    payload.update(fields)
    return payload


def test_sync_genres_upserts(sync_service, tmdb_client, db_session):
    db_session.add(Genre(id=28, name="Old Action"))
    db_session.commit()
    tmdb_client.get_genres.return_value = [{"id": 28, "name": "Action"}, {"id": 35, "name": "Comedy"}]

    genres = sync_service.sync_genres()

    assert len(genres) == 2
    db_session.expire_all()
    assert {g.id: g.name for g in db_session.query(Genre).all()} == {28: "Action", 35: "Comedy"}


def test_sync_genres_returns_empty_when_tmdb_fails(sync_service, tmdb_client, db_session):
    tmdb_client.get_genres.side_effect = TmdbClientError("down")

    assert sync_service.sync_genres() == []
    assert db_session.query(Genre).count() == 0


def test_sync_initial_movies_deduplicates_categories(sync_service, tmdb_client, db_session):
    tmdb_client.fetch_multiple_categories.return_value = {
        "popular": [tmdb_movie(1), tmdb_movie(2)],
        "top_rated": [tmdb_movie(2), tmdb_movie(3)],
        "now_playing": [],
        "upcoming": [tmdb_movie(1)],
    }

    saved = sync_service.sync_initial_movies(pages=2)

    assert saved == 3
    tmdb_client.fetch_multiple_categories.assert_called_once_with(2)
    assert sorted(m.tmdb_id for m in db_session.query(Movie).all()) == [1, 2, 3]


def test_saving_existing_movie_keeps_user_statistics(sync_service, db_session):
    db_session.add(Movie(tmdb_id=10, title="Before", user_rating_average=9.0, user_rating_count=4))
    db_session.commit()

    sync_service.save_movie(tmdb_movie(10, "After", genres=[{"id": 18, "name": "Drama"}]))

    db_session.expire_all()
    movie = db_session.query(Movie).filter(Movie.tmdb_id == 10).one()
    assert movie.title == "After"
    assert movie.genre_ids == [18]
    assert movie.user_rating_count == 4
    assert float(movie.user_rating_average) == 9.0
    assert db_session.query(Movie).count() == 1


def test_bad_payloads_are_skipped(sync_service, tmdb_client, db_session):
    tmdb_client.get_popular_movies.return_value = {"results": [{"title": "No id"}, tmdb_movie(5)]}

    assert sync_service.sync_popular_movies() == 1
    assert [m.tmdb_id for m in db_session.query(Movie).all()] == [5]


def test_batch_sync_skips_failed_ids(sync_service, tmdb_client, db_session):
    tmdb_client.get_movie_details.side_effect = [tmdb_movie(1), TmdbClientError("gone"), tmdb_movie(3)]

    assert sync_service.batch_sync_movies([1, 2, 3]) == 2
    assert sorted(m.tmdb_id for m in db_session.query(Movie).all()) == [1, 3]


def test_full_sync_records_completed_run(sync_service, tmdb_client, db_session):
    tmdb_client.get_genres.return_value = [{"id": 28, "name": "Action"}]
    tmdb_client.fetch_multiple_categories.return_value = {"popular": [tmdb_movie(1)]}

    result = sync_service.run_full_sync()

    assert result["success"] is True
    assert result["records_processed"] == 1
    run = db_session.get(SyncRun, result["run_id"])
    assert run.job == "full"
    assert run.status == "completed"
    assert run.records_processed == 1
    assert run.finished_at is not None
    gauges = get_monitoring_service().get_all_metrics()["gauges"]
    assert "sync_last_success_timestamp[job=full]" in gauges


def test_failed_job_records_error(sync_service, tmdb_client, db_session):
    tmdb_client.get_popular_movies.side_effect = TmdbClientError("TMDB unavailable")

    result = sync_service.run_popular_sync()

    assert result["success"] is False
    run = db_session.get(SyncRun, result["run_id"])
    assert run.status == "failed"
    assert run.error_message == "TMDB unavailable"


def test_cancelled_run_keeps_failed_status(sync_service, tmdb_client, session_factory, db_session):
    run_id = sync_service.start_run("popular")

    def cancel_mid_run(page):
        with session_factory() as session:
            DatabaseService(session).update_sync_run(run_id, "failed", error_message="Cancelled by user")
        return {"results": [tmdb_movie(1)]}

    tmdb_client.get_popular_movies.side_effect = cancel_mid_run

    sync_service.run_popular_sync(run_id)

    run = db_session.get(SyncRun, run_id)
    assert run.status == "failed"
    assert run.error_message == "Cancelled by user"


def test_only_one_job_at_a_time(sync_service):
    assert sync_module._job_lock.acquire(blocking=False)
    try:
        assert sync_module.is_sync_running()
        with pytest.raises(SyncAlreadyRunningError):
            sync_service.run_genre_sync()
    finally:
        sync_module._job_lock.release()

    assert not sync_module.is_sync_running()


def test_scheduler_runs_startup_sync_and_stops():
    service = MagicMock()
    started = threading.Event()
    service.run_full_sync.side_effect = lambda: started.set()

    scheduler = SyncScheduler(service, interval_seconds=3600, run_on_startup=True)
    scheduler.start()
    try:
        assert started.wait(2)
        assert scheduler.running
    finally:
        scheduler.stop(timeout=2)

    assert not scheduler.running
    service.run_popular_sync.assert_not_called()


def test_scheduler_survives_failed_runs():
    service = MagicMock()
    calls = threading.Semaphore(0)

    def explode():
        calls.release()
        raise RuntimeError("boom")

    service.run_popular_sync.side_effect = explode

    scheduler = SyncScheduler(service, interval_seconds=0.01, run_on_startup=False)
    scheduler.start()
    try:
        assert calls.acquire(timeout=2)
        assert calls.acquire(timeout=2)
    finally:
        scheduler.stop(timeout=2)

    service.run_full_sync.assert_not_called()


# API
def test_status_before_any_run(client):
    response = client.get("/sync/status")

    assert response.status_code == 200
    assert response.json()["status"] == "never_run"


def test_start_genre_sync_runs_in_background(client, tmdb_client):
    tmdb_client.get_genres.return_value = [{"id": 12, "name": "Adventure"}]

    response = client.post("/sync/genres")

    assert response.status_code == 202
    run_id = response.json()["run_id"]

    status = client.get("/sync/status", params={"run_id": run_id}).json()
    assert status["status"] == "completed"
    assert status["records_processed"] == 1
    assert client.get("/genres").json() == [{"id": 12, "name": "Adventure"}]


def test_start_batch_sync(client, tmdb_client):
    tmdb_client.get_movie_details.side_effect = lambda tmdb_id: tmdb_movie(tmdb_id)

    response = client.post("/sync/movies", json={"tmdb_ids": [11, 12]})

    assert response.status_code == 202
    assert response.json()["job"] == "batch"
    assert client.get("/movies").json()["meta"]["total"] == 2


def test_start_conflicts_with_running_sync(client, db_session):
    db_session.add(SyncRun(job="full", status="running"))
    db_session.commit()

    conflict = client.post("/sync/popular")

    assert conflict.status_code == 409
    assert "already running" in conflict.json()["detail"]


def test_force_starts_despite_running_record(client, db_session, tmdb_client):
    db_session.add(SyncRun(job="full", status="running"))
    db_session.commit()
    tmdb_client.get_popular_movies.return_value = {"results": [tmdb_movie(7)]}

    response = client.post("/sync/popular", params={"force": "true"})

    assert response.status_code == 202
    assert client.get("/sync/status", params={"run_id": response.json()["run_id"]}).json()["status"] == "completed"


def test_history_and_cancel(client, db_session):
    db_session.add_all(
        [
            SyncRun(job="genres", status="completed", records_processed=19),
            SyncRun(job="popular", status="running"),
        ]
    )
    db_session.commit()
    running_id = db_session.query(SyncRun).filter(SyncRun.status == "running").one().id

    history = client.get("/sync/history").json()
    assert history["total_returned"] == 2

    cancelled = client.delete(f"/sync/cancel/{running_id}")
    assert cancelled.status_code == 200

    again = client.delete(f"/sync/cancel/{running_id}")
    assert again.status_code == 400
    assert client.delete("/sync/cancel/9999").status_code == 404

    status = client.get("/sync/status", params={"run_id": running_id}).json()
    assert status["status"] == "failed"
    assert status["error_message"] == "Cancelled by user"
