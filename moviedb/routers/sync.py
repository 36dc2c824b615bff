"""
Sync API router for managing TMDB synchronization runs
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from moviedb.database.connection import get_db
from moviedb.database.service import DatabaseService
from moviedb.routers.deps import get_sync_service
from moviedb.services.logger_service import get_logger, handle_exceptions
from moviedb.tmdb.sync import SyncAlreadyRunningError, TmdbSyncService, is_sync_running

router = APIRouter(prefix="/sync", tags=["Sync"])

logger = get_logger("sync_api")


class SyncJob(str, Enum):
    """Available sync jobs"""

    FULL = "full"
    POPULAR = "popular"
    GENRES = "genres"
    BATCH = "batch"


class BatchSyncRequest(BaseModel):
    tmdb_ids: List[int] = Field(..., min_length=1, max_length=100, description="TMDB movie ids to refresh")


@handle_exceptions("sync_api", "background_sync_task")
def run_sync_background(sync_service: TmdbSyncService, job: str, run_id: int, tmdb_ids: Optional[List[int]] = None):
    """Background task running one tracked sync job"""
    logger.info("Starting background sync task", job=job, run_id=run_id)

    runners = {
        SyncJob.FULL.value: lambda: sync_service.run_full_sync(run_id),
        SyncJob.POPULAR.value: lambda: sync_service.run_popular_sync(run_id),
        SyncJob.GENRES.value: lambda: sync_service.run_genre_sync(run_id),
        SyncJob.BATCH.value: lambda: sync_service.run_batch_sync(tmdb_ids or [], run_id),
    }

    try:
        result = runners[job]()
    except SyncAlreadyRunningError as e:
        # The run record was created for us; close it out
        sync_service.finish_run(run_id, "failed", 0, str(e))
        return

    if result["success"]:
        logger.info(
            "Background sync completed",
            job=job,
            run_id=run_id,
            records_processed=result["records_processed"],
        )
    else:
        logger.error("Background sync failed", job=job, run_id=run_id, error=result["error"])


def _ensure_not_running(db: Session, force: bool):
    if force:
        return

    running = DatabaseService(db).get_running_sync_run()
    if running is not None or is_sync_running():
        run_label = f" (Run ID: {running.id})" if running else ""
        logger.warning("Sync already running", run_id=running.id if running else None)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Sync is already running{run_label}. Use force=true to override.",
        )


def _start(
    job: SyncJob,
    background_tasks: BackgroundTasks,
    sync_service: TmdbSyncService,
    db: Session,
    force: bool,
    tmdb_ids: Optional[List[int]] = None,
):
    logger.info("Sync start requested", job=job.value, force=force)
    _ensure_not_running(db, force)

    run = DatabaseService(db).create_sync_run(job.value)
    background_tasks.add_task(run_sync_background, sync_service, job.value, run.id, tmdb_ids)

    return {
        "message": f"{job.value.capitalize()} sync started",
        "run_id": run.id,
        "job": job.value,
        "status": "running",
        "started_at": run.started_at.isoformat() if run.started_at else None,
    }


@router.post("/start", status_code=status.HTTP_202_ACCEPTED)
def start_full_sync(
    background_tasks: BackgroundTasks,
    force: bool = Query(False, description="Start even if a sync is already running"),
    sync_service: TmdbSyncService = Depends(get_sync_service),
    db: Session = Depends(get_db),
):
    """
    Start a full synchronization: genres plus every TMDB list category

    Returns the run record and processes in the background
    """
    return _start(SyncJob.FULL, background_tasks, sync_service, db, force)


@router.post("/popular", status_code=status.HTTP_202_ACCEPTED)
def start_popular_sync(
    background_tasks: BackgroundTasks,
    force: bool = Query(False),
    sync_service: TmdbSyncService = Depends(get_sync_service),
    db: Session = Depends(get_db),
):
    return _start(SyncJob.POPULAR, background_tasks, sync_service, db, force)


@router.post("/genres", status_code=status.HTTP_202_ACCEPTED)
def start_genre_sync(
    background_tasks: BackgroundTasks,
    force: bool = Query(False),
    sync_service: TmdbSyncService = Depends(get_sync_service),
    db: Session = Depends(get_db),
):
    return _start(SyncJob.GENRES, background_tasks, sync_service, db, force)


@router.post("/movies", status_code=status.HTTP_202_ACCEPTED)
def start_batch_sync(
    payload: BatchSyncRequest,
    background_tasks: BackgroundTasks,
    force: bool = Query(False),
    sync_service: TmdbSyncService = Depends(get_sync_service),
    db: Session = Depends(get_db),
):
    """Refresh the given TMDB ids from their detail endpoint"""
    return _start(SyncJob.BATCH, background_tasks, sync_service, db, force, payload.tmdb_ids)


@router.get("/status")
def get_sync_status(
    run_id: Optional[int] = Query(None, description="Specific run ID to check"),
    db: Session = Depends(get_db),
):
    """
    Get sync status

    - **run_id**: Optional specific run ID to check (defaults to latest)
    """
    db_service = DatabaseService(db)

    if run_id:
        run = db_service.get_sync_run_by_id(run_id)
        if not run:
            raise HTTPException(status_code=404, detail=f"Sync run {run_id} not found")
    else:
        run = db_service.get_latest_sync_run()
        if not run:
            return {"message": "No sync runs found", "status": "never_run", "timestamp": datetime.utcnow().isoformat()}

    status_info = run.to_dict()
    status_info["run_id"] = status_info.pop("id")
    status_info["timestamp"] = datetime.utcnow().isoformat()

    if run.status == "completed" and run.finished_at:
        status_info["message"] = f"Finished running successfully at {run.finished_at.strftime('%d-%m-%Y %H:%M')}"
    elif run.status == "failed" and run.finished_at:
        status_info["message"] = f"Finished running unsuccessfully at {run.finished_at.strftime('%d-%m-%Y %H:%M')}"
    elif run.status == "running" and run.started_at:
        status_info["message"] = f"Started running at {run.started_at.strftime('%d-%m-%Y %H:%M')}"
    else:
        status_info["message"] = f"Status: {run.status}"

    return status_info


@router.get("/history")
def get_sync_history(
    limit: int = Query(10, ge=1, le=100, description="Number of runs to return"),
    db: Session = Depends(get_db),
):
    """Recent sync runs, newest first"""
    runs = DatabaseService(db).get_sync_runs(limit=limit)

    history = []
    for run in runs:
        run_info = run.to_dict()
        run_info["run_id"] = run_info.pop("id")
        if run.status != "failed":
            run_info["error_message"] = None
        history.append(run_info)

    return {"runs": history, "total_returned": len(history), "timestamp": datetime.utcnow().isoformat()}


@router.delete("/cancel/{run_id}")
def cancel_sync_run(run_id: int, db: Session = Depends(get_db)):
    """
    Cancel a running sync

    Marks the run as failed; a job already in progress finishes its current
    work but keeps the cancelled status.
    """
    logger.info("Sync cancellation requested", run_id=run_id)

    db_service = DatabaseService(db)
    run = db_service.get_sync_run_by_id(run_id)

    if not run:
        raise HTTPException(status_code=404, detail=f"Sync run {run_id} not found")

    if run.status != "running":
        raise HTTPException(status_code=400, detail=f"Sync run {run_id} is not running (status: {run.status})")

    db_service.update_sync_run(run_id, "failed", error_message="Cancelled by user")
    logger.info("Sync run cancelled", run_id=run_id)

    return {
        "message": f"Sync run {run_id} cancelled",
        "run_id": run_id,
        "status": "cancelled",
        "timestamp": datetime.utcnow().isoformat(),
    }
