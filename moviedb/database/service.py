"""
Database service for synchronization run tracking
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from moviedb.services.logger_service import get_logger

from .models import SyncRun

RUN_STATUSES = ("running", "completed", "failed")


@dataclass
class SyncRunResult:
    """Sync run snapshot detached from the session"""

    id: int
    job: str
    started_at: datetime
    finished_at: Optional[datetime]
    status: str
    records_processed: Optional[int]
    error_message: Optional[str]
    duration_seconds: Optional[int]

    @classmethod
    def from_model(cls, run: SyncRun) -> "SyncRunResult":
        return cls(
            id=run.id,
            job=run.job,
            started_at=run.started_at,
            finished_at=run.finished_at,
            status=run.status,
            records_processed=run.records_processed,
            error_message=run.error_message,
            duration_seconds=run.duration_seconds,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job": self.job,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "status": self.status,
            "records_processed": self.records_processed,
            "error_message": self.error_message,
            "duration_seconds": self.duration_seconds,
        }


class DatabaseService:
    """Sync run bookkeeping and session helpers"""

    def __init__(self, session: Session):
        self.session = session
        self.logger = get_logger("database.service")

    def create_sync_run(self, job: str = "full") -> SyncRunResult:
        """Create a new sync run record"""
        self.logger.debug("Creating new sync run", job=job)

        try:
            run = SyncRun(job=job, started_at=datetime.utcnow(), status="running")

            self.session.add(run)
            self.session.commit()

            self.logger.info("Sync run created", sync_run_id=run.id, job=job)
            return SyncRunResult.from_model(run)

        except SQLAlchemyError as e:
            self.session.rollback()
            self.logger.error("Failed to create sync run", job=job, error=str(e))
            raise

    def update_sync_run(
        self, run_id: int, status: str, records_processed: Optional[int] = None, error_message: Optional[str] = None
    ) -> SyncRunResult:
        """Update sync run status; finished runs get their duration stamped"""
        if status not in RUN_STATUSES:
            raise ValueError(f"Unknown sync run status: {status}")

        self.logger.debug("Updating sync run", sync_run_id=run_id, status=status)

        try:
            run = self.session.query(SyncRun).filter(SyncRun.id == run_id).first()

            if not run:
                raise ValueError(f"Sync run {run_id} not found")

            run.status = status
            if records_processed is not None:
                run.records_processed = records_processed
            if error_message is not None:
                run.error_message = error_message

            if status in ("completed", "failed"):
                run.finished_at = datetime.utcnow()
                if run.started_at:
                    run.duration_seconds = int((run.finished_at - run.started_at).total_seconds())

            self.session.commit()

            self.logger.info("Sync run updated", sync_run_id=run_id, status=status)
            return SyncRunResult.from_model(run)

        except SQLAlchemyError as e:
            self.session.rollback()
            self.logger.error("Failed to update sync run", sync_run_id=run_id, error=str(e))
            raise

    def get_latest_sync_run(self) -> Optional[SyncRunResult]:
        """Get the latest sync run"""
        try:
            run = self.session.query(SyncRun).order_by(desc(SyncRun.started_at), desc(SyncRun.id)).first()
            return SyncRunResult.from_model(run) if run else None

        except SQLAlchemyError as e:
            self.logger.error("Failed to get latest sync run", error=str(e))
            raise

    def get_running_sync_run(self) -> Optional[SyncRunResult]:
        try:
            run = (
                self.session.query(SyncRun)
                .filter(SyncRun.status == "running")
                .order_by(desc(SyncRun.started_at), desc(SyncRun.id))
                .first()
            )
            return SyncRunResult.from_model(run) if run else None

        except SQLAlchemyError as e:
            self.logger.error("Failed to get running sync run", error=str(e))
            raise

    def get_sync_runs(self, limit: int = 10) -> List[SyncRunResult]:
        """Get recent sync runs"""
        self.logger.debug("Getting sync runs", limit=limit)

        try:
            runs = self.session.query(SyncRun).order_by(desc(SyncRun.started_at), desc(SyncRun.id)).limit(limit).all()
            return [SyncRunResult.from_model(run) for run in runs]

        except SQLAlchemyError as e:
            self.logger.error("Failed to get sync runs", error=str(e))
            raise

    def get_sync_run_by_id(self, run_id: int) -> Optional[SyncRunResult]:
        """Get sync run by ID"""
        try:
            run = self.session.query(SyncRun).filter(SyncRun.id == run_id).first()
            if run is None:
                self.logger.debug("Sync run not found", sync_run_id=run_id)
                return None
            return SyncRunResult.from_model(run)

        except SQLAlchemyError as e:
            self.logger.error("Failed to get sync run by ID", sync_run_id=run_id, error=str(e))
            raise
