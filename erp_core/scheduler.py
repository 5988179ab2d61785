"""
Background refresh scheduler using APScheduler.

Runs the ERP refresh once immediately at startup and then on a fixed
interval (60 seconds by default).

Features:
- Prevents job pile-up (max_instances=1, coalesce): an interval that
  elapses while a run is still going is skipped
- Job execution history
- Manual trigger
- Graceful shutdown
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_MISSED,
    JobEvent,
    JobExecutionEvent,
)
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from erp_core.config import config as app_config, SyncConfig
from erp_core.observability import get_logger
from erp_core.sync_service import SyncService

logger = get_logger(__name__)

REFRESH_JOB_ID = "erp_refresh"


class JobStatus(Enum):
    """Job execution status."""
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    MISSED = "missed"
    SKIPPED = "skipped"


@dataclass
class JobExecution:
    """Record of a job execution."""
    job_id: str
    finished_at: datetime
    status: JobStatus
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None


@dataclass
class JobInfo:
    """Information about a scheduled job."""
    id: str
    name: str
    description: str
    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_status: Optional[JobStatus] = None
    run_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    last_error: Optional[str] = None


class BackgroundScheduler:
    """
    Single-flight refresh loop around a SyncService.

    Usage:
        scheduler = BackgroundScheduler(sync_service)
        await scheduler.start()

        # Later...
        scheduler.shutdown()
    """

    def __init__(self, sync_service: SyncService, sync_config: SyncConfig = None):
        self.sync_service = sync_service
        self.sync_config = sync_config or app_config.sync
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._job_history: Dict[str, List[JobExecution]] = {}
        self._job_info: Dict[str, JobInfo] = {}
        self._max_history = 50  # Keep last N executions per job
        self._started = False

    async def start(self) -> None:
        """Start the scheduler and register the refresh job."""
        if self._started:
            logger.warning("Scheduler already started")
            return

        self._scheduler = AsyncIOScheduler(timezone=self.sync_config.tz)

        self._scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self._scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)
        self._scheduler.add_listener(self._on_job_skipped, EVENT_JOB_MAX_INSTANCES)

        self._register_jobs()

        self._scheduler.start()
        self._started = True
        logger.info(
            "Background scheduler started",
            extra={"interval_seconds": self.sync_config.interval_seconds}
        )

    def _register_jobs(self) -> None:
        """Register the refresh job, first run immediately."""
        self._scheduler.add_job(
            self._run_refresh,
            trigger=IntervalTrigger(seconds=self.sync_config.interval_seconds),
            id=REFRESH_JOB_ID,
            name="ERP Refresh",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            next_run_time=datetime.now(self.sync_config.tz),
        )
        self._job_info[REFRESH_JOB_ID] = JobInfo(
            id=REFRESH_JOB_ID,
            name="ERP Refresh",
            description="Pull sales orders from the ERP and merge new ones into the snapshot",
        )
        self._job_history[REFRESH_JOB_ID] = []

    async def _run_refresh(self) -> Dict[str, Any]:
        """Run one refresh cycle."""
        logger.debug("Starting refresh job")
        return await self.sync_service.run_once()

    # ═══════════════════════════════════════════════════════════════════════════
    # EVENT HANDLERS
    # ═══════════════════════════════════════════════════════════════════════════

    def _update_next_run(self, info: JobInfo) -> None:
        job = self._scheduler.get_job(info.id)
        if job and job.next_run_time:
            info.next_run = job.next_run_time

    def _on_job_executed(self, event: JobExecutionEvent) -> None:
        """Handle successful job execution."""
        info = self._job_info.get(event.job_id)
        if info is None:
            return

        now = datetime.now(self.sync_config.tz)
        result = getattr(event, "retval", None)
        status = JobStatus.SKIPPED if isinstance(result, dict) and result.get("skipped") else JobStatus.SUCCESS

        info.last_run = now
        info.last_status = status
        info.run_count += 1
        self._update_next_run(info)
        self._add_execution(JobExecution(job_id=event.job_id, finished_at=now, status=status, result=result))

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        """Handle job execution error."""
        info = self._job_info.get(event.job_id)
        if info is None:
            return

        now = datetime.now(self.sync_config.tz)
        info.last_run = now
        info.last_status = JobStatus.FAILED
        info.run_count += 1
        info.error_count += 1
        info.last_error = str(event.exception) if event.exception else "Unknown error"
        self._update_next_run(info)
        self._add_execution(JobExecution(
            job_id=event.job_id, finished_at=now, status=JobStatus.FAILED, error=info.last_error
        ))

        logger.error(
            f"Job {event.job_id} failed: {info.last_error}",
            extra={"job_id": event.job_id}
        )

    def _on_job_missed(self, event: JobExecutionEvent) -> None:
        """Handle missed job execution."""
        info = self._job_info.get(event.job_id)
        if info is None:
            return

        info.last_status = JobStatus.MISSED
        self._add_execution(JobExecution(
            job_id=event.job_id, finished_at=datetime.now(self.sync_config.tz), status=JobStatus.MISSED
        ))
        logger.warning(f"Job {event.job_id} missed scheduled execution", extra={"job_id": event.job_id})

    def _on_job_skipped(self, event: JobEvent) -> None:
        """Handle an interval that fired while the previous run was still active."""
        info = self._job_info.get(event.job_id)
        if info is None:
            return

        info.skipped_count += 1
        self._add_execution(JobExecution(
            job_id=event.job_id, finished_at=datetime.now(self.sync_config.tz), status=JobStatus.SKIPPED
        ))
        logger.info(f"Job {event.job_id} still running, skipped this interval", extra={"job_id": event.job_id})

    def _add_execution(self, execution: JobExecution) -> None:
        """Add execution to history, keeping only last N."""
        history = self._job_history.setdefault(execution.job_id, [])
        history.append(execution)
        if len(history) > self._max_history:
            self._job_history[execution.job_id] = history[-self._max_history:]

    # ═══════════════════════════════════════════════════════════════════════════
    # PUBLIC API
    # ═══════════════════════════════════════════════════════════════════════════

    def get_jobs(self) -> List[Dict[str, Any]]:
        """Get list of all jobs with their status."""
        jobs = []
        for job_id, info in self._job_info.items():
            job = self._scheduler.get_job(job_id) if self._scheduler else None
            jobs.append({
                "id": info.id,
                "name": info.name,
                "description": info.description,
                "trigger": str(job.trigger) if job and job.trigger else "",
                "next_run": info.next_run.isoformat() if info.next_run else None,
                "last_run": info.last_run.isoformat() if info.last_run else None,
                "last_status": info.last_status.value if info.last_status else None,
                "run_count": info.run_count,
                "error_count": info.error_count,
                "skipped_count": info.skipped_count,
                "last_error": info.last_error,
            })
        return jobs

    def get_job_history(self, job_id: str = REFRESH_JOB_ID, limit: int = 10) -> List[Dict[str, Any]]:
        """Get execution history for a job, newest first."""
        history = self._job_history.get(job_id, [])[-limit:]
        return [{
            "finished_at": e.finished_at.isoformat(),
            "status": e.status.value,
            "error": e.error,
        } for e in reversed(history)]

    def run_job_now(self, job_id: str = REFRESH_JOB_ID) -> Dict[str, Any]:
        """Manually trigger a job to run immediately."""
        if job_id not in self._job_info:
            raise ValueError(f"Unknown job: {job_id}")

        job = self._scheduler.get_job(job_id) if self._scheduler else None
        if not job:
            raise ValueError(f"Job not found: {job_id}")

        logger.info(f"Manually triggering job: {job_id}")
        job.modify(next_run_time=datetime.now(self.sync_config.tz))
        return {"status": "triggered", "job_id": job_id}

    def shutdown(self, wait: bool = False) -> None:
        """Shutdown the scheduler; in-flight fetches are abandoned."""
        if self._scheduler and self._started:
            self._scheduler.shutdown(wait=wait)
            self._started = False
            logger.info("Background scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._started and self._scheduler is not None
