"""Refresh status and manual trigger endpoints."""
from fastapi import APIRouter, Request

from erp_core.observability import get_logger
from erp_web.schemas import SyncStatus
from ._deps import limiter, get_scheduler, get_sync_service

router = APIRouter()
logger = get_logger(__name__)


@router.get("/sync/status", response_model=SyncStatus)
@limiter.limit("30/minute")
async def sync_status(request: Request):
    """Refresh statistics and scheduler job state."""
    scheduler = get_scheduler(request)
    return {
        **get_sync_service(request).get_sync_stats(),
        "jobs": scheduler.get_jobs() if scheduler else [],
    }


@router.post("/sync/run")
@limiter.limit("5/minute")
async def trigger_sync(request: Request):
    """
    Trigger a refresh now.

    With the scheduler running this only moves the next run forward, so
    the single-flight guarantee still holds. Without it the refresh runs
    inline and its stats are returned.
    """
    scheduler = get_scheduler(request)
    if scheduler and scheduler.is_running:
        return scheduler.run_job_now()

    logger.info("Running refresh inline (scheduler not running)")
    stats = await get_sync_service(request).run_once()
    return {"status": "completed", "stats": stats}
