"""Health check endpoint."""
import time

from fastapi import APIRouter, Request

from erp_core.config import VERSION
from erp_core.observability import get_correlation_id
from erp_web.schemas import HealthResponse
from ._deps import limiter, get_store, START_TIME

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check for Docker/load balancer monitoring."""
    stats = get_store(request).get_stats()
    return {
        "status": "healthy" if stats["loaded"] else "degraded",
        "version": VERSION,
        "uptime_seconds": int(time.time() - START_TIME),
        "correlation_id": get_correlation_id(),
        "snapshot": stats,
    }
