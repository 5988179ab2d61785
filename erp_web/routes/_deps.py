"""Shared dependencies for API route modules."""
import time
from typing import Optional

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from erp_core.scheduler import BackgroundScheduler
from erp_core.snapshot_store import SnapshotStore
from erp_core.sync_service import SyncService

# Shared limiter instance
limiter = Limiter(key_func=get_remote_address)

# Track startup time for uptime calculation
START_TIME = time.time()


def get_store(request: Request) -> SnapshotStore:
    return request.app.state.store


def get_sync_service(request: Request) -> SyncService:
    return request.app.state.sync_service


def get_scheduler(request: Request) -> Optional[BackgroundScheduler]:
    return request.app.state.scheduler
