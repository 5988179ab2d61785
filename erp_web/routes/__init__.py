"""
API routes split by concern.

Each sub-module defines its own APIRouter which is composed
into the top-level router exposed by this package.
"""
from fastapi import APIRouter

from .health import router as health_router
from .query import router as query_router
from .sync import router as sync_router

router = APIRouter(tags=["api"])

router.include_router(health_router)
router.include_router(query_router)
router.include_router(sync_router)
