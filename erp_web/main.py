"""
FastAPI web application for the ERP sales order assistant.
"""
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse, JSONResponse

from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from erp_core.assistant import QueryResolver, SalesAssistant
from erp_core.config import config, validate_config, ConfigurationError, VERSION
from erp_core.erp_client import ERPClient
from erp_core.observability import setup_logging, get_logger
from erp_core.scheduler import BackgroundScheduler
from erp_core.snapshot_store import SnapshotStore
from erp_core.sync_service import SyncService
from erp_web.middleware import RequestLoggingMiddleware
from erp_web.routes import router
from erp_web.routes._deps import limiter

# Use JSON format in production (LOG_FORMAT=json), human-readable otherwise
log_format = os.getenv("LOG_FORMAT", "text")
log_level = os.getenv("LOG_LEVEL", "INFO")
setup_logging(level=log_level, json_format=(log_format == "json"))
logger = get_logger(__name__)


def create_app(
    store: Optional[SnapshotStore] = None,
    sync_service: Optional[SyncService] = None,
    run_scheduler: bool = True,
    resolver: Optional[QueryResolver] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        store: Snapshot store to serve (defaults to one at SNAPSHOT_PATH)
        sync_service: Refresh service (defaults to one backed by a new ERPClient)
        run_scheduler: Start the background refresh loop on startup
        resolver: Question resolver; when given, a SalesAssistant over the
            same store is exposed as ``app.state.assistant``
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Sales order assistant starting...")
        client = None

        if app.state.sync_service is None:
            try:
                validate_config()
                logger.info("Configuration validated")
            except ConfigurationError as e:
                logger.critical(f"Configuration error: {e}")
                raise SystemExit(1)

            client = ERPClient()
            app.state.sync_service = SyncService(app.state.store, client)

        if not app.state.store.is_loaded:
            await app.state.store.load()

        if run_scheduler:
            scheduler = BackgroundScheduler(app.state.sync_service)
            try:
                await scheduler.start()
                app.state.scheduler = scheduler
            except Exception as e:
                # Non-fatal: queries keep working against the loaded snapshot
                logger.error(f"Scheduler initialization failed: {e}", exc_info=True)

        logger.info(f"Ready with {len(app.state.store)} records")
        yield

        logger.info("Sales order assistant shutting down...")
        if app.state.scheduler:
            app.state.scheduler.shutdown()
            app.state.scheduler = None
        if client:
            await client.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="ERP Sales Order Assistant",
        description="Local query engine over a periodically refreshed ERP sales order snapshot",
        version=VERSION,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.state.store = store or SnapshotStore(config.sync.snapshot_path)
    app.state.sync_service = sync_service
    app.state.scheduler = None
    app.state.assistant = SalesAssistant(app.state.store, resolver) if resolver else None
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded for {get_remote_address(request)}")
        return JSONResponse(
            status_code=429,
            content={
                "error": "Rate limit exceeded",
                "detail": "Too many requests. Please try again later.",
                "retry_after": exc.detail
            }
        )

    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("erp_web.main:app", host=config.web.host, port=config.web.port)
