"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from listing_tracker import metrics
from listing_tracker.api.routes import auth, businesses, runs, session
from listing_tracker.config import settings
from listing_tracker.db.session import AsyncSessionLocal, init_db
from listing_tracker.errors import BusinessNotFoundError, DuplicateBusinessError, ErrorCode, TrackerError
from listing_tracker.worker.scheduler import setup_scheduler
from listing_tracker.worker.tasks import build_task_runner

# Configure structured logging
from listing_tracker.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    scheduler = None

    # Startup
    logger.info("Starting Listing Tracker...")

    await init_db()

    task_runner = build_task_runner(AsyncSessionLocal)
    app.state.task_runner = task_runner
    metrics.businesses_tracked.set(await task_runner.repository.count())

    if settings.scheduler_enabled:
        scheduler = setup_scheduler(task_runner)
        scheduler.start()
        logger.info("Scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down...")

    if scheduler:
        scheduler.shutdown()

    await task_runner.close()

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Listing Tracker",
    description="Track Google Maps business listings into a spreadsheet ledger",
    version="0.1.0",
    lifespan=lifespan,
)

# Add Prometheus instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics", "/health", "/favicon.ico"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

# Include API routes
app.include_router(session.router)
app.include_router(businesses.router)
app.include_router(auth.router)
app.include_router(runs.router)


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    status_code = 409 if exc.code == ErrorCode.RUN_IN_PROGRESS else 400
    if status_code == 400:
        logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"error": exc.code.value, "detail": exc.message})


@app.exception_handler(DuplicateBusinessError)
async def duplicate_business_handler(request: Request, exc: DuplicateBusinessError):
    return JSONResponse(
        status_code=400,
        content={"error": "DUPLICATE_BUSINESS", "detail": str(exc), "existingId": exc.existing_id},
    )


@app.exception_handler(BusinessNotFoundError)
async def not_found_handler(request: Request, exc: BusinessNotFoundError):
    return JSONResponse(status_code=404, content={"error": "NOT_FOUND", "detail": str(exc)})


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/favicon.ico")
async def favicon():
    """Return empty favicon response to avoid 404 noise."""
    return Response(status_code=204)


def run():
    uvicorn.run(
        "listing_tracker.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
