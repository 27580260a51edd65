"""
FastAPI host surface for the rehearsal sync engine.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from rehearsal_sync.config import settings
from rehearsal_sync.infrastructure.observability.logging import get_logger, setup_logging
from rehearsal_sync.routes import health, sync
from rehearsal_sync.services.sync.runtime import sync_runtime

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""

    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    try:
        await sync_runtime.initialize()
    except Exception as e:
        logger.error("Failed to initialize sync runtime", error=str(e))
        await sync_runtime.close()
        raise

    yield

    logger.info("Application shutting down")
    await sync_runtime.close()


app = FastAPI(
    title="Rehearsal Sync",
    description="Availability reconciliation and calendar sync for rehearsal scheduling",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(sync.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
