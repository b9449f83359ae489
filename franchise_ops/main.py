"""
FastAPI application with database pool and Redis lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from franchise_ops.config import settings
from franchise_ops.db.pool import db_pool
from franchise_ops.features.action_engine.api.router import router as action_engine_router
from franchise_ops.features.automations.api.router import router as automations_router
from franchise_ops.infrastructure.locks.redis_client import redis_client
from franchise_ops.infrastructure.observability.logging import get_logger, setup_logging
from franchise_ops.routes import health

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    # The database is required; startup fails without it
    await db_pool.initialize()

    # Redis only backs run locks, which degrade to unlocked without it
    try:
        await redis_client.initialize()
    except RuntimeError as e:
        logger.warning("Redis unavailable at startup, run locks degraded", error=str(e))

    logger.info("Application started")

    yield

    logger.info("Application shutting down")

    shutdown_errors = []
    try:
        await redis_client.close()
    except Exception as e:
        logger.error("Error closing Redis", error=str(e))
        shutdown_errors.append(f"Redis: {e}")

    try:
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Franchise Operations",
    description="Action engine and lead automations for franchise locations",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(action_engine_router)
app.include_router(automations_router)


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
