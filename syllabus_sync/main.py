# syllabus_sync/main.py
"""
Syllabus Sync API: syllabus text in, calendar-ready events out.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from syllabus_sync.config import settings
from syllabus_sync.infrastructure.observability.logging import get_logger, log_request, setup_logging
from syllabus_sync.middleware import (
    CORSMiddleware,
    RateLimitHeadersMiddleware,
    RequestContextMiddleware,
)
from syllabus_sync.routes import health, parse
from syllabus_sync.services.redis_client import fast_redis

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""

    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        rate_limit_backend=settings.RATE_LIMIT_BACKEND,
        llm_configured=settings.llm_configured(),
    )

    if not settings.llm_configured():
        logger.warning("LLM not configured, serving heuristic extraction only")

    if settings.RATE_LIMIT_BACKEND == "redis":
        logger.info("Initializing Redis connection")
        await fast_redis.initialize()

    logger.info("All services initialized successfully")

    yield

    logger.info("Application shutting down")

    if fast_redis.initialized:
        try:
            logger.info("Closing Redis connection")
            await fast_redis.close()
        except Exception as e:
            logger.error("Error closing Redis", error=str(e))

    logger.info("All services closed successfully")


app = FastAPI(
    title="Syllabus Sync",
    description="Extracts calendar events from academic syllabus text",
    version="0.1.0",
    lifespan=lifespan,
)

# Outermost first: log_requests, CORS, request context, rate limit headers
app.add_middleware(RateLimitHeadersMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allowed_origins=settings.ALLOWED_ORIGINS,
    protected_paths=["/parse"],
)

# Include routers
app.include_router(health.router)
app.include_router(parse.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
        client_ip=getattr(request.state, "ip_address", None),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
