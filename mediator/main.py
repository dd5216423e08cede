"""Wiki Mediator - FastAPI Application."""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time

import uvicorn

from mediator.config import settings
from mediator.api.routes import router, mediator

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration on startup and drop cached pages on shutdown."""
    logger.info("Starting Wiki Mediator")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(
        f"Cache: capacity={mediator.cache.capacity}, timeout={mediator.cache.timeout}s; "
        f"max concurrent requests: {settings.max_concurrent_requests or 'unbounded'}"
    )

    if "*" in settings.cors_origins_list and settings.environment == "production":
        logger.critical("FATAL: CORS_ALLOWED_ORIGINS is set to '*' in production!")
        raise RuntimeError(
            "Wildcard CORS ('*') is not allowed in production. "
            "Set CORS_ALLOWED_ORIGINS to specific domains."
        )
    yield
    stats = mediator.cache.stats()
    logger.info(
        f"Shutting down Wiki Mediator (cache hits={stats.hits}, misses={stats.misses}, "
        f"evictions={stats.evictions}, expirations={stats.expirations})"
    )
    mediator.cache.clear()


app = FastAPI(
    title="Wiki Mediator",
    description="Caching mediator in front of the Wikipedia search and page APIs",
    version="1.0.0",
    lifespan=lifespan
)

# Credentials are not allowed with wildcard origins
_cors_origins = settings.cors_origins_list
_allow_credentials = "*" not in _cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=_allow_credentials,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing information."""
    start_time = time.time()
    logger.info(f"Request: {request.method} {request.url.path}")

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(f"Response: {response.status_code} ({duration:.2f}s)")
    return response


app.include_router(router, prefix="/api/v1")


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "wiki-mediator",
        "version": "1.0.0",
        "environment": settings.environment,
        "cache_size": len(mediator.cache),
    }


def run() -> None:
    """Console entry point."""
    uvicorn.run("mediator.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
