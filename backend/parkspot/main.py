"""
ParkSpot Reservation API - Main Application Entry Point

A parking-spot reservation service demonstrating:
- Concurrency-safe spot booking with conditional (compare-and-set) updates
- Live per-location updates over WebSockets (in-memory or Redis pub/sub)
- Redis caching of the availability listing with invalidation on every change
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from parkspot.core.config import get_settings
from parkspot.core.errors import ReservationError
from parkspot.core.logging import setup_logging, get_logger
from parkspot.core.metrics import metrics_endpoint
from parkspot.api.router import api_router
from parkspot.api.middleware import RequestLoggingMiddleware
from parkspot.services.cache_service import get_redis, close_redis, get_cache_stats
from parkspot.services.channel_factory import get_live_updates, close_live_updates

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    channel = get_live_updates()
    logger.info("live_updates_ready", backend=channel.backend)

    yield

    await close_live_updates()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Parking spot reservation API with concurrency-safe bookings and live lot updates",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    """Scoped to the one action that failed; tells the client whether to re-read first."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.kind, "refresh": exc.refresh},
        headers=exc.headers,
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
        "live_updates": get_live_updates().backend,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
