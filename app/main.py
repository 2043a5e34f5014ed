"""
Main FastAPI application for the Climate Analysis API.

This module contains the main FastAPI application instance and root endpoint.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.routers.analysis import router as analysis_router
from app.routers.sessions import router as sessions_router
from app.utils.logging_config import setup_logging, get_logger
from app.utils.sessions import session_store

# Initialize logging
setup_logging()
logger = get_logger(__name__)

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"{settings.SERVER_NAME} - Application starting up")
    logger.info(f"Environment: {'Development' if settings.DEBUG else 'Production'}")
    logger.info(f"API Version: {settings.API_V1_STR}")
    logger.info(f"Session limit: {settings.MAX_SESSIONS} (in memory, not persisted)")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("=" * 60)
    logger.info(f"{settings.SERVER_NAME} - Application shutting down")
    logger.info(f"Discarding {len(session_store)} analysis sessions")
    logger.info("=" * 60)
    session_store.clear()


app = FastAPI(
    title=settings.SERVER_NAME,
    description=(
        "Aggregates daily maximum/minimum temperature records into annual, "
        "seasonal or monthly summaries for charting and CSV export."
    ),
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Analysis",
            "description": "Stateless analysis: send records (JSON or file) and configuration, get buckets, "
                           "a chart series or a CSV export back.",
        },
        {
            "name": "Analysis Sessions",
            "description": "Upload a file once, then change filter/period/metric; buckets are recomputed "
                           "on every change. Sessions live in memory only.",
        },
        {
            "name": "status",
            "description": "Health check and service information",
        },
    ],
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Set up CORS
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )


@app.get("/", tags=["status"])
@limiter.limit(f"{settings.RATE_LIMIT_REQUESTS}/{settings.RATE_LIMIT_WINDOW}seconds")
async def root(request: Request):
    """
    Root endpoint returning API information.

    Rate limit: {settings.RATE_LIMIT_REQUESTS} requests per {settings.RATE_LIMIT_WINDOW} seconds
    """
    return {
        "message": f"Welcome to {settings.SERVER_NAME}",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health", tags=["status"])
@limiter.limit("60/minute")  # More generous limit for health checks
async def health_check(request: Request):
    """
    Health check endpoint.

    Rate limit: 60 requests per minute
    """
    return {"status": "healthy", "sessions": len(session_store)}


# Include routers
app.include_router(analysis_router, prefix=settings.API_V1_STR)
app.include_router(sessions_router, prefix=settings.API_V1_STR)
