"""
DuoReel Backend

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .core.logging import setup_logging, get_logger
from .core.exceptions import register_exception_handlers
from .core.rate_limit import limiter
from .routers import (
    movies_router,
    debug_router,
    partner_router,
    notifications_router,
    profile_router,
    ratings_router,
    catalog_router,
)
from .services.kv_store import get_kv_store

# Initialize
settings = get_settings()
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(
        "app_startup",
        environment=settings.environment,
        debug=settings.debug,
        api_prefix=settings.api_prefix,
    )

    # Pick the KV backend once, up front
    get_kv_store()

    if not (settings.tmdb_api_key or settings.tmdb_read_access_token):
        logger.warning("tmdb_not_configured")
    if not settings.omdb_api_key:
        logger.warning("omdb_not_configured")

    yield

    logger.info("app_shutdown")


# Create FastAPI app
app = FastAPI(
    title="DuoReel Backend",
    description="Shared movie discovery and matching for partners",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["Content-Length"],
    max_age=600,
)

# Register exception handlers
register_exception_handlers(app)


api = APIRouter(prefix=settings.api_prefix)


@api.get("/health")
async def health():
    """Health check for load balancers."""
    return {"status": "ok"}


# Specific /movies/... routes first; the catalog router carries the
# /movies/{id} catch-all
api.include_router(profile_router)
api.include_router(partner_router)
api.include_router(notifications_router)
api.include_router(movies_router)
api.include_router(ratings_router)
api.include_router(debug_router)
api.include_router(catalog_router)

app.include_router(api)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "DuoReel Backend",
        "version": "1.0.0",
        "status": "running",
        "api_prefix": settings.api_prefix,
        "docs": "/docs" if settings.debug else "disabled",
    }
