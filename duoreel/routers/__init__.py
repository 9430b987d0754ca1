"""API Routers."""

from .movies import router as movies_router, debug_router
from .partner import router as partner_router
from .notifications import router as notifications_router
from .profile import router as profile_router
from .ratings import router as ratings_router
from .catalog import router as catalog_router

__all__ = [
    "movies_router",
    "debug_router",
    "partner_router",
    "notifications_router",
    "profile_router",
    "ratings_router",
    "catalog_router",
]
