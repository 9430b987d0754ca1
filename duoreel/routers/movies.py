"""
Movies Router

Likes, matches, watched / not-interested lists, CSV imports and discovery.

Every route here is user-scoped and requires a Supabase bearer token.
The catch-all /movies/{id} details route lives in the catalog router, which
is mounted after this one.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from ..config import get_settings
from ..core.exceptions import NotFoundError, ValidationError
from ..core.logging import get_logger
from ..core.rate_limit import UPSTREAM_LIMIT, limiter
from ..core.security import get_current_user
from ..services.discovery_service import DiscoveryFilters, DiscoveryService
from ..services.exclusion import build_exclusion_set
from ..services.import_service import ImportService
from ..services.kv_store import KVStore, get_kv_store
from ..services.library_service import LibraryService
from ..services.match_service import MatchService
from ..services.tmdb_client import TMDbClient, get_tmdb_client

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/movies", tags=["movies"])


class LikeRequest(BaseModel):
    """Request body for liking a movie (opaque TMDb document)."""
    movie: Dict[str, Any]


class MovieIdRequest(BaseModel):
    """Request body carrying a single movie id."""
    movie_id: Any = Field(..., alias="movieId")

    model_config = ConfigDict(populate_by_name=True)


class WatchedRequest(BaseModel):
    """Request body for marking a movie watched."""
    movie: Optional[Dict[str, Any]] = None
    rating: Optional[Any] = None


class ImportLikedRequest(BaseModel):
    """Rows shaped {name, year} parsed from a CSV export."""
    movies: List[Dict[str, Any]]


class ImportWatchedRequest(BaseModel):
    """Rows shaped {title, year} parsed from a CSV export."""
    movies: List[Dict[str, Any]]


class InteractionsRequest(BaseModel):
    """Bulk interaction lookup."""
    movie_ids: Any = Field(None, alias="movieIds")

    model_config = ConfigDict(populate_by_name=True)


def discovery_filters(
    genre: Optional[str] = Query(None),
    min_rating: Optional[str] = Query(None, alias="minRating"),
    director: Optional[str] = Query(None),
    actor: Optional[str] = Query(None),
    language: Optional[str] = Query(None),
    duration: Optional[str] = Query(None, description="short | medium | feature | epic | all"),
    year: Optional[str] = Query(None),
    decade: Optional[str] = Query(None, description="YYYY-YYYY"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    include_watched: Optional[str] = Query(None, alias="includeWatched"),
    streaming_services: Optional[str] = Query(None, alias="streamingServices"),
) -> DiscoveryFilters:
    """Collect discover query parameters into DiscoveryFilters."""
    return DiscoveryFilters(
        genre=genre,
        min_rating=min_rating,
        director=director,
        actor=actor,
        language=language,
        duration=duration,
        year=year,
        decade=decade,
        sort_by=sort_by,
        include_watched=include_watched == "true",
        streaming_services=streaming_services,
    )


# =============================================================================
# Likes and matches
# =============================================================================

@router.post("/like")
async def like_movie(
    body: LikeRequest,
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    """
    Like a movie and check for a match with the partner.

    Both partners get a movie_match notification on a match, plus a
    match_milestone notification at exactly 5, 10 and 25 matches.
    """
    result = await MatchService(store).record_like(current_user["uid"], body.movie)
    return {"success": True, **result}


@router.delete("/like/{movie_id}")
async def unlike_movie(
    movie_id: str,
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    await MatchService(store).remove_like(current_user["uid"], movie_id)
    return {"success": True}


@router.post("/dislike")
async def dislike_movie(
    body: MovieIdRequest,
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    await LibraryService(store).dislike(current_user["uid"], body.movie_id)
    return {"success": True}


@router.get("/disliked")
async def get_disliked(
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    movie_ids = await LibraryService(store).list_disliked_ids(current_user["uid"])
    return {"movieIds": movie_ids}


@router.get("/liked")
async def get_liked(
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    """Every liked movie, with the cached IMDb rating attached."""
    movies = await LibraryService(store).list_liked(current_user["uid"])
    return {"movies": movies}


@router.get("/partner-liked")
async def get_partner_liked(
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    return await LibraryService(store).list_partner_liked(current_user["uid"])


@router.get("/matches")
async def get_matches(
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    movies = await LibraryService(store).list_matches(current_user["uid"])
    return {"movies": movies}


# =============================================================================
# Imports
# =============================================================================

@router.post("/import")
async def import_liked(
    body: ImportLikedRequest,
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
    tmdb: TMDbClient = Depends(get_tmdb_client),
):
    """Import a watchlist CSV as likes (first TMDb search hit per row)."""
    results = await ImportService(store, tmdb).import_liked(current_user["uid"], body.movies)
    return {"success": True, "results": results}


@router.post("/import-watched")
async def import_watched(
    body: ImportWatchedRequest,
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
    tmdb: TMDbClient = Depends(get_tmdb_client),
):
    results = await ImportService(store, tmdb).import_watched(current_user["uid"], body.movies)
    return {"success": True, "results": results}


# =============================================================================
# Watched / not interested
# =============================================================================

@router.post("/watched")
async def add_watched(
    body: WatchedRequest,
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    """
    Mark a movie watched.

    The id is stored as a number even when the client sends "1198994";
    string ids would slip through the numeric exclusion filters.
    """
    await LibraryService(store).add_watched(current_user["uid"], body.movie, body.rating)
    return {"success": True}


@router.get("/watched")
async def get_watched(
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    movies = await LibraryService(store).list_watched(current_user["uid"])
    return {"movies": movies}


@router.delete("/watched/{movie_id}")
async def remove_watched(
    movie_id: str,
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    await LibraryService(store).remove_watched(current_user["uid"], movie_id)
    return {"success": True}


@router.post("/not-interested")
async def mark_not_interested(
    body: MovieIdRequest,
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    await LibraryService(store).mark_not_interested(current_user["uid"], body.movie_id)
    return {"success": True}


@router.delete("/not-interested/{movie_id}")
async def remove_not_interested(
    movie_id: str,
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    await LibraryService(store).remove_not_interested(current_user["uid"], movie_id)
    return {"success": True}


@router.get("/excluded-ids")
async def get_excluded_ids(
    include_watched: Optional[str] = Query(None, alias="includeWatched"),
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    """Ids hidden from discovery: not-interested, plus watched by default."""
    excluded = await build_exclusion_set(
        store, current_user["uid"], include_watched=include_watched == "true"
    )
    excluded_ids = sorted(excluded)
    return {"excludedIds": excluded_ids, "count": len(excluded_ids)}


@router.post("/interactions")
async def get_interactions(
    body: InteractionsRequest,
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    if not isinstance(body.movie_ids, list):
        raise ValidationError("movieIds must be an array")

    interactions = await LibraryService(store).get_interactions(current_user["uid"], body.movie_ids)
    return {"interactions": interactions}


@router.get("/interactions/all")
async def get_all_interactions(
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    interactions = await LibraryService(store).get_all_interactions(current_user["uid"])
    return {"interactions": interactions}


# =============================================================================
# Discovery
# =============================================================================

@router.get("/discover")
@limiter.limit(UPSTREAM_LIMIT)
async def discover(
    request: Request,
    page: str = Query("1"),
    filters: DiscoveryFilters = Depends(discovery_filters),
    store: KVStore = Depends(get_kv_store),
    tmdb: TMDbClient = Depends(get_tmdb_client),
):
    """Proxy one TMDb discover page (no per-user exclusions)."""
    return await DiscoveryService(store, tmdb).discover(filters, page)


@router.get("/discover-filtered")
@limiter.limit(UPSTREAM_LIMIT)
async def discover_filtered(
    request: Request,
    page: int = Query(1, ge=1),
    filters: DiscoveryFilters = Depends(discovery_filters),
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
    tmdb: TMDbClient = Depends(get_tmdb_client),
):
    """
    Up to 20 movies the user hasn't watched or dismissed.

    Pulls at most 5 TMDb pages starting at `page`; a short result means the
    filters left too little, not an error.
    """
    return await DiscoveryService(store, tmdb).discover_filtered(
        current_user["uid"], filters, start_page=page
    )


@router.get("/search")
@limiter.limit(UPSTREAM_LIMIT)
async def search_movies(
    request: Request,
    q: Optional[str] = Query(None, description="Title query"),
    tmdb: TMDbClient = Depends(get_tmdb_client),
):
    if not q:
        raise ValidationError("Query parameter required")
    return await tmdb.search_movies_raw(q)


# =============================================================================
# Diagnostics
# =============================================================================

debug_router = APIRouter(prefix="/debug", tags=["debug"])


@debug_router.get("/watched/{movie_id}")
async def debug_watched(
    movie_id: str,
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    """Inspect how one watched entry is stored (debug builds only)."""
    if not settings.debug:
        raise NotFoundError()
    return await LibraryService(store).inspect_watched(current_user["uid"], movie_id)
