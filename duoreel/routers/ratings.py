"""
Ratings Router

IMDb ratings via OMDb, cached in the KV table.

The lookup and cache endpoints are public (the client enriches cards before
sign-in); only the bulk refresh of liked movies is user-scoped.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import ValidationError
from ..core.logging import get_logger
from ..core.security import get_current_user
from ..services.kv_store import KVStore, get_kv_store
from ..services.quota_manager import QuotaManager
from ..services.rating_service import RatingService
from ..services.tmdb_client import TMDbClient, get_tmdb_client

logger = get_logger(__name__)

router = APIRouter(tags=["ratings"])


class StoreRatingRequest(BaseModel):
    """Client-fetched rating to cache under imdb:{tmdbId}."""
    tmdb_id: Any = Field(None, alias="tmdbId")
    imdb_id: Optional[str] = Field(None, alias="imdbId")
    rating: Optional[Any] = None
    votes: Optional[Any] = None

    model_config = ConfigDict(populate_by_name=True)


class FetchRatingRequest(BaseModel):
    """Request body for fetch-and-store."""
    tmdb_id: Any = Field(None, alias="tmdbId")
    imdb_id: Optional[str] = Field(None, alias="imdbId")
    release_date: Optional[str] = Field(None, alias="releaseDate")

    model_config = ConfigDict(populate_by_name=True)


def get_rating_service(
    store: KVStore = Depends(get_kv_store),
    tmdb: TMDbClient = Depends(get_tmdb_client),
) -> RatingService:
    return RatingService(store, tmdb)


@router.get("/movies/{movie_id:int}/imdb")
async def get_movie_imdb_rating(
    movie_id: int,
    ratings: RatingService = Depends(get_rating_service),
):
    return await ratings.rating_for_movie(str(movie_id))


@router.get("/omdb/rating/{imdb_id}")
async def get_omdb_rating(
    imdb_id: str,
    ratings: RatingService = Depends(get_rating_service),
):
    return await ratings.rating_by_imdb_id(imdb_id)


@router.get("/omdb/usage")
async def get_omdb_usage(store: KVStore = Depends(get_kv_store)):
    """Today's OMDb quota status."""
    return await QuotaManager(store).get_status()


@router.get("/imdb-ratings/bulk")
async def get_bulk_ratings(
    tmdb_ids: Optional[str] = Query(None, alias="tmdbIds", description="Comma-separated TMDb ids"),
    ratings: RatingService = Depends(get_rating_service),
):
    if not tmdb_ids:
        raise ValidationError("tmdbIds parameter required")

    ids = [part.strip() for part in tmdb_ids.split(",") if part.strip()]
    if not ids:
        return []
    return await ratings.bulk_cached(ids)


@router.post("/imdb-ratings/store")
async def store_rating(
    body: StoreRatingRequest,
    ratings: RatingService = Depends(get_rating_service),
):
    return await ratings.store_rating(body.tmdb_id, body.imdb_id, body.rating, body.votes)


@router.post("/imdb-ratings/fetch-and-store")
async def fetch_and_store_rating(
    body: FetchRatingRequest,
    ratings: RatingService = Depends(get_rating_service),
):
    """
    Cached rating if still fresh, otherwise one OMDb call.

    429 while a recent failure's retry window is open or once today's OMDb
    quota is spent.
    """
    return await ratings.fetch_and_store(body.tmdb_id, body.imdb_id, body.release_date)


@router.post("/movies/update-imdb-ratings")
async def update_liked_ratings(
    current_user: dict = Depends(get_current_user),
    ratings: RatingService = Depends(get_rating_service),
):
    results = await ratings.refresh_liked(current_user["uid"])
    return {"success": True, "results": results}
