"""
Catalog Router

Unauthenticated TMDb proxies: genres, people search and movie details.

Mounted after every other router. /movies/{movie_id} only accepts integer
ids, so literal paths such as /movies/excluded-ids can never be routed here
whatever the registration order.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..core.exceptions import ValidationError
from ..core.rate_limit import UPSTREAM_LIMIT, limiter
from ..services.tmdb_client import TMDbClient, get_tmdb_client

router = APIRouter(tags=["catalog"])

DETAILS_APPEND = "credits,external_ids,watch/providers"


@router.get("/genres")
@limiter.limit(UPSTREAM_LIMIT)
async def get_genres(
    request: Request,
    tmdb: TMDbClient = Depends(get_tmdb_client),
):
    return await tmdb.genres()


@router.get("/search/people")
@limiter.limit(UPSTREAM_LIMIT)
async def search_people(
    request: Request,
    query: Optional[str] = Query(None),
    tmdb: TMDbClient = Depends(get_tmdb_client),
):
    """Director / actor autocomplete."""
    if not query:
        raise ValidationError("Query parameter is required")
    return await tmdb.search_people(query)


@router.get("/movies/{movie_id:int}/details")
@limiter.limit(UPSTREAM_LIMIT)
async def get_movie_details(
    request: Request,
    movie_id: int,
    tmdb: TMDbClient = Depends(get_tmdb_client),
):
    """Plain TMDb details (used by the client to look up imdb_id)."""
    return await tmdb.movie_details(movie_id)


@router.get("/movies/{movie_id:int}")
@limiter.limit(UPSTREAM_LIMIT)
async def get_movie(
    request: Request,
    movie_id: int,
    tmdb: TMDbClient = Depends(get_tmdb_client),
):
    """Full details with credits, external ids and watch providers."""
    return await tmdb.movie_details(movie_id, append=DETAILS_APPEND)
