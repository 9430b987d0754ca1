"""
Discovery Service

Server-side filtered discovery: keeps pulling TMDb discover pages and drops
anything in the user's exclusion set until a full page of results is
collected.

Loop bounds:
- stop at `target_count` accumulated results (20)
- stop after `max_attempts` upstream pages (5)
- stop as soon as TMDb returns a page without results

The attempt cap is the only self-limit. If the filters wipe out nearly
everything the caller gets a short page after 5 upstream calls, not an
error.
"""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field, ConfigDict

from ..config import get_settings
from ..core.logging import get_logger
from .exclusion import build_exclusion_set
from .kv_store import KVStore
from .tmdb_client import TMDbClient

logger = get_logger(__name__)

TMDB_MAX_PAGES = 500

# Runtime buckets (minutes): (gte, lte)
DURATION_BUCKETS = {
    "short": (None, 40),
    "medium": (41, 79),
    "feature": (80, 120),
    "epic": (121, None),
}

# Client sort keys used by the plain discover proxy
BROWSE_SORT = {
    "popularity": "popularity.desc",
    "rating": "vote_average.desc",
    "year-new": "primary_release_date.desc",
    "year-desc": "primary_release_date.desc",
    "year-old": "primary_release_date.asc",
    "year-asc": "primary_release_date.asc",
}


class DiscoveryFilters(BaseModel):
    """Query filters shared by both discover endpoints."""
    genre: Optional[str] = None
    min_rating: Optional[str] = Field(None, alias="minRating")
    director: Optional[str] = None
    actor: Optional[str] = None
    language: Optional[str] = None
    duration: Optional[str] = None
    year: Optional[str] = None
    decade: Optional[str] = None  # "2020-2029"
    sort_by: Optional[str] = Field(None, alias="sortBy")
    include_watched: bool = Field(False, alias="includeWatched")
    streaming_services: Optional[str] = Field(None, alias="streamingServices")  # pipe-separated ids

    model_config = ConfigDict(populate_by_name=True)


def _apply_duration(params: Dict[str, Any], duration: Optional[str]) -> None:
    bucket = DURATION_BUCKETS.get(duration or "")
    if not bucket:
        return
    gte, lte = bucket
    if gte is not None:
        params["with_runtime.gte"] = gte
    if lte is not None:
        params["with_runtime.lte"] = lte


def _apply_watch_providers(params: Dict[str, Any], providers: Optional[str]) -> None:
    if providers:
        params["with_watch_providers"] = providers
        params["watch_region"] = get_settings().watch_region


def build_discover_params(
    filters: DiscoveryFilters,
    page: int,
    with_crew: Optional[int] = None,
    with_cast: Optional[int] = None,
) -> Dict[str, Any]:
    """TMDb /discover/movie query for the filtered loop."""
    params: Dict[str, Any] = {
        "page": page,
        "include_adult": "false",
        "vote_count.gte": get_settings().discover_min_vote_count,
    }

    if filters.genre and filters.genre != "all":
        params["with_genres"] = filters.genre
    if filters.min_rating and filters.min_rating != "all":
        params["vote_average.gte"] = filters.min_rating

    if filters.year:
        params["primary_release_year"] = filters.year
    elif filters.decade:
        start, _, end = filters.decade.partition("-")
        if start and end:
            params["primary_release_date.gte"] = f"{start}-01-01"
            params["primary_release_date.lte"] = f"{end}-12-31"

    if filters.language:
        params["with_original_language"] = filters.language
    params["sort_by"] = filters.sort_by or "popularity.desc"
    if with_crew:
        params["with_crew"] = with_crew
    if with_cast:
        params["with_cast"] = with_cast

    _apply_watch_providers(params, filters.streaming_services)
    _apply_duration(params, filters.duration)
    return params


def build_browse_params(
    filters: DiscoveryFilters,
    page: str,
    with_crew: Optional[int] = None,
    with_cast: Optional[int] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    TMDb query for the unfiltered discover proxy.

    Released titles only (release date up to today) with a low vote floor.
    """
    params: Dict[str, Any] = {
        "page": page,
        "sort_by": BROWSE_SORT.get(filters.sort_by or "popularity", "popularity.desc"),
    }
    if filters.genre:
        params["with_genres"] = filters.genre
    if filters.year:
        params["primary_release_year"] = filters.year
    if filters.min_rating:
        params["vote_average.gte"] = filters.min_rating
    if with_crew:
        params["with_crew"] = with_crew
    if with_cast:
        params["with_cast"] = with_cast
    if filters.language:
        params["with_original_language"] = filters.language

    _apply_watch_providers(params, filters.streaming_services)
    _apply_duration(params, filters.duration)

    params["primary_release_date.lte"] = (today or date.today()).isoformat()
    params["vote_count.gte"] = 10
    return params


async def resolve_person(tmdb: TMDbClient, name: Optional[str], role: str) -> Optional[int]:
    """
    First TMDb person hit for a name.

    Failures only disable this one filter; discovery carries on without it.
    """
    if not name:
        return None
    try:
        return await tmdb.find_person_id(name)
    except Exception as e:
        logger.warning("person_lookup_failed", role=role, name=name, error=str(e))
        return None


class DiscoveryService:
    """Filtered discovery over TMDb with per-user exclusions."""

    def __init__(
        self,
        store: KVStore,
        tmdb: TMDbClient,
        delay_ms: Optional[int] = None,
        target_count: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ):
        settings = get_settings()
        self.store = store
        self.tmdb = tmdb
        self.delay_ms = settings.discover_page_delay_ms if delay_ms is None else delay_ms
        self.target_count = target_count or settings.discover_target_count
        self.max_attempts = max_attempts or settings.discover_max_attempts

    async def discover(self, filters: DiscoveryFilters, page: str = "1") -> Dict[str, Any]:
        """Plain discover proxy: one TMDb page, no exclusions."""
        with_crew = await resolve_person(self.tmdb, filters.director, "director")
        with_cast = await resolve_person(self.tmdb, filters.actor, "actor")
        params = build_browse_params(filters, page, with_crew, with_cast)
        return await self.tmdb.discover_movies(params)

    async def discover_filtered(
        self,
        user_id: str,
        filters: DiscoveryFilters,
        start_page: int = 1,
    ) -> Dict[str, Any]:
        """
        Collect up to `target_count` movies the user hasn't excluded.

        Returns:
            {"results", "page", "total_pages", "total_results"}
        """
        excluded: Set[int] = await build_exclusion_set(
            self.store, user_id, include_watched=filters.include_watched
        )

        with_crew = await resolve_person(self.tmdb, filters.director, "director")
        with_cast = await resolve_person(self.tmdb, filters.actor, "actor")

        collected: List[Dict[str, Any]] = []
        current_page = start_page
        attempts = 0
        total_pages = TMDB_MAX_PAGES

        while len(collected) < self.target_count and attempts < self.max_attempts:
            params = build_discover_params(filters, current_page, with_crew, with_cast)
            data = await self.tmdb.discover_movies(params)

            results = data.get("results")
            if not isinstance(results, list) or not results:
                break

            if isinstance(data.get("total_pages"), int):
                total_pages = min(data["total_pages"], TMDB_MAX_PAGES)

            valid = [m for m in results if m.get("id") not in excluded]
            logger.debug(
                "discover_page",
                uid=user_id,
                page=current_page,
                valid=len(valid),
                fetched=len(results),
            )

            collected.extend(valid)
            current_page += 1
            attempts += 1

            if len(collected) < self.target_count and attempts < self.max_attempts and self.delay_ms:
                await asyncio.sleep(self.delay_ms / 1000)

        final = collected[:self.target_count]
        logger.info(
            "discover_filtered",
            uid=user_id,
            excluded=len(excluded),
            returned=len(final),
            attempts=attempts,
        )

        return {
            "results": final,
            "page": start_page,
            "total_pages": total_pages,
            "total_results": len(final),
        }
