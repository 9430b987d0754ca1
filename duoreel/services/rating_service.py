"""
Rating Service

IMDb ratings fetched through OMDb and cached in the KV table.

Cache families:
- imdb_rating:{tmdbId}        {rating, timestamp}            30 days
- imdb_rating_by_id:{imdbId}  {imdbRating, imdbVotes, timestamp}  30 days
- imdb:{tmdbId}               {imdbId, tmdbId, rating, votes, fetchedAt}
                              7 days for releases under ~6 months old,
                              30 days otherwise
- imdb:error:{tmdbId}         negative cache, retry after 24h

Only fetch_and_store counts against the daily OMDb quota and writes the
negative cache; it is the path the client uses for bulk enrichment.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ..config import get_settings
from ..core.exceptions import DuoReelException, NotFoundError, RateLimitedError, UpstreamError, ValidationError
from ..core.logging import get_logger
from . import keys
from .kv_paginated import scan_values_by_prefix
from .kv_store import KVStore
from .quota_manager import QuotaManager
from .tmdb_client import TMDbClient

logger = get_logger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
WEEK_MS = 7 * DAY_MS
MONTH_MS = 30 * DAY_MS
RECENT_RELEASE_MS = 6 * MONTH_MS
ERROR_RETRY_MS = DAY_MS


def _now_ms() -> int:
    return int(time.time() * 1000)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_ms(value: Any) -> Optional[int]:
    """ISO-8601 string (date or datetime) to epoch ms; None if unparsable."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def _has_rating(data: Dict[str, Any]) -> bool:
    rating = data.get("imdbRating")
    return bool(rating) and rating != "N/A"


def is_cache_fresh(fetched_at: Any, release_date: Any, now_ms: Optional[int] = None) -> bool:
    """Recent releases refresh weekly, everything else monthly."""
    fetched_ms = _parse_ms(fetched_at)
    if fetched_ms is None:
        return False
    now_ms = now_ms if now_ms is not None else _now_ms()

    released_ms = _parse_ms(release_date)
    is_recent = released_ms is not None and now_ms - released_ms < RECENT_RELEASE_MS
    return now_ms - fetched_ms < (WEEK_MS if is_recent else MONTH_MS)


class RatingService:
    """IMDb rating lookups with KV caching."""

    def __init__(
        self,
        store: KVStore,
        tmdb: TMDbClient,
        quota: Optional[QuotaManager] = None,
        refresh_delay_ms: Optional[int] = None,
    ):
        settings = get_settings()
        self.store = store
        self.tmdb = tmdb
        self.quota = quota or QuotaManager(store)
        self.omdb_api_key = settings.omdb_api_key
        self.omdb_base_url = settings.omdb_base_url
        self.timeout = settings.upstream_timeout_seconds
        self.refresh_delay_ms = (
            settings.rating_refresh_delay_ms if refresh_delay_ms is None else refresh_delay_ms
        )

    def _require_omdb(self):
        if not self.omdb_api_key:
            logger.error("omdb_not_configured")
            raise DuoReelException("OMDb API key not configured")

    async def omdb_lookup(self, imdb_id: str) -> Dict[str, Any]:
        """
        Raw OMDb lookup by IMDb id.

        Raises:
            UpstreamError on transport failure, non-2xx, or a non-JSON body
            (OMDb answers some errors with HTML)
        """
        self._require_omdb()
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    self.omdb_base_url,
                    params={"i": imdb_id, "apikey": self.omdb_api_key},
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            logger.error("omdb_request_failed", imdb_id=imdb_id, error=str(e))
            raise UpstreamError("omdb", "OMDb API request failed")

        if response.status_code != 200:
            logger.error("omdb_bad_status", imdb_id=imdb_id, status=response.status_code)
            raise UpstreamError("omdb", "OMDb API request failed")

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            logger.error("omdb_non_json", imdb_id=imdb_id, body=response.text[:200])
            raise UpstreamError("omdb", "Invalid response from OMDb API")

        try:
            return response.json()
        except ValueError:
            logger.error("omdb_non_json", imdb_id=imdb_id, body=response.text[:200])
            raise UpstreamError("omdb", "Invalid response from OMDb API")

    async def _rated_lookup(self, imdb_id: str) -> Dict[str, Any]:
        data = await self.omdb_lookup(imdb_id)
        if data.get("Response") == "False":
            logger.info("omdb_no_result", imdb_id=imdb_id, error=data.get("Error"))
            raise NotFoundError(data.get("Error") or "IMDb rating not available")
        if not _has_rating(data):
            raise NotFoundError("IMDb rating not available")
        return data

    # =========================================================================
    # Lookups
    # =========================================================================

    async def rating_for_movie(self, tmdb_id: str) -> Dict[str, Any]:
        """IMDb rating for a TMDb movie id (TMDb details -> imdb_id -> OMDb)."""
        self._require_omdb()

        cached = await self.store.get(keys.imdb_rating(tmdb_id))
        if cached and cached.get("timestamp") and _now_ms() - cached["timestamp"] < MONTH_MS:
            return {"imdbRating": cached.get("rating"), "cached": True}

        details = await self.tmdb.movie_details(tmdb_id)
        imdb_id = details.get("imdb_id")
        if not imdb_id:
            raise NotFoundError("IMDb ID not found for this movie")

        data = await self._rated_lookup(imdb_id)
        await self.store.set(keys.imdb_rating(tmdb_id), {
            "rating": data["imdbRating"],
            "timestamp": _now_ms(),
        })
        return {"imdbRating": data["imdbRating"], "cached": False}

    async def rating_by_imdb_id(self, imdb_id: str) -> Dict[str, Any]:
        self._require_omdb()

        cached = await self.store.get(keys.imdb_rating_by_id(imdb_id))
        if cached and cached.get("timestamp") and _now_ms() - cached["timestamp"] < MONTH_MS:
            return {
                "imdbRating": cached.get("imdbRating"),
                "imdbVotes": cached.get("imdbVotes"),
                "cached": True,
            }

        data = await self._rated_lookup(imdb_id)
        votes = data.get("imdbVotes") or "N/A"
        await self.store.set(keys.imdb_rating_by_id(imdb_id), {
            "imdbRating": data["imdbRating"],
            "imdbVotes": votes,
            "timestamp": _now_ms(),
        })
        return {"imdbRating": data["imdbRating"], "imdbVotes": votes, "cached": False}

    async def bulk_cached(self, tmdb_ids: List[str]) -> List[Dict[str, Any]]:
        """Cached imdb:{tmdbId} entries; unknown or unreadable ids are skipped."""
        ratings = []
        for tmdb_id in tmdb_ids:
            try:
                cached = await self.store.get(keys.imdb(tmdb_id))
            except DuoReelException as e:
                logger.warning("rating_bulk_key_failed", tmdb_id=tmdb_id, error=e.message)
                continue
            if cached:
                ratings.append({"tmdbId": int(tmdb_id) if tmdb_id.isdigit() else tmdb_id, **cached})

        logger.info("rating_bulk_fetch", found=len(ratings), requested=len(tmdb_ids))
        return ratings

    async def store_rating(self, tmdb_id: Any, imdb_id: Any, rating: Any, votes: Any) -> Dict[str, Any]:
        if not tmdb_id or not imdb_id:
            raise ValidationError("tmdbId and imdbId are required")

        value = {
            "imdbId": imdb_id,
            "tmdbId": tmdb_id,
            "rating": rating,
            "votes": votes,
            "fetchedAt": _iso_now(),
        }
        await self.store.set(keys.imdb(tmdb_id), value)
        return value

    # =========================================================================
    # Fetch and store
    # =========================================================================

    async def _remember_failure(self, tmdb_id: Any, error_message: Optional[str] = None):
        record: Dict[str, Any] = {
            "error": True,
            "lastAttempt": _iso_now(),
            "retryAfter": _now_ms() + ERROR_RETRY_MS,
        }
        if error_message:
            record["errorMessage"] = error_message
        await self.store.set(keys.imdb_error(tmdb_id), record)

    async def fetch_and_store(
        self,
        tmdb_id: Any,
        imdb_id: Any,
        release_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Fresh cache hit, or one quota-counted OMDb call whose result is cached.

        Raises:
            RateLimitedError inside the 24h failure window or past the daily quota
            NotFoundError when OMDb has no rating
        """
        if not tmdb_id or not imdb_id:
            raise ValidationError("tmdbId and imdbId are required")
        self._require_omdb()

        failure = await self.store.get(keys.imdb_error(tmdb_id))
        retry_after = (failure or {}).get("retryAfter")
        if isinstance(retry_after, (int, float)) and _now_ms() < retry_after:
            logger.info("rating_retry_window", tmdb_id=tmdb_id, retry_after=retry_after)
            raise RateLimitedError("Recent error, retry later", retryAfter=retry_after)

        cached = await self.store.get(keys.imdb(tmdb_id))
        if cached and is_cache_fresh(cached.get("fetchedAt"), release_date):
            return {**cached, "fromCache": True}

        await self.quota.require_quota()

        try:
            data = await self.omdb_lookup(imdb_id)
        except UpstreamError:
            await self.quota.record_usage()
            await self._remember_failure(tmdb_id)
            raise
        await self.quota.record_usage()

        if data.get("Response") == "False":
            logger.info("omdb_no_result", imdb_id=imdb_id, error=data.get("Error"))
            await self._remember_failure(tmdb_id, data.get("Error"))
            raise NotFoundError(data.get("Error") or "IMDb rating not available")

        if not _has_rating(data):
            raise NotFoundError("IMDb rating not available")

        value = {
            "imdbId": imdb_id,
            "tmdbId": tmdb_id,
            "rating": data["imdbRating"],
            "votes": data.get("imdbVotes") or "N/A",
            "fetchedAt": _iso_now(),
        }
        await self.store.set(keys.imdb(tmdb_id), value)
        await self.store.delete(keys.imdb_error(tmdb_id))

        logger.info("rating_stored", tmdb_id=tmdb_id, rating=value["rating"])
        return {**value, "fromCache": False}

    # =========================================================================
    # Bulk refresh
    # =========================================================================

    async def refresh_liked(self, user_id: str) -> Dict[str, int]:
        """
        Refresh imdb_rating:{id} for every movie the user liked.

        Sequential with a fixed pause between OMDb calls; failures are
        counted, never raised.
        """
        self._require_omdb()
        liked = await scan_values_by_prefix(self.store, keys.liked_prefix(user_id))
        results = {"total": len(liked), "updated": 0, "failed": 0}

        for movie in liked:
            movie_id = movie.get("id")
            try:
                details = await self.tmdb.movie_details(movie_id)
                imdb_id = details.get("imdb_id")
                if not imdb_id:
                    results["failed"] += 1
                    continue

                data = await self.omdb_lookup(imdb_id)
                if data.get("Response") == "True" and _has_rating(data):
                    await self.store.set(keys.imdb_rating(movie_id), {
                        "rating": data["imdbRating"],
                        "timestamp": _now_ms(),
                    })
                    results["updated"] += 1
                else:
                    results["failed"] += 1

                if self.refresh_delay_ms:
                    await asyncio.sleep(self.refresh_delay_ms / 1000)
            except DuoReelException as e:
                logger.error("rating_refresh_failed", uid=user_id, movie_id=movie_id, error=e.message)
                results["failed"] += 1

        logger.info("rating_refresh_done", uid=user_id, **results)
        return results
