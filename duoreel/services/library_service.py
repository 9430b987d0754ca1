"""
Library Service

Per-user movie lists other than likes: watched, not interested, disliked,
plus read views over liked movies and matches.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.exceptions import NotFoundError, ValidationError
from ..core.logging import get_logger
from ..models.movie import WatchedMovie, coerce_movie_id
from ..models.user import UserProfile
from . import keys
from .kv_paginated import scan_values_by_prefix
from .kv_store import KVStore

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _iso(timestamp: Any) -> Optional[str]:
    if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool) or not timestamp:
        return None
    dt = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class LibraryService:
    """Watched / not-interested / disliked lists and liked views."""

    def __init__(self, store: KVStore):
        self.store = store

    # =========================================================================
    # Watched
    # =========================================================================

    async def add_watched(self, user_id: str, movie: Optional[Dict[str, Any]], rating: Any = None) -> WatchedMovie:
        if not movie or not movie.get("id"):
            raise ValidationError("Movie ID is required")

        movie_id = coerce_movie_id(movie.get("id"))
        if movie_id is None:
            logger.error("watched_invalid_id", uid=user_id, raw_id=repr(movie.get("id")))
            raise ValidationError("Movie ID must be a valid number")

        entry = WatchedMovie.from_client(movie, movie_id, rating, _now_ms())
        await self.store.set(keys.watched(user_id, movie_id), entry.model_dump())

        logger.info("watched_added", uid=user_id, movie_id=movie_id, title=entry.title)
        return entry

    async def list_watched(self, user_id: str) -> List[Dict[str, Any]]:
        return await scan_values_by_prefix(self.store, keys.watched_prefix(user_id))

    async def remove_watched(self, user_id: str, movie_id: str) -> None:
        await self.store.delete(keys.watched(user_id, movie_id))

    async def inspect_watched(self, user_id: str, movie_id: str) -> Dict[str, Any]:
        """Diagnostics for a single watched entry (direct key vs prefix scan)."""
        direct = await self.store.get(keys.watched(user_id, movie_id))
        all_watched = await self.list_watched(user_id)
        matching = [
            item for item in all_watched
            if str(item.get("id", item.get("tmdbId"))) == str(movie_id)
        ]

        return {
            "userId": user_id,
            "queriedMovieId": movie_id,
            "directKeyFound": bool(direct),
            "directKeyIdType": type(direct.get("id")).__name__ if direct else None,
            "directKeyId": direct.get("id") if direct else None,
            "totalWatchedCount": len(all_watched),
            "matchingItemCount": len(matching),
            "sampleWatched": [
                {
                    "id": item.get("id"),
                    "idType": type(item.get("id")).__name__,
                    "tmdbId": item.get("tmdbId"),
                    "title": item.get("title"),
                }
                for item in all_watched[:5]
            ],
        }

    # =========================================================================
    # Not interested / disliked
    # =========================================================================

    async def mark_not_interested(self, user_id: str, movie_id: Any) -> None:
        await self.store.set(
            keys.not_interested(user_id, movie_id),
            {"movieId": movie_id, "timestamp": _now_ms()},
        )

    async def remove_not_interested(self, user_id: str, movie_id: str) -> None:
        await self.store.delete(keys.not_interested(user_id, movie_id))

    async def dislike(self, user_id: str, movie_id: Any) -> None:
        await self.store.set(
            keys.disliked(user_id, movie_id),
            {"movieId": movie_id, "timestamp": _now_ms()},
        )

    async def list_disliked_ids(self, user_id: str) -> List[Any]:
        records = await scan_values_by_prefix(self.store, keys.disliked_prefix(user_id))
        return [r.get("movieId") for r in records]

    # =========================================================================
    # Liked / matches
    # =========================================================================

    async def _with_imdb_ratings(self, movies: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        cached = await self.store.mget([keys.imdb_rating(m.get("id")) for m in movies])
        return [
            {**movie, "imdbRating": (entry or {}).get("rating") or None}
            for movie, entry in zip(movies, cached)
        ]

    async def list_liked(self, user_id: str) -> List[Dict[str, Any]]:
        liked = await scan_values_by_prefix(self.store, keys.liked_prefix(user_id))
        return await self._with_imdb_ratings(liked)

    async def list_partner_liked(self, user_id: str) -> Dict[str, Any]:
        profile = UserProfile.from_record(user_id, await self.store.get(keys.user(user_id)))
        if not profile.has_partner:
            raise NotFoundError("No partner connected")

        liked = await scan_values_by_prefix(self.store, keys.liked_prefix(profile.partner_id))
        partner = UserProfile.from_record(profile.partner_id, await self.store.get(keys.user(profile.partner_id)))

        return {
            "movies": await self._with_imdb_ratings(liked),
            "partnerName": partner.display_name("Your Partner"),
        }

    async def list_matches(self, user_id: str) -> List[Dict[str, Any]]:
        return await scan_values_by_prefix(self.store, keys.match_prefix(user_id))

    # =========================================================================
    # Interactions
    # =========================================================================

    async def get_interactions(self, user_id: str, movie_ids: List[Any]) -> List[Dict[str, Any]]:
        """Watched / not-interested flags for a batch of movie ids."""
        watched = await self.store.mget([keys.watched(user_id, m) for m in movie_ids])
        not_interested = await self.store.mget([keys.not_interested(user_id, m) for m in movie_ids])

        return [
            {
                "movieId": movie_id,
                "isWatched": bool(w),
                "isNotInterested": bool(n),
                "watchedAt": (w or {}).get("timestamp") or None,
            }
            for movie_id, w, n in zip(movie_ids, watched, not_interested)
        ]

    async def get_all_interactions(self, user_id: str) -> List[Dict[str, Any]]:
        """Every watched and not-interested entry, merged by TMDb id."""
        by_id: Dict[int, Dict[str, Any]] = {}

        def entry_for(tmdb_id: int) -> Dict[str, Any]:
            if tmdb_id not in by_id:
                by_id[tmdb_id] = {
                    "tmdbId": tmdb_id,
                    "isWatched": False,
                    "isNotInterested": False,
                    "watchedAt": None,
                    "notInterestedAt": None,
                }
            return by_id[tmdb_id]

        watched = await scan_values_by_prefix(self.store, keys.watched_prefix(user_id))
        for item in watched:
            raw_id = item.get("id", item.get("tmdbId"))
            tmdb_id = coerce_movie_id(raw_id)
            if tmdb_id is None:
                logger.error("interactions_invalid_watched_id", uid=user_id, raw_id=repr(raw_id))
                continue
            entry = entry_for(tmdb_id)
            entry["isWatched"] = True
            entry["watchedAt"] = _iso(item.get("timestamp"))

        not_interested = await scan_values_by_prefix(self.store, keys.not_interested_prefix(user_id))
        for item in not_interested:
            tmdb_id = coerce_movie_id(item.get("movieId", item.get("id")))
            if tmdb_id is None:
                continue
            entry = entry_for(tmdb_id)
            entry["isNotInterested"] = True
            entry["notInterestedAt"] = _iso(item.get("timestamp"))

        logger.info(
            "interactions_loaded",
            uid=user_id,
            watched=len(watched),
            not_interested=len(not_interested),
            total=len(by_id),
        )
        return list(by_id.values())
