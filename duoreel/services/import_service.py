"""
Bulk Import Service

Imports CSV exports (Letterboxd / IMDb, parsed client-side) as liked or
watched movies. Each row is resolved through a TMDb title search and the
first hit wins.

Rows are processed through map_bounded so a large file never has more than
`import_concurrency` TMDb searches in flight, and one bad row never aborts
the batch.
"""

import time
from typing import Any, Dict, List, Optional

from ..config import get_settings
from ..core.logging import get_logger
from ..models.movie import coerce_movie_id
from ..models.user import UserProfile
from . import keys
from .concurrency import map_bounded
from .kv_store import KVStore
from .tmdb_client import TMDbClient

logger = get_logger(__name__)


class TitleNotFound(Exception):
    """TMDb search returned no results for an imported row."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Movie not found: {label}")


class ImportService:
    """Liked / watched CSV imports."""

    def __init__(self, store: KVStore, tmdb: TMDbClient, concurrency: Optional[int] = None):
        self.store = store
        self.tmdb = tmdb
        self.concurrency = concurrency or get_settings().import_concurrency

    async def _first_hit(self, title: Any, year: Any, label: str) -> Dict[str, Any]:
        results = await self.tmdb.search_movies(str(title or ""), year=year)
        if not results:
            raise TitleNotFound(label)
        return results[0]

    async def import_liked(self, user_id: str, movies: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Import rows shaped {name, year} as likes.

        Matches are written for titles the partner already liked, without
        notifications; a large import would otherwise flood the partner.

        Returns:
            {"total", "imported", "failed": [names]}
        """
        profile = UserProfile.from_record(user_id, await self.store.get(keys.user(user_id)))
        partner_id = profile.partner_id

        async def import_one(row: Dict[str, Any]) -> int:
            name = row.get("name") or ""
            tmdb_movie = await self._first_hit(name, row.get("year"), name)
            movie_id = tmdb_movie["id"]
            timestamp = int(time.time() * 1000)

            await self.store.set(keys.liked(user_id, movie_id), tmdb_movie)
            await self.store.set(keys.like(user_id, movie_id), {"movieId": movie_id, "timestamp": timestamp})

            if partner_id and await self.store.get(keys.liked(partner_id, movie_id)):
                await self.store.set(keys.match(user_id, movie_id), tmdb_movie)
                await self.store.set(keys.match(partner_id, movie_id), tmdb_movie)

            return movie_id

        settled = await map_bounded(movies, import_one, self.concurrency)

        imported = 0
        failed: List[str] = []
        for row, outcome in zip(movies, settled):
            if outcome.ok:
                imported += 1
            elif isinstance(outcome.error, TitleNotFound):
                failed.append(outcome.error.label)
            else:
                logger.error("import_liked_row_failed", uid=user_id, name=row.get("name"), error=str(outcome.error))
                failed.append(row.get("name") or "")

        logger.info("import_liked", uid=user_id, total=len(movies), imported=imported, failed=len(failed))
        return {"total": len(movies), "imported": imported, "failed": failed}

    async def import_watched(self, user_id: str, movies: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Import rows shaped {title, year} as watched.

        Returns:
            {"imported", "failed", "errors": [messages]}
        """

        async def import_one(row: Dict[str, Any]) -> int:
            title = row.get("title") or ""
            year = row.get("year")
            tmdb_movie = await self._first_hit(title, year, f"{title} ({year})")

            # Keys and stored ids stay numeric so exclusion filters see them
            movie_id = coerce_movie_id(tmdb_movie.get("id"))
            if movie_id is None:
                raise ValueError(f"invalid TMDb id {tmdb_movie.get('id')!r}")

            await self.store.set(
                keys.watched(user_id, movie_id),
                {**tmdb_movie, "id": movie_id, "timestamp": int(time.time() * 1000)},
            )
            return movie_id

        settled = await map_bounded(movies, import_one, self.concurrency)

        imported = 0
        errors: List[str] = []
        for row, outcome in zip(movies, settled):
            if outcome.ok:
                imported += 1
            elif isinstance(outcome.error, TitleNotFound):
                errors.append(str(outcome.error))
            else:
                errors.append(f"Error importing {row.get('title')}: {outcome.error}")

        logger.info("import_watched", uid=user_id, total=len(movies), imported=imported, failed=len(errors))
        return {"imported": imported, "failed": len(errors), "errors": errors}
