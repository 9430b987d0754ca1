"""
Movie Models

Movies are TMDb documents passed through mostly untouched. Only watched
entries are sanitized, because they are read back by numeric-id filters.
"""

import math
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


def coerce_movie_id(raw: Any) -> Optional[int]:
    """
    Coerce a client-supplied movie id to an int.

    Accepts 550, 550.0 and "550". Returns None for anything else (bools,
    zero, non-finite or fractional values, non-numeric strings). TMDb ids are
    positive integers, so 12.5 is rejected rather than truncated to 12.
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(str(raw).strip()) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value == 0 or not value.is_integer():
        return None
    return int(value)


def movie_title(movie: Dict[str, Any]) -> str:
    """Display title for movies and the occasional TV entry."""
    return movie.get("title") or movie.get("name") or "Unknown Movie"


class WatchedMovie(BaseModel):
    """
    Sanitized watched entry; keeps KV rows small and the id numeric.

    Only `id` and `timestamp` are typed. The other fields are whatever the
    client sent (falsy values collapse to defaults), since downstream readers
    only filter on the id.
    """
    id: int
    title: Any = ""
    poster_path: Any = None
    backdrop_path: Any = None
    overview: Any = ""
    release_date: Any = None
    vote_average: Any = 0
    genre_ids: Any = Field(default_factory=list)
    genres: Any = Field(default_factory=list)
    runtime: Any = None
    director: Any = None
    actors: Any = Field(default_factory=list)
    original_language: Any = None
    rating: Any = None
    timestamp: int

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_client(
        cls,
        movie: Dict[str, Any],
        movie_id: int,
        rating: Any,
        timestamp: int,
    ) -> "WatchedMovie":
        # Falsy client values collapse to the defaults
        return cls(
            id=movie_id,
            title=movie.get("title") or "",
            poster_path=movie.get("poster_path") or None,
            backdrop_path=movie.get("backdrop_path") or None,
            overview=movie.get("overview") or "",
            release_date=movie.get("release_date") or None,
            vote_average=movie.get("vote_average") or 0,
            genre_ids=movie.get("genre_ids") or [],
            genres=movie.get("genres") or [],
            runtime=movie.get("runtime") or None,
            director=movie.get("director") or None,
            actors=movie.get("actors") or [],
            original_language=movie.get("original_language") or None,
            rating=rating or None,
            timestamp=timestamp,
        )
