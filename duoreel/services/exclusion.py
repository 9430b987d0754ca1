"""
Exclusion Set Builder

Movies a user marked "not interested" never come back in discovery;
watched movies are hidden too unless the caller asks to include them.
"""

from typing import Optional, Set

from ..core.logging import get_logger
from . import keys
from .kv_paginated import scan_keys_by_prefix
from .kv_store import KVStore

logger = get_logger(__name__)


def movie_id_from_key(key: str) -> Optional[int]:
    """
    Parse the movie id from a key suffix ("watched:{uid}:{movieId}").

    Returns None for anything that is not a positive integer; legacy rows
    with malformed suffixes are tolerated, not fatal.
    """
    suffix = key.rsplit(":", 1)[-1].strip()
    try:
        movie_id = int(suffix)
    except ValueError:
        return None
    return movie_id if movie_id > 0 else None


async def _ids_under(store: KVStore, prefix: str) -> Set[int]:
    found = set()
    for key in await scan_keys_by_prefix(store, prefix):
        movie_id = movie_id_from_key(key)
        if movie_id is not None:
            found.add(movie_id)
    return found


async def build_exclusion_set(
    store: KVStore,
    user_id: str,
    include_watched: bool = False,
) -> Set[int]:
    """
    Movie ids to hide from this user's discovery results.

    Args:
        store: Key-value store
        user_id: Owner of the watched / not-interested lists
        include_watched: If True, watched movies stay visible

    Returns:
        Set of TMDb movie ids
    """
    excluded = await _ids_under(store, keys.not_interested_prefix(user_id))

    if not include_watched:
        watched = await _ids_under(store, keys.watched_prefix(user_id))
        logger.debug("exclusion_watched_loaded", uid=user_id, count=len(watched))
        excluded |= watched

    logger.info(
        "exclusion_set_built",
        uid=user_id,
        include_watched=include_watched,
        count=len(excluded),
    )
    return excluded
