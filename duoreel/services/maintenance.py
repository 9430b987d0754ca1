"""
Watched Row Maintenance

Older clients stored some watched entries with string ids ("1198994") or
under non-numeric keys (watched:{uid}:undefined). Those rows slip past the
numeric exclusion filters, so already-watched movies keep reappearing in
discovery. normalize_watched_row repairs one such row in place.
"""

from typing import Any, Dict, Optional, Tuple

from ..core.logging import get_logger
from ..models.movie import coerce_movie_id
from . import keys
from .kv_store import KVStore

logger = get_logger(__name__)


def new_stats() -> Dict[str, int]:
    return {
        "scanned": 0,
        "already_ok": 0,
        "retyped": 0,
        "moved": 0,
        "invalid": 0,
        "deleted": 0,
    }


def split_watched_key(key: str) -> Tuple[str, str]:
    """watched:{uid}:{suffix} -> (uid, suffix)"""
    _, _, rest = key.partition(":")
    uid, _, suffix = rest.rpartition(":")
    return uid, suffix


async def normalize_watched_row(
    store: KVStore,
    key: str,
    value: Any,
    stats: Dict[str, int],
    dry_run: bool = False,
    delete_invalid: bool = False,
) -> Optional[str]:
    """
    Repair one watched row.

    The id comes from the stored value (id, then tmdbId) and falls back to
    the key suffix. Rows with a non-numeric key move to watched:{uid}:{id};
    rows with a string id are rewritten in place. Rows with no usable id are
    counted and only deleted when delete_invalid is set.

    Returns:
        The outcome recorded in stats.
    """
    stats["scanned"] += 1
    uid, suffix = split_watched_key(key)
    value = value if isinstance(value, dict) else {}

    raw_id = value.get("id", value.get("tmdbId"))
    movie_id = coerce_movie_id(raw_id)
    if movie_id is None:
        movie_id = coerce_movie_id(suffix)

    if movie_id is None:
        stats["invalid"] += 1
        logger.warning("watched_row_invalid", key=key, raw_id=repr(raw_id))
        if delete_invalid and not dry_run:
            await store.delete(key)
            stats["deleted"] += 1
        return "invalid"

    target_key = keys.watched(uid, movie_id)
    if target_key == key and type(value.get("id")) is int and value["id"] == movie_id:
        stats["already_ok"] += 1
        return "already_ok"

    fixed = {**value, "id": movie_id}
    if target_key != key:
        stats["moved"] += 1
        logger.info("watched_row_moved", key=key, target=target_key)
        if not dry_run:
            await store.set(target_key, fixed)
            await store.delete(key)
        return "moved"

    stats["retyped"] += 1
    if not dry_run:
        await store.set(key, fixed)
    return "retyped"
