"""
Paginated KV Scans

PostgREST caps every query at a server-level "Max Rows" limit, so a single
prefix query silently truncates large collections (a user's liked or
watched movies can run into the thousands).

These helpers walk the prefix with fixed-size range queries until a short
page signals the end, and always return every matching row.

- scan_values_by_prefix: full stored values
- scan_rows_by_prefix: {key, value} rows (maintenance scripts)
- scan_keys_by_prefix: key strings only (much lighter when the caller only
  needs the id encoded in the key suffix)

All materialize the whole result. A failing page raises StorageError and
discards whatever was already read.
"""

from typing import Any, List

from ..config import get_settings
from ..core.logging import get_logger
from .kv_store import KVStore

logger = get_logger(__name__)

PAGE_SIZE = 1000


def _page_size() -> int:
    return get_settings().kv_page_size or PAGE_SIZE


async def _scan(store: KVStore, prefix: str, keys_only: bool) -> List[dict]:
    page_size = _page_size()
    rows: List[dict] = []
    offset = 0

    while True:
        page = await store.query_range(prefix, offset, page_size, keys_only=keys_only)
        if not page:
            break

        rows.extend(page)

        # Short page: this was the last one
        if len(page) < page_size:
            break

        offset += page_size

    return rows


async def scan_values_by_prefix(store: KVStore, prefix: str) -> List[Any]:
    """Return ALL stored values whose keys start with `prefix`."""
    rows = await _scan(store, prefix, keys_only=False)
    logger.debug("kv_scan_values", prefix=prefix, rows=len(rows))
    return [row["value"] for row in rows]


async def scan_keys_by_prefix(store: KVStore, prefix: str) -> List[str]:
    """Return ALL keys that start with `prefix`, without fetching values."""
    rows = await _scan(store, prefix, keys_only=True)
    logger.debug("kv_scan_keys", prefix=prefix, keys=len(rows))
    return [row["key"] for row in rows]


async def scan_rows_by_prefix(store: KVStore, prefix: str) -> List[dict]:
    """Return ALL {key, value} rows whose keys start with `prefix`."""
    rows = await _scan(store, prefix, keys_only=False)
    logger.debug("kv_scan_rows", prefix=prefix, rows=len(rows))
    return rows
