"""
Quota Manager Service

Tracks daily OMDb usage so the free-tier key is never banned.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..config import get_settings
from ..core.exceptions import RateLimitedError
from ..core.logging import get_logger
from . import keys
from .kv_store import KVStore

logger = get_logger(__name__)


class QuotaManager:
    """
    Daily OMDb request counter kept in the KV table.

    OMDb free keys allow 1,000 requests per day. The counter row is
    omdb:usage:{YYYY-MM-DD} (UTC) -> {count, date}; a new day simply starts
    a new row.

    Read-then-write with no CAS: concurrent refreshes can undercount by a
    few requests near the limit.
    """

    def __init__(self, store: KVStore, daily_limit: Optional[int] = None):
        self.store = store
        self.daily_limit = daily_limit or get_settings().omdb_daily_quota_limit

    @staticmethod
    def today() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d")

    async def get_usage(self, day: Optional[str] = None) -> int:
        """Requests recorded for `day` (default: today)."""
        usage = await self.store.get(keys.omdb_usage(day or self.today()))
        return int((usage or {}).get("count") or 0)

    async def require_quota(self):
        """
        Raise RateLimitedError if today's limit is spent.

        Use this before making OMDb calls.
        """
        current = await self.get_usage()
        if current >= self.daily_limit:
            logger.error("quota_exceeded", api="omdb", current=current, limit=self.daily_limit)
            raise RateLimitedError("Daily API limit reached")

    async def record_usage(self) -> int:
        """Count one OMDb request against today."""
        day = self.today()
        count = await self.get_usage(day) + 1
        await self.store.set(keys.omdb_usage(day), {"count": count, "date": day})
        return count

    async def get_status(self) -> Dict[str, Any]:
        current = await self.get_usage()
        return {
            "used": current,
            "limit": self.daily_limit,
            "remaining": max(0, self.daily_limit - current),
            "percentage": round((current / self.daily_limit) * 100, 1),
        }
