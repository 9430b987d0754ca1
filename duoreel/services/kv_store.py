"""
Key-Value Store

All persistent state lives in one flat table (key text primary key,
value jsonb) in Supabase Postgres, reached through PostgREST.

Two backends share one interface:
- SupabaseKVStore: PostgREST over httpx (production)
- MemoryKVStore: dict-backed, used when Supabase is not configured

Range queries are capped server-side (PostgREST "Max Rows"), so callers that
need every row under a prefix go through kv_paginated instead of
query_range directly.
"""

import copy
from typing import Any, Dict, List, Optional

import httpx

from ..config import get_settings
from ..core.exceptions import StorageError
from ..core.logging import get_logger

logger = get_logger(__name__)


def _like_pattern(prefix: str) -> str:
    """PostgREST LIKE pattern for a literal prefix (`*` is the wildcard)."""
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}*"


class KVStore:
    """Interface for the key-value row-store."""

    async def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    async def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def query_range(
        self,
        prefix: str,
        offset: int,
        limit: int,
        keys_only: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        One capped range query ordered by key ascending.

        Returns rows shaped {"key": ..., "value": ...} (only "key" when
        keys_only is set). May return fewer than `limit` rows.
        """
        raise NotImplementedError

    async def mget(self, keys: List[str]) -> List[Optional[Any]]:
        """Fetch several keys; missing keys come back as None."""
        return [await self.get(key) for key in keys]


class SupabaseKVStore(KVStore):
    """PostgREST-backed store using the service role key."""

    def __init__(self, url: str, service_key: str, table: str, timeout: float = 10.0):
        self.endpoint = f"{url}/rest/v1/{table}"
        self.timeout = timeout
        self.headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, action: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    method,
                    self.endpoint,
                    timeout=self.timeout,
                    **kwargs,
                )
        except httpx.HTTPError as e:
            logger.error("kv_request_failed", action=action, error=str(e))
            raise StorageError(f"{action}: {e}")

        if response.status_code >= 400:
            logger.error(
                "kv_request_rejected",
                action=action,
                status=response.status_code,
                body=response.text[:200],
            )
            raise StorageError(f"{action}: HTTP {response.status_code}")
        return response

    async def get(self, key: str) -> Optional[Any]:
        response = await self._request(
            "GET",
            f"get('{key}')",
            params={"select": "value", "key": f"eq.{key}"},
            headers=self.headers,
        )
        rows = response.json()
        return rows[0]["value"] if rows else None

    async def set(self, key: str, value: Any) -> None:
        # UPSERT on the primary key
        await self._request(
            "POST",
            f"set('{key}')",
            json={"key": key, "value": value},
            headers={
                **self.headers,
                "Prefer": "resolution=merge-duplicates,return=minimal",
            },
        )

    async def delete(self, key: str) -> None:
        # Safe if the row doesn't exist
        await self._request(
            "DELETE",
            f"del('{key}')",
            params={"key": f"eq.{key}"},
            headers=self.headers,
        )

    async def mget(self, keys: List[str]) -> List[Optional[Any]]:
        if not keys:
            return []
        quoted = ",".join('"' + k.replace('"', '\\"') + '"' for k in keys)
        response = await self._request(
            "GET",
            f"mget({len(keys)} keys)",
            params={"select": "key,value", "key": f"in.({quoted})"},
            headers=self.headers,
        )
        found = {row["key"]: row["value"] for row in response.json()}
        return [found.get(k) for k in keys]

    async def query_range(
        self,
        prefix: str,
        offset: int,
        limit: int,
        keys_only: bool = False,
    ) -> List[Dict[str, Any]]:
        response = await self._request(
            "GET",
            f"range('{prefix}', {offset})",
            params={
                "select": "key" if keys_only else "key,value",
                "key": f"like.{_like_pattern(prefix)}",
                "order": "key.asc",
                "offset": str(offset),
                "limit": str(limit),
            },
            headers=self.headers,
        )
        return response.json()


class MemoryKVStore(KVStore):
    """
    In-process store for development and tests.

    `max_rows` mimics the PostgREST per-query row cap.
    """

    def __init__(self, max_rows: int = 10000):
        self.max_rows = max_rows
        self._data: Dict[str, Any] = {}

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def query_range(
        self,
        prefix: str,
        offset: int,
        limit: int,
        keys_only: bool = False,
    ) -> List[Dict[str, Any]]:
        keys = sorted(k for k in self._data if k.startswith(prefix))
        window = keys[offset:offset + min(limit, self.max_rows)]
        if keys_only:
            return [{"key": k} for k in window]
        return [{"key": k, "value": copy.deepcopy(self._data[k])} for k in window]

    def keys(self) -> List[str]:
        return sorted(self._data)


# Singleton instance
_kv_store: Optional[KVStore] = None


def get_kv_store() -> KVStore:
    """Get singleton KVStore (Supabase when configured, memory otherwise)."""
    global _kv_store
    if _kv_store is None:
        settings = get_settings()
        if settings.supabase_configured:
            _kv_store = SupabaseKVStore(
                url=settings.supabase_url,
                service_key=settings.supabase_service_key,
                table=settings.kv_table,
                timeout=settings.upstream_timeout_seconds,
            )
            logger.info("kv_store_ready", backend="supabase", table=settings.kv_table)
        else:
            _kv_store = MemoryKVStore()
            logger.warning("kv_store_ready", backend="memory")
    return _kv_store
