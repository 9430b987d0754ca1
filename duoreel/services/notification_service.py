"""
Notification Service

Per-user notifications plus a denormalized unread counter.

The counter (notifications:unread:{uid}) is read-modify-write with no
compare-and-swap; concurrent writers can leave it briefly off by one. The
badge tolerates that, and mark-all-read resets it to zero.
"""

import time
from typing import Any, Dict, List, Optional

from ..core.exceptions import NotFoundError
from ..core.logging import get_logger
from ..models.notification import Notification, NotificationType
from . import keys
from .kv_paginated import scan_values_by_prefix
from .kv_store import KVStore

logger = get_logger(__name__)

READ_RETENTION_MS = 10 * 24 * 60 * 60 * 1000  # 10 days


class UnreadCounter:
    """Unread notification count kept in its own KV row."""

    def __init__(self, store: KVStore):
        self.store = store

    async def get(self, user_id: str) -> int:
        current = await self.store.get(keys.unread_count(user_id))
        # Legacy rows may hold non-numeric junk
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            return 0
        return int(current)

    async def increment(self, user_id: str) -> int:
        count = await self.get(user_id) + 1
        await self.store.set(keys.unread_count(user_id), count)
        return count

    async def decrement(self, user_id: str) -> int:
        count = max(0, await self.get(user_id) - 1)
        await self.store.set(keys.unread_count(user_id), count)
        return count

    async def reset(self, user_id: str) -> None:
        await self.store.set(keys.unread_count(user_id), 0)


class NotificationService:
    """
    Notification CRUD.

    Read notifications older than READ_RETENTION_MS are deleted lazily the
    next time the owner lists their notifications.
    """

    def __init__(self, store: KVStore):
        self.store = store
        self.unread = UnreadCounter(store)

    async def create(
        self,
        user_id: str,
        notification_type: NotificationType,
        data: Dict[str, Any],
    ) -> Notification:
        """Persist a notification and bump the recipient's unread count."""
        notification = Notification(type=notification_type, data=data)
        await self.store.set(
            keys.notification(user_id, notification.id),
            notification.to_record(),
        )
        await self.unread.increment(user_id)

        logger.info(
            "notification_created",
            uid=user_id,
            type=notification.type,
            notification_id=notification.id,
        )
        return notification

    async def list(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        now_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Newest-first page of notifications.

        Returns:
            {"notifications": [...], "hasMore": bool, "total": int}
        """
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        records = await scan_values_by_prefix(self.store, keys.notification_prefix(user_id))

        kept: List[Dict[str, Any]] = []
        expired = 0
        for record in records:
            created_at = record.get("createdAt") or 0
            if record.get("read") and now_ms - created_at > READ_RETENTION_MS:
                await self.store.delete(keys.notification(user_id, record["id"]))
                expired += 1
            else:
                kept.append(record)

        if expired:
            logger.info("notifications_expired", uid=user_id, deleted=expired)

        kept.sort(key=lambda n: n.get("createdAt") or 0, reverse=True)
        page = kept[offset:offset + limit]

        return {
            "notifications": page,
            "hasMore": offset + limit < len(kept),
            "total": len(kept),
        }

    async def unread_count(self, user_id: str) -> int:
        return await self.unread.get(user_id)

    async def mark_read(self, user_id: str, notification_id: str) -> None:
        key = keys.notification(user_id, notification_id)
        record = await self.store.get(key)
        if not record:
            raise NotFoundError("Notification not found")

        if not record.get("read"):
            record["read"] = True
            await self.store.set(key, record)
            await self.unread.decrement(user_id)

    async def mark_all_read(self, user_id: str) -> int:
        records = await scan_values_by_prefix(self.store, keys.notification_prefix(user_id))
        updated = 0
        for record in records:
            if not record.get("read"):
                record["read"] = True
                await self.store.set(keys.notification(user_id, record["id"]), record)
                updated += 1

        await self.unread.reset(user_id)
        return updated

    async def clear_all(self, user_id: str) -> int:
        records = await scan_values_by_prefix(self.store, keys.notification_prefix(user_id))
        for record in records:
            await self.store.delete(keys.notification(user_id, record["id"]))

        await self.unread.reset(user_id)
        logger.info("notifications_cleared", uid=user_id, deleted=len(records))
        return len(records)
