"""
Profile Service

User profiles, the email search index and the "new matches" badge.
"""

import time
from typing import Any, Dict, List, Optional

from ..core.logging import get_logger
from . import keys
from .kv_paginated import scan_values_by_prefix
from .kv_store import KVStore

logger = get_logger(__name__)

SEARCH_LIMIT = 10


class ProfileService:
    """Profile CRUD and lookups."""

    def __init__(self, store: KVStore):
        self.store = store

    async def ensure_profile(self, user: dict, name: Optional[str] = None) -> Dict[str, Any]:
        """
        Create the profile on first sign-in (OAuth users skip the signup form).

        Returns:
            {"exists": True, "profile"} or {"exists": False, "profile", "created": True}
        """
        user_id = user["uid"]
        existing = await self.store.get(keys.user(user_id))
        if existing:
            return {"exists": True, "profile": existing}

        email = user.get("email") or ""
        display_name = name or user.get("name") or email.split("@")[0] or "User"
        profile = {
            "id": user_id,
            "email": email,
            "name": display_name,
            "photoUrl": user.get("picture"),
            "createdAt": int(time.time() * 1000),
        }

        await self.store.set(keys.user(user_id), profile)
        await self.store.set(keys.user_search(email), {
            "userId": user_id,
            "name": display_name,
            "email": email,
        })

        logger.info("profile_created", uid=user_id)
        return {"exists": False, "profile": profile, "created": True}

    async def get_profile(self, user: dict) -> Dict[str, Any]:
        profile = await self.store.get(keys.user(user["uid"])) or {}
        return {"id": user["uid"], "email": user.get("email"), **profile}

    async def update_profile(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Merge the provided fields (name, photoUrl, partnerId) into the profile."""
        current = await self.store.get(keys.user(user_id)) or {}
        updated = {**current, **changes}
        await self.store.set(keys.user(user_id), updated)
        return updated

    async def search_users(self, user_id: str, query: Optional[str]) -> List[Dict[str, Any]]:
        """Case-insensitive substring search over email and name."""
        if not query:
            return []
        needle = query.lower()

        entries = await scan_values_by_prefix(self.store, keys.USER_SEARCH_PREFIX)
        hits = [
            entry for entry in entries
            if entry.get("userId") != user_id
            and (
                needle in (entry.get("email") or "").lower()
                or needle in (entry.get("name") or "").lower()
            )
        ]
        return hits[:SEARCH_LIMIT]

    async def new_match_count(self, user_id: str) -> Dict[str, Any]:
        """
        Mutual likes where either like happened after lastMatchesSeen.

        Returns:
            {"count": int, "hasNew": bool}
        """
        profile = await self.store.get(keys.user(user_id)) or {}
        last_seen = profile.get("lastMatchesSeen") or 0

        my_likes = await scan_values_by_prefix(self.store, keys.like_prefix(user_id))
        partner_id = profile.get("partnerId")
        if not partner_id or not my_likes:
            return {"count": 0, "hasNew": False}

        partner_likes = await scan_values_by_prefix(self.store, keys.like_prefix(partner_id))
        partner_ts = {like.get("movieId"): like.get("timestamp") or 0 for like in partner_likes}

        count = sum(
            1 for like in my_likes
            if like.get("movieId") in partner_ts
            and max(like.get("timestamp") or 0, partner_ts[like.get("movieId")]) > last_seen
        )
        return {"count": count, "hasNew": count > 0}

    async def mark_matches_seen(self, user_id: str) -> None:
        profile = await self.store.get(keys.user(user_id)) or {}
        profile["lastMatchesSeen"] = int(time.time() * 1000)
        await self.store.set(keys.user(user_id), profile)
