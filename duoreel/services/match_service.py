"""
Match Service

Records likes and detects matches: a movie liked by both partners.

Flow on every like:
1. Write liked:{uid}:{id} (full snapshot) and like:{uid}:{id} (shadow)
2. No partner -> done
3. Partner hasn't liked it -> done
4. Otherwise write match:{uid}:{id} and match:{partner}:{id}, and notify
   both partners (each notification names the other one)
5. Recount the user's matches; exactly 5, 10 or 25 -> milestone
   notification for both

There is no transaction around this. Two partners liking the same movie at
the same instant can both miss (or both write) the match; the writes are
idempotent upserts so a double detection only duplicates notifications.

Notification failures are logged and do not undo the like or the match.
"""

import time
from typing import Any, Dict, Optional

from ..core.exceptions import ValidationError
from ..core.logging import get_logger
from ..models.movie import movie_title
from ..models.notification import NotificationType
from ..models.user import UserProfile
from . import keys
from .kv_paginated import scan_keys_by_prefix
from .kv_store import KVStore
from .notification_service import NotificationService

logger = get_logger(__name__)

# Exact counts only: a bulk import that jumps from 4 to 6 matches skips 5
MATCH_MILESTONES = (5, 10, 25)


class MatchService:
    """Like / unlike and partner match detection."""

    def __init__(self, store: KVStore, notifications: Optional[NotificationService] = None):
        self.store = store
        self.notifications = notifications or NotificationService(store)

    async def _load_profile(self, user_id: str) -> UserProfile:
        return UserProfile.from_record(user_id, await self.store.get(keys.user(user_id)))

    async def _notify(self, user_id: str, notification_type: NotificationType, data: Dict[str, Any]):
        try:
            await self.notifications.create(user_id, notification_type, data)
        except Exception as e:
            logger.error(
                "notification_create_failed",
                uid=user_id,
                type=notification_type.value,
                error=str(e),
            )

    async def record_like(self, user_id: str, movie: Dict[str, Any]) -> Dict[str, bool]:
        """
        Persist a like and run match detection.

        Args:
            user_id: The user who liked the movie
            movie: TMDb movie document (must carry an "id")

        Returns:
            {"isMatch": bool}
        """
        movie_id = movie.get("id") if movie else None
        if movie_id is None or movie_id == "":
            raise ValidationError("Movie ID is required")

        timestamp = int(time.time() * 1000)
        await self.store.set(keys.liked(user_id, movie_id), {**movie, "timestamp": timestamp})
        await self.store.set(keys.like(user_id, movie_id), {"movieId": movie_id, "timestamp": timestamp})

        profile = await self._load_profile(user_id)
        if not profile.has_partner:
            return {"isMatch": False}

        partner_id = profile.partner_id
        partner_like = await self.store.get(keys.liked(partner_id, movie_id))
        if not partner_like:
            return {"isMatch": False}

        snapshot = {**movie, "timestamp": timestamp}
        await self.store.set(keys.match(user_id, movie_id), snapshot)
        await self.store.set(keys.match(partner_id, movie_id), snapshot)

        logger.info("movie_match", uid=user_id, partner_id=partner_id, movie_id=movie_id)

        partner = await self._load_profile(partner_id)
        movie_data = {
            "movieId": movie_id,
            "movieTitle": movie_title(movie),
            "posterPath": movie.get("poster_path") or None,
        }

        await self._notify(user_id, NotificationType.MOVIE_MATCH, {
            "fromUserId": partner_id,
            "fromName": partner.display_name(),
            **movie_data,
        })
        await self._notify(partner_id, NotificationType.MOVIE_MATCH, {
            "fromUserId": user_id,
            "fromName": profile.display_name(),
            **movie_data,
        })

        match_count = len(await scan_keys_by_prefix(self.store, keys.match_prefix(user_id)))
        if match_count in MATCH_MILESTONES:
            logger.info("match_milestone", uid=user_id, partner_id=partner_id, count=match_count)

            await self._notify(user_id, NotificationType.MATCH_MILESTONE, {
                "fromUserId": partner_id,
                "fromName": partner.display_name(),
                "milestoneCount": match_count,
            })
            await self._notify(partner_id, NotificationType.MATCH_MILESTONE, {
                "fromUserId": user_id,
                "fromName": profile.display_name(),
                "milestoneCount": match_count,
            })

        return {"isMatch": True}

    async def remove_like(self, user_id: str, movie_id: str) -> None:
        """Delete the like (both keys) and the match on both sides."""
        await self.store.delete(keys.liked(user_id, movie_id))
        await self.store.delete(keys.like(user_id, movie_id))
        await self.store.delete(keys.match(user_id, movie_id))

        profile = await self._load_profile(user_id)
        if profile.has_partner:
            await self.store.delete(keys.match(profile.partner_id, movie_id))

        logger.info("movie_unliked", uid=user_id, movie_id=movie_id)
