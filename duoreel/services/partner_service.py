"""
Partner Service

Partnership lifecycle: requests (by email or invite link), accept / reject,
disconnect, and invite codes.

A partnership is symmetric: accepting sets partnerId on both profiles and
removing clears it on both. Requests live at
partner_request:{toUid}:{fromUid} until accepted or rejected.

Invite codes map both ways (invite:{code} and user-invite:{uid}). The
collision check and the write are separate KV calls, so two concurrent
generations can in principle pick the same code; with a 55-character
alphabet and 6 positions this is left unguarded.
"""

import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.exceptions import ConflictError, DuoReelException, NotFoundError, ValidationError
from ..core.logging import get_logger
from ..models.notification import NotificationType
from ..models.user import UserProfile
from . import keys
from .kv_paginated import scan_values_by_prefix
from .kv_store import KVStore
from .notification_service import NotificationService

logger = get_logger(__name__)

# No O/0, I/l/1
INVITE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789"
INVITE_CODE_LENGTH = 6
INVITE_MAX_ATTEMPTS = 10


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class PartnerService:
    """Partner requests, connections and invite codes."""

    def __init__(self, store: KVStore, notifications: Optional[NotificationService] = None):
        self.store = store
        self.notifications = notifications or NotificationService(store)

    async def _profile(self, user_id: str) -> UserProfile:
        return UserProfile.from_record(user_id, await self.store.get(keys.user(user_id)))

    async def _raw_profile(self, user_id: str) -> Dict[str, Any]:
        return await self.store.get(keys.user(user_id)) or {}

    # =========================================================================
    # Requests
    # =========================================================================

    async def connect(self, user: dict, partner_email: str) -> None:
        """Send a partner request to the user registered under `partner_email`."""
        user_id = user["uid"]

        entry = await self.store.get(keys.user_search(partner_email or ""))
        if not entry or not entry.get("userId"):
            raise NotFoundError("Partner not found")

        partner_id = entry["userId"]
        if partner_id == user_id:
            raise ValidationError("Cannot send request to yourself")

        profile = await self._profile(user_id)
        if profile.has_partner:
            raise ConflictError("You already have a partner")

        request_key = keys.partner_request(partner_id, user_id)
        if await self.store.get(request_key):
            raise ConflictError("Request already sent")

        from_name = profile.name or user.get("email")
        await self.store.set(request_key, {
            "fromUserId": user_id,
            "toUserId": partner_id,
            "fromEmail": user.get("email"),
            "fromName": from_name,
            "timestamp": int(time.time() * 1000),
        })

        await self.notifications.create(partner_id, NotificationType.PARTNERSHIP_REQUEST, {
            "fromUserId": user_id,
            "fromName": from_name,
        })
        logger.info("partner_request_sent", uid=user_id, to_uid=partner_id)

    async def incoming_requests(self, user_id: str) -> List[Dict[str, Any]]:
        return await scan_values_by_prefix(self.store, keys.partner_request_prefix(user_id))

    async def outgoing_requests(self, user_id: str) -> List[Dict[str, Any]]:
        # Requests are keyed by recipient, so the sender side needs a full scan
        everything = await scan_values_by_prefix(self.store, keys.partner_request_prefix())
        return [r for r in everything if r.get("fromUserId") == user_id]

    async def accept(self, user: dict, from_user_id: str) -> None:
        user_id = user["uid"]
        request_key = keys.partner_request(user_id, from_user_id)
        if not await self.store.get(request_key):
            raise NotFoundError("Request not found")

        my_profile = await self._raw_profile(user_id)
        their_profile = await self._raw_profile(from_user_id)

        await self.store.set(keys.user(user_id), {**my_profile, "partnerId": from_user_id})
        await self.store.set(keys.user(from_user_id), {**their_profile, "partnerId": user_id})
        await self.store.delete(request_key)

        await self.notifications.create(from_user_id, NotificationType.PARTNERSHIP_ACCEPTED, {
            "fromUserId": user_id,
            "fromName": my_profile.get("name") or user.get("email") or "Someone",
        })
        logger.info("partner_request_accepted", uid=user_id, partner_id=from_user_id)

    async def reject(self, user_id: str, from_user_id: str) -> None:
        await self.store.delete(keys.partner_request(user_id, from_user_id))
        logger.info("partner_request_rejected", uid=user_id, from_uid=from_user_id)

    async def remove(self, user_id: str) -> None:
        my_profile = await self._raw_profile(user_id)
        partner_id = my_profile.get("partnerId")
        if not partner_id:
            raise ConflictError("No partner to remove")

        their_profile = await self._raw_profile(partner_id)
        my_profile.pop("partnerId", None)
        their_profile.pop("partnerId", None)

        await self.store.set(keys.user(user_id), my_profile)
        await self.store.set(keys.user(partner_id), their_profile)
        logger.info("partner_removed", uid=user_id, partner_id=partner_id)

    async def get_partner(self, user_id: str) -> Optional[Dict[str, Any]]:
        profile = await self._profile(user_id)
        if not profile.has_partner:
            return None

        partner = await self._raw_profile(profile.partner_id)
        return {"id": profile.partner_id, "email": partner.get("email"), **partner}

    # =========================================================================
    # Invite codes
    # =========================================================================

    async def _issue_invite_code(self, user_id: str) -> str:
        for _ in range(INVITE_MAX_ATTEMPTS):
            code = generate_invite_code()
            if not await self.store.get(keys.invite(code)):
                break
        else:
            logger.error("invite_code_exhausted", uid=user_id)
            raise DuoReelException("Failed to generate unique invite code")

        profile = await self._profile(user_id)
        created_at = _iso_now()
        await self.store.set(keys.invite(code), {
            "userId": user_id,
            "name": profile.display_name("User"),
            "createdAt": created_at,
        })
        await self.store.set(keys.user_invite(user_id), {"code": code, "createdAt": created_at})
        return code

    async def get_invite_code(self, user_id: str) -> str:
        existing = await self.store.get(keys.user_invite(user_id))
        if existing and existing.get("code"):
            return existing["code"]
        return await self._issue_invite_code(user_id)

    async def regenerate_invite_code(self, user_id: str) -> str:
        existing = await self.store.get(keys.user_invite(user_id))
        if existing and existing.get("code"):
            await self.store.delete(keys.invite(existing["code"]))

        code = await self._issue_invite_code(user_id)
        logger.info("invite_code_regenerated", uid=user_id)
        return code

    async def accept_invite(self, user: dict, code: str) -> Dict[str, Any]:
        """
        Turn an invite link into a partner request to the inviter.

        Idempotent: repeating it reports alreadySent instead of a second
        request and notification.
        """
        user_id = user["uid"]

        invite = await self.store.get(keys.invite(code or ""))
        if not invite:
            raise NotFoundError("Invalid invite code")

        inviter_id = invite.get("userId")
        if inviter_id == user_id:
            raise ValidationError("self_invite")

        my_profile = await self._profile(user_id)
        inviter_profile = await self._profile(inviter_id)
        if my_profile.has_partner:
            raise ConflictError("already_connected")
        if inviter_profile.has_partner:
            raise ConflictError("inviter_connected", inviterName=invite.get("name"))

        request_key = keys.partner_request(inviter_id, user_id)
        if await self.store.get(request_key):
            return {"success": True, "alreadySent": True, "inviterName": invite.get("name")}

        await self.store.set(request_key, {
            "fromUserId": user_id,
            "toUserId": inviter_id,
            "fromEmail": user.get("email"),
            "fromName": my_profile.name or user.get("email"),
            "source": "invite_link",
            "createdAt": _iso_now(),
        })

        await self.notifications.create(inviter_id, NotificationType.PARTNERSHIP_REQUEST, {
            "fromUserId": user_id,
            "fromName": my_profile.name or user.get("email") or "Someone",
        })
        logger.info("partner_request_sent", uid=user_id, to_uid=inviter_id, source="invite_link")

        return {"success": True, "inviterName": invite.get("name")}
