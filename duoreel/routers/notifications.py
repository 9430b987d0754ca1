"""
Notifications Router

In-app notifications, the unread badge and the "new matches" badge.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from ..core.security import get_current_user
from ..models.notification import NotificationData, NotificationType
from ..services.kv_store import KVStore, get_kv_store
from ..services.notification_service import NotificationService
from ..services.profile_service import ProfileService

router = APIRouter(prefix="/notifications", tags=["notifications"])


class MarkReadRequest(BaseModel):
    """Request body for marking one notification read."""
    notification_id: str = Field(..., alias="notificationId")

    model_config = ConfigDict(populate_by_name=True)


class ImportCompleteRequest(BaseModel):
    """Summary the client posts when a background CSV import finishes."""
    type: Optional[str] = None  # "watchlist" | "watched"
    imported: Optional[int] = None
    failed: Optional[int] = None
    total: Optional[int] = None


def get_notification_service(store: KVStore = Depends(get_kv_store)) -> NotificationService:
    return NotificationService(store)


@router.get("/matches")
async def get_new_match_count(
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    """Mutual likes since the user last opened the matches tab."""
    return await ProfileService(store).new_match_count(current_user["uid"])


@router.post("/matches/seen")
async def mark_matches_seen(
    current_user: dict = Depends(get_current_user),
    store: KVStore = Depends(get_kv_store),
):
    await ProfileService(store).mark_matches_seen(current_user["uid"])
    return {"success": True}


@router.get("")
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    """Newest first. Read notifications older than 10 days are purged here."""
    return await notifications.list(current_user["uid"], limit=limit, offset=offset)


@router.get("/unread-count")
async def get_unread_count(
    current_user: dict = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    return {"count": await notifications.unread_count(current_user["uid"])}


@router.post("/mark-read")
async def mark_read(
    body: MarkReadRequest,
    current_user: dict = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    await notifications.mark_read(current_user["uid"], body.notification_id)
    return {"success": True}


@router.post("/mark-all-read")
async def mark_all_read(
    current_user: dict = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    await notifications.mark_all_read(current_user["uid"])
    return {"success": True}


@router.post("/clear-all")
async def clear_all(
    current_user: dict = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    deleted = await notifications.clear_all(current_user["uid"])
    return {"success": True, "deleted": deleted}


@router.post("/import-complete")
async def import_complete(
    body: ImportCompleteRequest,
    current_user: dict = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    data = NotificationData(
        import_type=body.type,
        imported_count=body.imported,
        failed_count=body.failed,
        total_count=body.total,
    )
    await notifications.create(
        current_user["uid"],
        NotificationType.IMPORT_COMPLETE,
        data.model_dump(by_alias=True, exclude_none=True),
    )
    return {"success": True}
