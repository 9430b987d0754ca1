"""
Profile Router

Profile bootstrap and edits, plus user search for the partner picker.

Sign-up / sign-in happen against Supabase Auth directly; the client calls
ensure-profile after every sign-in so OAuth users get a profile row too.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from ..core.logging import get_logger
from ..core.security import get_current_user
from ..services.kv_store import KVStore, get_kv_store
from ..services.profile_service import ProfileService

logger = get_logger(__name__)

router = APIRouter(tags=["profile"])


class EnsureProfileRequest(BaseModel):
    """Optional display name chosen on the sign-up form."""
    name: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    """Fields a user may change on their own profile."""
    name: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoUrl")
    partner_id: Optional[str] = Field(None, alias="partnerId")

    model_config = ConfigDict(populate_by_name=True)


def get_profile_service(store: KVStore = Depends(get_kv_store)) -> ProfileService:
    return ProfileService(store)


@router.post("/api/ensure-profile")
async def ensure_profile(
    body: Optional[EnsureProfileRequest] = Body(None),
    current_user: dict = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    """Create the profile if missing; a no-op for existing users."""
    name = body.name if body else None
    return await profiles.ensure_profile(current_user, name=name)


@router.get("/profile")
async def get_profile(
    current_user: dict = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    return await profiles.get_profile(current_user)


@router.post("/profile")
async def update_profile(
    body: ProfileUpdateRequest,
    current_user: dict = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    # Only fields present in the request body are changed
    changes = body.model_dump(by_alias=True, exclude_unset=True)
    profile = await profiles.update_profile(current_user["uid"], changes)

    logger.info("profile_updated", uid=current_user["uid"], fields=sorted(changes))
    return {"success": True, "profile": profile}


@router.get("/users/search")
async def search_users(
    q: Optional[str] = Query(None),
    current_user: dict = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    """Up to 10 users whose email or name contains `q`."""
    return {"users": await profiles.search_users(current_user["uid"], q)}
