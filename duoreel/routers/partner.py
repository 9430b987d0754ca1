"""
Partner Router

Partner requests, connections and invite links.

Connecting is always two-step: the sender creates a request (by email or
through an invite link) and the recipient accepts or rejects it.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..core.logging import get_logger
from ..core.security import get_current_user
from ..services.kv_store import KVStore, get_kv_store
from ..services.partner_service import PartnerService

logger = get_logger(__name__)

router = APIRouter(prefix="/partner", tags=["partner"])


class ConnectRequest(BaseModel):
    """Request body for a partner request by email."""
    partner_email: str = Field(..., alias="partnerEmail")

    model_config = ConfigDict(populate_by_name=True)


class RequestDecision(BaseModel):
    """Request body for accept / reject."""
    from_user_id: str = Field(..., alias="fromUserId")

    model_config = ConfigDict(populate_by_name=True)


class AcceptInviteRequest(BaseModel):
    """Request body for accepting an invite link."""
    code: Optional[str] = None


def get_partner_service(store: KVStore = Depends(get_kv_store)) -> PartnerService:
    return PartnerService(store)


@router.get("")
async def get_partner(
    current_user: dict = Depends(get_current_user),
    partners: PartnerService = Depends(get_partner_service),
):
    return {"partner": await partners.get_partner(current_user["uid"])}


@router.post("/connect")
async def connect_partner(
    body: ConnectRequest,
    current_user: dict = Depends(get_current_user),
    partners: PartnerService = Depends(get_partner_service),
):
    await partners.connect(current_user, body.partner_email)
    return {"success": True, "message": "Partner request sent"}


@router.get("/requests/incoming")
async def get_incoming_requests(
    current_user: dict = Depends(get_current_user),
    partners: PartnerService = Depends(get_partner_service),
):
    return {"requests": await partners.incoming_requests(current_user["uid"])}


@router.get("/requests/outgoing")
async def get_outgoing_requests(
    current_user: dict = Depends(get_current_user),
    partners: PartnerService = Depends(get_partner_service),
):
    return {"requests": await partners.outgoing_requests(current_user["uid"])}


@router.post("/accept")
async def accept_request(
    body: RequestDecision,
    current_user: dict = Depends(get_current_user),
    partners: PartnerService = Depends(get_partner_service),
):
    await partners.accept(current_user, body.from_user_id)
    return {"success": True, "message": "Partner request accepted"}


@router.post("/reject")
async def reject_request(
    body: RequestDecision,
    current_user: dict = Depends(get_current_user),
    partners: PartnerService = Depends(get_partner_service),
):
    await partners.reject(current_user["uid"], body.from_user_id)
    return {"success": True, "message": "Partner request rejected"}


@router.post("/remove")
async def remove_partner(
    current_user: dict = Depends(get_current_user),
    partners: PartnerService = Depends(get_partner_service),
):
    await partners.remove(current_user["uid"])
    return {"success": True, "message": "Partner removed"}


@router.get("/invite-code")
async def get_invite_code(
    current_user: dict = Depends(get_current_user),
    partners: PartnerService = Depends(get_partner_service),
):
    return {"code": await partners.get_invite_code(current_user["uid"])}


@router.post("/accept-invite")
async def accept_invite(
    body: AcceptInviteRequest,
    current_user: dict = Depends(get_current_user),
    partners: PartnerService = Depends(get_partner_service),
):
    """
    Send a partner request to the owner of an invite code.

    Errors use machine-readable messages the client maps to copy:
    self_invite, already_connected, inviter_connected.
    """
    return await partners.accept_invite(current_user, body.code)


@router.post("/regenerate-invite")
async def regenerate_invite(
    current_user: dict = Depends(get_current_user),
    partners: PartnerService = Depends(get_partner_service),
):
    """Invalidate the current invite link and issue a new code."""
    return {"code": await partners.regenerate_invite_code(current_user["uid"])}
