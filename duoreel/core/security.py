"""
Supabase Authentication Dependency

Verifies bearer tokens issued by Supabase Auth and extracts user information.
Token verification is delegated to the auth server (GET /auth/v1/user), so
signing keys never need to live in this service.
"""

from typing import Optional

import httpx
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..config import get_settings
from .exceptions import UnauthorizedError
from .logging import get_logger

logger = get_logger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


async def fetch_auth_user(access_token: str) -> Optional[dict]:
    """
    Ask Supabase Auth who owns this access token.

    Returns:
        The auth user payload, or None if the token is rejected.
    """
    settings = get_settings()
    if not settings.supabase_url:
        logger.error("supabase_auth_not_configured")
        return None

    api_key = settings.supabase_anon_key or settings.supabase_service_key
    async with httpx.AsyncClient() as client:
        response = await client.get(
            f"{settings.supabase_url}/auth/v1/user",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {access_token}",
            },
            timeout=5.0,
        )

    if response.status_code != 200:
        logger.info("auth_token_rejected", status=response.status_code)
        return None
    try:
        return response.json()
    except ValueError:
        logger.warning("auth_response_not_json", content_type=response.headers.get("content-type"))
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> dict:
    """
    Verify the Supabase access token and return user info.

    Returns:
        dict with keys: uid, email (optional), name (optional), picture (optional)

    Raises:
        UnauthorizedError if token is missing or invalid
    """
    if credentials is None:
        raise UnauthorizedError("Unauthorized - No token provided")

    try:
        auth_user = await fetch_auth_user(credentials.credentials)
    except httpx.HTTPError as e:
        logger.warning("auth_request_failed", error=str(e))
        raise UnauthorizedError("Unauthorized - Auth service unavailable")

    if not auth_user or not auth_user.get("id"):
        raise UnauthorizedError("Unauthorized - Invalid token")

    metadata = auth_user.get("user_metadata") or {}
    return {
        "uid": auth_user["id"],
        "email": auth_user.get("email"),
        "name": metadata.get("full_name") or metadata.get("name"),
        "picture": metadata.get("avatar_url"),
    }
