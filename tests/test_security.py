"""
Auth Dependency Tests

Supabase Auth is mocked at the httpx layer.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.security import HTTPAuthorizationCredentials

from duoreel.config import get_settings
from duoreel.core.exceptions import UnauthorizedError
from duoreel.core.security import fetch_auth_user, get_current_user

AUTH_CLIENT_PATH = "duoreel.core.security.httpx.AsyncClient"


def mock_auth_server(payload=None, status_code=200, json_error=None):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.headers = {"content-type": "text/html"}
    if json_error is not None:
        mock_response.json.side_effect = json_error
    else:
        mock_response.json.return_value = payload

    mock_client = AsyncMock()
    mock_client.get.return_value = mock_response
    mock_client.__aenter__.return_value = mock_client
    mock_client.__aexit__.return_value = None
    return mock_client


@pytest.fixture
def auth_configured(monkeypatch):
    monkeypatch.setattr(get_settings(), "supabase_url", "https://proj.supabase.co")


@pytest.mark.asyncio
async def test_fetch_auth_user_returns_payload(auth_configured):
    mock_client = mock_auth_server({"id": "user_a", "email": "alice@example.com"})

    with patch(AUTH_CLIENT_PATH, return_value=mock_client):
        user = await fetch_auth_user("token-alice")

    assert user["id"] == "user_a"
    url = mock_client.get.call_args.args[0]
    assert url == "https://proj.supabase.co/auth/v1/user"
    assert mock_client.get.call_args.kwargs["headers"]["Authorization"] == "Bearer token-alice"


@pytest.mark.asyncio
async def test_non_json_auth_response_is_treated_as_rejected(auth_configured):
    mock_client = mock_auth_server(json_error=ValueError("Expecting value"))

    with patch(AUTH_CLIENT_PATH, return_value=mock_client):
        assert await fetch_auth_user("token-alice") is None


@pytest.mark.asyncio
async def test_non_json_auth_response_is_401(auth_configured):
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="token-alice")

    with patch(AUTH_CLIENT_PATH, return_value=mock_auth_server(json_error=ValueError("Expecting value"))):
        with pytest.raises(UnauthorizedError) as exc:
            await get_current_user(credentials)

    assert exc.value.status_code == 401
    assert exc.value.message == "Unauthorized - Invalid token"


@pytest.mark.asyncio
async def test_rejected_token_is_none(auth_configured):
    with patch(AUTH_CLIENT_PATH, return_value=mock_auth_server(status_code=401)):
        assert await fetch_auth_user("expired") is None
