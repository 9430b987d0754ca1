"""
Pytest Fixtures

Shared fakes and fixtures for testing.
"""

from typing import Any, Dict, List, Optional
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from duoreel.config import get_settings
from duoreel.services.kv_store import MemoryKVStore, get_kv_store
from duoreel.services.tmdb_client import TMDbClient, get_tmdb_client

PREFIX = get_settings().api_prefix

AUTH_USERS = {
    "token-alice": {
        "id": "user_a",
        "email": "alice@example.com",
        "user_metadata": {"full_name": "Alice"},
    },
    "token-bob": {
        "id": "user_b",
        "email": "bob@example.com",
        "user_metadata": {"full_name": "Bob"},
    },
}


class FakeTMDb(TMDbClient):
    """
    In-memory TMDb stand-in.

    `discover_pages` maps page number -> list of movies; pages not listed
    come back empty. Every call is recorded in `calls`.
    """

    def __init__(self):
        super().__init__(api_key="test-key")
        self.discover_pages: Dict[int, List[Dict[str, Any]]] = {}
        self.total_pages = 500
        self.search_results: Dict[str, List[Dict[str, Any]]] = {}
        self.people: Dict[str, int] = {}
        self.details: Dict[int, Dict[str, Any]] = {}
        self.calls: List[tuple] = []

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = params or {}
        self.calls.append((path, params))

        if path == "/discover/movie":
            page = int(params.get("page", 1))
            return {
                "page": page,
                "results": self.discover_pages.get(page, []),
                "total_pages": self.total_pages,
            }
        if path == "/search/movie":
            return {"results": self.search_results.get(params.get("query"), [])}
        if path == "/search/person":
            person_id = self.people.get(params.get("query"))
            return {"results": [{"id": person_id}] if person_id else []}
        if path == "/genre/movie/list":
            return {"genres": [{"id": 28, "name": "Action"}]}
        if path.startswith("/movie/"):
            movie_id = int(path.split("/")[2])
            return self.details.get(movie_id, {"id": movie_id})
        return {}

    def discover_calls(self) -> List[Dict[str, Any]]:
        return [params for path, params in self.calls if path == "/discover/movie"]


async def fake_fetch_auth_user(access_token: str) -> Optional[dict]:
    return AUTH_USERS.get(access_token)


@pytest.fixture
def store():
    """Fresh in-memory KV store."""
    return MemoryKVStore()


@pytest.fixture
def fake_tmdb():
    return FakeTMDb()


@pytest.fixture
def mock_auth():
    """Accept the tokens in AUTH_USERS, reject everything else."""
    with patch("duoreel.core.security.fetch_auth_user", new=fake_fetch_auth_user):
        yield


@pytest.fixture
def client(store, fake_tmdb, mock_auth):
    """Test client wired to the in-memory store and fake TMDb."""
    from duoreel.core.rate_limit import limiter
    from duoreel.main import app

    limiter.reset()
    app.dependency_overrides[get_kv_store] = lambda: store
    app.dependency_overrides[get_tmdb_client] = lambda: fake_tmdb
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def alice_headers():
    return {"Authorization": "Bearer token-alice"}


@pytest.fixture
def bob_headers():
    return {"Authorization": "Bearer token-bob"}


async def make_partners(store, a: str = "user_a", b: str = "user_b"):
    """Seed two profiles that are already partnered."""
    await store.set(f"user:{a}", {"id": a, "name": "Alice", "email": "alice@example.com", "partnerId": b})
    await store.set(f"user:{b}", {"id": b, "name": "Bob", "email": "bob@example.com", "partnerId": a})
