"""
TMDb Client

Thin async wrapper over the TMDb v3 API. Every call raises UpstreamError
on transport failures, non-2xx statuses and non-JSON bodies so route
handlers never see raw httpx exceptions.
"""

from typing import Any, Dict, List, Optional

import httpx

from ..config import get_settings
from ..core.exceptions import UpstreamError
from ..core.logging import get_logger

logger = get_logger(__name__)


class TMDbClient:
    """TMDb v3 client (API key or v4 read access token)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        read_access_token: Optional[str] = None,
        base_url: str = "https://api.themoviedb.org/3",
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.read_access_token = read_access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key or self.read_access_token)

    def _auth(self) -> tuple[Dict[str, str], Dict[str, str]]:
        if self.read_access_token:
            return {}, {"Authorization": f"Bearer {self.read_access_token}"}
        return {"api_key": self.api_key or ""}, {}

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a TMDb endpoint and return the decoded JSON body."""
        if not self.is_configured:
            raise UpstreamError("tmdb", "TMDb API key not configured")

        auth_params, headers = self._auth()
        query = {**auth_params, **{k: v for k, v in (params or {}).items() if v is not None}}

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.base_url}{path}",
                    params=query,
                    headers=headers,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            logger.error("tmdb_request_failed", path=path, error=str(e))
            raise UpstreamError("tmdb", f"TMDb request failed: {e}")

        if response.status_code != 200:
            logger.error(
                "tmdb_bad_status",
                path=path,
                status=response.status_code,
                body=response.text[:200],
            )
            raise UpstreamError("tmdb", f"TMDb API error: {response.status_code}")

        try:
            return response.json()
        except ValueError:
            logger.error("tmdb_non_json", path=path, body=response.text[:200])
            raise UpstreamError("tmdb", "Invalid response from TMDb API")

    async def discover_movies(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self.get("/discover/movie", params)

    async def search_movies(self, query: str, year: Optional[Any] = None) -> List[Dict[str, Any]]:
        data = await self.get("/search/movie", {"query": query, "year": year or None})
        return data.get("results") or []

    async def search_movies_raw(self, query: str) -> Dict[str, Any]:
        return await self.get("/search/movie", {"query": query})

    async def search_people(self, query: str) -> Dict[str, Any]:
        return await self.get("/search/person", {"query": query})

    async def find_person_id(self, name: str) -> Optional[int]:
        """First person search hit, or None."""
        data = await self.search_people(name)
        results = data.get("results") or []
        return results[0].get("id") if results else None

    async def movie_details(self, movie_id: Any, append: Optional[str] = None) -> Dict[str, Any]:
        return await self.get(f"/movie/{movie_id}", {"append_to_response": append})

    async def genres(self) -> Dict[str, Any]:
        return await self.get("/genre/movie/list")


# Singleton instance
_tmdb_client: Optional[TMDbClient] = None


def get_tmdb_client() -> TMDbClient:
    """Get singleton TMDbClient instance."""
    global _tmdb_client
    if _tmdb_client is None:
        settings = get_settings()
        _tmdb_client = TMDbClient(
            api_key=settings.tmdb_api_key,
            read_access_token=settings.tmdb_read_access_token,
            base_url=settings.tmdb_base_url,
            timeout=settings.upstream_timeout_seconds,
        )
    return _tmdb_client
