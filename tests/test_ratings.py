"""
Rating Service Tests

OMDb is mocked at the httpx layer; the daily quota lives in the memory store.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from duoreel.core.exceptions import DuoReelException, NotFoundError, RateLimitedError, UpstreamError
from duoreel.services.kv_store import MemoryKVStore
from duoreel.services.quota_manager import QuotaManager
from duoreel.services.rating_service import DAY_MS, RatingService, is_cache_fresh

from conftest import FakeTMDb

OMDB_PATH = "duoreel.services.rating_service.httpx.AsyncClient"
NOW = 1_800_000_000_000


def mock_omdb(payload=None, status_code=200, content_type="application/json; charset=utf-8", text=""):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.headers = {"content-type": content_type}
    mock_response.text = text
    mock_response.json.return_value = payload or {}

    mock_client = AsyncMock()
    mock_client.get.return_value = mock_response
    mock_client.__aenter__.return_value = mock_client
    mock_client.__aexit__.return_value = None
    return mock_client


def rating_service(store, tmdb=None, daily_limit=1000):
    service = RatingService(store, tmdb or FakeTMDb(), QuotaManager(store, daily_limit), refresh_delay_ms=0)
    service.omdb_api_key = "omdb-key"
    return service


RATED = {"Response": "True", "imdbRating": "8.8", "imdbVotes": "2,100,000"}


@pytest.mark.asyncio
async def test_fetch_and_store_caches_and_counts_quota():
    store = MemoryKVStore()
    service = rating_service(store)
    mock_client = mock_omdb(RATED)

    with patch(OMDB_PATH, return_value=mock_client):
        result = await service.fetch_and_store(550, "tt0137523", "1999-10-15")

    assert result["rating"] == "8.8"
    assert result["votes"] == "2,100,000"
    assert result["fromCache"] is False
    assert (await store.get("imdb:550"))["imdbId"] == "tt0137523"
    assert await service.quota.get_usage() == 1
    assert mock_client.get.call_args.kwargs["params"] == {"i": "tt0137523", "apikey": "omdb-key"}

    # Second call is served from cache without touching OMDb or the quota
    with patch(OMDB_PATH) as client_cls:
        again = await service.fetch_and_store(550, "tt0137523", "1999-10-15")
    client_cls.assert_not_called()
    assert again["fromCache"] is True
    assert await service.quota.get_usage() == 1


@pytest.mark.asyncio
async def test_quota_exhausted_is_rate_limited():
    store = MemoryKVStore()
    service = rating_service(store, daily_limit=2)
    await store.set(f"omdb:usage:{QuotaManager.today()}", {"count": 2, "date": QuotaManager.today()})

    with patch(OMDB_PATH) as client_cls:
        with pytest.raises(RateLimitedError) as exc:
            await service.fetch_and_store(550, "tt0137523")

    client_cls.assert_not_called()
    assert exc.value.status_code == 429
    assert exc.value.message == "Daily API limit reached"


@pytest.mark.asyncio
async def test_non_json_body_is_upstream_error_and_negative_cached():
    store = MemoryKVStore()
    service = rating_service(store)

    with patch(OMDB_PATH, return_value=mock_omdb(content_type="text/html", text="<html>limit</html>")):
        with pytest.raises(UpstreamError):
            await service.fetch_and_store(550, "tt0137523")

    failure = await store.get("imdb:error:550")
    assert failure["error"] is True
    assert failure["retryAfter"] > 0
    assert await service.quota.get_usage() == 1

    with patch(OMDB_PATH) as client_cls:
        with pytest.raises(RateLimitedError) as exc:
            await service.fetch_and_store(550, "tt0137523")
    client_cls.assert_not_called()
    assert exc.value.extra["retryAfter"] == failure["retryAfter"]


@pytest.mark.asyncio
async def test_omdb_false_response_is_not_found_and_remembered():
    store = MemoryKVStore()
    service = rating_service(store)

    with patch(OMDB_PATH, return_value=mock_omdb({"Response": "False", "Error": "Incorrect IMDb ID."})):
        with pytest.raises(NotFoundError) as exc:
            await service.fetch_and_store(9, "tt000")

    assert exc.value.message == "Incorrect IMDb ID."
    assert (await store.get("imdb:error:9"))["errorMessage"] == "Incorrect IMDb ID."


@pytest.mark.asyncio
async def test_success_after_retry_window_clears_error_cache():
    store = MemoryKVStore()
    service = rating_service(store)
    await store.set("imdb:error:550", {"error": True, "retryAfter": 1})

    with patch(OMDB_PATH, return_value=mock_omdb(RATED)):
        await service.fetch_and_store(550, "tt0137523")

    assert await store.get("imdb:error:550") is None


@pytest.mark.asyncio
async def test_missing_omdb_key():
    service = rating_service(MemoryKVStore())
    service.omdb_api_key = None

    with pytest.raises(DuoReelException) as exc:
        await service.fetch_and_store(550, "tt0137523")
    assert exc.value.status_code == 500


@pytest.mark.asyncio
async def test_rating_for_movie_goes_through_tmdb_details():
    store = MemoryKVStore()
    tmdb = FakeTMDb()
    tmdb.details[550] = {"id": 550, "imdb_id": "tt0137523"}
    service = rating_service(store, tmdb)

    with patch(OMDB_PATH, return_value=mock_omdb(RATED)):
        first = await service.rating_for_movie("550")
    second = await service.rating_for_movie("550")

    assert first == {"imdbRating": "8.8", "cached": False}
    assert second == {"imdbRating": "8.8", "cached": True}


@pytest.mark.asyncio
async def test_rating_for_movie_without_imdb_id():
    service = rating_service(MemoryKVStore())
    with pytest.raises(NotFoundError) as exc:
        await service.rating_for_movie("42")
    assert exc.value.message == "IMDb ID not found for this movie"


@pytest.mark.asyncio
async def test_bulk_cached_skips_unknown_ids():
    store = MemoryKVStore()
    await store.set("imdb:550", {"rating": "8.8"})

    ratings = await rating_service(store).bulk_cached(["550", "551"])

    assert ratings == [{"tmdbId": 550, "rating": "8.8"}]


@pytest.mark.asyncio
async def test_refresh_liked_counts_failures():
    store = MemoryKVStore()
    await store.set("liked:u1:550", {"id": 550})
    await store.set("liked:u1:551", {"id": 551})
    tmdb = FakeTMDb()
    tmdb.details[550] = {"id": 550, "imdb_id": "tt0137523"}

    with patch(OMDB_PATH, return_value=mock_omdb(RATED)):
        results = await rating_service(store, tmdb).refresh_liked("u1")

    assert results == {"total": 2, "updated": 1, "failed": 1}
    assert (await store.get("imdb_rating:550"))["rating"] == "8.8"


@pytest.mark.parametrize("fetched_days_ago,release,fresh", [
    (3, "1999-10-15", True),
    (20, "1999-10-15", True),
    (31, "1999-10-15", False),
    (3, "2026-12-01", True),
    (8, "2026-12-01", False),
    (20, None, True),
])
def test_cache_freshness(fetched_days_ago, release, fresh):
    from datetime import datetime, timezone

    fetched_at = datetime.fromtimestamp((NOW - fetched_days_ago * DAY_MS) / 1000, tz=timezone.utc).isoformat()
    assert is_cache_fresh(fetched_at, release, now_ms=NOW) is fresh


def test_unparsable_fetched_at_is_stale():
    assert is_cache_fresh("yesterday", "1999-10-15", now_ms=NOW) is False
    assert is_cache_fresh(None, None, now_ms=NOW) is False
