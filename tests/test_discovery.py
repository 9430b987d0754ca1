"""
Filtered Discovery Tests

TMDb is replaced by FakeTMDb; the inter-page delay is disabled.
"""

import random
from datetime import date

import pytest

from duoreel.core.exceptions import UpstreamError
from duoreel.services.discovery_service import (
    DiscoveryFilters,
    DiscoveryService,
    build_browse_params,
    build_discover_params,
)
from duoreel.services.kv_store import MemoryKVStore

from conftest import FakeTMDb


def page_of(start, count=20):
    return [{"id": i, "title": f"Movie {i}"} for i in range(start, start + count)]


def service(store, tmdb):
    return DiscoveryService(store, tmdb, delay_ms=0)


@pytest.mark.asyncio
async def test_returns_target_count_from_first_page():
    tmdb = FakeTMDb()
    tmdb.discover_pages = {1: page_of(1), 2: page_of(21)}

    result = await service(MemoryKVStore(), tmdb).discover_filtered("u1", DiscoveryFilters())

    assert [m["id"] for m in result["results"]] == list(range(1, 21))
    assert result["page"] == 1
    assert result["total_results"] == 20
    assert result["total_pages"] == 500
    assert len(tmdb.discover_calls()) == 1


@pytest.mark.asyncio
async def test_excluded_movies_are_skipped_and_next_page_fetched():
    store = MemoryKVStore()
    for movie_id in range(1, 11):
        await store.set(f"watched:u1:{movie_id}", {"id": movie_id})
    await store.set("notinterested:u1:15", {"movieId": 15})

    tmdb = FakeTMDb()
    tmdb.discover_pages = {1: page_of(1), 2: page_of(21)}

    result = await service(store, tmdb).discover_filtered("u1", DiscoveryFilters())

    ids = [m["id"] for m in result["results"]]
    assert len(ids) == 20
    assert not set(ids) & (set(range(1, 11)) | {15})
    assert [c["page"] for c in tmdb.discover_calls()] == [1, 2]


@pytest.mark.asyncio
async def test_include_watched_keeps_watched_movies():
    store = MemoryKVStore()
    await store.set("watched:u1:1", {"id": 1})
    await store.set("notinterested:u1:2", {"movieId": 2})

    tmdb = FakeTMDb()
    tmdb.discover_pages = {1: page_of(1)}

    result = await service(store, tmdb).discover_filtered(
        "u1", DiscoveryFilters(include_watched=True)
    )

    ids = [m["id"] for m in result["results"]]
    assert 1 in ids
    assert 2 not in ids


@pytest.mark.asyncio
async def test_stops_after_five_attempts_when_everything_is_excluded():
    store = MemoryKVStore()
    for movie_id in range(1, 1001):
        await store.set(f"notinterested:u1:{movie_id}", {"movieId": movie_id})

    tmdb = FakeTMDb()
    tmdb.discover_pages = {p: page_of((p - 1) * 20 + 1) for p in range(1, 50)}

    result = await service(store, tmdb).discover_filtered("u1", DiscoveryFilters())

    assert result["results"] == []
    assert result["total_results"] == 0
    assert [c["page"] for c in tmdb.discover_calls()] == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_upstream_exhaustion_returns_partial_page():
    tmdb = FakeTMDb()
    tmdb.discover_pages = {3: page_of(1, 7)}

    result = await service(MemoryKVStore(), tmdb).discover_filtered(
        "u1", DiscoveryFilters(), start_page=3
    )

    assert len(result["results"]) == 7
    assert result["page"] == 3
    assert [c["page"] for c in tmdb.discover_calls()] == [3, 4]


@pytest.mark.asyncio
async def test_total_pages_is_capped():
    tmdb = FakeTMDb()
    tmdb.total_pages = 9000
    tmdb.discover_pages = {1: page_of(1)}
    result = await service(MemoryKVStore(), tmdb).discover_filtered("u1", DiscoveryFilters())
    assert result["total_pages"] == 500

    tmdb.total_pages = 3
    result = await service(MemoryKVStore(), tmdb).discover_filtered("u1", DiscoveryFilters())
    assert result["total_pages"] == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(10))
async def test_never_more_than_twenty_and_never_excluded(seed):
    rng = random.Random(seed)
    store = MemoryKVStore()
    excluded = set(rng.sample(range(1, 300), rng.randint(0, 250)))
    for movie_id in excluded:
        prefix = "watched" if rng.random() < 0.5 else "notinterested"
        await store.set(f"{prefix}:u1:{movie_id}", {})

    tmdb = FakeTMDb()
    for page in range(1, 8):
        if rng.random() < 0.15:
            continue
        tmdb.discover_pages[page] = [
            {"id": rng.randint(1, 300)} for _ in range(rng.randint(0, 20))
        ]

    result = await service(store, tmdb).discover_filtered("u1", DiscoveryFilters())

    ids = [m["id"] for m in result["results"]]
    assert len(ids) <= 20
    assert not set(ids) & excluded
    assert len(tmdb.discover_calls()) <= 5


@pytest.mark.asyncio
async def test_person_lookup_failure_only_drops_that_filter():
    class FlakyPeople(FakeTMDb):
        async def find_person_id(self, name):
            if name == "Broken":
                raise UpstreamError("tmdb", "TMDb API error: 500")
            return await super().find_person_id(name)

    tmdb = FlakyPeople()
    tmdb.people = {"Greta Gerwig": 45400}
    tmdb.discover_pages = {1: page_of(1)}

    await service(MemoryKVStore(), tmdb).discover_filtered(
        "u1", DiscoveryFilters(director="Greta Gerwig", actor="Broken")
    )

    params = tmdb.discover_calls()[0]
    assert params["with_crew"] == 45400
    assert "with_cast" not in params


def test_discover_params_full_filter_set():
    filters = DiscoveryFilters(
        genre="28",
        minRating="7",
        decade="1990-1999",
        language="fr",
        sortBy="vote_average.desc",
        duration="medium",
        streamingServices="8|337",
    )

    params = build_discover_params(filters, page=2, with_crew=1, with_cast=2)

    assert params["page"] == 2
    assert params["include_adult"] == "false"
    assert params["vote_count.gte"] == 100
    assert params["with_genres"] == "28"
    assert params["vote_average.gte"] == "7"
    assert params["primary_release_date.gte"] == "1990-01-01"
    assert params["primary_release_date.lte"] == "1999-12-31"
    assert params["with_original_language"] == "fr"
    assert params["sort_by"] == "vote_average.desc"
    assert params["with_crew"] == 1
    assert params["with_cast"] == 2
    assert params["with_watch_providers"] == "8|337"
    assert params["watch_region"] == "US"
    assert params["with_runtime.gte"] == 41
    assert params["with_runtime.lte"] == 79


def test_discover_params_all_values_and_year_precedence():
    filters = DiscoveryFilters(genre="all", minRating="all", year="2001", decade="1990-1999", duration="all")

    params = build_discover_params(filters, page=1)

    assert "with_genres" not in params
    assert "vote_average.gte" not in params
    assert params["primary_release_year"] == "2001"
    assert "primary_release_date.gte" not in params
    assert params["sort_by"] == "popularity.desc"
    assert "with_runtime.gte" not in params
    assert "with_runtime.lte" not in params


@pytest.mark.parametrize("duration,gte,lte", [
    ("short", None, 40),
    ("medium", 41, 79),
    ("feature", 80, 120),
    ("epic", 121, None),
])
def test_duration_buckets(duration, gte, lte):
    params = build_discover_params(DiscoveryFilters(duration=duration), page=1)
    assert params.get("with_runtime.gte") == gte
    assert params.get("with_runtime.lte") == lte


def test_browse_params_map_client_sort_and_release_cutoff():
    params = build_browse_params(
        DiscoveryFilters(sortBy="year-old"), page="4", today=date(2026, 1, 31)
    )

    assert params["sort_by"] == "primary_release_date.asc"
    assert params["primary_release_date.lte"] == "2026-01-31"
    assert params["vote_count.gte"] == 10
    assert params["page"] == "4"
