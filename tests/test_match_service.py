"""
Match Service Tests

Like -> match detection -> notifications -> milestones.
"""

import pytest
from unittest.mock import AsyncMock, patch

from duoreel.core.exceptions import ValidationError
from duoreel.services.kv_paginated import scan_values_by_prefix
from duoreel.services.kv_store import MemoryKVStore
from duoreel.services.match_service import MatchService
from duoreel.services.notification_service import NotificationService

from conftest import make_partners

FIGHT_CLUB = {"id": 550, "title": "Fight Club", "poster_path": "/fc.jpg"}


async def notifications_of(store, user_id, notification_type=None):
    records = await scan_values_by_prefix(store, f"notification:{user_id}:")
    if notification_type:
        records = [r for r in records if r["type"] == notification_type]
    return records


@pytest.mark.asyncio
async def test_like_without_partner_is_not_a_match():
    store = MemoryKVStore()
    await store.set("user:user_a", {"id": "user_a", "name": "Alice"})

    result = await MatchService(store).record_like("user_a", FIGHT_CLUB)

    assert result == {"isMatch": False}
    liked = await store.get("liked:user_a:550")
    assert liked["title"] == "Fight Club"
    assert isinstance(liked["timestamp"], int)
    shadow = await store.get("like:user_a:550")
    assert shadow["movieId"] == 550


@pytest.mark.asyncio
async def test_both_partners_like_same_movie():
    """Exactly 2 match records and 2 movie_match notifications."""
    store = MemoryKVStore()
    await make_partners(store)
    service = MatchService(store)

    first = await service.record_like("user_a", FIGHT_CLUB)
    second = await service.record_like("user_b", FIGHT_CLUB)

    assert first == {"isMatch": False}
    assert second == {"isMatch": True}

    match_keys = [k for k in store.keys() if k.startswith("match:")]
    assert sorted(match_keys) == ["match:user_a:550", "match:user_b:550"]

    for user_id, other_id, other_name in (("user_a", "user_b", "Bob"), ("user_b", "user_a", "Alice")):
        matches = await notifications_of(store, user_id, "movie_match")
        assert len(matches) == 1
        data = matches[0]["data"]
        assert data["movieId"] == 550
        assert data["movieTitle"] == "Fight Club"
        assert data["posterPath"] == "/fc.jpg"
        assert data["fromUserId"] == other_id
        assert data["fromName"] == other_name


@pytest.mark.asyncio
async def test_unread_counters_increment_by_one_each():
    store = MemoryKVStore()
    await make_partners(store)
    service = MatchService(store)
    notifications = NotificationService(store)

    await service.record_like("user_a", FIGHT_CLUB)
    await service.record_like("user_b", FIGHT_CLUB)

    assert await notifications.unread_count("user_a") == 1
    assert await notifications.unread_count("user_b") == 1


@pytest.mark.asyncio
async def test_repeated_like_before_partner_is_not_a_match():
    store = MemoryKVStore()
    await make_partners(store)
    service = MatchService(store)

    assert await service.record_like("user_a", FIGHT_CLUB) == {"isMatch": False}
    assert await service.record_like("user_a", FIGHT_CLUB) == {"isMatch": False}

    assert not [k for k in store.keys() if k.startswith("match:")]
    assert await notifications_of(store, "user_a") == []
    assert await notifications_of(store, "user_b") == []


@pytest.mark.asyncio
async def test_title_falls_back_to_name_then_unknown():
    store = MemoryKVStore()
    await make_partners(store)
    service = MatchService(store)

    await service.record_like("user_b", {"id": 1, "name": "Some Show"})
    await service.record_like("user_a", {"id": 1, "name": "Some Show"})
    await service.record_like("user_b", {"id": 2})
    await service.record_like("user_a", {"id": 2})

    titles = sorted(n["data"]["movieTitle"] for n in await notifications_of(store, "user_a", "movie_match"))
    assert titles == ["Some Show", "Unknown Movie"]


async def match_movie(service, movie_id):
    movie = {"id": movie_id, "title": f"Movie {movie_id}"}
    await service.record_like("user_b", movie)
    await service.record_like("user_a", movie)


@pytest.mark.asyncio
async def test_milestones_fire_at_exact_counts_only():
    store = MemoryKVStore()
    await make_partners(store)
    service = MatchService(store)

    for movie_id in range(1, 5):
        await match_movie(service, movie_id)
    assert await notifications_of(store, "user_a", "match_milestone") == []

    await match_movie(service, 5)
    for user_id in ("user_a", "user_b"):
        milestones = await notifications_of(store, user_id, "match_milestone")
        assert [m["data"]["milestoneCount"] for m in milestones] == [5]

    for movie_id in range(6, 10):
        await match_movie(service, movie_id)
    for user_id in ("user_a", "user_b"):
        assert len(await notifications_of(store, user_id, "match_milestone")) == 1

    await match_movie(service, 10)
    for user_id in ("user_a", "user_b"):
        counts = sorted(m["data"]["milestoneCount"] for m in await notifications_of(store, user_id, "match_milestone"))
        assert counts == [5, 10]


@pytest.mark.asyncio
async def test_milestone_with_seeded_matches():
    """Seed 4 existing matches; the 5th triggers one milestone per partner."""
    store = MemoryKVStore()
    await make_partners(store)
    for movie_id in range(100, 104):
        await store.set(f"match:user_a:{movie_id}", {"id": movie_id})
        await store.set(f"match:user_b:{movie_id}", {"id": movie_id})
    await store.set("liked:user_b:550", FIGHT_CLUB)

    await MatchService(store).record_like("user_a", FIGHT_CLUB)

    assert len(await notifications_of(store, "user_a", "match_milestone")) == 1
    assert len(await notifications_of(store, "user_b", "match_milestone")) == 1


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_match():
    store = MemoryKVStore()
    await make_partners(store)
    await store.set("liked:user_b:550", FIGHT_CLUB)

    notifications = NotificationService(store)
    with patch.object(notifications, "create", AsyncMock(side_effect=RuntimeError("down"))):
        result = await MatchService(store, notifications).record_like("user_a", FIGHT_CLUB)

    assert result == {"isMatch": True}
    assert await store.get("match:user_a:550") is not None
    assert await store.get("match:user_b:550") is not None


@pytest.mark.asyncio
async def test_missing_id_is_rejected():
    with pytest.raises(ValidationError):
        await MatchService(MemoryKVStore()).record_like("user_a", {"title": "No id"})


@pytest.mark.asyncio
async def test_remove_like_clears_both_matches():
    store = MemoryKVStore()
    await make_partners(store)
    service = MatchService(store)
    await service.record_like("user_a", FIGHT_CLUB)
    await service.record_like("user_b", FIGHT_CLUB)

    await service.remove_like("user_a", "550")

    assert await store.get("liked:user_a:550") is None
    assert await store.get("like:user_a:550") is None
    assert await store.get("match:user_a:550") is None
    assert await store.get("match:user_b:550") is None
    assert await store.get("liked:user_b:550") is not None
