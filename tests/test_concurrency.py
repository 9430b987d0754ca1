"""
Bounded Concurrency Tests
"""

import asyncio

import pytest

from duoreel.services.concurrency import map_bounded


@pytest.mark.asyncio
async def test_every_item_once_in_input_order():
    calls = []

    async def double(n):
        calls.append(n)
        await asyncio.sleep(0.001 * (23 - n))
        return n * 2

    results = await map_bounded(list(range(23)), double, 5)

    assert sorted(calls) == list(range(23))
    assert [r.value for r in results] == [n * 2 for n in range(23)]
    assert all(r.ok for r in results)


@pytest.mark.asyncio
async def test_never_more_than_limit_in_flight():
    in_flight = 0
    peak = 0

    async def track(n):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.005)
        in_flight -= 1
        return n

    await map_bounded(list(range(23)), track, 5)

    assert peak == 5


@pytest.mark.asyncio
async def test_failures_are_captured_per_item():
    async def flaky(n):
        if n % 4 == 0:
            raise ValueError(f"bad {n}")
        return n

    results = await map_bounded(list(range(10)), flaky, 3)

    failed = [i for i, r in enumerate(results) if not r.ok]
    assert failed == [0, 4, 8]
    assert isinstance(results[4].error, ValueError)
    assert results[5].value == 5


@pytest.mark.asyncio
async def test_empty_input_and_low_limit():
    async def identity(n):
        return n

    assert await map_bounded([], identity, 5) == []
    results = await map_bounded([1, 2], identity, 0)
    assert [r.value for r in results] == [1, 2]
