"""
Bounded Concurrency Mapper

Runs an async function over a list with at most `concurrency` calls in
flight. Each item is attempted exactly once and its outcome is recorded at
the item's index, so the output order always matches the input order.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class Settled(Generic[R]):
    """Outcome of one item: either a value or the exception it raised."""
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def map_bounded(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    concurrency: int,
) -> List[Settled[R]]:
    """
    Apply `fn` to every item with a ceiling on concurrent calls.

    A failing item does not stop the other workers; its exception is
    captured in the matching Settled entry. Cancellation still propagates.

    Args:
        items: Inputs
        fn: Async transformation
        concurrency: Max in-flight calls (values below 1 are treated as 1)

    Returns:
        One Settled per input, in input order
    """
    results: List[Any] = [None] * len(items)
    next_index = 0

    async def worker():
        nonlocal next_index
        while next_index < len(items):
            # No await between the check and the claim, so no two workers
            # can take the same index
            i = next_index
            next_index += 1
            try:
                results[i] = Settled(value=await fn(items[i]))
            except Exception as e:
                results[i] = Settled(error=e)

    workers = min(max(concurrency, 1), len(items))
    await asyncio.gather(*(worker() for _ in range(workers)))
    return results
