"""AsyncIO executor - awaits aioboto3 calls concurrently on one event loop."""

import asyncio
from typing import List

from .common import ItemOperation, ItemOutcome, R, T, settle_async, worker_count


async def run_batch_async(
    items: List[T], operation: ItemOperation[T, R], concurrency: int
) -> List[ItemOutcome[T, R]]:
    """Open one async client for the batch and gather the items, at most ``concurrency`` at a time."""
    semaphore = asyncio.Semaphore(worker_count(concurrency, len(items)))

    async with operation.open_client() as client:  # type: ignore[misc]

        async def run_one(item: T) -> ItemOutcome[T, R]:
            async with semaphore:
                return await settle_async(
                    item, lambda i: operation.run_async(client, i)  # type: ignore[misc]
                )

        # settle_async() never raises, so gather cannot short-circuit on a failed item
        return list(await asyncio.gather(*(run_one(item) for item in items)))


def run_batch(
    items: List[T], operation: ItemOperation[T, R], concurrency: int = 10
) -> List[ItemOutcome[T, R]]:
    """
    Run the awaitable form of ``operation`` for every item using asyncio.

    This is the synchronous wrapper that runs the event loop.

    Args:
        items: Items to process
        operation: Stage operation; must carry ``run_async`` and ``open_client``
        concurrency: Upper bound on simultaneous operations

    Returns:
        One `ItemOutcome` per item, in input order

    Raises:
        TypeError: The operation has no awaitable form
    """
    if not items:
        return []
    if not operation.awaitable:
        raise TypeError("The asyncio executor needs an operation with run_async and open_client")
    return asyncio.run(run_batch_async(items, operation, concurrency))
