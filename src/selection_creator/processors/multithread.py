"""Multithreaded executor - bounded thread pool for concurrent I/O."""

from typing import Dict, List, Optional
from concurrent.futures import Future, ThreadPoolExecutor, as_completed

from .common import ItemOperation, ItemOutcome, R, T, settle, worker_count


def run_batch(
    items: List[T], operation: ItemOperation[T, R], concurrency: int = 10
) -> List[ItemOutcome[T, R]]:
    """
    Run ``operation`` for every item on a bounded thread pool.

    Shared boto3 clients are thread-safe, so the same client handle is used
    by every worker. The call returns once every item has settled.

    Args:
        items: Items to process
        operation: Stage operation; its blocking form is applied to each item
        concurrency: Upper bound on simultaneous operations

    Returns:
        One `ItemOutcome` per item, in input order
    """
    if not items:
        return []

    results: List[Optional[ItemOutcome[T, R]]] = [None] * len(items)

    with ThreadPoolExecutor(max_workers=worker_count(concurrency, len(items))) as executor:
        future_to_index: Dict[Future, int] = {
            executor.submit(settle, item, operation.run): index
            for index, item in enumerate(items)
        }

        # Each future writes only its own slot
        for future in as_completed(future_to_index):
            index = future_to_index[future]
            results[index] = future.result()

    return results  # type: ignore[return-value]
