"""Serial executor - runs item operations one by one."""

from typing import List

from .common import ItemOperation, ItemOutcome, R, T, settle


def run_batch(
    items: List[T], operation: ItemOperation[T, R], concurrency: int = 1
) -> List[ItemOutcome[T, R]]:
    """
    Runs ``operation`` for each item serially, in the current thread.

    Args:
        items: Items to process.
        operation: Stage operation; its blocking form is applied to each item.
        concurrency: Ignored, accepted for a uniform executor signature.

    Returns:
        One `ItemOutcome` per item, in input order.
    """
    results = []

    for item in items:
        results.append(settle(item, operation.run))

    return results
