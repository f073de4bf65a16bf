"""Common pieces shared across all item executor implementations."""

from dataclasses import dataclass
from typing import Any, AsyncContextManager, Awaitable, Callable, Generic, Optional, TypeVar

from ..core.logging_config import get_logger

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class ItemOperation(Generic[T, R]):
    """
    Per-item work of one stage, in blocking and in awaitable form.

    ``run`` uses the shared boto3 clients. ``run_async`` receives the client
    yielded by ``open_client``, which the asyncio executor enters once per
    batch inside its event loop.
    """

    run: Callable[[T], R]
    run_async: Optional[Callable[[Any, T], Awaitable[R]]] = None
    open_client: Optional[Callable[[], AsyncContextManager[Any]]] = None

    @property
    def awaitable(self) -> bool:
        return self.run_async is not None and self.open_client is not None


@dataclass
class ItemOutcome(Generic[T, R]):
    """Tagged per-item result: either ``value`` or ``error`` is meaningful."""

    item: T
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.error is None


def _log_failure(error: Exception) -> None:
    get_logger("selection-creator.executor").debug(f"Item operation failed: {error}")


def settle(item: T, operation: Callable[[T], R]) -> "ItemOutcome[T, R]":
    """
    Run ``operation`` on one item and capture its outcome.

    Exceptions never escape: a failed item becomes a failed outcome so that
    sibling items and later stages are unaffected.
    """
    try:
        return ItemOutcome(item=item, value=operation(item))
    except Exception as e:  # noqa: BLE001
        _log_failure(e)
        return ItemOutcome(item=item, error=e)


async def settle_async(
    item: T, operation: Callable[[T], Awaitable[R]]
) -> "ItemOutcome[T, R]":
    """Awaitable counterpart of :func:`settle`."""
    try:
        return ItemOutcome(item=item, value=await operation(item))
    except Exception as e:  # noqa: BLE001
        _log_failure(e)
        return ItemOutcome(item=item, error=e)


def worker_count(concurrency: int, item_count: int) -> int:
    """Bounded pool size: never more workers than items, never fewer than one."""
    return max(1, min(concurrency, item_count))
