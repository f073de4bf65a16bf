"""Item executors with different concurrency strategies."""

from .common import ItemOperation, ItemOutcome
from .serial import run_batch as serial_run_batch
from .multithread import run_batch as multithread_run_batch
from .asyncio_processor import run_batch as asyncio_run_batch

__all__ = [
    "ItemOperation",
    "ItemOutcome",
    "serial_run_batch",
    "multithread_run_batch",
    "asyncio_run_batch",
]
