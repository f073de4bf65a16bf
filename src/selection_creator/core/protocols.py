"""Protocol definitions for dependency injection and testability."""

from abc import ABC, abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncContextManager,
    Dict,
    List,
    Optional,
    Protocol,
    TypeVar,
)

if TYPE_CHECKING:
    from ..processors.common import ItemOperation


T = TypeVar("T")
R = TypeVar("R")


class S3ClientProtocol(Protocol):
    """Protocol for the S3 client operations the pipeline issues."""

    def put_object(
        self, Bucket: str, Key: str, Body: bytes, ContentType: str
    ) -> Dict[str, Any]:
        """Put object to S3."""
        ...

    def generate_presigned_url(
        self, ClientMethod: str, Params: Dict[str, Any], ExpiresIn: int
    ) -> str:
        """Generate a presigned URL for a client method."""
        ...


class RecordStoreProtocol(Protocol):
    """Protocol for the structured record store."""

    def put_item(self, table: str, item: Dict[str, Any]) -> None:
        """Create or replace one item."""
        ...

    def update_item(
        self,
        table: str,
        key: Dict[str, Any],
        update_expression: str,
        expression_values: Dict[str, Any],
    ) -> None:
        """Apply an update expression to the item with the given key."""
        ...


class MetadataReaderProtocol(Protocol):
    """Protocol for reading intrinsic image metadata from a file."""

    def read_metadata(self, path: str) -> Dict[str, Any]:
        """Return width, height, format and size_bytes for an image file."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Optional[Any] = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Optional[Any] = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Optional[Any] = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Optional[Any] = None, **kwargs: Any) -> None:
        """Log error message."""
        ...


class ItemExecutor(Protocol):
    """Runs one operation per item and settles every item before returning."""

    def __call__(
        self, items: List[T], operation: "ItemOperation[T, R]", concurrency: int
    ) -> List[Any]:
        ...


class AsyncClientProvider(Protocol):
    """Opens the aioboto3-backed clients the asyncio executor awaits."""

    def s3(self) -> AsyncContextManager[Any]:
        """Async S3 client (awaitable put_object, generate_presigned_url)."""
        ...

    def record_store(self) -> AsyncContextManager[Any]:
        """Async record store (awaitable put_item, update_item)."""
        ...


class FileDiscoveryService(ABC):
    """Abstract service for discovering eligible image files."""

    @abstractmethod
    def discover_files(self, directory: str) -> List[str]:
        """Return eligible file names in listing order."""
        ...
