"""Fake implementations for testing purposes."""

import asyncio
import io
import os
import threading
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass, field
from urllib.parse import urlencode

from botocore.exceptions import ClientError
from PIL import Image


@dataclass
class S3Object:
    """Fake S3 object for testing."""

    key: str
    body: bytes
    content_type: str = "image/jpeg"
    size: int = 0

    def __post_init__(self):
        if self.size == 0:
            self.size = len(self.body)


@dataclass
class S3Bucket:
    """Fake S3 bucket for testing."""

    name: str
    objects: Dict[str, S3Object] = field(default_factory=dict)

    def add_object(
        self, key: str, body: bytes, content_type: str = "image/jpeg"
    ) -> None:
        """Add object to bucket."""
        self.objects[key] = S3Object(key=key, body=body, content_type=content_type)

    def get_object(self, key: str) -> Optional[S3Object]:
        """Get object from bucket."""
        return self.objects.get(key)


def client_error(code: str, operation: str) -> ClientError:
    """Build a botocore ClientError the way the real clients raise them."""
    return ClientError({"Error": {"Code": code, "Message": f"Simulated {code}"}}, operation)


class FakeS3Client:
    """Fake S3 client for testing."""

    def __init__(self):
        self.buckets: Dict[str, S3Bucket] = {}
        self.operation_count = 0
        self.should_fail = False
        self.failure_message = "Simulated S3 failure"
        self.failing_keys: set = set()
        self.presign_failing_keys: set = set()
        self.throttle_remaining = 0
        self.delay_seconds = 0.0
        self.presign_calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def create_bucket(self, name: str) -> S3Bucket:
        """Create a new bucket."""
        bucket = S3Bucket(name=name)
        self.buckets[name] = bucket
        return bucket

    def get_bucket(self, name: str) -> Optional[S3Bucket]:
        """Get bucket by name."""
        return self.buckets.get(name)

    def set_failure_mode(
        self, should_fail: bool, message: str = "Simulated failure"
    ) -> None:
        """Configure failure mode for testing error handling."""
        self.should_fail = should_fail
        self.failure_message = message

    def fail_uploads_for(self, *keys: str) -> None:
        """Make put_object fail for specific keys."""
        self.failing_keys.update(keys)

    def fail_presign_for(self, *keys: str) -> None:
        """Make generate_presigned_url fail for specific keys."""
        self.presign_failing_keys.update(keys)

    def set_delay(self, seconds: float) -> None:
        """Set artificial delay for concurrency tests."""
        self.delay_seconds = seconds

    def _count(self) -> None:
        with self._lock:
            self.operation_count += 1

    def put_object(
        self, Bucket: str, Key: str, Body: bytes, ContentType: str
    ) -> Dict[str, Any]:
        """Put object to S3."""
        self._count()

        if self.delay_seconds > 0:
            time.sleep(self.delay_seconds)

        if self.should_fail:
            raise Exception(self.failure_message)

        with self._lock:
            if self.throttle_remaining > 0:
                self.throttle_remaining -= 1
                raise client_error("SlowDown", "PutObject")

        if Key in self.failing_keys:
            raise client_error("AccessDenied", "PutObject")

        bucket = self.buckets.get(Bucket)
        if not bucket:
            raise client_error("NoSuchBucket", "PutObject")

        with self._lock:
            bucket.add_object(Key, Body, ContentType)

        return {
            "ETag": f'"fake-etag-{Key}"',
            "ResponseMetadata": {"HTTPStatusCode": 200},
        }

    def generate_presigned_url(
        self, ClientMethod: str, Params: Dict[str, Any], ExpiresIn: int
    ) -> str:
        """Return a deterministic URL carrying the expiry like a SigV4 URL does."""
        self._count()
        with self._lock:
            self.presign_calls.append(
                {"ClientMethod": ClientMethod, "Params": dict(Params), "ExpiresIn": ExpiresIn}
            )

        if self.should_fail:
            raise Exception(self.failure_message)

        if Params["Key"] in self.presign_failing_keys:
            raise client_error("InvalidAccessKeyId", "GetObject")

        query = urlencode({"X-Amz-Expires": ExpiresIn, "X-Amz-Signature": "fake"})
        return f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}?{query}"


class FakeRecordStore:
    """In-memory record store keyed like the DynamoDB tables the pipeline uses."""

    KEY_ATTRIBUTES = {
        "Selection": "selectionId",
        "SelectionItem": "imageName",
        "Events": "eventId",
    }

    def __init__(self, key_attributes: Optional[Dict[str, str]] = None):
        self.tables: Dict[str, Dict[Any, Dict[str, Any]]] = {}
        self.key_attributes = dict(key_attributes or self.KEY_ATTRIBUTES)
        self.operation_count = 0
        self.calls: List[Tuple[str, str]] = []
        self.failing_tables: set = set()
        self.failing_keys: set = set()
        self._lock = threading.Lock()

    def fail_table(self, *tables: str) -> None:
        """Make every operation on these tables fail."""
        self.failing_tables.update(tables)

    def fail_items(self, *key_values: Any) -> None:
        """Make put_item fail for items with these key values."""
        self.failing_keys.update(key_values)

    def _record_call(self, operation: str, table: str) -> None:
        with self._lock:
            self.operation_count += 1
            self.calls.append((operation, table))

    def put_item(self, table: str, item: Dict[str, Any]) -> None:
        self._record_call("put_item", table)

        if table in self.failing_tables:
            raise client_error("ResourceNotFoundException", "PutItem")

        key = item[self.key_attributes.get(table, next(iter(item)))]
        if key in self.failing_keys:
            raise client_error("ConditionalCheckFailedException", "PutItem")

        with self._lock:
            self.tables.setdefault(table, {})[key] = dict(item)

    def update_item(
        self,
        table: str,
        key: Dict[str, Any],
        update_expression: str,
        expression_values: Dict[str, Any],
    ) -> None:
        """Supports ``SET a = :a, b = :b`` expressions only."""
        self._record_call("update_item", table)

        if table in self.failing_tables:
            raise client_error("ResourceNotFoundException", "UpdateItem")

        assignments = update_expression.strip()
        if not assignments.upper().startswith("SET "):
            raise ValueError(f"Unsupported update expression: {update_expression}")

        key_value = next(iter(key.values()))
        with self._lock:
            record = self.tables.setdefault(table, {}).setdefault(key_value, dict(key))
            for assignment in assignments[4:].split(","):
                attribute, placeholder = (part.strip() for part in assignment.split("="))
                record[attribute] = expression_values[placeholder]

    def get_item(self, table: str, key_value: Any) -> Optional[Dict[str, Any]]:
        return self.tables.get(table, {}).get(key_value)

    def items(self, table: str) -> List[Dict[str, Any]]:
        return list(self.tables.get(table, {}).values())

    def count_calls(self, operation: str, table: str) -> int:
        return self.calls.count((operation, table))


class FakeAsyncS3Client:
    """Awaitable view of a FakeS3Client, shaped like an aiobotocore S3 client."""

    def __init__(self, s3_client: FakeS3Client):
        self._s3_client = s3_client

    async def put_object(self, **kwargs: Any) -> Dict[str, Any]:
        await asyncio.sleep(0)
        return self._s3_client.put_object(**kwargs)

    async def generate_presigned_url(self, *args: Any, **kwargs: Any) -> str:
        await asyncio.sleep(0)
        return self._s3_client.generate_presigned_url(*args, **kwargs)


class FakeAsyncRecordStore:
    """Awaitable view of a FakeRecordStore."""

    def __init__(self, record_store: FakeRecordStore):
        self._record_store = record_store

    async def put_item(self, table: str, item: Dict[str, Any]) -> None:
        await asyncio.sleep(0)
        self._record_store.put_item(table, item)

    async def update_item(self, table: str, *args: Any, **kwargs: Any) -> None:
        await asyncio.sleep(0)
        self._record_store.update_item(table, *args, **kwargs)


class FakeAsyncAwsClients:
    """Async client provider over the in-memory fakes; records each client it opens."""

    def __init__(self, s3_client: FakeS3Client, record_store: FakeRecordStore):
        self._s3_client = s3_client
        self._record_store = record_store
        self.opened: List[str] = []

    @asynccontextmanager
    async def s3(self) -> AsyncIterator[FakeAsyncS3Client]:
        self.opened.append("s3")
        yield FakeAsyncS3Client(self._s3_client)

    @asynccontextmanager
    async def record_store(self) -> AsyncIterator[FakeAsyncRecordStore]:
        self.opened.append("record_store")
        yield FakeAsyncRecordStore(self._record_store)


class FakeLogger:
    """Fake logger for testing with support for LogContext."""

    def __init__(self, name: str = "test_logger"):
        self.name = name
        self.logs: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def _log(
        self, level: str, message: str, context: Any = None, **kwargs: Any
    ) -> None:
        log_entry = {
            "level": level,
            "message": message,
            "timestamp": time.time(),
            **kwargs,
        }

        if context is not None:
            if hasattr(context, "correlation_id"):
                log_entry["correlation_id"] = context.correlation_id
            if getattr(context, "stage", ""):
                log_entry["stage"] = context.stage
            log_entry.update(getattr(context, "fields", {}))

        with self._lock:
            self.logs.append(log_entry)

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        self._log("DEBUG", message, context, **kwargs)

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        self._log("INFO", message, context, **kwargs)

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        self._log("WARNING", message, context, **kwargs)

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        self._log("ERROR", message, context, **kwargs)

    def get_logs(self, level: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get logged messages, optionally filtered by level."""
        if level:
            return [log for log in self.logs if log["level"] == level]
        return self.logs.copy()

    def clear_logs(self) -> None:
        """Clear all logged messages."""
        self.logs.clear()


def create_test_image(
    width: int = 100, height: int = 100, image_format: str = "JPEG"
) -> bytes:
    """Create a small solid-colour image in memory."""
    image = Image.new("RGB", (width, height), color="red")
    img_bytes = io.BytesIO()
    image.save(img_bytes, format=image_format)
    return img_bytes.getvalue()


DEFAULT_TEST_FILES = {
    "beach.jpg": (200, 150, "JPEG"),
    "mountain.JPEG": (300, 200, "JPEG"),
    "portrait.png": (150, 100, "PNG"),
}


def setup_test_image_directory(
    directory: str,
    images: Optional[Dict[str, Tuple[int, int, str]]] = None,
    extra_files: Iterable[Tuple[str, bytes]] = (("readme.txt", b"This is not an image"),),
) -> str:
    """Populate a directory with test images plus non-image files to test filtering."""
    os.makedirs(directory, exist_ok=True)

    if images is None:
        images = DEFAULT_TEST_FILES

    for file_name, (width, height, image_format) in images.items():
        with open(os.path.join(directory, file_name), "wb") as f:
            f.write(create_test_image(width, height, image_format))

    for file_name, body in extra_files:
        with open(os.path.join(directory, file_name), "wb") as f:
            f.write(body)

    return directory


def setup_test_s3_environment(bucket: str = "test-selection") -> FakeS3Client:
    """Set up a fake S3 client with the destination bucket created."""
    s3_client = FakeS3Client()
    s3_client.create_bucket(bucket)
    return s3_client
