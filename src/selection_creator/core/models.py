"""Shared data models for the selection creator."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


DEFAULT_URL_EXPIRY_SECONDS = 7 * 24 * 60 * 60


class ProcessorType(str, Enum):
    """Item executor strategies."""

    SERIAL = "serial"
    MULTITHREAD = "multithread"
    ASYNCIO = "asyncio"


class SelectionConfig(BaseModel):
    """Validated configuration bundle for one run."""

    region: str
    bucket: str
    username: str
    event_id: str
    event_title: str
    max_number_of_photos: int = Field(gt=0)
    input_dir: str
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    selection_table: str = "Selection"
    selection_item_table: str = "SelectionItem"
    events_table: str = "Events"
    processor: ProcessorType = ProcessorType.MULTITHREAD
    concurrency: int = Field(default=10, gt=0)
    # S3 SigV4 caps presigned URLs at seven days
    url_expiry_seconds: int = Field(
        default=DEFAULT_URL_EXPIRY_SECONDS, gt=0, le=DEFAULT_URL_EXPIRY_SECONDS
    )
    debug: bool = False


class ImageFile(BaseModel):
    """An eligible image with best-effort metadata."""

    file_name: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    size_bytes: Optional[int] = None

    @property
    def has_metadata(self) -> bool:
        return self.width is not None and self.height is not None


class UploadedImage(ImageFile):
    """An image whose bytes are in S3."""

    object_key: str
    content_type: str
    uploaded_size_bytes: int


class ImageWithUrl(UploadedImage):
    """An uploaded image with its presigned URL, if one could be generated."""

    access_url: Optional[str] = None
    access_url_expires_at: Optional[datetime] = None


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RecordModel(BaseModel):
    """Base for persisted records: camelCase attribute names in the store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_item(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class SelectionRecord(RecordModel):
    """One Selection per run."""

    selection_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    username: str
    event_id: str
    event_title: str
    max_number_of_photos: int
    selected_number_of_photos: int = 0
    blocked: bool = False
    created_at: str = Field(default_factory=utc_timestamp)
    updated_at: Optional[str] = None
    selected_images: List[str] = Field(default_factory=list)


class SelectionItemRecord(RecordModel):
    """One SelectionItem per uploaded image, keyed by image name."""

    image_name: str
    selection_id: str
    event_id: str
    username: str
    object_key: str
    access_url: Optional[str] = None
    selected: bool = False
    image_width: Optional[int] = None
    image_height: Optional[int] = None

    def to_item(self) -> Dict[str, Any]:
        # Absent optional attributes are omitted rather than stored as NULL
        return self.model_dump(by_alias=True, exclude_none=True)


class PipelineState(str, Enum):
    """Coordinator states, in the order a successful run visits them."""

    INIT = "Init"
    SELECTION_CREATED = "SelectionCreated"
    METADATA_EXTRACTED = "MetadataExtracted"
    UPLOADED = "Uploaded"
    URLS_GENERATED = "UrlsGenerated"
    ITEMS_WRITTEN = "ItemsWritten"
    EVENT_UPDATED = "EventUpdated"
    DONE = "Done"
    NO_IMAGES_FOUND = "NoImagesFound"
    FAILED = "Failed"


class ItemFailureReport(BaseModel):
    """A recoverable per-item failure surfaced in the final report."""

    stage: str
    file_name: str
    error: str


class RunResult(BaseModel):
    """Machine-readable outcome of a run."""

    selection_id: Optional[str] = None
    state: PipelineState = PipelineState.INIT
    state_history: List[PipelineState] = Field(default_factory=list)
    total_images: int = 0
    uploaded_count: int = 0
    url_count: int = 0
    items_attempted: int = 0
    items_written: int = 0
    event_updated: bool = False
    failures: List[ItemFailureReport] = Field(default_factory=list)
    duplicate_image_names: List[str] = Field(default_factory=list)
    stage_durations: Dict[str, float] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.state in (PipelineState.DONE, PipelineState.NO_IMAGES_FOUND)
