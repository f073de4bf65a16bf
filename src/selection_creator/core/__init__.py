"""Core utilities and shared components for the selection creator."""

from .image_utils import (
    calculate_object_key,
    derive_image_name,
    extract_image_metadata,
    is_eligible_image,
    resolve_content_type,
)
from .logging_config import (
    enable_debug_logging,
    get_logger,
    route_logs_to,
    setup_logger,
)
from .exceptions import (
    SelectionCreatorError,
    ConfigurationError,
    SelectionCreationError,
    EventUpdateError,
    S3Error,
    RecordStoreError,
    ItemFailure,
)
from .models import (
    ImageFile,
    ImageWithUrl,
    ItemFailureReport,
    PipelineState,
    ProcessorType,
    RunResult,
    SelectionConfig,
    SelectionItemRecord,
    SelectionRecord,
    UploadedImage,
)

__all__ = [
    "SelectionConfig",
    "ProcessorType",
    "ImageFile",
    "UploadedImage",
    "ImageWithUrl",
    "SelectionRecord",
    "SelectionItemRecord",
    "PipelineState",
    "ItemFailureReport",
    "RunResult",
    "calculate_object_key",
    "derive_image_name",
    "extract_image_metadata",
    "is_eligible_image",
    "resolve_content_type",
    "setup_logger",
    "get_logger",
    "enable_debug_logging",
    "route_logs_to",
    "SelectionCreatorError",
    "ConfigurationError",
    "SelectionCreationError",
    "EventUpdateError",
    "S3Error",
    "RecordStoreError",
    "ItemFailure",
]
