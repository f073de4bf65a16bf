"""Service implementations for the selection creation pipeline."""

import os
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from .error_handling import (
    StageErrorCollector,
    retry_aws_operation,
    with_error_handling,
)
from .exceptions import (
    ConfigurationError,
    EventUpdateError,
    SelectionCreationError,
    SelectionCreatorError,
)
from .image_utils import (
    calculate_object_key,
    derive_image_name,
    extract_image_metadata,
    is_eligible_image,
    resolve_content_type,
)
from .models import (
    ImageFile,
    ImageWithUrl,
    ItemFailureReport,
    PipelineState,
    RunResult,
    SelectionConfig,
    SelectionItemRecord,
    SelectionRecord,
    UploadedImage,
)
from .observability import LogContext, MetricsCollector, timed_stage
from .protocols import (
    AsyncClientProvider,
    FileDiscoveryService,
    ItemExecutor,
    LoggerProtocol,
    MetadataReaderProtocol,
    RecordStoreProtocol,
    S3ClientProtocol,
)
from ..processors.common import ItemOperation


X = TypeVar("X")

SELECTION_AVAILABLE_EXPRESSION = "SET selectionAvailable = :selectionAvailable"


@dataclass
class StageResult(Generic[X]):
    """Items a stage carries forward plus the per-item failures it absorbed."""

    items: List[X] = field(default_factory=list)
    failures: List[ItemFailureReport] = field(default_factory=list)
    attempted: int = 0


@retry_aws_operation()
@with_error_handling
def _upload_s3_object(
    s3_client: S3ClientProtocol, bucket: str, key: str, data: bytes, content_type: str
) -> None:
    s3_client.put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)


@retry_aws_operation()
@with_error_handling
def _presign_get_url(
    s3_client: S3ClientProtocol, bucket: str, key: str, expires_in: int
) -> str:
    return s3_client.generate_presigned_url(
        "get_object",
        Params={"Bucket": bucket, "Key": key},
        ExpiresIn=expires_in,
    )


@retry_aws_operation()
@with_error_handling
async def _upload_s3_object_async(
    s3_client: Any, bucket: str, key: str, data: bytes, content_type: str
) -> None:
    await s3_client.put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)


@retry_aws_operation()
@with_error_handling
async def _presign_get_url_async(s3_client: Any, bucket: str, key: str, expires_in: int) -> str:
    # aiobotocore signs locally but exposes the call as a coroutine
    return await s3_client.generate_presigned_url(
        "get_object",
        Params={"Bucket": bucket, "Key": key},
        ExpiresIn=expires_in,
    )


class ImageMetadataReader:
    """Reads image headers with Pillow; no pixel data is decoded."""

    @with_error_handling
    def read_metadata(self, path: str) -> Dict[str, Any]:
        """Extract width, height, format and byte size for one file."""
        return extract_image_metadata(path)


class LocalImageDiscoveryService(FileDiscoveryService):
    """Service for discovering eligible images in a local directory."""

    def __init__(self, logger: LoggerProtocol):
        self._logger = logger

    def validate_directory(self, directory: str) -> None:
        if not os.path.isdir(directory):
            raise ConfigurationError(f"Input directory '{directory}' does not exist.")

    def discover_files(self, directory: str) -> List[str]:
        """List JPEG, PNG and WebP files in name order."""
        self.validate_directory(directory)

        files = [
            name
            for name in sorted(os.listdir(directory))
            if is_eligible_image(name) and os.path.isfile(os.path.join(directory, name))
        ]

        self._logger.info(f"Found {len(files)} image files in {directory}")
        return files


class MetadataExtractionService:
    """Produces one ImageFile per eligible file, degrading when metadata is unreadable."""

    def __init__(
        self,
        discovery: LocalImageDiscoveryService,
        reader: MetadataReaderProtocol,
        logger: LoggerProtocol,
    ):
        self._discovery = discovery
        self._reader = reader
        self._logger = logger

    def validate_directory(self, directory: str) -> None:
        self._discovery.validate_directory(directory)

    def extract(
        self, directory: str, context: Optional[LogContext] = None
    ) -> StageResult[ImageFile]:
        stage = StageResult[ImageFile]()

        with StageErrorCollector("extract", "Metadata extraction") as batch:
            for file_name in self._discovery.discover_files(directory):
                stage.attempted += 1
                path = os.path.join(directory, file_name)
                try:
                    metadata = self._reader.read_metadata(path)
                    image = ImageFile(file_name=file_name, **metadata)
                    self._logger.debug(
                        f"Extracted metadata for {file_name}: {image.width}x{image.height}",
                        context,
                    )
                except Exception as e:  # noqa: BLE001
                    # Still include the file, without metadata
                    image = ImageFile(file_name=file_name)
                    batch.add_failure(file_name, e)
                    self._logger.warning(f"Failed to extract metadata for {file_name}: {e}", context)
                stage.items.append(image)

        stage.failures = batch.failures
        self._logger.info(
            f"Extracted metadata for {sum(1 for image in stage.items if image.has_metadata)}"
            f"/{len(stage.items)} images",
            context,
        )
        return stage


class UploadService:
    """Publishes image bytes to S3 under the selection key scheme."""

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        executor: ItemExecutor,
        logger: LoggerProtocol,
        async_clients: Optional[AsyncClientProvider] = None,
    ):
        self._s3_client = s3_client
        self._executor = executor
        self._logger = logger
        self._async_clients = async_clients

    @staticmethod
    def _prepare(image: ImageFile, config: SelectionConfig, size: int) -> UploadedImage:
        return UploadedImage(
            **image.model_dump(),
            object_key=calculate_object_key(config.username, config.event_id, image.file_name),
            content_type=resolve_content_type(image.file_name),
            uploaded_size_bytes=size,
        )

    @staticmethod
    def _read(image: ImageFile, config: SelectionConfig) -> bytes:
        with open(os.path.join(config.input_dir, image.file_name), "rb") as f:
            return f.read()

    def _upload_one(self, image: ImageFile, config: SelectionConfig) -> UploadedImage:
        data = self._read(image, config)
        uploaded = self._prepare(image, config, len(data))
        _upload_s3_object(
            self._s3_client, config.bucket, uploaded.object_key, data, uploaded.content_type
        )
        return uploaded

    async def _upload_one_async(
        self, s3_client: Any, image: ImageFile, config: SelectionConfig
    ) -> UploadedImage:
        data = self._read(image, config)
        uploaded = self._prepare(image, config, len(data))
        await _upload_s3_object_async(
            s3_client, config.bucket, uploaded.object_key, data, uploaded.content_type
        )
        return uploaded

    def _operation(self, config: SelectionConfig) -> ItemOperation:
        return ItemOperation(
            run=lambda image: self._upload_one(image, config),
            run_async=lambda s3_client, image: self._upload_one_async(s3_client, image, config),
            open_client=self._async_clients.s3 if self._async_clients else None,
        )

    def upload(
        self,
        images: List[ImageFile],
        config: SelectionConfig,
        context: Optional[LogContext] = None,
    ) -> StageResult[UploadedImage]:
        stage = StageResult[UploadedImage](attempted=len(images))

        with StageErrorCollector("upload", f"Upload to s3://{config.bucket}") as batch:
            outcomes = self._executor(images, self._operation(config), config.concurrency)
            for outcome in outcomes:
                file_name = outcome.item.file_name
                if outcome.success:
                    stage.items.append(outcome.value)
                    self._logger.info(f"Uploaded {file_name} to {outcome.value.object_key}", context)
                else:
                    batch.add_failure(file_name, outcome.error)
                    self._logger.error(f"Failed to upload {file_name}: {outcome.error}", context)

        stage.failures = batch.failures
        return stage


class AccessUrlService:
    """Derives time-limited GET URLs for uploaded objects."""

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        executor: ItemExecutor,
        logger: LoggerProtocol,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        async_clients: Optional[AsyncClientProvider] = None,
    ):
        self._s3_client = s3_client
        self._executor = executor
        self._logger = logger
        self._clock = clock
        self._async_clients = async_clients

    @staticmethod
    def _with_url(
        image: UploadedImage, url: str, generated_at: datetime, config: SelectionConfig
    ) -> ImageWithUrl:
        return ImageWithUrl(
            **image.model_dump(),
            access_url=url,
            access_url_expires_at=generated_at + timedelta(seconds=config.url_expiry_seconds),
        )

    def _presign_one(self, image: UploadedImage, config: SelectionConfig) -> ImageWithUrl:
        generated_at = self._clock()
        url = _presign_get_url(
            self._s3_client, config.bucket, image.object_key, config.url_expiry_seconds
        )
        return self._with_url(image, url, generated_at, config)

    async def _presign_one_async(
        self, s3_client: Any, image: UploadedImage, config: SelectionConfig
    ) -> ImageWithUrl:
        generated_at = self._clock()
        url = await _presign_get_url_async(
            s3_client, config.bucket, image.object_key, config.url_expiry_seconds
        )
        return self._with_url(image, url, generated_at, config)

    def _operation(self, config: SelectionConfig) -> ItemOperation:
        return ItemOperation(
            run=lambda image: self._presign_one(image, config),
            run_async=lambda s3_client, image: self._presign_one_async(s3_client, image, config),
            open_client=self._async_clients.s3 if self._async_clients else None,
        )

    def generate(
        self,
        images: List[UploadedImage],
        config: SelectionConfig,
        context: Optional[LogContext] = None,
    ) -> StageResult[ImageWithUrl]:
        stage = StageResult[ImageWithUrl](attempted=len(images))

        with StageErrorCollector("presign", "Presigned URL generation") as batch:
            outcomes = self._executor(images, self._operation(config), config.concurrency)
            for outcome in outcomes:
                if outcome.success:
                    stage.items.append(outcome.value)
                    continue
                # Keep the item so its record is still written, just without a URL
                image = outcome.item
                stage.items.append(ImageWithUrl(**image.model_dump()))
                batch.add_failure(image.file_name, outcome.error)
                self._logger.error(
                    f"Failed to generate presigned URL for {image.file_name}: {outcome.error}",
                    context,
                )

        stage.failures = batch.failures
        return stage


class RecordWriterService:
    """Writes the Selection record and its SelectionItem records."""

    def __init__(
        self,
        record_store: RecordStoreProtocol,
        executor: ItemExecutor,
        logger: LoggerProtocol,
        async_clients: Optional[AsyncClientProvider] = None,
    ):
        self._record_store = record_store
        self._executor = executor
        self._logger = logger
        self._async_clients = async_clients

    @staticmethod
    def build_selection(config: SelectionConfig) -> SelectionRecord:
        return SelectionRecord(
            username=config.username,
            event_id=config.event_id,
            event_title=config.event_title,
            max_number_of_photos=config.max_number_of_photos,
        )

    @staticmethod
    def build_item(image: ImageWithUrl, selection: SelectionRecord) -> SelectionItemRecord:
        return SelectionItemRecord(
            image_name=derive_image_name(image.file_name),
            selection_id=selection.selection_id,
            event_id=selection.event_id,
            username=selection.username,
            object_key=image.object_key,
            access_url=image.access_url,
            image_width=image.width,
            image_height=image.height,
        )

    def create_selection(
        self,
        selection: SelectionRecord,
        config: SelectionConfig,
        context: Optional[LogContext] = None,
    ) -> SelectionRecord:
        try:
            self._record_store.put_item(config.selection_table, selection.to_item())
        except Exception as e:
            raise SelectionCreationError(
                f"Could not create selection record {selection.selection_id}: {e}"
            ) from e

        self._logger.info(f"Selection record created with ID: {selection.selection_id}", context)
        return selection

    def _write_one(self, record: SelectionItemRecord, table: str) -> SelectionItemRecord:
        self._record_store.put_item(table, record.to_item())
        return record

    async def _write_one_async(
        self, record_store: Any, record: SelectionItemRecord, table: str
    ) -> SelectionItemRecord:
        await record_store.put_item(table, record.to_item())
        return record

    def _operation(self, table: str) -> ItemOperation:
        return ItemOperation(
            run=lambda record: self._write_one(record, table),
            run_async=lambda record_store, record: self._write_one_async(record_store, record, table),
            open_client=self._async_clients.record_store if self._async_clients else None,
        )

    def write_items(
        self,
        images: List[ImageWithUrl],
        selection: SelectionRecord,
        config: SelectionConfig,
        context: Optional[LogContext] = None,
    ) -> StageResult[SelectionItemRecord]:
        records = [self.build_item(image, selection) for image in images]
        stage = StageResult[SelectionItemRecord](attempted=len(records))

        with StageErrorCollector("write_item", "Selection item writes") as batch:
            outcomes = self._executor(
                records, self._operation(config.selection_item_table), config.concurrency
            )
            # Outcomes come back in input order
            for image, outcome in zip(images, outcomes):
                record = outcome.item
                if outcome.success:
                    stage.items.append(record)
                    self._logger.debug(
                        f"Created selection item record for {record.image_name} "
                        f"({record.image_width}x{record.image_height})",
                        context,
                    )
                else:
                    batch.add_failure(image.file_name, outcome.error)
                    self._logger.error(
                        f"Failed to create selection item record for {record.image_name}: {outcome.error}",
                        context,
                    )

        stage.failures = batch.failures
        self._logger.info(
            f"Created {len(stage.items)}/{stage.attempted} selection item records", context
        )
        return stage


class EventFinalizerService:
    """Flips the visibility flag on the parent event."""

    def __init__(self, record_store: RecordStoreProtocol, logger: LoggerProtocol):
        self._record_store = record_store
        self._logger = logger

    def mark_selection_available(
        self, config: SelectionConfig, context: Optional[LogContext] = None
    ) -> None:
        try:
            self._record_store.update_item(
                config.events_table,
                {"eventId": config.event_id},
                SELECTION_AVAILABLE_EXPRESSION,
                {":selectionAvailable": True},
            )
        except Exception as e:
            raise EventUpdateError(
                f"Failed to update {config.events_table} for eventId {config.event_id}: {e}"
            ) from e

        self._logger.info(f"Updated event {config.event_id}: selectionAvailable set to true", context)


def find_duplicate_image_names(images: List[ImageFile]) -> List[str]:
    """Image names shared by more than one file (e.g. img.jpg and img.png)."""
    counts = Counter(derive_image_name(image.file_name) for image in images)
    return sorted(name for name, count in counts.items() if count > 1)


class SelectionPipeline:
    """Coordinates the stages and tracks the run's state machine."""

    def __init__(
        self,
        extraction: MetadataExtractionService,
        uploader: UploadService,
        url_generator: AccessUrlService,
        record_writer: RecordWriterService,
        finalizer: EventFinalizerService,
        logger: LoggerProtocol,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._extraction = extraction
        self._uploader = uploader
        self._url_generator = url_generator
        self._record_writer = record_writer
        self._finalizer = finalizer
        self._logger = logger
        self._metrics = metrics_collector or MetricsCollector()
        self.result = RunResult()

    @property
    def state(self) -> PipelineState:
        return self.result.state

    def _transition(self, state: PipelineState) -> None:
        self.result.state = state
        self.result.state_history.append(state)

    def _stage(self, name: str, context: LogContext, func: Callable, *args: Any) -> Any:
        """Run one stage under timing; the stage callable takes ``context`` last."""
        return timed_stage(name, self._metrics, self._logger, context)(func)(*args, context)

    def _absorb(self, stage: StageResult[Any]) -> None:
        self.result.failures.extend(stage.failures)

    def run(self, config: SelectionConfig) -> RunResult:
        """
        Run every stage in order and return the run outcome.

        Per-item failures are absorbed into the result. ConfigurationError,
        SelectionCreationError and EventUpdateError are fatal: the state
        moves to FAILED and the error propagates.
        """
        self.result = RunResult()
        self._metrics.clear()
        self._transition(PipelineState.INIT)
        context = LogContext(component="selection_pipeline").with_fields(event_id=config.event_id)

        try:
            # Nothing touches S3 or DynamoDB before the input directory is known good
            self._extraction.validate_directory(config.input_dir)

            selection = self._record_writer.build_selection(config)
            context = LogContext(
                correlation_id=selection.selection_id, component="selection_pipeline"
            ).with_fields(event_id=config.event_id)

            self._logger.info("Creating selection record", context)
            self._stage("create_selection", context, self._record_writer.create_selection, selection, config)
            self.result.selection_id = selection.selection_id
            self._transition(PipelineState.SELECTION_CREATED)

            self._logger.info("Reading images and extracting metadata", context)
            extracted = self._stage("extract", context, self._extraction.extract, config.input_dir)
            self._absorb(extracted)
            self.result.total_images = len(extracted.items)
            self._transition(PipelineState.METADATA_EXTRACTED)

            if not extracted.items:
                self._logger.info("No images found to process", context)
                self._transition(PipelineState.NO_IMAGES_FOUND)
                return self._finish()

            self._logger.info(f"Found {len(extracted.items)} images to process", context)
            self.result.duplicate_image_names = find_duplicate_image_names(extracted.items)
            if self.result.duplicate_image_names:
                self._logger.warning(
                    "Files share an image name; later item writes replace earlier ones",
                    context,
                    image_names=",".join(self.result.duplicate_image_names),
                )

            self._logger.info("Uploading images to S3", context)
            uploaded = self._stage("upload", context, self._uploader.upload, extracted.items, config)
            self._absorb(uploaded)
            self.result.uploaded_count = len(uploaded.items)
            self._transition(PipelineState.UPLOADED)

            self._logger.info("Generating presigned URLs", context)
            with_urls = self._stage("presign", context, self._url_generator.generate, uploaded.items, config)
            self._absorb(with_urls)
            self.result.url_count = sum(1 for image in with_urls.items if image.access_url)
            self._transition(PipelineState.URLS_GENERATED)

            self._logger.info("Creating selection item records", context)
            written = self._stage(
                "write_items", context, self._record_writer.write_items, with_urls.items, selection, config
            )
            self._absorb(written)
            self.result.items_attempted = written.attempted
            self.result.items_written = len(written.items)
            self._transition(PipelineState.ITEMS_WRITTEN)

            self._logger.info("Updating Events table", context)
            self._stage("finalize_event", context, self._finalizer.mark_selection_available, config)
            self.result.event_updated = True
            self._transition(PipelineState.EVENT_UPDATED)

        except SelectionCreatorError as e:
            self._logger.error(f"Selection run failed: {e}", context)
            self._transition(PipelineState.FAILED)
            self._finish()
            raise
        except Exception as e:
            self._logger.error(f"Selection run failed unexpectedly: {e}", context)
            self._transition(PipelineState.FAILED)
            self._finish()
            raise

        self._transition(PipelineState.DONE)
        self._logger.info(
            "Photo selection processing complete",
            context,
            processed=self.result.total_images,
            uploaded=self.result.uploaded_count,
            skipped=len(self.result.failures),
        )
        return self._finish()

    def _finish(self) -> RunResult:
        self.result.stage_durations = self._metrics.durations()
        return self.result
