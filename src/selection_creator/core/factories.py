"""Factory classes for creating configured service instances."""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import aioboto3
import boto3
from aiobotocore.config import AioConfig
from botocore.config import Config

from .models import ProcessorType, SelectionConfig
from .observability import MetricsCollector, StructuredLogger
from .protocols import (
    AsyncClientProvider,
    ItemExecutor,
    LoggerProtocol,
    MetadataReaderProtocol,
    RecordStoreProtocol,
    S3ClientProtocol,
)
from .record_store import AsyncDynamoDBRecordStore, DynamoDBRecordStore
from .services import (
    AccessUrlService,
    EventFinalizerService,
    ImageMetadataReader,
    LocalImageDiscoveryService,
    MetadataExtractionService,
    RecordWriterService,
    SelectionPipeline,
    UploadService,
)
from ..processors import asyncio_run_batch, multithread_run_batch, serial_run_batch


EXECUTORS: Dict[ProcessorType, ItemExecutor] = {
    ProcessorType.SERIAL: serial_run_batch,
    ProcessorType.MULTITHREAD: multithread_run_batch,
    ProcessorType.ASYNCIO: asyncio_run_batch,
}


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str, debug: bool = False) -> LoggerProtocol:
        """Create a structured logger; LOG_LEVEL applies unless debug is set."""
        return StructuredLogger(name, level="DEBUG" if debug else None)


class AwsClientFactory:
    """Factory for the S3 and DynamoDB clients shared by one run."""

    @staticmethod
    def _session(config: SelectionConfig) -> boto3.Session:
        # Missing keys fall through to the default credential chain
        return boto3.Session(
            region_name=config.region,
            aws_access_key_id=config.aws_access_key_id,
            aws_secret_access_key=config.aws_secret_access_key,
        )

    @staticmethod
    def _client_config(config: SelectionConfig) -> Config:
        # One pooled connection per concurrent item operation
        return Config(max_pool_connections=max(10, config.concurrency))

    @classmethod
    def create_s3_client(cls, config: SelectionConfig, **kwargs: Any) -> S3ClientProtocol:
        session = cls._session(config)
        return session.client("s3", config=cls._client_config(config), **kwargs)  # type: ignore

    @classmethod
    def create_record_store(cls, config: SelectionConfig, **kwargs: Any) -> RecordStoreProtocol:
        session = cls._session(config)
        client = session.client("dynamodb", config=cls._client_config(config), **kwargs)
        return DynamoDBRecordStore(client)


class AsyncAwsClients:
    """
    aioboto3 clients for the asyncio executor.

    Each call opens a fresh client; the executor enters it inside its own
    event loop and closes it when the batch ends.
    """

    def __init__(self, config: SelectionConfig):
        self._session = aioboto3.Session(
            region_name=config.region,
            aws_access_key_id=config.aws_access_key_id,
            aws_secret_access_key=config.aws_secret_access_key,
        )
        self._client_config = AioConfig(max_pool_connections=max(10, config.concurrency))

    def s3(self) -> Any:
        return self._session.client("s3", config=self._client_config)

    @asynccontextmanager
    async def record_store(self) -> AsyncIterator[AsyncDynamoDBRecordStore]:
        async with self._session.client("dynamodb", config=self._client_config) as client:
            yield AsyncDynamoDBRecordStore(client)


class SelectionPipelineFactory:
    """Factory for creating the complete selection pipeline."""

    @staticmethod
    def create_pipeline(
        config: SelectionConfig,
        s3_client: Optional[S3ClientProtocol] = None,
        record_store: Optional[RecordStoreProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
        metadata_reader: Optional[MetadataReaderProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
        async_clients: Optional[AsyncClientProvider] = None,
    ) -> SelectionPipeline:
        """Create a fully configured pipeline; clients are built once and shared by every stage."""

        if s3_client is None:
            s3_client = AwsClientFactory.create_s3_client(config)

        if record_store is None:
            record_store = AwsClientFactory.create_record_store(config)

        if logger is None:
            logger = LoggerFactory.create_logger("selection-creator.pipeline", config.debug)

        if metadata_reader is None:
            metadata_reader = ImageMetadataReader()

        executor = EXECUTORS[config.processor]
        if config.processor == ProcessorType.ASYNCIO and async_clients is None:
            async_clients = AsyncAwsClients(config)

        extraction = MetadataExtractionService(
            LocalImageDiscoveryService(logger), metadata_reader, logger
        )

        return SelectionPipeline(
            extraction=extraction,
            uploader=UploadService(s3_client, executor, logger, async_clients=async_clients),
            url_generator=AccessUrlService(s3_client, executor, logger, async_clients=async_clients),
            record_writer=RecordWriterService(record_store, executor, logger, async_clients=async_clients),
            finalizer=EventFinalizerService(record_store, logger),
            logger=logger,
            metrics_collector=metrics_collector,
        )
