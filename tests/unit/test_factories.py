"""Tests for the factory classes."""

import asyncio
from unittest.mock import MagicMock, patch

from selection_creator.core.factories import (
    EXECUTORS,
    AsyncAwsClients,
    AwsClientFactory,
    LoggerFactory,
    SelectionPipelineFactory,
)
from selection_creator.core.models import PipelineState, ProcessorType
from selection_creator.core.observability import MetricsCollector, StructuredLogger
from selection_creator.core.record_store import AsyncDynamoDBRecordStore, DynamoDBRecordStore
from selection_creator.processors import (
    asyncio_run_batch,
    multithread_run_batch,
    serial_run_batch,
)


def test_every_processor_has_an_executor():
    assert set(EXECUTORS) == set(ProcessorType)
    assert EXECUTORS[ProcessorType.SERIAL] is serial_run_batch
    assert EXECUTORS[ProcessorType.MULTITHREAD] is multithread_run_batch
    assert EXECUTORS[ProcessorType.ASYNCIO] is asyncio_run_batch


def test_logger_factory():
    logger = LoggerFactory.create_logger("selection-creator.test-factory", debug=True)

    assert isinstance(logger, StructuredLogger)
    assert logger._logger.level == 10


class TestAwsClientFactory:

    def test_session_uses_configured_credentials(self, make_config, tmp_path):
        config = make_config(
            str(tmp_path), aws_access_key_id="AKIAEXAMPLE", aws_secret_access_key="secret"
        )

        with patch("selection_creator.core.factories.boto3.Session") as mock_session:
            AwsClientFactory.create_s3_client(config)

        mock_session.assert_called_once_with(
            region_name="eu-west-1",
            aws_access_key_id="AKIAEXAMPLE",
            aws_secret_access_key="secret",
        )
        service, = mock_session.return_value.client.call_args[0]
        assert service == "s3"

    def test_pool_matches_concurrency(self, make_config, tmp_path):
        config = make_config(str(tmp_path), concurrency=32)

        client_config = AwsClientFactory._client_config(config)

        assert client_config.max_pool_connections == 32

    def test_record_store_wraps_dynamodb_client(self, make_config, tmp_path):
        config = make_config(str(tmp_path))

        with patch("selection_creator.core.factories.boto3.Session") as mock_session:
            store = AwsClientFactory.create_record_store(config)

        assert isinstance(store, DynamoDBRecordStore)
        assert mock_session.return_value.client.call_args[0] == ("dynamodb",)


class TestSelectionPipelineFactory:

    def test_injected_dependencies_are_used(self, image_dir, make_config, fake_s3, fake_store, fake_logger):
        config = make_config(image_dir, processor="multithread")
        metrics = MetricsCollector()

        pipeline = SelectionPipelineFactory.create_pipeline(
            config,
            s3_client=fake_s3,
            record_store=fake_store,
            logger=fake_logger,
            metrics_collector=metrics,
        )
        result = pipeline.run(config)

        assert result.state is PipelineState.DONE
        assert metrics.timings("upload")
        assert fake_logger.get_logs("INFO")

    def test_missing_clients_are_built_once(self, make_config, tmp_path, fake_logger):
        config = make_config(str(tmp_path))

        with patch.object(AwsClientFactory, "create_s3_client") as mock_s3, patch.object(
            AwsClientFactory, "create_record_store"
        ) as mock_store:
            SelectionPipelineFactory.create_pipeline(config, logger=fake_logger)

        mock_s3.assert_called_once_with(config)
        mock_store.assert_called_once_with(config)

    def test_asyncio_processor_gets_aioboto3_clients(self, make_config, tmp_path, fake_s3, fake_store, fake_logger):
        config = make_config(str(tmp_path), processor="asyncio")

        with patch("selection_creator.core.factories.aioboto3.Session") as mock_session:
            pipeline = SelectionPipelineFactory.create_pipeline(
                config, s3_client=fake_s3, record_store=fake_store, logger=fake_logger
            )

        mock_session.assert_called_once_with(
            region_name="eu-west-1", aws_access_key_id=None, aws_secret_access_key=None
        )
        assert isinstance(pipeline._uploader._async_clients, AsyncAwsClients)
        assert pipeline._record_writer._async_clients is pipeline._uploader._async_clients

    def test_blocking_processors_skip_aioboto3(self, make_config, tmp_path, fake_s3, fake_store, fake_logger):
        config = make_config(str(tmp_path), processor="multithread")

        with patch("selection_creator.core.factories.aioboto3.Session") as mock_session:
            pipeline = SelectionPipelineFactory.create_pipeline(
                config, s3_client=fake_s3, record_store=fake_store, logger=fake_logger
            )

        mock_session.assert_not_called()
        assert pipeline._uploader._async_clients is None


class TestAsyncAwsClients:

    def test_clients_share_pool_sized_config(self, make_config, tmp_path):
        config = make_config(str(tmp_path), concurrency=24)

        with patch("selection_creator.core.factories.aioboto3.Session") as mock_session:
            AsyncAwsClients(config).s3()

        service, = mock_session.return_value.client.call_args[0]
        client_config = mock_session.return_value.client.call_args.kwargs["config"]
        assert service == "s3"
        assert client_config.max_pool_connections == 24

    def test_record_store_wraps_async_dynamodb_client(self, make_config, tmp_path):
        config = make_config(str(tmp_path))
        client = MagicMock()
        client.__aenter__.return_value = client

        async def open_store(clients):
            async with clients.record_store() as store:
                return store

        with patch("selection_creator.core.factories.aioboto3.Session") as mock_session:
            mock_session.return_value.client.return_value = client
            store = asyncio.run(open_store(AsyncAwsClients(config)))

        assert isinstance(store, AsyncDynamoDBRecordStore)
        assert mock_session.return_value.client.call_args[0] == ("dynamodb",)
        client.__aexit__.assert_called_once()
