"""Testing utilities and fakes for the selection creator."""

from .fakes import (
    FakeS3Client,
    FakeRecordStore,
    FakeLogger,
    FakeAsyncS3Client,
    FakeAsyncRecordStore,
    FakeAsyncAwsClients,
    S3Object,
    S3Bucket,
    client_error,
    create_test_image,
    setup_test_image_directory,
    setup_test_s3_environment,
)

__all__ = [
    "FakeS3Client",
    "FakeRecordStore",
    "FakeLogger",
    "FakeAsyncS3Client",
    "FakeAsyncRecordStore",
    "FakeAsyncAwsClients",
    "S3Object",
    "S3Bucket",
    "client_error",
    "create_test_image",
    "setup_test_image_directory",
    "setup_test_s3_environment",
]
