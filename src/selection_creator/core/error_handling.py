# src/selection_creator/core/error_handling.py

import asyncio
import functools
import inspect
import logging
import time

from botocore.exceptions import BotoCoreError, ClientError
from PIL import UnidentifiedImageError

from .exceptions import ItemFailure, RecordStoreError, S3Error, SelectionCreatorError
from .models import ItemFailureReport

RETRYABLE_ERROR_CODES = (
    # S3
    'SlowDown',
    'InternalError',
    'RequestTimeout',
    # DynamoDB
    'ProvisionedThroughputExceededException',
    'ThrottlingException',
    'RequestLimitExceeded',
)

RETRYABLE_ERRORS = (S3Error, RecordStoreError)


def with_error_handling(func=None, *, client_error=S3Error):
    """
    A decorator to wrap functions with standardized error handling.

    botocore failures become ``client_error`` (S3Error unless told otherwise),
    unreadable images become ItemFailure. Pipeline errors pass through.
    Coroutine functions get an awaitable wrapper.
    """
    def decorator(f):
        logger = logging.getLogger(f.__module__ + '.' + f.__name__)

        def convert(e):
            if isinstance(e, (ClientError, BotoCoreError)):
                logger.error(f"Error in '{f.__name__}': {e}", exc_info=True)
                return client_error(f"AWS operation failed in {f.__name__}: {e}")
            logger.error(f"Error in '{f.__name__}': {e}")
            return ItemFailure(f"Failed to identify image in {f.__name__}: {e}")

        if inspect.iscoroutinefunction(f):
            @functools.wraps(f)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await f(*args, **kwargs)
                except SelectionCreatorError:
                    raise
                except (ClientError, BotoCoreError, UnidentifiedImageError) as e:
                    raise convert(e) from e
            return async_wrapper

        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except SelectionCreatorError:
                raise
            except (ClientError, BotoCoreError, UnidentifiedImageError) as e:
                raise convert(e) from e
        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def is_retryable(error: BaseException) -> bool:
    """True when the error wraps a throttling-class botocore ClientError."""
    cause = error.__cause__
    if isinstance(cause, ClientError):
        return cause.response.get('Error', {}).get('Code') in RETRYABLE_ERROR_CODES
    return False


def retry_aws_operation(max_attempts=3, initial_delay=1, backoff_factor=2):
    """
    Decorator to retry S3 and DynamoDB operations with exponential backoff.

    Only S3Error/RecordStoreError caused by a throttling-class ClientError
    are retried; anything else is raised on the first attempt. Coroutine
    functions back off with ``asyncio.sleep``.
    """
    def decorator(func):
        logger = logging.getLogger(func.__module__ + '.' + func.__name__)

        def should_retry(error, attempt):
            if not is_retryable(error):
                return False
            if attempt >= max_attempts:
                logger.error(
                    f"AWS operation '{func.__name__}' failed after {max_attempts} attempts. Error: {error}"
                )
                return False
            return True

        def log_retry(error, attempt, delay):
            logger.info(
                f"AWS operation '{func.__name__}' throttled. Attempt {attempt}/{max_attempts}. "
                f"Retrying in {delay:.2f}s. Error: {error}"
            )

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                delay = initial_delay
                for attempt in range(1, max_attempts + 1):
                    try:
                        return await func(*args, **kwargs)
                    except RETRYABLE_ERRORS as e:
                        if not should_retry(e, attempt):
                            raise
                        log_retry(e, attempt, delay)
                        await asyncio.sleep(delay)
                        delay *= backoff_factor
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = initial_delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except RETRYABLE_ERRORS as e:
                    if not should_retry(e, attempt):
                        raise
                    log_retry(e, attempt, delay)
                    time.sleep(delay)
                    delay *= backoff_factor
        return wrapper
    return decorator


class StageErrorCollector:
    """
    Context manager gathering the per-item failures of one pipeline stage.

    Failures are kept as ItemFailureReport entries for the run report and
    summarized in the log when the stage ends.
    """
    def __init__(self, stage, description=None):
        self.stage = stage
        self.description = description or stage
        self.failures = []
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def __enter__(self):
        self.logger.debug(f"Starting {self.description}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.logger.error(
                f"{self.description} aborted: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb)
            )
        elif self.failures:
            names = ", ".join(failure.file_name for failure in self.failures)
            self.logger.warning(
                f"{self.description} completed with {len(self.failures)} failure(s): {names}"
            )
        else:
            self.logger.info(f"{self.description} completed successfully.")
        return False

    @property
    def error_count(self) -> int:
        return len(self.failures)

    def add_failure(self, file_name: str, error) -> ItemFailureReport:
        """Record that ``file_name`` failed this stage with ``error``."""
        if isinstance(error, ItemFailure):
            error.locate(file_name, self.stage)
        report = ItemFailureReport(stage=self.stage, file_name=file_name, error=str(error))
        self.failures.append(report)
        return report
