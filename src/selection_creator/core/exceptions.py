"""Custom exceptions for the selection creator."""

from __future__ import annotations


class SelectionCreatorError(Exception):
    """Base exception for all selection creator errors."""

    exit_code = 1


class ConfigurationError(SelectionCreatorError):
    """Error raised for invalid or missing configuration (including the input directory)."""

    exit_code = 2


class SelectionCreationError(SelectionCreatorError):
    """Error raised when the Selection record cannot be written."""

    exit_code = 3


class EventUpdateError(SelectionCreatorError):
    """Error raised when the event visibility flag cannot be set."""

    exit_code = 4


class S3Error(SelectionCreatorError):
    """Error raised for S3 related failures."""


class RecordStoreError(SelectionCreatorError):
    """Error raised for DynamoDB related failures."""


class ItemFailure(SelectionCreatorError):
    """Recoverable failure for a single image; never escapes its stage."""

    def __init__(self, message: str, file_name: str = "", stage: str = ""):
        super().__init__(message)
        self.file_name = file_name
        self.stage = stage

    def locate(self, file_name: str, stage: str) -> "ItemFailure":
        """Fill in the file and stage once the failing item is known."""
        self.file_name = self.file_name or file_name
        self.stage = self.stage or stage
        return self
