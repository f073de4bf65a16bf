"""Publish an event's photos to S3 and register them as a DynamoDB selection."""

__version__ = "0.1.0"
