"""AWS client configuration for S3 (object store) and SQS (event queue)."""

from typing import Any, Dict

import boto3
from botocore.client import BaseClient
from botocore.config import Config

from .settings import Settings


def _client_kwargs(settings: Settings) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"region_name": settings.aws_region}
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        kwargs["aws_access_key_id"] = settings.aws_access_key_id
        kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
    # Custom endpoint for S3-compatible stores and local stacks
    if settings.aws_endpoint_url:
        kwargs["endpoint_url"] = settings.aws_endpoint_url
    return kwargs


def get_storage_client(settings: Settings) -> BaseClient:
    """Create an S3 client configured for presigned multipart uploads."""
    return boto3.client(
        "s3",
        config=Config(signature_version="s3v4"),
        **_client_kwargs(settings),
    )


def get_queue_client(settings: Settings) -> BaseClient:
    """Create an SQS client for the storage event queue."""
    return boto3.client("sqs", **_client_kwargs(settings))
