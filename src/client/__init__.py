"""Client for uploading files through the chunked upload API."""

from .api import CoordinatorClient, InitiatedUpload
from .cancellation import CancelToken
from .errors import (
    CoordinatorError,
    PartUploadError,
    UploadCancelledError,
    UploadClientError,
)
from .scheduler import (
    ChunkScheduler,
    UploadAttempt,
    UploadConfig,
    UploadProgress,
    UploadResult,
)
from .source import BytesSource, LocalFileSource, UploadSource

__all__ = [
    "CoordinatorClient",
    "InitiatedUpload",
    "CancelToken",
    "CoordinatorError",
    "PartUploadError",
    "UploadCancelledError",
    "UploadClientError",
    "ChunkScheduler",
    "UploadAttempt",
    "UploadConfig",
    "UploadProgress",
    "UploadResult",
    "BytesSource",
    "LocalFileSource",
    "UploadSource",
]
