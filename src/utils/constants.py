"""Application constants and enums."""

from enum import Enum


class FileStatus(str, Enum):
    """Lifecycle status of an uploaded file's metadata."""

    UPLOADING = "UPLOADING"
    UPLOADED = "UPLOADED"
    FAILED = "FAILED"


class ChunkStatus(str, Enum):
    """Status of a single part of a multipart upload."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class UploadState(str, Enum):
    """Client-side state of one upload attempt."""

    IDLE = "idle"
    INITIATING = "initiating"
    UPLOADING = "uploading"
    COMPLETING = "completing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ErrorCode(str, Enum):
    """Error codes surfaced by the upload coordinator."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    INIT_FAILED = "INIT_FAILED"
    STORAGE_ERROR = "STORAGE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Object-store event names that mean "the object now exists"
OBJECT_CREATED_EVENT_PREFIX = "ObjectCreated"

# Test message S3 sends when a notification target is first configured
S3_TEST_EVENT = "s3:TestEvent"
