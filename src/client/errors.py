"""Errors raised by the upload client."""

from typing import Optional


class UploadClientError(Exception):
    """Base class for client-side upload failures."""


class UploadCancelledError(UploadClientError):
    """The upload was cancelled by the caller."""

    def __init__(self, message: str = "Upload cancelled by user"):
        super().__init__(message)


class CoordinatorError(UploadClientError):
    """A call to the upload API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable

    @classmethod
    def from_status(cls, status_code: int, message: str) -> "CoordinatorError":
        # Client errors (validation, not found, auth) will not succeed on retry
        retryable = status_code >= 500 or status_code in (408, 429)
        return cls(message, status_code=status_code, retryable=retryable)


class PartUploadError(UploadClientError):
    """Uploading a part to its presigned URL failed."""

    def __init__(self, part_number: int, message: str):
        super().__init__(f"Failed to upload chunk {part_number}: {message}")
        self.part_number = part_number
