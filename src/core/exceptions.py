"""Domain exceptions raised by the upload services and rendered by the API layer."""

from typing import Any, Dict, Optional

from ..utils.constants import ErrorCode


class UploadError(Exception):
    """Base class for errors with a well-defined API representation."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500
    error_type: Optional[str] = None

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "error": self.message, "code": self.code.value}
        if self.error_type:
            body["errorType"] = self.error_type
        return body


class UploadValidationError(UploadError):
    """Missing or malformed request fields. Never retried."""

    code = ErrorCode.VALIDATION_ERROR
    status_code = 400
    error_type = "validation error"


class NotFoundError(UploadError):
    """Unknown file or chunk."""

    code = ErrorCode.NOT_FOUND
    status_code = 404


class SessionExpiredError(NotFoundError):
    """The upload session is gone from the cache (completed, aborted or expired)."""

    code = ErrorCode.SESSION_EXPIRED


class InitFailedError(UploadError):
    """Initiating a multipart upload failed; nothing was left behind."""

    code = ErrorCode.INIT_FAILED


class StorageError(UploadError):
    """Unexpected failure talking to the object store, cache or database."""

    code = ErrorCode.STORAGE_ERROR
