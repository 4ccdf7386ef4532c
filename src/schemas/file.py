"""File metadata schemas."""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from ..utils.constants import FileStatus


class FileResponse(BaseModel):
    """File metadata as returned to its owner."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    file_id: str = Field(..., alias="fileId")
    file_name: str = Field(..., alias="fileName")
    mime_type: str = Field(..., alias="mimeType")
    size: Optional[int] = None
    s3_key: str = Field(..., alias="s3Key")
    status: FileStatus
    created_at: datetime = Field(..., alias="createdAt")


class FileListResponse(BaseModel):
    """All files owned by the caller, newest first."""

    success: bool = True
    files: List[FileResponse]


class DownloadUrlRequest(BaseModel):
    """Request for a presigned download URL."""

    s3_key: str = Field(..., min_length=1)


class DownloadUrlResponse(BaseModel):
    """Presigned GET URL for an object."""

    success: bool = True
    url: str


class DeleteFileRequest(BaseModel):
    """Request to delete a stored file."""

    file_id: str = Field(..., min_length=1)
