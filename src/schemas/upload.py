"""Chunked upload request and response schemas."""

from typing import List
from pydantic import BaseModel, ConfigDict, Field, field_validator


class InitiateUploadRequest(BaseModel):
    """Request to open a multipart upload and get one presigned URL per part."""

    file_id: str = Field(..., min_length=1, description="Client-generated unique file ID")
    file_name: str = Field(..., min_length=1, max_length=255, description="Original filename")
    file_type: str = Field(..., min_length=1, description="MIME type of the file")
    file_size: int = Field(..., gt=0, description="File size in bytes")


class InitiateUploadResponse(BaseModel):
    """Presigned part URLs, ordered by part number, and the multipart upload ID."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    presigned_urls: List[str] = Field(..., alias="presignedUrls")
    upload_id: str = Field(..., alias="uploadId")


class RecordChunkRequest(BaseModel):
    """Request to record a part as uploaded."""

    file_id: str = Field(..., min_length=1)
    chunk_index: int = Field(..., ge=0, description="Zero-based part index")
    size: int = Field(..., gt=0, description="Bytes uploaded for this part")
    etag: str = Field(..., min_length=1, description="ETag returned by S3 for this part")

    @field_validator("etag")
    @classmethod
    def strip_quotes(cls, v: str) -> str:
        stripped = v.strip().strip('"')
        if not stripped:
            raise ValueError("etag must not be empty")
        return stripped


class CompletedPart(BaseModel):
    """A part as S3 expects it when completing a multipart upload."""

    model_config = ConfigDict(populate_by_name=True)

    part_number: int = Field(..., ge=1, le=10000, alias="PartNumber")
    etag: str = Field(..., min_length=1, alias="ETag")


class CompleteUploadRequest(BaseModel):
    """Request to complete a multipart upload."""

    model_config = ConfigDict(populate_by_name=True)

    upload_id: str = Field(..., min_length=1, alias="uploadId")
    parts: List[CompletedPart] = Field(..., min_length=1)
    file_id: str = Field(..., min_length=1, alias="fileId")


class AbortUploadRequest(BaseModel):
    """Request to abort a multipart upload and discard its state."""

    model_config = ConfigDict(populate_by_name=True)

    upload_id: str = Field(..., min_length=1, alias="uploadId")
    file_id: str = Field(..., min_length=1)
