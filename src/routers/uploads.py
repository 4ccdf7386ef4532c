"""Chunked upload routes."""

from fastapi import APIRouter, Depends, Request

from ..core.dependencies import get_upload_service
from ..middleware.auth import get_current_user
from ..middleware.rate_limit import INITIATE_RATE_LIMIT, limiter
from ..schemas.shared import SuccessResponse
from ..schemas.upload import (
    AbortUploadRequest,
    CompleteUploadRequest,
    InitiateUploadRequest,
    InitiateUploadResponse,
    RecordChunkRequest,
)
from ..services.upload_service import UploadService

router = APIRouter(prefix="/api/files", tags=["uploads"])


@router.post("/get-upload-urls", response_model=InitiateUploadResponse)
@limiter.limit(INITIATE_RATE_LIMIT)
async def get_upload_urls(
    request: Request,
    body: InitiateUploadRequest,
    user: dict = Depends(get_current_user),
    upload_service: UploadService = Depends(get_upload_service),
):
    """
    Open a multipart upload.

    Returns one presigned URL per part (ordered by part number) and the
    upload ID to pass back when completing or aborting.
    """
    return await upload_service.initiate_upload(
        file_id=body.file_id,
        file_name=body.file_name,
        mime_type=body.file_type,
        size=body.file_size,
        owner_id=user["id"],
    )


@router.post("/record-chunk", response_model=SuccessResponse)
async def record_chunk(
    body: RecordChunkRequest,
    user: dict = Depends(get_current_user),
    upload_service: UploadService = Depends(get_upload_service),
):
    """Record that a part was uploaded, with the ETag S3 returned for it."""
    await upload_service.record_chunk(
        file_id=body.file_id,
        chunk_index=body.chunk_index,
        size=body.size,
        checksum=body.etag,
    )
    return SuccessResponse()


@router.post("/complete-upload", response_model=SuccessResponse)
async def complete_upload(
    body: CompleteUploadRequest,
    user: dict = Depends(get_current_user),
    upload_service: UploadService = Depends(get_upload_service),
):
    """Assemble the uploaded parts into the final object."""
    await upload_service.complete_upload(
        upload_id=body.upload_id,
        file_id=body.file_id,
        parts=UploadService.format_parts(body.parts),
    )
    return SuccessResponse(message="Successfully uploaded file to S3")


@router.post("/abort-upload", response_model=SuccessResponse)
async def abort_upload(
    body: AbortUploadRequest,
    user: dict = Depends(get_current_user),
    upload_service: UploadService = Depends(get_upload_service),
):
    """
    Abort an upload and discard everything created for it.
    Safe to call more than once.
    """
    await upload_service.abort_upload(upload_id=body.upload_id, file_id=body.file_id)
    return SuccessResponse(message="Upload aborted successfully")
