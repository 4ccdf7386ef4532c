"""File listing, download and deletion routes."""

from fastapi import APIRouter, Depends

from ..core.dependencies import get_file_service
from ..middleware.auth import get_current_user
from ..schemas.file import (
    DeleteFileRequest,
    DownloadUrlRequest,
    DownloadUrlResponse,
    FileListResponse,
)
from ..schemas.shared import SuccessResponse
from ..services.file_service import FileService

router = APIRouter(prefix="/api/files", tags=["files"])


@router.post("/get-download-url", response_model=DownloadUrlResponse)
async def get_download_url(
    body: DownloadUrlRequest,
    user: dict = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    """Get presigned download URL for an object key."""
    return await file_service.get_download_url(body.s3_key)


@router.get("/list", response_model=FileListResponse)
async def list_files(
    user: dict = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    """List the caller's files."""
    return await file_service.list_files(user["id"])


@router.delete("/delete", response_model=SuccessResponse)
async def delete_file(
    body: DeleteFileRequest,
    user: dict = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    """Delete a stored file and its metadata."""
    await file_service.delete_file(body.file_id, user["id"])
    return SuccessResponse(message="File deleted successfully")
