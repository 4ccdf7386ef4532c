"""File service for listing, downloading and deleting stored files."""

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..repositories.file_metadata_repo import FileMetadataRepository
from ..repositories.storage_repo import StorageRepository
from ..schemas.file import DownloadUrlResponse, FileListResponse, FileResponse
from ..utils.logger import get_logger

logger = get_logger(__name__)


class FileService:
    """Service for file operations."""

    def __init__(self, db: AsyncSession, storage_repo: StorageRepository):
        self.db = db
        self.file_repo = FileMetadataRepository(db)
        self.storage_repo = storage_repo

    async def list_files(self, user_id: str) -> FileListResponse:
        """List the user's files, newest first."""
        files = await self.file_repo.list_by_user(user_id)
        logger.info("Listed files", user_id=user_id, count=len(files))
        return FileListResponse(files=[FileResponse.model_validate(f) for f in files])

    async def get_download_url(self, s3_key: str, expiration: int = 3600) -> DownloadUrlResponse:
        """Generate presigned download URL for an object key."""
        url = self.storage_repo.generate_presigned_url(s3_key, expiration=expiration)
        return DownloadUrlResponse(url=url)

    async def delete_file(self, file_id: str, user_id: str) -> None:
        """
        Delete the stored object, then its metadata and chunks.
        The object goes first so a failure never leaves an object without metadata.
        """
        file_record = await self.file_repo.get_by_user_and_id(user_id, file_id)
        if not file_record:
            raise NotFoundError("File not found", file_id=file_id)

        s3_key = file_record.s3_key
        await self.storage_repo.delete_file(s3_key)
        await self.file_repo.delete_with_chunks(file_id)
        logger.info("Deleted file", file_id=file_id, s3_key=s3_key, user_id=user_id)
