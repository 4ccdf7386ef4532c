"""FileMetadata repository."""

from typing import List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .base import BaseRepository
from ..models.chunk import Chunk
from ..models.file_metadata import FileMetadata
from ..utils.constants import ChunkStatus, FileStatus
from ..utils.logger import get_logger

logger = get_logger(__name__)


class FileMetadataRepository(BaseRepository[FileMetadata]):
    """Repository for file metadata and the chunk rows it owns."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, FileMetadata)

    async def create_with_chunks(
        self,
        file_id: str,
        file_name: str,
        mime_type: str,
        size: int,
        s3_key: str,
        user_id: str,
        chunk_sizes: Sequence[int],
    ) -> FileMetadata:
        """
        Create the metadata row and one PENDING chunk per part in a single transaction.
        Nothing is persisted if any insert fails.
        """
        file_record = FileMetadata(
            file_id=file_id,
            file_name=file_name,
            mime_type=mime_type,
            size=size,
            s3_key=s3_key,
            status=FileStatus.UPLOADING,
            user_id=user_id,
        )
        self.session.add(file_record)
        self.session.add_all(
            Chunk(
                file_id=file_id,
                chunk_index=index,
                size=chunk_size,
                s3_key=s3_key,
                status=ChunkStatus.PENDING,
            )
            for index, chunk_size in enumerate(chunk_sizes)
        )
        await self.commit()
        logger.info(
            "Created metadata with pending chunks",
            file_id=file_id,
            s3_key=s3_key,
            chunk_count=len(chunk_sizes),
        )
        return file_record

    async def get_by_s3_key(self, s3_key: str) -> Optional[FileMetadata]:
        """Get file metadata by its object key."""
        stmt = (
            select(FileMetadata)
            .where(FileMetadata.s3_key == s3_key)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_user_and_id(self, user_id: str, file_id: str) -> Optional[FileMetadata]:
        """Get file by ID, scoped to its owner."""
        stmt = select(FileMetadata).where(
            FileMetadata.file_id == file_id,
            FileMetadata.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[FileMetadata]:
        """Get all files for a user, newest first."""
        stmt = (
            select(FileMetadata)
            .where(FileMetadata.user_id == user_id)
            .order_by(FileMetadata.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_uploaded(self, file_record: FileMetadata, size: Optional[int] = None) -> bool:
        """
        Move a file to UPLOADED, optionally recording its confirmed size.
        Returns False when nothing changed (already UPLOADED with the same size).
        """
        if file_record.status == FileStatus.UPLOADED and (size is None or size == file_record.size):
            return False

        file_record.status = FileStatus.UPLOADED
        if size is not None:
            file_record.size = size
        await self.commit()
        return True

    async def delete_with_chunks(self, file_id: str) -> Optional[str]:
        """
        Delete a file's metadata and all its chunks.
        Returns the object key the row held, or None if there was no row.
        """
        file_record = await self.get(file_id)
        if file_record is None:
            return None

        s3_key = file_record.s3_key
        # Chunks are removed explicitly so the cascade holds on backends without FK enforcement
        await self.session.execute(delete(Chunk).where(Chunk.file_id == file_id))
        await self.session.execute(delete(FileMetadata).where(FileMetadata.file_id == file_id))
        await self.commit()
        logger.info("Deleted metadata and chunks", file_id=file_id, s3_key=s3_key)
        return s3_key
