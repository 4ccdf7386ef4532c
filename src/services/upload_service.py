"""Upload coordinator: the server side of the chunked multipart upload protocol."""

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..config.settings import Settings, settings as default_settings
from ..core.chunking import part_count, part_length
from ..core.exceptions import (
    InitFailedError,
    NotFoundError,
    SessionExpiredError,
    StorageError,
    UploadValidationError,
)
from ..repositories.chunk_repo import ChunkRepository
from ..repositories.file_metadata_repo import FileMetadataRepository
from ..repositories.session_repo import SessionRepository, UploadSession
from ..repositories.storage_repo import StorageRepository
from ..schemas.upload import InitiateUploadResponse
from ..utils.constants import ChunkStatus
from ..utils.helpers import format_file_size, generate_s3_key
from ..utils.logger import get_logger

logger = get_logger(__name__)


class UploadService:
    """
    Coordinates a multipart upload across the object store, the session
    cache and the metadata database.

    Every operation tolerates the others having already run: chunks can be
    recorded twice, a completed file can be confirmed again, and abort can
    be repeated or race a straggling record/complete.
    """

    def __init__(
        self,
        db: AsyncSession,
        storage_repo: StorageRepository,
        session_repo: SessionRepository,
        settings: Settings = default_settings,
    ):
        self.db = db
        self.settings = settings
        self.file_repo = FileMetadataRepository(db)
        self.chunk_repo = ChunkRepository(db)
        self.storage_repo = storage_repo
        self.session_repo = session_repo

    async def initiate_upload(
        self,
        file_id: str,
        file_name: str,
        mime_type: str,
        size: int,
        owner_id: str,
    ) -> InitiateUploadResponse:
        """
        Open a multipart upload and return one presigned URL per part.

        The multipart upload is opened first so that a failure in any later
        step can be cleaned up by aborting it.
        """
        if size <= 0:
            raise UploadValidationError("Invalid file size", file_id=file_id)
        if size > self.settings.max_file_size_bytes:
            raise UploadValidationError(
                f"File size exceeds maximum allowed size of "
                f"{format_file_size(self.settings.max_file_size_bytes)}",
                file_id=file_id,
            )

        part_size = self.settings.chunk_size_bytes
        total_parts = part_count(size, part_size)
        s3_key = generate_s3_key(owner_id, file_name, prefix=self.settings.s3_key_prefix)

        logger.info(
            "Initiating multipart upload",
            file_id=file_id,
            s3_key=s3_key,
            size=size,
            total_parts=total_parts,
        )

        upload_id: Optional[str] = None
        try:
            upload_id = await self.storage_repo.initiate_multipart_upload(s3_key, mime_type)
            urls = self.storage_repo.generate_part_urls(
                s3_key,
                upload_id,
                total_parts,
                expiration=self.settings.presigned_url_expiration,
            )
            if len(urls) != total_parts:
                raise StorageError(
                    f"URL count mismatch: expected {total_parts}, got {len(urls)}"
                )

            await self.session_repo.set(
                upload_id,
                UploadSession(bucket=self.storage_repo.bucket_name, key=s3_key),
                ttl=self.settings.session_ttl_seconds,
            )

            await self.file_repo.create_with_chunks(
                file_id=file_id,
                file_name=file_name,
                mime_type=mime_type,
                size=size,
                s3_key=s3_key,
                user_id=owner_id,
                chunk_sizes=[part_length(i, size, part_size) for i in range(total_parts)],
            )
        except Exception as e:
            logger.error(
                "Error generating S3 presigned URLs",
                file_id=file_id,
                upload_id=upload_id,
                error=str(e),
                exc_info=e,
            )
            await self._discard_nascent_upload(upload_id, s3_key)
            raise InitFailedError("Error generating S3 presigned URLs", file_id=file_id) from e

        logger.info(
            "Generated S3 presigned URLs successfully",
            file_id=file_id,
            upload_id=upload_id,
            url_count=len(urls),
        )
        return InitiateUploadResponse(presigned_urls=urls, upload_id=upload_id)

    async def _discard_nascent_upload(self, upload_id: Optional[str], s3_key: str) -> None:
        """Best-effort cleanup after a failed initiate. Each step runs even if the other fails."""
        if upload_id is None:
            return
        try:
            await self.session_repo.delete(upload_id)
        except Exception as e:
            logger.warning(
                "Could not delete session after failed initiate",
                upload_id=upload_id,
                error=str(e),
            )
        try:
            await self.storage_repo.abort_multipart_upload(s3_key, upload_id)
        except Exception as e:
            logger.warning(
                "Could not abort multipart upload after failed initiate",
                upload_id=upload_id,
                s3_key=s3_key,
                error=str(e),
            )

    async def record_chunk(self, file_id: str, chunk_index: int, size: int, checksum: str) -> None:
        """
        Mark a part as uploaded with the ETag S3 returned for it.

        Re-recording the same checksum is a no-op; a different checksum means
        the client re-sent the part and the newer value wins.
        """
        chunk = await self.chunk_repo.get_chunk(file_id, chunk_index)
        if chunk is None:
            raise NotFoundError("Chunk not found", file_id=file_id, chunk_index=chunk_index)

        if chunk.status == ChunkStatus.COMPLETED and chunk.checksum == checksum:
            logger.info("Chunk already recorded", file_id=file_id, chunk_index=chunk_index)
            return

        if chunk.checksum and chunk.checksum != checksum:
            logger.info(
                "Chunk re-sent, overwriting checksum",
                file_id=file_id,
                chunk_index=chunk_index,
                previous=chunk.checksum,
                checksum=checksum,
            )
        if size != chunk.size:
            logger.warning(
                "Chunk size differs from expected",
                file_id=file_id,
                chunk_index=chunk_index,
                expected=chunk.size,
                reported=size,
            )

        # The row can disappear between the read and the write if an abort runs concurrently
        if not await self.chunk_repo.mark_completed(file_id, chunk_index, checksum):
            raise NotFoundError("Chunk not found", file_id=file_id, chunk_index=chunk_index)

        logger.info("Chunk recorded successfully", file_id=file_id, chunk_index=chunk_index)

    async def complete_upload(
        self,
        upload_id: str,
        file_id: str,
        parts: Sequence[Dict[str, Any]],
    ) -> None:
        """
        Assemble the uploaded parts into the final object.

        The part list is taken as given; chunk rows are not cross-checked.
        Marking the file UPLOADED here is optimistic, the event reconciler
        confirms it when S3 reports the object.
        """
        session = await self.session_repo.get(upload_id)
        if session is None:
            logger.error("Upload metadata not found in cache", upload_id=upload_id, file_id=file_id)
            raise SessionExpiredError("Upload session not found or expired", upload_id=upload_id)

        await self.storage_repo.complete_multipart_upload(
            session.key, upload_id, parts, bucket=session.bucket
        )
        await self.session_repo.delete(upload_id)

        file_record = await self.file_repo.get(file_id)
        if file_record is None:
            logger.warning(
                "Completed upload has no metadata, it was aborted concurrently",
                upload_id=upload_id,
                file_id=file_id,
            )
            return

        await self.file_repo.mark_uploaded(file_record)
        logger.info("File uploaded successfully", file_id=file_id, upload_id=upload_id)

    async def abort_upload(self, upload_id: str, file_id: str) -> None:
        """
        Discard an in-flight upload: session entry, metadata with its chunks,
        then the S3 multipart upload. Each step treats "already gone" as done.
        """
        session = await self.session_repo.get(upload_id)
        await self.session_repo.delete(upload_id)

        s3_key = await self.file_repo.delete_with_chunks(file_id)
        if s3_key is None:
            logger.info("No metadata to delete, upload already aborted", file_id=file_id)
            s3_key = session.key if session else None

        if s3_key is None:
            logger.info(
                "No object key known, skipping multipart abort",
                upload_id=upload_id,
                file_id=file_id,
            )
            return

        bucket = session.bucket if session else ""
        aborted = await self.storage_repo.abort_multipart_upload(s3_key, upload_id, bucket=bucket)
        logger.info(
            "Upload aborted",
            upload_id=upload_id,
            file_id=file_id,
            s3_key=s3_key,
            multipart_aborted=aborted,
        )

    @staticmethod
    def format_parts(parts: List[Any]) -> List[Dict[str, Any]]:
        """Convert validated part models to the shape S3 expects."""
        return [{"PartNumber": p.part_number, "ETag": p.etag} for p in parts]
