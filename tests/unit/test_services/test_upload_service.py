"""Unit tests for the upload coordinator."""

from unittest.mock import AsyncMock

import pytest
from botocore.exceptions import ClientError
from sqlalchemy import select

from src.config.settings import Settings
from src.core.exceptions import (
    InitFailedError,
    NotFoundError,
    SessionExpiredError,
    UploadValidationError,
)
from src.models.chunk import Chunk
from src.models.file_metadata import FileMetadata
from src.repositories.session_repo import UploadSession
from src.services.upload_service import UploadService
from src.utils.constants import ChunkStatus, ErrorCode, FileStatus

MB = 1024 * 1024


@pytest.fixture
def upload_settings() -> Settings:
    return Settings(CHUNK_SIZE_BYTES=5 * MB, MAX_FILE_SIZE_BYTES=100 * MB, SESSION_TTL_SECONDS=600)


@pytest.fixture
def service(db_session, storage_repo, session_repo, upload_settings) -> UploadService:
    return UploadService(db_session, storage_repo, session_repo, settings=upload_settings)


async def _chunks(db_session, file_id: str):
    result = await db_session.execute(
        select(Chunk).where(Chunk.file_id == file_id).order_by(Chunk.chunk_index)
    )
    return list(result.scalars().all())


async def _initiate(service: UploadService, file_id: str = "file-1", size: int = 12 * MB):
    return await service.initiate_upload(
        file_id=file_id,
        file_name="video.mp4",
        mime_type="video/mp4",
        size=size,
        owner_id="user-1",
    )


@pytest.mark.asyncio
async def test_initiate_creates_metadata_chunks_and_session(service, db_session, session_repo, fake_redis):
    """12 MB in 5 MB parts: three URLs, three PENDING chunks, one session entry."""
    response = await _initiate(service)

    assert response.upload_id == "upload-123"
    assert len(response.presigned_urls) == 3
    assert "partNumber=1&" in response.presigned_urls[0]
    assert "partNumber=3&" in response.presigned_urls[2]

    file_record = await db_session.get(FileMetadata, "file-1")
    assert file_record.status == FileStatus.UPLOADING
    assert file_record.s3_key == "dropbox/user-1/video.mp4"
    assert file_record.size == 12 * MB

    chunks = await _chunks(db_session, "file-1")
    assert [c.chunk_index for c in chunks] == [0, 1, 2]
    assert [c.size for c in chunks] == [5 * MB, 5 * MB, 2 * MB]
    assert all(c.status == ChunkStatus.PENDING for c in chunks)
    assert all(c.s3_key == file_record.s3_key for c in chunks)

    assert await session_repo.get("upload-123") == UploadSession(
        bucket="test-bucket", key="dropbox/user-1/video.mp4"
    )
    assert fake_redis.ttls["upload:session:upload-123"] == 600


@pytest.mark.asyncio
async def test_initiate_rejects_oversized_file(service, s3_client):
    with pytest.raises(UploadValidationError):
        await _initiate(service, size=101 * MB)
    s3_client.create_multipart_upload.assert_not_called()


@pytest.mark.asyncio
async def test_initiate_storage_failure_leaves_nothing(service, db_session, s3_client, fake_redis):
    s3_client.create_multipart_upload.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "CreateMultipartUpload"
    )

    with pytest.raises(InitFailedError) as exc_info:
        await _initiate(service)

    assert exc_info.value.code == ErrorCode.INIT_FAILED
    assert await db_session.get(FileMetadata, "file-1") is None
    assert fake_redis.store == {}


@pytest.mark.asyncio
async def test_initiate_metadata_failure_aborts_multipart(service, db_session, s3_client, fake_redis):
    """Same name for the same owner maps to the same key; the second initiate fails cleanly."""
    await _initiate(service, file_id="file-1")
    s3_client.create_multipart_upload.return_value = {"UploadId": "upload-456"}

    with pytest.raises(InitFailedError):
        await _initiate(service, file_id="file-2")

    assert await db_session.get(FileMetadata, "file-2") is None
    assert await _chunks(db_session, "file-2") == []
    assert "upload:session:upload-456" not in fake_redis.store
    s3_client.abort_multipart_upload.assert_called_once_with(
        Bucket="test-bucket", Key="dropbox/user-1/video.mp4", UploadId="upload-456"
    )


@pytest.mark.asyncio
async def test_initiate_cleanup_aborts_multipart_when_session_delete_fails(service, s3_client, fake_redis):
    s3_client.generate_presigned_url.side_effect = ClientError(
        {"Error": {"Code": "InternalError", "Message": "boom"}}, "GeneratePresignedUrl"
    )
    fake_redis.delete = AsyncMock(side_effect=ConnectionError("redis unavailable"))

    with pytest.raises(InitFailedError):
        await _initiate(service)

    fake_redis.delete.assert_awaited()
    s3_client.abort_multipart_upload.assert_called_once_with(
        Bucket="test-bucket", Key="dropbox/user-1/video.mp4", UploadId="upload-123"
    )


@pytest.mark.asyncio
async def test_record_chunk_marks_completed(service, db_session):
    await _initiate(service)

    await service.record_chunk("file-1", 1, 5 * MB, "etag-b")

    chunks = await _chunks(db_session, "file-1")
    assert chunks[1].status == ChunkStatus.COMPLETED
    assert chunks[1].checksum == "etag-b"
    assert chunks[0].status == ChunkStatus.PENDING


@pytest.mark.asyncio
async def test_record_chunk_twice_is_idempotent(service, db_session):
    await _initiate(service)

    await service.record_chunk("file-1", 0, 5 * MB, "etag-a")
    await service.record_chunk("file-1", 0, 5 * MB, "etag-a")

    chunks = await _chunks(db_session, "file-1")
    assert len(chunks) == 3
    assert chunks[0].status == ChunkStatus.COMPLETED
    assert chunks[0].checksum == "etag-a"


@pytest.mark.asyncio
async def test_record_chunk_resend_overwrites_checksum(service, db_session):
    await _initiate(service)

    await service.record_chunk("file-1", 0, 5 * MB, "etag-old")
    await service.record_chunk("file-1", 0, 5 * MB, "etag-new")

    chunks = await _chunks(db_session, "file-1")
    assert chunks[0].checksum == "etag-new"


@pytest.mark.asyncio
async def test_record_unknown_chunk_not_found(service):
    await _initiate(service)

    with pytest.raises(NotFoundError):
        await service.record_chunk("file-1", 7, 5 * MB, "etag")
    with pytest.raises(NotFoundError):
        await service.record_chunk("missing", 0, 5 * MB, "etag")


@pytest.mark.asyncio
async def test_complete_marks_uploaded_and_clears_session(service, db_session, session_repo, s3_client):
    await _initiate(service)
    parts = [{"PartNumber": n, "ETag": f'"etag-{n}"'} for n in (3, 1, 2)]

    await service.complete_upload("upload-123", "file-1", parts)

    kwargs = s3_client.complete_multipart_upload.call_args.kwargs
    assert kwargs["Key"] == "dropbox/user-1/video.mp4"
    assert kwargs["UploadId"] == "upload-123"
    assert [p["PartNumber"] for p in kwargs["MultipartUpload"]["Parts"]] == [1, 2, 3]

    file_record = await db_session.get(FileMetadata, "file-1")
    assert file_record.status == FileStatus.UPLOADED
    assert await session_repo.get("upload-123") is None


@pytest.mark.asyncio
async def test_complete_without_session_is_session_expired(service, db_session, s3_client):
    await _initiate(service)
    await service.session_repo.delete("upload-123")

    with pytest.raises(SessionExpiredError) as exc_info:
        await service.complete_upload("upload-123", "file-1", [{"PartNumber": 1, "ETag": "a"}])

    assert exc_info.value.code == ErrorCode.SESSION_EXPIRED
    assert exc_info.value.status_code == 404
    s3_client.complete_multipart_upload.assert_not_called()
    file_record = await db_session.get(FileMetadata, "file-1")
    assert file_record.status == FileStatus.UPLOADING


@pytest.mark.asyncio
async def test_complete_twice_second_is_session_expired(service):
    await _initiate(service)
    parts = [{"PartNumber": 1, "ETag": "a"}]

    await service.complete_upload("upload-123", "file-1", parts)
    with pytest.raises(SessionExpiredError):
        await service.complete_upload("upload-123", "file-1", parts)


@pytest.mark.asyncio
async def test_abort_removes_everything(service, db_session, session_repo, s3_client):
    await _initiate(service)
    await service.record_chunk("file-1", 0, 5 * MB, "etag-a")

    await service.abort_upload("upload-123", "file-1")

    assert await db_session.get(FileMetadata, "file-1") is None
    assert await _chunks(db_session, "file-1") == []
    assert await session_repo.get("upload-123") is None
    s3_client.abort_multipart_upload.assert_called_once_with(
        Bucket="test-bucket", Key="dropbox/user-1/video.mp4", UploadId="upload-123"
    )


@pytest.mark.asyncio
async def test_abort_twice_is_harmless(service, db_session, s3_client):
    await _initiate(service)

    await service.abort_upload("upload-123", "file-1")
    await service.abort_upload("upload-123", "file-1")

    assert await db_session.get(FileMetadata, "file-1") is None
    # Second call knows no key any more and leaves S3 alone
    assert s3_client.abort_multipart_upload.call_count == 1


@pytest.mark.asyncio
async def test_record_after_abort_not_found(service):
    await _initiate(service)
    await service.abort_upload("upload-123", "file-1")

    with pytest.raises(NotFoundError):
        await service.record_chunk("file-1", 0, 5 * MB, "etag-a")


def test_format_parts():
    class Part:
        def __init__(self, part_number, etag):
            self.part_number = part_number
            self.etag = etag

    assert UploadService.format_parts([Part(1, '"a"'), Part(2, '"b"')]) == [
        {"PartNumber": 1, "ETag": '"a"'},
        {"PartNumber": 2, "ETag": '"b"'},
    ]
