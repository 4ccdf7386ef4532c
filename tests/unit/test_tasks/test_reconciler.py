"""Unit tests for the storage event reconciler."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.file_metadata import FileMetadata
from src.tasks.reconciler import EventReconciler
from src.utils.constants import FileStatus


def _message(body, message_id: str = "m-1") -> dict:
    return {
        "MessageId": message_id,
        "ReceiptHandle": f"rh-{message_id}",
        "Body": body if isinstance(body, str) else json.dumps(body),
    }


def _records(key: str, size: int = 100) -> dict:
    return {
        "Records": [
            {
                "eventName": "ObjectCreated:CompleteMultipartUpload",
                "s3": {"bucket": {"name": "test-bucket"}, "object": {"key": key, "size": size}},
            }
        ]
    }


@pytest.fixture
def queue_repo():
    repo = MagicMock()
    repo.queue_url = "https://sqs.us-east-1.amazonaws.com/123/uploads"
    repo.receive_messages = AsyncMock(return_value=[])
    repo.delete_message = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def reconciler(queue_repo, session_factory) -> EventReconciler:
    return EventReconciler(queue_repo, session_factory, poll_interval=0.01, error_delay=0.01)


async def _add_file(db_session, s3_key: str = "dropbox/user-1/my file.txt") -> None:
    db_session.add(
        FileMetadata(
            file_id="file-1",
            file_name="my file.txt",
            mime_type="text/plain",
            size=None,
            s3_key=s3_key,
            status=FileStatus.UPLOADING,
            user_id="user-1",
        )
    )
    await db_session.commit()


@pytest.mark.asyncio
async def test_object_created_marks_uploaded_and_deletes(reconciler, queue_repo, db_session):
    await _add_file(db_session)

    handled = await reconciler.process_message(_message(_records("dropbox/user-1/my+file.txt", size=77)))

    assert handled is True
    queue_repo.delete_message.assert_awaited_once_with("rh-m-1")
    file_record = await db_session.get(FileMetadata, "file-1", populate_existing=True)
    assert file_record.status == FileStatus.UPLOADED
    assert file_record.size == 77


@pytest.mark.asyncio
async def test_test_event_is_deleted(reconciler, queue_repo, db_session):
    handled = await reconciler.process_message(_message({"Event": "s3:TestEvent", "Bucket": "test-bucket"}))

    assert handled is True
    queue_repo.delete_message.assert_awaited_once_with("rh-m-1")


@pytest.mark.asyncio
async def test_unknown_key_is_deleted(reconciler, queue_repo, db_session):
    """An object whose upload was aborted has no metadata; the message is still consumed."""
    handled = await reconciler.process_message(_message(_records("dropbox/user-1/gone.txt")))

    assert handled is True
    queue_repo.delete_message.assert_awaited_once()


@pytest.mark.asyncio
async def test_unrecognized_body_is_dropped(reconciler, queue_repo, db_session):
    handled = await reconciler.process_message(_message("not json at all"))

    assert handled is True
    queue_repo.delete_message.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"Records": [{"eventName": "ObjectCreated:Put", "s3": "oops"}]},
        {"Records": [{"eventName": 5, "s3": {"object": {"key": "dropbox/user-1/a.txt"}}}]},
        {"Records": [{"eventName": "ObjectCreated:Put", "s3": {"object": {"key": 123}}}]},
        {"Records": [{"eventName": "ObjectCreated:Put", "s3": {"object": "x", "bucket": "b"}}]},
        {"detail-type": "Object Created", "detail": {"object": "x"}},
        {"detail-type": "Object Created", "detail": {"object": {"key": ["a"]}, "bucket": 7}},
        {"detail": {"requestParameters": {"bucketName": 1, "key": {"k": "v"}}}},
    ],
)
async def test_malformed_envelope_is_deleted(reconciler, queue_repo, db_session, body):
    """Wrongly typed fields inside a known envelope must not leave the message on the queue."""
    handled = await reconciler.process_message(_message(body))

    assert handled is True
    queue_repo.delete_message.assert_awaited_once_with("rh-m-1")


@pytest.mark.asyncio
async def test_failed_processing_leaves_message(queue_repo):
    def broken_factory():
        raise RuntimeError("database unavailable")

    reconciler = EventReconciler(queue_repo, broken_factory)

    handled = await reconciler.process_message(_message(_records("dropbox/user-1/a.txt")))

    assert handled is False
    queue_repo.delete_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_survives_receive_errors(reconciler, queue_repo, db_session):
    """A failing receive is logged and retried; later messages are still processed."""
    await _add_file(db_session, s3_key="dropbox/user-1/a.txt")
    calls = 0

    async def receive(max_messages, wait_time):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("connection reset")
        if calls == 2:
            return [_message(_records("dropbox/user-1/a.txt"))]
        reconciler.shutdown()
        return []

    queue_repo.receive_messages = AsyncMock(side_effect=receive)

    await asyncio.wait_for(reconciler.run(), timeout=5)

    assert calls >= 3
    queue_repo.delete_message.assert_awaited_once_with("rh-m-1")
    file_record = await db_session.get(FileMetadata, "file-1", populate_existing=True)
    assert file_record.status == FileStatus.UPLOADED


@pytest.mark.asyncio
async def test_shutdown_interrupts_idle_sleep(queue_repo, session_factory):
    reconciler = EventReconciler(queue_repo, session_factory, poll_interval=60)

    task = asyncio.create_task(reconciler.run())
    await asyncio.sleep(0.05)
    reconciler.shutdown()

    await asyncio.wait_for(task, timeout=1)
