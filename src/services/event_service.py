"""
Storage event normalization and application.

Queue messages arrive in several envelope shapes depending on how the
bucket notification is routed (direct to SQS, through SNS, or through
EventBridge). Each shape has one recognizer; recognizers are tried in
order and the first that accepts the body wins. A recognizer returns
``None`` when the body is not its shape, or a (possibly empty) list of
``ObjectCreatedEvent`` when it is. New shapes are supported by appending
a recognizer to ``RECOGNIZERS``.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..repositories.file_metadata_repo import FileMetadataRepository
from ..utils.constants import OBJECT_CREATED_EVENT_PREFIX, S3_TEST_EVENT
from ..utils.helpers import decode_s3_key
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ObjectCreatedEvent:
    """Canonical "object now exists" fact."""

    key: str
    size: Optional[int] = None
    bucket: Optional[str] = None
    event_name: Optional[str] = None


Recognizer = Callable[[Any], Optional[List[ObjectCreatedEvent]]]


def parse_message_body(raw: Any) -> Any:
    """Parse a message body; malformed or missing JSON yields None."""
    if not raw or not isinstance(raw, (str, bytes)):
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _events_from_records(records: Sequence[Any]) -> List[ObjectCreatedEvent]:
    events = []
    for record in records:
        if not isinstance(record, dict):
            continue
        event_name = record.get("eventName")
        if event_name is not None and not isinstance(event_name, str):
            logger.warning("Ignoring record with non-string event name", event_name=repr(event_name))
            continue
        if event_name and not event_name.startswith(OBJECT_CREATED_EVENT_PREFIX):
            logger.debug("Ignoring non-create event", event_name=event_name)
            continue

        s3 = _as_dict(record.get("s3"))
        obj = _as_dict(s3.get("object"))
        raw_key = _as_str(obj.get("key"))
        if raw_key is None:
            logger.warning("Record missing S3 object key", event_name=event_name)
            continue

        events.append(
            ObjectCreatedEvent(
                key=decode_s3_key(raw_key),
                size=_as_int(obj.get("size")),
                bucket=_as_str(_as_dict(s3.get("bucket")).get("name")),
                event_name=event_name,
            )
        )
    return events


def recognize_test_event(body: Any) -> Optional[List[ObjectCreatedEvent]]:
    """S3 sends a test event when notifications are first configured."""
    if isinstance(body, dict) and body.get("Event") == S3_TEST_EVENT:
        logger.info(
            "Received S3 test event - connection is working",
            bucket=body.get("Bucket"),
            service=body.get("Service"),
            time=body.get("Time"),
        )
        return []
    return None


def recognize_records(body: Any) -> Optional[List[ObjectCreatedEvent]]:
    """Direct S3 -> SQS notification: ``{"Records": [...]}``."""
    if isinstance(body, dict) and isinstance(body.get("Records"), list):
        return _events_from_records(body["Records"])
    return None


def recognize_sns_notification(body: Any) -> Optional[List[ObjectCreatedEvent]]:
    """S3 -> SNS -> SQS: the S3 payload is a JSON string in ``Message``."""
    if not (
        isinstance(body, dict)
        and body.get("Type") == "Notification"
        and isinstance(body.get("Message"), str)
    ):
        return None
    inner = parse_message_body(body["Message"])
    for recognizer in (recognize_test_event, recognize_records):
        events = recognizer(inner)
        if events is not None:
            return events
    return None


def recognize_cloudtrail_event(body: Any) -> Optional[List[ObjectCreatedEvent]]:
    """EventBridge rule on CloudTrail data events: ``detail.requestParameters``."""
    if not isinstance(body, dict) or not isinstance(body.get("detail"), dict):
        return None
    detail = body["detail"]
    params = _as_dict(detail.get("requestParameters"))
    bucket = _as_str(params.get("bucketName"))
    key = _as_str(params.get("key"))
    if bucket is None or key is None:
        return None
    return [ObjectCreatedEvent(key=key, bucket=bucket, event_name=_as_str(detail.get("eventName")))]


def recognize_eventbridge_object_created(body: Any) -> Optional[List[ObjectCreatedEvent]]:
    """Native EventBridge S3 event: ``detail.object`` and ``detail.bucket``."""
    if not isinstance(body, dict) or body.get("detail-type") != "Object Created":
        return None
    detail = body.get("detail")
    if not isinstance(detail, dict):
        return None
    obj = _as_dict(detail.get("object"))
    key = _as_str(obj.get("key"))
    if key is None:
        return None
    return [
        ObjectCreatedEvent(
            key=key,
            size=_as_int(obj.get("size")),
            bucket=_as_str(_as_dict(detail.get("bucket")).get("name")),
            event_name=body.get("detail-type"),
        )
    ]


RECOGNIZERS: Sequence[Recognizer] = (
    recognize_test_event,
    recognize_records,
    recognize_sns_notification,
    recognize_eventbridge_object_created,
    recognize_cloudtrail_event,
)


def normalize_message(raw_body: Any, recognizers: Sequence[Recognizer] = RECOGNIZERS) -> Optional[List[ObjectCreatedEvent]]:
    """
    Turn a raw queue message body into object-created events.
    Returns None when no recognizer accepts the body.
    """
    body = parse_message_body(raw_body)
    if body is None:
        return None
    for recognizer in recognizers:
        events = recognizer(body)
        if events is not None:
            return events
    return None


class EventService:
    """Applies object-created events to file metadata."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.file_repo = FileMetadataRepository(db)

    async def apply_object_created(self, event: ObjectCreatedEvent, message_id: Optional[str] = None) -> bool:
        """
        Mark the file stored at ``event.key`` as UPLOADED.
        Returns True if metadata changed. Missing metadata is skipped: the
        upload was aborted after S3 had already written the object.
        """
        logger.info(
            "Processing S3 record",
            s3_key=event.key,
            event_name=event.event_name,
            size=event.size,
            message_id=message_id,
        )

        existing = await self.file_repo.get_by_s3_key(event.key)
        if existing is None:
            logger.warning("No metadata record found for S3 key", s3_key=event.key, message_id=message_id)
            return False

        old_status = existing.status
        changed = await self.file_repo.mark_uploaded(existing, size=event.size)
        logger.info(
            "Successfully updated metadata status" if changed else "Metadata already up to date",
            s3_key=event.key,
            file_id=existing.file_id,
            old_status=old_status.value,
            new_status=existing.status.value,
            size=existing.size,
            message_id=message_id,
        )
        return changed
