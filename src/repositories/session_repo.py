"""Upload session cache backed by Redis."""

import json
from dataclasses import asdict, dataclass
from typing import Optional

import redis.asyncio as aioredis

from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class UploadSession:
    """Object-store coordinates of an in-flight multipart upload."""

    bucket: str
    key: str


class SessionRepository:
    """
    Ephemeral upload-id -> UploadSession store.

    Entries expire on their own; callers must treat a missing entry as
    "completed, aborted or expired" rather than an error in the cache.
    """

    key_prefix = "upload:session:"

    def __init__(self, client: aioredis.Redis):
        self.client = client

    def _key(self, upload_id: str) -> str:
        return f"{self.key_prefix}{upload_id}"

    async def set(self, upload_id: str, session: UploadSession, ttl: int) -> None:
        """Store a session with a time-to-live in seconds."""
        await self.client.set(self._key(upload_id), json.dumps(asdict(session)), ex=ttl)

    async def get(self, upload_id: str) -> Optional[UploadSession]:
        """Get a session, or None if absent, expired or unreadable."""
        raw = await self.client.get(self._key(upload_id))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return UploadSession(bucket=data["bucket"], key=data["key"])
        except (ValueError, KeyError, TypeError):
            logger.error("Discarding unreadable upload session", upload_id=upload_id)
            return None

    async def delete(self, upload_id: str) -> bool:
        """Delete a session. Returns False if there was nothing to delete."""
        return await self.client.delete(self._key(upload_id)) > 0
