"""
Event reconciler - polls the storage event queue and confirms uploads.

1. Long-poll SQS for up to ``batch_size`` messages
2. Normalize each body into object-created events and mark files UPLOADED
3. Delete a message only after it was processed without raising
4. A failing message is left for redelivery; the loop moves on
5. A failing receive is logged, followed by ``error_delay`` before retrying
"""

import asyncio
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..repositories.queue_repo import QueueRepository
from ..services.event_service import EventService, normalize_message
from ..utils.logger import get_logger

logger = get_logger(__name__)


class EventReconciler:
    """Background consumer turning S3 notifications into metadata updates."""

    def __init__(
        self,
        queue_repo: QueueRepository,
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: int = 10,
        wait_time: int = 20,
        poll_interval: float = 1.0,
        error_delay: float = 5.0,
    ):
        self.queue_repo = queue_repo
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.wait_time = wait_time
        self.poll_interval = poll_interval
        self.error_delay = error_delay
        self._shutdown_event = asyncio.Event()

    async def run(self) -> None:
        """Poll until ``shutdown`` is called. Never exits on queue errors."""
        logger.info(
            "Starting SQS polling",
            queue_url=self.queue_repo.queue_url,
            batch_size=self.batch_size,
        )

        while not self._shutdown_event.is_set():
            try:
                messages = await self.queue_repo.receive_messages(
                    max_messages=self.batch_size,
                    wait_time=self.wait_time,
                )
            except Exception as e:
                logger.error("Error polling SQS", error=str(e))
                await self._sleep(self.error_delay)
                continue

            if not messages:
                await self._sleep(self.poll_interval)
                continue

            logger.info("Received messages from SQS", count=len(messages))
            for message in messages:
                await self.process_message(message)

        logger.info("SQS polling stopped")

    def shutdown(self) -> None:
        """Signal shutdown."""
        self._shutdown_event.set()

    async def _sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds or until shutdown, whichever is first."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def process_message(self, message: Dict[str, Any]) -> bool:
        """
        Process one queue message.
        Returns True if the message was handled (and deleted), False if it
        was left on the queue for redelivery.
        """
        message_id: Optional[str] = message.get("MessageId")
        receipt_handle: Optional[str] = message.get("ReceiptHandle")

        try:
            events = normalize_message(message.get("Body"))
            if events is None:
                logger.warning(
                    "Unrecognized message shape, dropping",
                    message_id=message_id,
                    body=str(message.get("Body"))[:500],
                )
            else:
                for event in events:
                    async with self.session_factory() as session:
                        await EventService(session).apply_object_created(event, message_id=message_id)
        except Exception as e:
            logger.error(
                "Failed to process SQS message, leaving it for redelivery",
                message_id=message_id,
                error=str(e),
                exc_info=e,
            )
            return False

        if receipt_handle:
            await self.queue_repo.delete_message(receipt_handle)
        return True
