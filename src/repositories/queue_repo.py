"""Queue repository for the storage event queue (SQS)."""

import asyncio
from functools import partial
from typing import Any, Dict, List

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..utils.logger import get_logger

logger = get_logger(__name__)


class QueueRepository:
    """Repository for receiving and acknowledging storage event messages."""

    def __init__(self, client: BaseClient, queue_url: str):
        self.client = client
        self.queue_url = queue_url

    async def _run(self, func, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, **kwargs))

    async def receive_messages(self, max_messages: int = 10, wait_time: int = 20) -> List[Dict[str, Any]]:
        """
        Long-poll for up to ``max_messages`` messages.
        Errors propagate; the poll loop decides how to back off.
        """
        response = await self._run(
            self.client.receive_message,
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=max_messages,
            WaitTimeSeconds=wait_time,
        )
        return response.get("Messages", [])

    async def delete_message(self, receipt_handle: str) -> bool:
        """
        Acknowledge a message. A failed delete is logged, not raised:
        the message is redelivered and handled idempotently.
        """
        try:
            await self._run(
                self.client.delete_message,
                QueueUrl=self.queue_url,
                ReceiptHandle=receipt_handle,
            )
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to delete SQS message", error=str(e), receipt_handle=receipt_handle)
            return False

    async def check_access(self) -> bool:
        """Check the queue with a short receive. Messages seen here become visible again after the timeout."""
        try:
            logger.info("Testing SQS queue access", queue_url=self.queue_url)
            await self._run(
                self.client.receive_message,
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=1,
                WaitTimeSeconds=1,
                VisibilityTimeout=0,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("SQS queue access test failed", error=str(e), queue_url=self.queue_url)
            return False
        logger.info("SQS queue access test successful")
        return True
