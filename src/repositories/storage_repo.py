"""Storage repository for S3 multipart upload operations."""

import asyncio
from functools import partial
from typing import Any, Callable, Dict, List, Sequence, TypeVar

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..core.exceptions import StorageError
from ..utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class StorageRepository:
    """Repository for object-store operations against a single bucket."""

    def __init__(self, client: BaseClient, bucket_name: str):
        self.client = client
        self.bucket_name = bucket_name

    async def _run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking boto3 call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def initiate_multipart_upload(self, key: str, content_type: str) -> str:
        """
        Initiate multipart upload.

        Returns:
            upload_id: multipart upload ID assigned by S3
        """
        try:
            response = await self._run(
                self.client.create_multipart_upload,
                Bucket=self.bucket_name,
                Key=key,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to initiate multipart upload: {e}", key=key) from e
        return response["UploadId"]

    def generate_part_urls(
        self,
        key: str,
        upload_id: str,
        total_parts: int,
        expiration: int = 3600,
    ) -> List[str]:
        """
        Generate one presigned ``upload_part`` URL per part.
        Signing is local, no request is made to S3.

        Returns:
            URLs ordered by part number (index 0 is part 1)
        """
        try:
            return [
                self.client.generate_presigned_url(
                    "upload_part",
                    Params={
                        "Bucket": self.bucket_name,
                        "Key": key,
                        "UploadId": upload_id,
                        "PartNumber": part_number,
                    },
                    ExpiresIn=expiration,
                )
                for part_number in range(1, total_parts + 1)
            ]
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to generate presigned part URLs: {e}", key=key) from e

    async def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Sequence[Dict[str, Any]],  # [{"PartNumber": 1, "ETag": "..."}]
        bucket: str = "",
    ) -> None:
        """Complete multipart upload by combining all parts."""
        multipart_upload = {
            "Parts": [
                {"PartNumber": part["PartNumber"], "ETag": part["ETag"]}
                for part in sorted(parts, key=lambda x: x["PartNumber"])
            ]
        }
        try:
            await self._run(
                self.client.complete_multipart_upload,
                Bucket=bucket or self.bucket_name,
                Key=key,
                UploadId=upload_id,
                MultipartUpload=multipart_upload,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to complete multipart upload: {e}", key=key) from e

    async def abort_multipart_upload(self, key: str, upload_id: str, bucket: str = "") -> bool:
        """
        Abort multipart upload and discard uploaded parts.
        Returns False if S3 no longer knows the upload (already aborted or completed).
        """
        try:
            await self._run(
                self.client.abort_multipart_upload,
                Bucket=bucket or self.bucket_name,
                Key=key,
                UploadId=upload_id,
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "NoSuchUpload":
                logger.info("Multipart upload already gone", key=key, upload_id=upload_id)
                return False
            raise StorageError(f"Failed to abort multipart upload: {e}", key=key) from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to abort multipart upload: {e}", key=key) from e
        return True

    def generate_presigned_url(self, key: str, expiration: int = 3600) -> str:
        """
        Generate presigned URL for file download.
        Args:
            key: Storage key
            expiration: URL expiration time in seconds
        Returns:
            Presigned URL
        """
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=expiration,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to generate presigned URL: {e}", key=key) from e

    async def delete_file(self, key: str) -> None:
        """Delete an object. Deleting a missing key succeeds."""
        try:
            await self._run(self.client.delete_object, Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete object: {e}", key=key) from e
