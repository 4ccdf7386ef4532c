"""
Client-side chunk scheduler.

Drives one upload attempt through

    IDLE -> INITIATING -> UPLOADING -> COMPLETING -> DONE | FAILED | CANCELLED

Parts are uploaded in batches of ``max_parallel_uploads``: the parts of a
batch run concurrently and the next batch starts only once every part of
the current one has finished. Any failure fails the whole upload and the
server is asked to abort it, so nothing is left half finished.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..core.chunking import part_count, part_range
from ..utils.constants import UploadState
from ..utils.helpers import strip_etag
from ..utils.logger import get_logger
from .api import CoordinatorClient
from .cancellation import CancelToken
from .errors import PartUploadError, UploadCancelledError, UploadClientError
from .source import UploadSource

logger = get_logger(__name__)

DEFAULT_PART_SIZE = 5 * 1024 * 1024
DEFAULT_MAX_PARALLEL_UPLOADS = 3


@dataclass(frozen=True)
class UploadConfig:
    """Immutable settings of an upload attempt."""

    part_size: int = DEFAULT_PART_SIZE
    max_parallel_uploads: int = DEFAULT_MAX_PARALLEL_UPLOADS

    def __post_init__(self):
        if self.part_size <= 0:
            raise ValueError("part_size must be positive")
        if self.max_parallel_uploads <= 0:
            raise ValueError("max_parallel_uploads must be positive")


@dataclass(frozen=True)
class UploadProgress:
    """Progress after a part has been recorded."""

    completed_chunks: int
    total_chunks: int
    percentage: int


@dataclass
class UploadAttempt:
    """Mutable state of one upload attempt."""

    file_id: str
    total_chunks: int
    state: UploadState = UploadState.IDLE
    upload_id: Optional[str] = None
    completed_chunks: int = 0
    abort_called: bool = False
    error: Optional[str] = None
    parts: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class UploadResult:
    """Outcome of ``ChunkScheduler.start``."""

    success: bool
    state: UploadState
    file_id: str
    upload_id: Optional[str] = None
    error: Optional[str] = None


class ChunkScheduler:
    """Uploads one source through the chunked upload API."""

    def __init__(
        self,
        api: CoordinatorClient,
        storage_http: httpx.AsyncClient,
        source: UploadSource,
        config: UploadConfig = UploadConfig(),
        on_progress: Optional[Callable[[UploadProgress], None]] = None,
        file_id: Optional[str] = None,
    ):
        self.api = api
        # Presigned URLs carry their own signature; this client must not add auth headers
        self.storage_http = storage_http
        self.source = source
        self.config = config
        self.on_progress = on_progress
        self.cancel_token: CancelToken = api.cancel_token
        self.attempt = UploadAttempt(
            file_id=file_id or str(uuid.uuid4()),
            total_chunks=part_count(source.size, config.part_size),
        )
        self._urls: List[str] = []
        self._abort_lock = asyncio.Lock()

    @property
    def state(self) -> UploadState:
        return self.attempt.state

    def cancel(self) -> None:
        """Request cancellation. ``start`` aborts the upload and returns CANCELLED."""
        logger.info("Cancelling upload", file_id=self.attempt.file_id, upload_id=self.attempt.upload_id)
        self.cancel_token.cancel()

    async def cancel_with_cleanup(self) -> None:
        """Request cancellation and abort the server-side upload right away."""
        self.cancel()
        await self._abort_once()

    async def start(self) -> UploadResult:
        """Run the upload attempt to a terminal state."""
        attempt = self.attempt
        if attempt.state is not UploadState.IDLE:
            raise RuntimeError(f"Upload attempt already started (state={attempt.state.value})")

        try:
            await self._initiate()
            await self._upload_parts()
            await self._complete()
        except UploadCancelledError as e:
            return await self._finish_cancelled(str(e))
        except Exception as e:
            if self.cancel_token.cancelled:
                return await self._finish_cancelled(str(e))
            return await self._finish_failed(e)

        attempt.state = UploadState.DONE
        logger.info("Upload completed successfully", file_id=attempt.file_id, upload_id=attempt.upload_id)
        return self._result()

    async def _initiate(self) -> None:
        attempt = self.attempt
        attempt.state = UploadState.INITIATING
        logger.info(
            "Initiating upload",
            file_name=self.source.name,
            file_size=self.source.size,
            chunks=attempt.total_chunks,
        )

        initiated = await self.api.initiate(
            file_id=attempt.file_id,
            file_name=self.source.name,
            file_type=self.source.content_type,
            file_size=self.source.size,
        )
        attempt.upload_id = initiated.upload_id
        self._urls = initiated.presigned_urls

        if len(self._urls) != attempt.total_chunks:
            raise UploadClientError(
                f"URL count mismatch: expected {attempt.total_chunks}, got {len(self._urls)}"
            )
        logger.info("Upload initialized", upload_id=attempt.upload_id, url_count=len(self._urls))

    async def _upload_parts(self) -> None:
        attempt = self.attempt
        attempt.state = UploadState.UPLOADING
        batch_size = self.config.max_parallel_uploads

        for batch_start in range(0, attempt.total_chunks, batch_size):
            self.cancel_token.raise_if_cancelled()

            indexes = range(batch_start, min(batch_start + batch_size, attempt.total_chunks))
            # Wait for every part of the batch, even after one has failed
            results = await asyncio.gather(
                *(self._upload_part(i) for i in indexes),
                return_exceptions=True,
            )
            errors = [r for r in results if isinstance(r, BaseException)]
            if errors:
                cancelled = [e for e in errors if isinstance(e, UploadCancelledError)]
                raise (cancelled or errors)[0]
            attempt.parts.extend(results)

    async def _upload_part(self, index: int) -> Dict[str, Any]:
        self.cancel_token.raise_if_cancelled()

        part_number = index + 1
        start, end = part_range(index, self.source.size, self.config.part_size)
        data = await self.source.read(start, end)
        logger.debug("Uploading chunk", part_number=part_number, total=self.attempt.total_chunks)

        try:
            response = await self.cancel_token.guard(
                self.storage_http.put(
                    self._urls[index],
                    content=data,
                    headers={"Content-Type": "application/octet-stream"},
                )
            )
        except httpx.HTTPError as e:
            raise PartUploadError(part_number, str(e)) from e

        if not response.is_success:
            raise PartUploadError(part_number, f"HTTP {response.status_code} {response.reason_phrase}")

        etag = response.headers.get("etag")
        if not etag:
            raise PartUploadError(part_number, "No ETag received")

        await self.api.record_chunk(
            file_id=self.attempt.file_id,
            chunk_index=index,
            size=len(data),
            etag=strip_etag(etag),
        )
        self._report_progress()
        return {"PartNumber": part_number, "ETag": etag}

    async def _complete(self) -> None:
        attempt = self.attempt
        attempt.state = UploadState.COMPLETING
        self.cancel_token.raise_if_cancelled()
        logger.info("All chunks uploaded, completing upload", upload_id=attempt.upload_id)
        await self.api.complete(
            upload_id=attempt.upload_id,
            file_id=attempt.file_id,
            parts=sorted(attempt.parts, key=lambda p: p["PartNumber"]),
        )

    def _report_progress(self) -> None:
        attempt = self.attempt
        attempt.completed_chunks += 1
        if self.on_progress is None:
            return
        self.on_progress(
            UploadProgress(
                completed_chunks=attempt.completed_chunks,
                total_chunks=attempt.total_chunks,
                percentage=round(100 * attempt.completed_chunks / attempt.total_chunks),
            )
        )

    async def _abort_once(self) -> None:
        """Call the abort endpoint at most once per attempt, and only once an upload ID exists."""
        async with self._abort_lock:
            attempt = self.attempt
            if attempt.abort_called or attempt.upload_id is None:
                return
            attempt.abort_called = True

        try:
            await self.api.abort(upload_id=attempt.upload_id, file_id=attempt.file_id)
            logger.info("Upload aborted successfully", upload_id=attempt.upload_id)
        except (UploadClientError, httpx.HTTPError) as e:
            # The server-side session expires on its own; nothing more the client can do
            logger.error("Failed to abort upload on server", upload_id=attempt.upload_id, error=str(e))

    async def _finish_cancelled(self, message: str) -> UploadResult:
        await self._abort_once()
        self.attempt.state = UploadState.CANCELLED
        self.attempt.error = message
        logger.info("Upload cancelled", file_id=self.attempt.file_id, upload_id=self.attempt.upload_id)
        return self._result()

    async def _finish_failed(self, error: Exception) -> UploadResult:
        logger.error("Upload failed", file_id=self.attempt.file_id, error=str(error))
        await self._abort_once()
        self.attempt.state = UploadState.FAILED
        self.attempt.error = str(error) or type(error).__name__
        return self._result()

    def _result(self) -> UploadResult:
        attempt = self.attempt
        return UploadResult(
            success=attempt.state is UploadState.DONE,
            state=attempt.state,
            file_id=attempt.file_id,
            upload_id=attempt.upload_id,
            error=attempt.error,
        )
