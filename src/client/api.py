"""HTTP client for the upload API, with retries for transient failures."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from ..utils.logger import get_logger
from .cancellation import CancelToken
from .errors import CoordinatorError

logger = get_logger(__name__)

ABORT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class InitiatedUpload:
    """What the server hands back when an upload is opened."""

    upload_id: str
    presigned_urls: List[str]


class CoordinatorClient:
    """
    Calls the upload API endpoints.

    Every call except ``abort`` is bound to the attempt's cancel token and
    retried on transient failure (network errors, 5xx, 429): up to
    ``retries`` attempts in total, sleeping ``backoff_base * 2**n`` seconds
    between attempt ``n`` and ``n + 1``.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        cancel_token: CancelToken,
        retries: int = 3,
        backoff_base: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.http = http
        self.cancel_token = cancel_token
        self.retries = retries
        self.backoff_base = backoff_base
        self._sleep = sleep

    async def initiate(self, file_id: str, file_name: str, file_type: str, file_size: int) -> InitiatedUpload:
        data = await self._post(
            "/files/get-upload-urls",
            {
                "file_id": file_id,
                "file_name": file_name,
                "file_type": file_type,
                "file_size": file_size,
            },
        )
        upload_id = data.get("uploadId")
        urls = data.get("presignedUrls")
        if not upload_id or not isinstance(urls, list):
            raise CoordinatorError("Invalid response from server", retryable=False)
        return InitiatedUpload(upload_id=upload_id, presigned_urls=urls)

    async def record_chunk(self, file_id: str, chunk_index: int, size: int, etag: str) -> None:
        await self._post(
            "/files/record-chunk",
            {"file_id": file_id, "chunk_index": chunk_index, "size": size, "etag": etag},
        )

    async def complete(self, upload_id: str, file_id: str, parts: List[Dict[str, Any]]) -> None:
        await self._post(
            "/files/complete-upload",
            {"uploadId": upload_id, "parts": parts, "fileId": file_id},
        )

    async def abort(self, upload_id: str, file_id: str) -> None:
        """
        Ask the server to discard the upload. Not bound to the cancel token,
        since it is exactly what runs after a cancellation, and not retried.
        """
        logger.info("Calling abort endpoint", upload_id=upload_id, file_id=file_id)
        response = await self.http.post(
            "/files/abort-upload",
            json={"uploadId": upload_id, "file_id": file_id},
            timeout=ABORT_TIMEOUT_SECONDS,
        )
        if not response.is_success:
            raise CoordinatorError.from_status(
                response.status_code, _error_message(response, "Failed to abort upload")
            )

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        def log_retry(retry_state: RetryCallState) -> None:
            logger.warning(
                "Request failed, retrying",
                endpoint=endpoint,
                attempt=retry_state.attempt_number,
                retries=self.retries,
                delay=retry_state.next_action.sleep,
                error=str(retry_state.outcome.exception()),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries),
            wait=wait_exponential(multiplier=self.backoff_base),
            retry=retry_if_exception(lambda e: isinstance(e, CoordinatorError) and e.retryable),
            sleep=lambda delay: self.cancel_token.guard(self._sleep(delay)),
            before_sleep=log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._post_once(endpoint, body)

    async def _post_once(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        self.cancel_token.raise_if_cancelled()

        try:
            response = await self.cancel_token.guard(self.http.post(endpoint, json=body))
        except httpx.HTTPError as e:
            raise CoordinatorError(f"{type(e).__name__}: {e}", retryable=True) from e

        if not response.is_success:
            raise CoordinatorError.from_status(
                response.status_code,
                _error_message(response, f"HTTP {response.status_code}"),
            )

        data = _json_or_empty(response)
        if not data.get("success", False):
            raise CoordinatorError(
                data.get("error") or f"Request to {endpoint} was not successful",
                status_code=response.status_code,
                retryable=False,
            )
        return data


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_message(response: httpx.Response, default: str) -> str:
    return _json_or_empty(response).get("error") or default
