"""Cooperative cancellation for an upload attempt."""

import asyncio
from typing import Awaitable, TypeVar

from .errors import UploadCancelledError

T = TypeVar("T")


class CancelToken:
    """
    Signal shared by every step of one upload attempt.

    Steps check it at their suspension points, and ``guard`` races an
    awaitable against it so an in-flight request is cut as soon as the
    token fires.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise UploadCancelledError()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first, in which case it is cancelled."""
        task = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise UploadCancelledError()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()

        if task.done() and not task.cancelled():
            return task.result()
        # Token fired first: let the cancelled task unwind before reporting it
        await asyncio.gather(task, return_exceptions=True)
        raise UploadCancelledError()
