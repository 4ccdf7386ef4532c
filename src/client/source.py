"""Byte sources an upload can read its parts from."""

import asyncio
import mimetypes
import os
from typing import Optional, Protocol


class UploadSource(Protocol):
    """Anything with a name, a size, a MIME type and random-access reads."""

    name: str
    size: int
    content_type: str

    async def read(self, start: int, end: int) -> bytes:
        """Return bytes ``[start, end)``."""
        ...


class LocalFileSource:
    """A file on disk. Reads run in the default executor."""

    def __init__(self, path: str, content_type: Optional[str] = None):
        self.path = path
        self.name = os.path.basename(path)
        self.size = os.path.getsize(path)
        self.content_type = (
            content_type or mimetypes.guess_type(path)[0] or "application/octet-stream"
        )

    def _read(self, start: int, end: int) -> bytes:
        with open(self.path, "rb") as f:
            f.seek(start)
            return f.read(end - start)

    async def read(self, start: int, end: int) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read, start, end)


class BytesSource:
    """An in-memory payload."""

    def __init__(self, name: str, data: bytes, content_type: str = "application/octet-stream"):
        self.name = name
        self.data = data
        self.size = len(data)
        self.content_type = content_type

    async def read(self, start: int, end: int) -> bytes:
        return self.data[start:end]
