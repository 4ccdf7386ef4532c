"""Chunk repository."""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .base import BaseRepository
from ..models.chunk import Chunk
from ..utils.constants import ChunkStatus


class ChunkRepository(BaseRepository[Chunk]):
    """Repository for per-part upload state."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Chunk)

    async def get_chunk(self, file_id: str, chunk_index: int) -> Optional[Chunk]:
        """Get a chunk by its (file_id, chunk_index) identity."""
        stmt = (
            select(Chunk)
            .where(Chunk.file_id == file_id, Chunk.chunk_index == chunk_index)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_completed(self, file_id: str, chunk_index: int, checksum: str) -> bool:
        """
        Store the part's checksum and mark it COMPLETED.
        Returns False if no such chunk exists (never created, or deleted by an abort).
        """
        stmt = (
            update(Chunk)
            .where(Chunk.file_id == file_id, Chunk.chunk_index == chunk_index)
            .values(checksum=checksum, status=ChunkStatus.COMPLETED)
        )
        result = await self.session.execute(stmt)
        await self.commit()
        return result.rowcount > 0
