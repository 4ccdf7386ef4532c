"""Base repository with common database operations."""

from typing import Any, Generic, Optional, TypeVar
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

ModelType = TypeVar("ModelType", bound=DeclarativeBase)


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations."""

    def __init__(self, session: AsyncSession, model: type[ModelType]):
        """
        Initialize repository.
        Args:
            session: Async database session
            model: SQLAlchemy model class
        """
        self.session = session
        self.model = model

    async def get(self, pk: Any) -> Optional[ModelType]:
        """Get entity by primary key, bypassing the identity map cache."""
        return await self.session.get(self.model, pk, populate_existing=True)

    async def commit(self) -> None:
        """Commit the current transaction, rolling back on failure."""
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
