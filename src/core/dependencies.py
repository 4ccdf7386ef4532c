"""Reusable FastAPI dependencies."""

from typing import AsyncGenerator
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, settings
from ..config.database import get_db
from ..repositories.session_repo import SessionRepository
from ..repositories.storage_repo import StorageRepository
from ..services.file_service import FileService
from ..services.upload_service import UploadService


def get_settings() -> Settings:
    """Dependency to get application settings."""
    return settings


async def get_storage_repo(request: Request) -> StorageRepository:
    """Dependency to get the storage repository created at startup."""
    return request.app.state.storage_repo


async def get_session_repo(request: Request) -> SessionRepository:
    """Dependency to get the upload session repository."""
    return SessionRepository(request.app.state.redis)


async def get_upload_service(
    db: AsyncSession = Depends(get_db),
    storage_repo: StorageRepository = Depends(get_storage_repo),
    session_repo: SessionRepository = Depends(get_session_repo),
    app_settings: Settings = Depends(get_settings),
) -> AsyncGenerator[UploadService, None]:
    """Dependency to get the upload coordinator."""
    yield UploadService(db, storage_repo, session_repo, settings=app_settings)


async def get_file_service(
    db: AsyncSession = Depends(get_db),
    storage_repo: StorageRepository = Depends(get_storage_repo),
) -> AsyncGenerator[FileService, None]:
    """Dependency to get file service."""
    yield FileService(db, storage_repo)
