"""Pytest configuration and fixtures."""

import time
from typing import AsyncGenerator, Dict, Optional
from unittest.mock import MagicMock

import jwt
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from src.main import app
from src.config.database import Base, get_db
from src.config import settings
from src.core.dependencies import get_session_repo, get_storage_repo
from src.repositories.session_repo import SessionRepository
from src.repositories.storage_repo import StorageRepository
import src.models  # noqa: F401


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_BUCKET = "test-bucket"
TEST_USER_ID = "user-1"


class FakeRedis:
    """In-memory stand-in for the few redis.asyncio calls the session cache makes."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}

    async def set(self, key: str, value: str, ex: Optional[int] = None):
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    async def aclose(self):
        pass


def _presign(operation, Params, ExpiresIn):
    if operation == "upload_part":
        return (
            f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}"
            f"?partNumber={Params['PartNumber']}&uploadId={Params['UploadId']}"
        )
    return f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


@pytest.fixture
def s3_client():
    """Mock boto3 S3 client."""
    client = MagicMock()
    client.create_multipart_upload.return_value = {"UploadId": "upload-123"}
    client.generate_presigned_url.side_effect = _presign
    client.complete_multipart_upload.return_value = {}
    client.abort_multipart_upload.return_value = {}
    client.delete_object.return_value = {}
    return client


@pytest.fixture
def storage_repo(s3_client) -> StorageRepository:
    return StorageRepository(s3_client, TEST_BUCKET)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def session_repo(fake_redis) -> SessionRepository:
    return SessionRepository(fake_redis)


@pytest.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory sharing the in-memory test database."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    storage_repo: StorageRepository,
    session_repo: SessionRepository,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_repo] = lambda: storage_repo
    app.dependency_overrides[get_session_repo] = lambda: session_repo

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def make_token(user_id: str = TEST_USER_ID, expires_in: int = 3600) -> str:
    return jwt.encode(
        {"sub": user_id, "email": f"{user_id}@example.com", "exp": int(time.time()) + expires_in},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    """Bearer header for TEST_USER_ID."""
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def token_factory():
    """Build access tokens for arbitrary users."""
    return make_token
