"""Deployment script with environment checks."""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import text

from src.config import settings
from src.config.database import close_db, create_engine
from src.config.redis import close_redis, create_redis

REQUIRED_SETTINGS = {
    "DATABASE_URL": "database_url",
    "REDIS_URL": "redis_url",
    "S3_BUCKET": "s3_bucket_name",
    "JWT_SECRET_KEY": "jwt_secret_key",
}


def check_environment():
    """Check that all required environment variables are set."""
    missing_vars = [
        var for var, field in REQUIRED_SETTINGS.items() if not getattr(settings, field, None)
    ]

    if missing_vars:
        print(f"ERROR: Missing required environment variables: {', '.join(missing_vars)}")
        sys.exit(1)

    if settings.reconciler_enabled and not settings.sqs_queue_url:
        print("WARNING: SQS_QUEUE_URL is not set, storage events will not be reconciled")

    print("✓ All required environment variables are set")


async def check_database_connection():
    """Check database connection."""
    engine = create_engine(settings.database_url)
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        print("✓ Database connection successful")
    except Exception as e:
        print(f"✗ Database connection failed: {e}")
        sys.exit(1)
    finally:
        await close_db(engine)


async def check_redis_connection():
    """Check Redis connection."""
    client = create_redis(settings.redis_url)
    try:
        await client.ping()
        print("✓ Redis connection successful")
    except Exception as e:
        print(f"✗ Redis connection failed: {e}")
        sys.exit(1)
    finally:
        await close_redis(client)


async def main():
    """Run deployment checks."""
    print("Running deployment checks...")
    print("-" * 50)

    check_environment()
    await check_database_connection()
    await check_redis_connection()

    print("-" * 50)
    print("✓ All checks passed! Ready for deployment.")


if __name__ == "__main__":
    asyncio.run(main())
