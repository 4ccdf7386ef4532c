"""Redis configuration for the upload session cache."""

import redis.asyncio as aioredis


def create_redis(redis_url: str) -> aioredis.Redis:
    """Create an async Redis client. Connections are opened lazily."""
    return aioredis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
    )


async def close_redis(client: aioredis.Redis) -> None:
    """Close Redis connection."""
    await client.aclose()
