"""
Redis client initialization and connection management.

The client is built by the application lifespan and kept on `app.state`;
handlers receive it through the `get_redis` dependency.
"""

import redis.asyncio as redis
from fastapi import Request
from fleet_wallet.app.core.config import Settings


def create_redis_client(settings: Settings) -> redis.Redis:
    """Create an async Redis client from settings."""
    return redis.from_url(
        settings.redis_url,
        decode_responses=settings.redis_decode_responses,
    )


async def get_redis(request: Request):
    """
    Get Redis client instance.

    FastAPI dependency; tests override it with an in-memory fake.
    """
    return request.app.state.redis


async def ping_redis(client: redis.Redis) -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await client.ping()
    except redis.RedisError:
        return False
