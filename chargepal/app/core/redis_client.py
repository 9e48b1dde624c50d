"""
Redis connection for the ledger lock.

Redis only holds short-lived lock keys (see ``services.sync_lock``); the
ledger itself lives in the local database.
"""

import redis.asyncio as redis
from redis.exceptions import RedisError
from chargepal.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """FastAPI dependency returning the shared client."""
    return redis_client


async def ping_redis(client=None) -> bool:
    """
    Check Redis is reachable.

    Returns:
        True if the server answered, False on any connection or protocol error
    """
    try:
        return bool(await (client or redis_client).ping())
    except (RedisError, OSError):
        return False


async def close_redis() -> None:
    await redis_client.aclose()
