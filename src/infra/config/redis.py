import redis.asyncio as redis
from functools import lru_cache
from src.infra.config.settings import settings
from src.core.logger.logger import get_logger

logger = get_logger(__name__)

@lru_cache()
def get_redis_pool():
    """Get Redis connection pool (cached)"""
    return redis.ConnectionPool.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS
    )

async def get_redis() -> redis.Redis:
    """Get a pooled Redis connection, checked with a ping"""
    try:
        redis_client = redis.Redis(connection_pool=get_redis_pool())
        await redis_client.ping()
        return redis_client
    except Exception as e:
        logger.error("Failed to connect to Redis", extra={"error": str(e)})
        raise
