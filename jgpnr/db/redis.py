# jgpnr/db/redis.py
import redis
from jgpnr.core.config import settings


def get_redis_client():
    """
    Creates and returns a new Redis client instance.
    Connections are opened lazily on the first command.
    """
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


# Shared client behind CacheService
redis_client = get_redis_client()
