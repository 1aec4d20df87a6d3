# jgpnr/utils/cache.py
"""
Redis-backed response cache. Every operation degrades to a miss (or a no-op)
when Redis is unreachable.
"""
import json
import logging
from typing import Any, Callable, Optional

from redis.exceptions import RedisError

from jgpnr.core.config import settings
from jgpnr.db.redis import redis_client

logger = logging.getLogger(__name__)

# Key patterns invalidated when orders or tickets change
ORDERS_PATTERN = "api:/orders*"
ANALYTICS_PATTERN = "api:/analytics*"
TICKETS_PATTERN = "api:/tickets*"


class CacheService:
    def __init__(self, client):
        self.client = client

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.client.get(key)
        except RedisError as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None
        return json.loads(raw) if raw else None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = ttl_seconds or settings.CACHE_DEFAULT_TTL_SECONDS
        try:
            self.client.setex(key, ttl, json.dumps(value, default=str))
        except RedisError as e:
            logger.warning(f"Cache set failed for {key}: {e}")

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except RedisError as e:
            logger.warning(f"Cache delete failed for {key}: {e}")

    def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern; returns the count removed."""
        try:
            keys = list(self.client.scan_iter(match=pattern, count=500))
            if keys:
                self.client.delete(*keys)
            return len(keys)
        except RedisError as e:
            logger.warning(f"Cache invalidation failed for {pattern}: {e}")
            return 0

    def get_or_set(
        self, key: str, factory: Callable[[], Any], ttl_seconds: Optional[int] = None
    ) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = factory()
        self.set(key, value, ttl_seconds)
        return value


cache_service = CacheService(redis_client)
