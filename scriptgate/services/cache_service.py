"""Redis cache for resolved role permissions."""

import json
import logging
from typing import Optional, Any

import redis

from scriptgate.core.config import settings

logger = logging.getLogger("scriptgate.cache")


class CacheService:
    """Redis-backed cache. Every failure is non-fatal and reads as a miss."""

    def __init__(self, url: Optional[str] = None, enabled: Optional[bool] = None):
        self._url = url or settings.REDIS_URL
        self.enabled = settings.PERMISSION_CACHE_ENABLED if enabled is None else enabled
        self._client: Optional[redis.Redis] = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self._url,
                decode_responses=True,
                socket_connect_timeout=1,
                socket_timeout=1,
            )
        return self._client

    def get_json(self, key: str) -> Optional[Any]:
        """Get and parse a JSON cached value."""
        if not self.enabled:
            return None
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        return json.loads(raw) if raw else None

    def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Serialize and cache a JSON value with TTL."""
        if not self.enabled:
            return
        try:
            self.client.setex(key, ttl_seconds, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    def invalidate_pattern(self, pattern: str) -> None:
        """Delete all keys matching a pattern."""
        if not self.enabled:
            return
        try:
            keys = list(self.client.scan_iter(match=pattern))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            logger.warning("Cache invalidation failed for %s: %s", pattern, e)

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        if not self.enabled:
            return False
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


cache_service = CacheService()
