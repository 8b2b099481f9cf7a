"""Redis cache service for materialized role grants."""

import json
import logging
from typing import Optional, Any

import redis

from routeguard.core.config import settings

logger = logging.getLogger("routeguard")


class CacheService:
    """Redis-backed key/value cache. Failures degrade to cache misses."""

    def __init__(self, url: Optional[str] = None, prefix: str = "routeguard:"):
        self._url = url or settings.REDIS_URL
        self._prefix = prefix
        self._client: Optional[redis.Redis] = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self._url,
                decode_responses=True,
                max_connections=100,
                socket_connect_timeout=1,
            )
        return self._client

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get_json(self, key: str) -> Optional[Any]:
        """Get and parse a JSON cached value."""
        try:
            raw = self.client.get(self._key(key))
        except redis.RedisError as e:
            logger.debug("Cache read failed for %s: %s", key, e)
            return None
        return json.loads(raw) if raw else None

    def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Serialize and cache a JSON value with TTL."""
        try:
            self.client.setex(self._key(key), ttl_seconds, json.dumps(value))
        except redis.RedisError as e:
            logger.debug("Cache write failed for %s: %s", key, e)

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as e:
            logger.warning("Cache delete failed for %s: %s", key, e)

    def invalidate_pattern(self, pattern: str) -> None:
        """Delete all keys matching a glob pattern."""
        try:
            keys = list(self.client.scan_iter(match=self._key(pattern)))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            logger.warning("Cache invalidation failed for %s: %s", pattern, e)

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


cache_service = CacheService()
