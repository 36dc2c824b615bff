"""
Redis read-through cache for movie endpoints
"""

import json
from typing import Any, Callable, Optional

import redis

from moviedb.config.settings import Settings, get_settings
from moviedb.services.logger_service import get_logger
from moviedb.services.monitoring_service import get_monitoring_service

MOVIES_NAMESPACE = "movies"

# Seconds
TTL_MOVIE_LIST = 60
TTL_SEARCH = 60
TTL_TRENDING = 300
TTL_TOP_RATED = 300
TTL_GENRE = 300
TTL_MOVIE = 300
TTL_TMDB_LOOKUP = 3600


class CacheService:
    """
    JSON cache on top of redis-py.

    Every Redis failure is logged and counted, then treated as a miss so the
    caller falls through to the database.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[redis.Redis] = None):
        self.settings = settings or get_settings()
        self.enabled = self.settings.cache_enabled
        self.default_ttl = self.settings.cache_default_ttl
        self.logger = get_logger("cache")
        self.monitoring = get_monitoring_service()
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self.settings.redis_url, socket_connect_timeout=2, socket_timeout=2, decode_responses=True
            )
        return self._client

    @staticmethod
    def build_key(namespace: str, path: str, query: str = "") -> str:
        return f"{namespace}:{path}?{query}" if query else f"{namespace}:{path}"

    def _failed(self, operation: str, key: str, error: Exception):
        self.monitoring.increment_counter("cache_errors_total", tags={"operation": operation})
        self.logger.warning("Cache operation failed", operation=operation, key=key, error=str(error))

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None

        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            self._failed("get", key, e)
            return None

        if raw is None:
            self.monitoring.increment_counter("cache_misses_total")
            return None

        try:
            value = json.loads(raw)
        except ValueError as e:
            self._failed("decode", key, e)
            return None

        self.monitoring.increment_counter("cache_hits_total")
        self.logger.debug("Cache hit", key=key)
        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False

        try:
            self.client.setex(key, ttl or self.default_ttl, json.dumps(value, default=str))
            return True
        except redis.RedisError as e:
            self._failed("set", key, e)
            return False

    def get_or_set(self, key: str, ttl: Optional[int], producer: Callable[[], Any]) -> Any:
        """Return the cached value for key, or compute it with producer and cache it"""
        cached = self.get(key)
        if cached is not None:
            return cached

        value = producer()
        self.set(key, value, ttl)
        return value

    def invalidate_namespace(self, namespace: str = MOVIES_NAMESPACE) -> int:
        """Delete every key under namespace; returns the number of keys removed"""
        if not self.enabled:
            return 0

        try:
            keys = list(self.client.scan_iter(match=f"{namespace}:*", count=500))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            self._failed("invalidate", f"{namespace}:*", e)
            return 0

        self.logger.debug("Cache namespace invalidated", namespace=namespace, keys=len(keys))
        return len(keys)

    def invalidate_movies(self) -> int:
        return self.invalidate_namespace(MOVIES_NAMESPACE)

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            self.logger.warning("Redis ping failed", error=str(e))
            return False

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


_cache_service: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get global cache service instance"""
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
    return _cache_service
