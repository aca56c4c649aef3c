"""View cache with path revalidation.

Rendered read views (list pages, detail pages, the dashboard) are cached
under their path; a successful mutation marks the affected paths stale
with ``revalidate_path``. Redis is used when configured, with an
in-process TTL cache as fallback.
"""
import json
from typing import Any, Iterable, Optional

import redis
from cachetools import TTLCache

from shared.core import get_logger
from showroom.core_settings import get_settings

logger = get_logger(__name__)

KEY_PREFIX = "view:"


def cache_key(path: str, query: str = "") -> str:
    return f"{KEY_PREFIX}{path}?{query}"


class ViewCache:
    def __init__(self, redis_url: Optional[str] = None, ttl: int = 60, maxsize: int = 1024):
        self.ttl = ttl
        self.local = TTLCache(maxsize=maxsize, ttl=ttl)
        self.redis: Optional[redis.Redis] = None
        if redis_url:
            try:
                client = redis.from_url(redis_url, decode_responses=True)
                client.ping()
                self.redis = client
            except redis.RedisError as e:
                logger.warning(f"Redis unavailable, using local view cache: {e}")

    def get(self, path: str, query: str = "") -> Optional[Any]:
        key = cache_key(path, query)
        if self.redis is not None:
            try:
                value = self.redis.get(key)
                if value is not None:
                    return json.loads(value)
            except redis.RedisError as e:
                logger.warning(f"View cache read failed for {key}: {e}")
        return self.local.get(key)

    def set(self, path: str, value: Any, query: str = "") -> None:
        key = cache_key(path, query)
        if self.redis is not None:
            try:
                self.redis.setex(key, self.ttl, json.dumps(value, default=str))
                return
            except redis.RedisError as e:
                logger.warning(f"View cache write failed for {key}: {e}")
        self.local[key] = value

    def revalidate_path(self, path: str) -> None:
        """Drop every cached variant (any query string) of one view path."""
        prefix = cache_key(path)
        for key in tuple(self.local.keys()):
            if key.startswith(prefix):
                self.local.pop(key, None)
        if self.redis is not None:
            try:
                for key in self.redis.scan_iter(match=f"{prefix}*"):
                    self.redis.delete(key)
            except redis.RedisError as e:
                # stale views expire with their TTL
                logger.warning(f"View cache purge failed for {path}: {e}")

    def revalidate(self, paths: Iterable[str]) -> None:
        for path in dict.fromkeys(paths):
            self.revalidate_path(path)


_view_cache: Optional[ViewCache] = None


def get_view_cache() -> ViewCache:
    global _view_cache
    if _view_cache is None:
        settings = get_settings()
        _view_cache = ViewCache(settings.REDIS_URL, ttl=settings.VIEW_CACHE_TTL)
    return _view_cache
