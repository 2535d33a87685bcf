"""
Redis read-through cache for reference data lists.

Entries are the JSON lists the reference endpoints return (amounts already
rendered as strings by ``to_dict``), stored under ``{prefix}:{kind}:{key}``.
Any Redis failure degrades to a miss so callers fall back to the database.
"""

import logging
import json
from typing import Any, Callable, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

logger = logging.getLogger(__name__)


class ReferenceCache:
    """Cache of reference lists keyed by kind (suppliers, sites, items, tax rates)."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled: bool = False
        self._prefix: str = 'payables'
        self._default_ttl: int = 60

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self._enabled = app.config.get('CACHE_ENABLED', True)
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'payables')
        self._default_ttl = app.config.get('CACHE_DEFAULT_TTL', 60)
        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')

        if not self._enabled:
            logger.info("[CACHE] Reference cache disabled by config")
            return

        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] Redis connected: {redis_url}")
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable ({e}), reference reads go to the database")
            self._enabled = False
            self.client = None

    @property
    def enabled(self) -> bool:
        return self._enabled and self.client is not None

    def key_for(self, kind: str, key: str) -> str:
        return f"{self._prefix}:{kind}:{key}"

    def lookup(self, kind: str, key: str) -> Optional[Any]:
        """Cached value, or None on a miss or any Redis error."""
        if not self.enabled:
            return None
        try:
            raw = self.client.get(self.key_for(kind, key))
        except RedisError as e:
            logger.warning(f"[CACHE] Read failed for {kind}:{key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"[CACHE] Dropping unreadable entry {kind}:{key}")
            return None

    def store(self, kind: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            self.client.setex(self.key_for(kind, key), ttl or self._default_ttl, json.dumps(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Write failed for {kind}:{key}: {e}")
            return False

    def read_through(self, kind: str, key: str, loader: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        cached = self.lookup(kind, key)
        if cached is not None:
            return cached
        value = loader()
        self.store(kind, key, value, ttl)
        return value

    def invalidate(self, kind: str) -> int:
        """Drop every entry of one kind; returns how many keys went."""
        if not self.enabled:
            return 0
        pattern = self.key_for(kind, '*')
        removed = 0
        try:
            cursor = 0
            while True:
                cursor, keys = self.client.scan(cursor, match=pattern, count=100)
                if keys:
                    self.client.delete(*keys)
                    removed += len(keys)
                if cursor == 0:
                    break
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidate failed for {pattern}: {e}")
            return removed
        if removed:
            logger.info(f"[CACHE] Invalidated {pattern} ({removed} keys)")
        return removed


_cache: Optional[ReferenceCache] = None


def init_cache(app: Flask) -> None:
    global _cache
    _cache = ReferenceCache(app)
    app.extensions['reference_cache'] = _cache


def get_cache() -> ReferenceCache:
    if _cache is None:
        raise RuntimeError("Reference cache not initialized.")
    return _cache
