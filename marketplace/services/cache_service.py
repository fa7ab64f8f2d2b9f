"""
Redis cache for catalog reads.

Cache-aside with graceful degradation: when Redis is down or misconfigured
every lookup is a miss and every write is a no-op, so callers always fall
through to the database.
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask, current_app

logger = logging.getLogger(__name__)

# Keys deleted per round trip when invalidating a namespace
INVALIDATE_BATCH = 100

PRODUCTS_NAMESPACE = 'products'
CATEGORIES_NAMESPACE = 'categories'


def _encode(value: Any) -> str:
    """JSON with Decimals tagged so they come back exact."""
    def default(obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return {'__decimal__': str(obj)}
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
    return json.dumps(value, default=default)


def _decode(raw: str) -> Any:
    def object_hook(dct):
        if '__decimal__' in dct:
            return Decimal(dct['__decimal__'])
        return dct
    return json.loads(raw, object_hook=object_hook)


class CacheService:
    """
    Namespaced Redis cache.

    Keys pattern: {prefix}:{namespace}:{key}
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self.enabled = False
        self.prefix = 'marketplace'

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.prefix = app.config.get('CACHE_KEY_PREFIX', 'marketplace')
        if not app.config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] Disabled by configuration")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://localhost:6379/0')
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=3,
            retry_on_timeout=True,
            health_check_interval=30
        )
        try:
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable at {redis_url}: {e}. Catalog reads go to the database.")
            return

        self.client = client
        self.enabled = True
        logger.info(f"[CACHE] Redis connected: {redis_url}")

    def is_available(self) -> bool:
        if not self.enabled or self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def key(self, namespace: str, key: str) -> str:
        return f"{self.prefix}:{namespace}:{key}"

    def get(self, namespace: str, key: str) -> Optional[Any]:
        if not self.is_available():
            return None
        try:
            raw = self.client.get(self.key(namespace, key))
        except RedisError as e:
            logger.warning(f"[CACHE] Read failed for {namespace}:{key}: {e}")
            return None
        if raw is None:
            logger.debug(f"[CACHE] MISS {namespace}:{key}")
            return None
        try:
            value = _decode(raw)
        except ValueError:
            logger.warning(f"[CACHE] Dropping undecodable entry {namespace}:{key}")
            return None
        logger.debug(f"[CACHE] HIT {namespace}:{key}")
        return value

    def set(self, namespace: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.is_available():
            return False
        if ttl is None:
            ttl = current_app.config.get('CACHE_DEFAULT_TTL', 60)
        try:
            self.client.setex(self.key(namespace, key), ttl, _encode(value))
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Write failed for {namespace}:{key}: {e}")
            return False
        return True

    def memoize(self, namespace: str, key: str, loader: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value, or call loader and cache what it returns."""
        cached = self.get(namespace, key)
        if cached is not None:
            return cached
        value = loader()
        self.set(namespace, key, value, ttl)
        return value

    def invalidate(self, namespace: str) -> int:
        """Delete every key of a namespace. Returns how many were removed."""
        if not self.is_available():
            return 0
        pattern = self.key(namespace, '*')
        removed = 0
        batch = []
        try:
            for cache_key in self.client.scan_iter(match=pattern, count=INVALIDATE_BATCH):
                batch.append(cache_key)
                if len(batch) >= INVALIDATE_BATCH:
                    removed += self.client.delete(*batch)
                    batch = []
            if batch:
                removed += self.client.delete(*batch)
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidate failed for {pattern}: {e}")
            return removed
        if removed:
            logger.info(f"[CACHE] Invalidated {pattern} ({removed} keys)")
        return removed


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized. Call init_cache(app) first.")
    return _cache_service
