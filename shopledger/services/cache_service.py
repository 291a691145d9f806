"""
Redis cache for the shop report rollups.

Only read-only rollups are cached: a cached report can always be rebuilt from
the sales tables. Keys live under one namespace per shop,
``{prefix}:tenant:{tenant_id}:reports:{key}``, so a checkout or loan payment
clears exactly that shop's reports. When Redis is disabled or unreachable
every call falls through to the loader.
"""

import logging
import json
from typing import Any, Optional, Callable
from datetime import datetime, date
from decimal import Decimal

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask, current_app, has_app_context

logger = logging.getLogger(__name__)

REPORTS = 'reports'


def _encode(value: Any) -> str:
    """JSON with Decimals tagged so report money keeps its precision."""
    def default(obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return {'__decimal__': str(obj)}
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
    return json.dumps(value, default=default)


def _decode(raw: str) -> Any:
    def object_hook(obj: dict) -> Any:
        if '__decimal__' in obj:
            return Decimal(obj['__decimal__'])
        return obj
    return json.loads(raw, object_hook=object_hook)


class CacheService:
    """Per-shop report cache on Redis."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled: bool = False
        self._prefix: str = ''
        self._ttl: int = 120

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Connect from CACHE_* / REDIS_URL config; disable on failure."""
        self._enabled = app.config.get('CACHE_ENABLED', True)
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'shopledger')
        self._ttl = app.config.get('CACHE_REPORTS_TTL', 120)
        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')

        if not self._enabled:
            logger.info("[CACHE] Report cache disabled via config")
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
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[CACHE] Redis connection failed: {e}. Reports will not be cached.")
            self._enabled = False
            self.client = None

    @property
    def enabled(self) -> bool:
        return self._enabled and self.client is not None

    def report_key(self, tenant_id: int, key: str = '*') -> str:
        return f"{self._prefix}:tenant:{tenant_id}:{REPORTS}:{key}"

    def get_report(self, tenant_id: int, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = self.client.get(self.report_key(tenant_id, key))
        except RedisError as e:
            logger.warning(f"[CACHE] Read failed for tenant {tenant_id}: {e}")
            return None
        return _decode(raw) if raw is not None else None

    def set_report(self, tenant_id: int, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            self.client.setex(self.report_key(tenant_id, key), ttl or self._ttl, _encode(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Write failed for tenant {tenant_id}: {e}")
            return False

    def memoize_report(self, tenant_id: int, key: str, loader: Callable[[], Any],
                       ttl: Optional[int] = None) -> Any:
        """Return the cached report, or build it with `loader` and cache it."""
        cached = self.get_report(tenant_id, key)
        if cached is not None:
            return cached
        value = loader()
        self.set_report(tenant_id, key, value, ttl)
        return value

    def clear_reports(self, tenant_id: int) -> int:
        """Drop every cached report of one shop. Returns the number of keys removed."""
        if not self.enabled:
            return 0
        try:
            keys = list(self.client.scan_iter(match=self.report_key(tenant_id), count=100))
            if keys:
                self.client.delete(*keys)
                logger.info(f"[CACHE] Cleared {len(keys)} report(s) for tenant {tenant_id}")
            return len(keys)
        except RedisError as e:
            logger.warning(f"[CACHE] Clear failed for tenant {tenant_id}: {e}")
            return 0


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    """Initialize cache service singleton."""
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    """Get cache service instance."""
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service


def cached_report(tenant_id: int, key: str, loader: Callable[[], Any]) -> Any:
    """
    Serve a report through the cache when an app is running.

    Scripts and bare service calls (no app context, no cache) just run the
    loader.
    """
    if not has_app_context() or _cache_service is None:
        return loader()
    return _cache_service.memoize_report(
        tenant_id, key, loader, ttl=current_app.config.get('CACHE_REPORTS_TTL')
    )


def invalidate_reports(tenant_id: int) -> None:
    """Drop cached report rollups after a write that changes sales or loans."""
    if _cache_service is not None:
        _cache_service.clear_reports(tenant_id)
