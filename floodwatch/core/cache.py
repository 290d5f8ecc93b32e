"""
Redis cache layer — async Redis client with typed helpers.

Provides:
    • Lazy async connection
    • JSON serialisation cache helpers
    • TTL-aware get/set

Cache failures never propagate: a miss, a connection error and a disabled
cache all look the same to the caller (``None`` / ``False``).

Usage:
    from floodwatch.core.cache import cache_get, cache_set

    await cache_set("forecast:13.08,80.27", {"forecast_rainfall_mm": 42.0}, ttl=1800)
    cached = await cache_get("forecast:13.08,80.27")
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from floodwatch.core.config import settings

logger = logging.getLogger(__name__)

# Lazy Redis client, initialised on first use
_redis_client = None


async def _get_redis():
    """Get or create async Redis client. Returns None when caching is off."""
    global _redis_client
    if not settings.WEATHER_CACHE_ENABLED:
        return None
    if _redis_client is None:
        try:
            import redis.asyncio as aioredis
            _redis_client = aioredis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except Exception as e:
            logger.warning("Redis unavailable: %s — caching disabled", e)
            return None
    return _redis_client


async def cache_get(key: str) -> Optional[Any]:
    """Get a cached value by key. Returns None on miss or error."""
    client = await _get_redis()
    if not client:
        return None
    try:
        raw = await client.get(key)
        if raw is not None:
            return json.loads(raw)
    except Exception as e:
        logger.warning("Cache GET error for %s: %s", key, e)
    return None


async def cache_set(key: str, value: Any, ttl: Optional[int] = None) -> bool:
    """Set a cached value with optional TTL (seconds)."""
    client = await _get_redis()
    if not client:
        return False
    try:
        serialised = json.dumps(value, default=str)
        await client.set(key, serialised, ex=ttl or settings.REDIS_FORECAST_TTL)
        return True
    except Exception as e:
        logger.warning("Cache SET error for %s: %s", key, e)
        return False


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")
