"""Redis cache layer.

Holds:
- Last emitted alert per symbol (anti-spam lookup)
- Latest sector ranks for quick reads

Uses orjson for serialization. Every operation degrades to a miss when
Redis is unavailable; the database stays the source of truth.
"""

from __future__ import annotations

import logging
from typing import Any

import orjson
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from rotation_app.config import get_settings

logger = logging.getLogger(__name__)

# Global connection pool
_pool: ConnectionPool | None = None
_client: redis.Redis | None = None


# =============================================================================
# Key prefixes
# =============================================================================

KEY_PREFIX_ALERT = "alert:last:"     # Last emitted alert: alert:last:{symbol}
KEY_SECTOR_RANKS = "sectors:ranks"   # Latest weekly ranks


# =============================================================================
# Connection management
# =============================================================================

async def init_cache() -> None:
    """Initialize Redis connection pool."""
    global _pool, _client

    if _client is not None:
        return

    settings = get_settings()
    _pool = ConnectionPool.from_url(
        settings.redis_url,
        max_connections=10,
        decode_responses=False,
    )
    _client = redis.Redis(connection_pool=_pool)

    try:
        await _client.ping()
        logger.info(f"Redis connected: {settings.redis_url}")
    except redis.ConnectionError as e:
        logger.warning(f"Redis connection failed: {e}. Cache will be disabled.")
        _client = None
        _pool = None


async def close_cache() -> None:
    """Close Redis connection pool."""
    global _pool, _client

    if _client is not None:
        await _client.close()
        _client = None

    if _pool is not None:
        await _pool.disconnect()
        _pool = None

    logger.info("Redis connection closed")


def is_cache_available() -> bool:
    """Check if cache is available."""
    return _client is not None


# =============================================================================
# Basic operations
# =============================================================================

async def get(key: str) -> bytes | None:
    """Get a raw value, or None if missing or the cache is unavailable."""
    if _client is None:
        return None

    try:
        return await _client.get(key)
    except redis.RedisError as e:
        logger.warning(f"Redis GET error: {e}")
        return None


async def set(key: str, value: bytes, ttl: int | None = None) -> bool:
    """Set a raw value.

    Args:
        key: Cache key
        value: Raw bytes to store
        ttl: Time-to-live in seconds (None for no expiry)

    Returns:
        True if successful, False otherwise
    """
    if _client is None:
        return False

    try:
        if ttl:
            await _client.setex(key, ttl, value)
        else:
            await _client.set(key, value)
        return True
    except redis.RedisError as e:
        logger.warning(f"Redis SET error: {e}")
        return False


async def mget(keys: list[str]) -> list[bytes | None]:
    """Get multiple values at once (None for missing keys)."""
    if _client is None or not keys:
        return [None] * len(keys)

    try:
        return await _client.mget(keys)
    except redis.RedisError as e:
        logger.warning(f"Redis MGET error: {e}")
        return [None] * len(keys)


# =============================================================================
# JSON operations (using orjson)
# =============================================================================

async def get_json(key: str) -> Any | None:
    data = await get(key)
    if data is None:
        return None

    try:
        return orjson.loads(data)
    except orjson.JSONDecodeError as e:
        logger.warning(f"JSON decode error for key {key}: {e}")
        return None


async def set_json(key: str, value: Any, ttl: int | None = None) -> bool:
    try:
        data = orjson.dumps(value)
        return await set(key, data, ttl)
    except (TypeError, orjson.JSONEncodeError) as e:
        logger.warning(f"JSON encode error for key {key}: {e}")
        return False


async def mget_json(keys: list[str]) -> list[Any | None]:
    """Get multiple JSON values; undecodable entries come back as None."""
    results = []
    for key, data in zip(keys, await mget(keys)):
        if data is None:
            results.append(None)
            continue
        try:
            results.append(orjson.loads(data))
        except orjson.JSONDecodeError as e:
            logger.warning(f"JSON decode error for key {key}: {e}")
            results.append(None)
    return results


# =============================================================================
# Health check
# =============================================================================

async def ping() -> bool:
    """Check if Redis is responsive."""
    if _client is None:
        return False

    try:
        return await _client.ping()
    except redis.RedisError:
        return False
