"""
Redis caching for the admin payout dashboard.

CACHING STRATEGY
================

What we cache:
  - Held-payout listing responses (paginated, JSON-serialized)
  - Cache key pattern: "payouts:held:page={page}&size={size}"

Why:
  - The payout dashboard polls the listing on every visit and after every
    release; the underlying query filters and sorts the whole payments table.
  - The data only changes when a payment is verified or a payout released.

Invalidation strategy:
  - On successful payment verification: a new payment enters escrow
  - On payout release: a payment leaves escrow
  - TTL-based expiry as safety net

  All keys share the "payouts:held:" prefix so they can be SCANned and
  deleted together.

What is NOT cached:
  - Bookings and single payments. The state machine guards read the
    database directly; a stale status there would let an illegal
    transition or a double release through.

Redis is optional: when it is disabled or unreachable every function
degrades to a no-op and callers fall back to the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

HELD_PAYOUTS_PREFIX = "payouts:held:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            redis_connection_errors.inc()
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_held_payouts_key(page: int, page_size: int) -> str:
    return f"{HELD_PAYOUTS_PREFIX}page={page}&size={page_size}"


async def get_cached_held_payouts(page: int, page_size: int) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = make_held_payouts_key(page, page_size)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=bool(data))
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_held_payouts(page: int, page_size: int, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = make_held_payouts_key(page, page_size)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_payout_cache() -> None:
    """Drop every cached held-payout page."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{HELD_PAYOUTS_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
