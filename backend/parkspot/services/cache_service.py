"""
Redis connection and caching for the location listing.

CACHING STRATEGY
================

What we cache:
  - The location listing with per-location availability (JSON-serialized)
  - Cache key: "locations:availability:{generation}"

Why:
  - The listing is the most frequent read and aggregates over every spot
  - Serving it from Redis avoids a GROUP BY over the spots table per request

Invalidation strategy:
  - The reservation service bumps a generation counter right after every
    committed book/cancel, before the change is published to viewers
  - The listing lives under "locations:availability:{generation}". A reader
    remembers the generation it saw and writes back under that key, so a
    listing computed before a commit lands under a key nobody reads any more
  - A short TTL (REDIS_CACHE_TTL) expires superseded generations

Why NOT cache individual lots:
  - The lot view is what users book from; it must reflect the spot store
  - Live updates already tell lot viewers when to re-read

The same connection is shared by RedisChannel for pub/sub publishing.
Every call fails open: with Redis disabled or unreachable the API keeps
working straight from the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from parkspot.core.config import get_settings
from parkspot.core.logging import get_logger
from parkspot.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

LISTING_CACHE_KEY = "locations:availability"
LISTING_GENERATION_KEY = "locations:availability:generation"

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
            redis_connection_errors.inc()
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _listing_key(generation: int) -> str:
    return f"{LISTING_CACHE_KEY}:{generation}"


async def get_cached_listing() -> tuple[Optional[dict], Optional[int]]:
    """
    Return (listing, generation). Pass the generation back to
    set_cached_listing; None means the result must not be cached.
    """
    client = await get_redis()
    if not client:
        return None, None

    try:
        generation = int(await client.get(LISTING_GENERATION_KEY) or 0)
        key = _listing_key(generation)
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data), generation
        logger.debug("cache_miss", key=key)
        return None, generation
    except Exception as e:
        logger.error("cache_get_error", key=LISTING_CACHE_KEY, error=str(e))

    return None, None


async def set_cached_listing(data: dict, generation: Optional[int]) -> None:
    if generation is None:
        return
    client = await get_redis()
    if not client:
        return

    key = _listing_key(generation)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set", hit=False)
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_listing_cache() -> None:
    """Retire the current listing after a (possibly) committed occupancy change."""
    client = await get_redis()
    if not client:
        return

    try:
        generation = await client.incr(LISTING_GENERATION_KEY)
        await client.delete(_listing_key(generation - 1))
        logger.info("cache_invalidated", generation=generation)
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
