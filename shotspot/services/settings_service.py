"""
Runtime settings with database overrides.

Lookup order for resolve_setting: the settings table, then the Redis cache,
then an environment variable, then the caller's default. Values read from the
database are cached in Redis for CACHE_TTL_SECONDS.
"""

import os
import logging
from typing import Optional

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession
from dotenv import load_dotenv

from shotspot.database.models import Setting

load_dotenv()

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL") or (
    f"redis://{os.getenv('REDIS_HOST', 'localhost')}:{os.getenv('REDIS_PORT', '6379')}/{os.getenv('REDIS_DB', '0')}"
)
CACHE_TTL_SECONDS = 60
CACHE_KEY_PREFIX = "shotspot:setting:"

_redis: Optional[Redis] = None


def cache_enabled() -> bool:
    if os.getenv("ENV", "development").lower() == "test":
        return False
    return os.getenv("REDIS_DISABLED", "").lower() not in ("1", "true")


async def _cache() -> Optional[Redis]:
    """Lazily connect to Redis; None when caching is off or Redis is down."""
    global _redis
    if not cache_enabled():
        return None
    if _redis is None:
        client = Redis.from_url(REDIS_URL, decode_responses=True, socket_connect_timeout=2, socket_timeout=2)
        try:
            await client.ping()
        except Exception as e:
            logger.warning(f"Redis unavailable at {REDIS_URL}, settings cache disabled for this call: {e}")
            await client.aclose()
            return None
        _redis = client
        logger.info(f"Settings cache connected to {REDIS_URL}")
    return _redis


async def _cache_get(key: str) -> Optional[str]:
    client = await _cache()
    if client is None:
        return None
    try:
        return await client.get(CACHE_KEY_PREFIX + key)
    except Exception as e:
        logger.warning(f"Could not read cached setting {key}: {e}")
        return None


async def _cache_put(key: str, value: Optional[str]) -> None:
    client = await _cache()
    if client is None:
        return
    try:
        if value is None:
            await client.delete(CACHE_KEY_PREFIX + key)
        else:
            await client.setex(CACHE_KEY_PREFIX + key, CACHE_TTL_SECONDS, value)
    except Exception as e:
        logger.warning(f"Could not cache setting {key}: {e}")


async def get_setting(session: AsyncSession, key: str) -> Optional[str]:
    row = await session.get(Setting, key)
    return row.value if row else None


async def set_setting(session: AsyncSession, key: str, value: Optional[str]) -> None:
    """Upsert a setting and refresh its cache entry."""
    row = await session.get(Setting, key)
    if row is None:
        session.add(Setting(key=key, value=value))
    else:
        row.value = value
    await session.commit()
    await _cache_put(key, value)


async def resolve_setting(
    session: Optional[AsyncSession],
    key: str,
    env_var: Optional[str] = None,
    default: Optional[str] = None,
) -> Optional[str]:
    """
    Resolve a setting through database, cache and environment.

    Args:
        session: Database session, or None for callers outside a request
        key: Setting key
        env_var: Environment variable consulted when no stored value exists
        default: Returned when nothing else matches
    """
    if session is not None:
        value = await get_setting(session, key)
        if value is not None:
            await _cache_put(key, value)
            return value

    cached = await _cache_get(key)
    if cached is not None:
        return cached

    if env_var and os.getenv(env_var) is not None:
        return os.getenv(env_var)
    return default


async def close_redis_connection() -> None:
    global _redis
    if _redis is not None:
        try:
            await _redis.aclose()
        finally:
            _redis = None
